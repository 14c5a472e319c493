"""Queue lifecycle events (wire format for listeners and broadcasters)."""

from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


class JobQueued(_Event):
    type: Literal["queued"] = "queued"
    job_id: str


class JobStarted(_Event):
    type: Literal["started"] = "started"
    job_id: str


class JobProgress(_Event):
    type: Literal["progress"] = "progress"
    job_id: str
    progress: float = Field(ge=0.0, le=1.0)


class JobCompleted(_Event):
    type: Literal["completed"] = "completed"
    job_id: str
    result: Any = None


class JobFailed(_Event):
    type: Literal["failed"] = "failed"
    job_id: str
    message: str


class JobCanceled(_Event):
    type: Literal["canceled"] = "canceled"
    job_id: str


class QueueIdle(_Event):
    type: Literal["idle"] = "idle"


QueueEvent = Annotated[
    JobQueued | JobStarted | JobProgress | JobCompleted | JobFailed | JobCanceled | QueueIdle,
    Field(discriminator="type"),
]
