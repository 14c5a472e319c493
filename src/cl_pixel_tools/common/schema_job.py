from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .cancellation import CancellationToken

P = TypeVar("P")
R = TypeVar("R")


class JobPhase(str, Enum):
    queued = "queued"
    running = "running"
    completed = "completed"
    failed = "failed"
    canceled = "canceled"


class QueueItem(BaseModel, Generic[P]):
    """One unit of scheduled work: a caller supplied id and an opaque payload."""

    id: str = Field(min_length=1, description="unique among queued and running jobs")
    payload: P

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, arbitrary_types_allowed=True
    )


@dataclass(frozen=True)
class QueueWorkerContext(Generic[P]):
    """Everything a worker invocation receives from the queue."""

    id: str
    payload: P
    token: CancellationToken
    report_progress: Callable[[float], None]


QueueWorker = Callable[[QueueWorkerContext[P]], Awaitable[R]]
