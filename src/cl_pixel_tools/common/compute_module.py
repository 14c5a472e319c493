"""ComputeModule - Abstract base class for queue workers."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from .cancellation import CancellationToken
from .errors import ConfigurationInvalid
from .schema_job import QueueWorkerContext

P = TypeVar("P", bound=BaseModel)
Q = TypeVar("Q", bound=BaseModel)


class ComputeModule(ABC, Generic[P, Q]):
    """
    Stateless, template-method based compute module.

    - Payloads are validated once against ``schema`` and passed through
    - run() does the work and returns a result model
    - execute() is the worker function handed to JobQueue
    """

    schema: type[P]

    @property
    @abstractmethod
    def task_type(self) -> str: ...

    def setup(self) -> None:
        """Optional per-execution setup."""
        pass

    @abstractmethod
    async def run(
        self,
        params: P,
        token: CancellationToken,
        progress_callback: Callable[[float], None] | None = None,
    ) -> Q:
        """
        Execute task.

        - Must check ``token`` at every suspension point
        - Raises OperationCanceled when it unwinds because of ``token``
        """
        ...

    def validate(self, payload: P | Mapping[str, Any]) -> P:
        if isinstance(payload, self.schema):
            return payload
        try:
            return self.schema.model_validate(payload)
        except ValidationError as exc:
            raise ConfigurationInvalid(f"Invalid {self.task_type} payload: {exc}") from exc

    async def execute(self, context: QueueWorkerContext[Any]) -> Q:
        params = self.validate(context.payload)

        self.setup()

        return await self.run(
            params,
            context.token,
            context.report_progress,
        )
