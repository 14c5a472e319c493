"""Common module - cancellation, errors, schemas, and base classes."""

from .cancellation import CancellationToken
from .compute_module import ComputeModule
from .schema_job import JobPhase, QueueItem, QueueWorkerContext

__all__ = [
    "CancellationToken",
    "ComputeModule",
    "JobPhase",
    "QueueItem",
    "QueueWorkerContext",
]
