"""Backend independent job tracker contract and helpers."""

from .errors import (
    ClientConfigurationError,
    ClientUnavailableError,
    ConversionError,
    InvalidArgumentError,
    InvalidStateError,
    JobNotFoundError,
    JobTrackerError,
    UnsupportedOperationError,
    WaitTimeoutError,
)
from .protocol import JobTracker, JobTrackerAllocatorInterface
from .registry import JobTrackerRegistry, UnknownBackendError
from .states import JobState
from .template import JobInfo, JobTemplate

__all__ = [
    "ClientConfigurationError",
    "ClientUnavailableError",
    "ConversionError",
    "InvalidArgumentError",
    "InvalidStateError",
    "JobNotFoundError",
    "JobTrackerError",
    "UnsupportedOperationError",
    "WaitTimeoutError",
    "JobTracker",
    "JobTrackerAllocatorInterface",
    "JobTrackerRegistry",
    "UnknownBackendError",
    "JobState",
    "JobInfo",
    "JobTemplate",
]
