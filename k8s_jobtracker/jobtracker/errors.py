"""Exceptions raised by job trackers and their helpers."""

from __future__ import annotations


class JobTrackerError(RuntimeError):
    """Base class for all tracker failures."""


class ClientUnavailableError(JobTrackerError):
    """Raised when no cluster client can be obtained for a call."""


class ClientConfigurationError(JobTrackerError):
    """Raised when ambient cluster configuration cannot be loaded."""


class ConversionError(JobTrackerError):
    """Raised when a job template cannot be converted into a workload."""


class JobNotFoundError(JobTrackerError):
    """Raised when a job id does not resolve to a job of the session."""


class UnsupportedOperationError(JobTrackerError):
    pass


class InvalidStateError(JobTrackerError):
    """Raised when a control action does not apply to the job's current state."""


class InvalidArgumentError(JobTrackerError, ValueError):
    pass


class WaitTimeoutError(JobTrackerError, TimeoutError):
    pass


__all__ = [
    "JobTrackerError",
    "ClientUnavailableError",
    "ClientConfigurationError",
    "ConversionError",
    "JobNotFoundError",
    "UnsupportedOperationError",
    "InvalidStateError",
    "InvalidArgumentError",
    "WaitTimeoutError",
]
