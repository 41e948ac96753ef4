"""Session manager registry mapping backend types to tracker allocators.

The host application creates a registry and registers the allocators it
wants to offer at startup; opening a session of a backend type asks the
matching allocator for a new tracker.
"""

from __future__ import annotations

import logging
from typing import Any

from k8s_jobtracker.jobtracker.errors import JobTrackerError
from k8s_jobtracker.jobtracker.protocol import JobTracker, JobTrackerAllocatorInterface

LOGGER = logging.getLogger(__name__)


class UnknownBackendError(JobTrackerError, KeyError):
    pass


class JobTrackerRegistry:
    """Explicit registry of tracker allocators keyed by backend type."""

    def __init__(self) -> None:
        self._allocators: dict[str, JobTrackerAllocatorInterface] = {}

    def register(self, backend_type: str, allocator: JobTrackerAllocatorInterface) -> None:
        if not backend_type:
            raise ValueError("backend type must not be empty")
        if backend_type in self._allocators:
            LOGGER.warning("Replacing job tracker allocator for backend %s", backend_type)
        self._allocators[backend_type] = allocator

    def unregister(self, backend_type: str) -> None:
        self._allocators.pop(backend_type, None)

    def allocator(self, backend_type: str) -> JobTrackerAllocatorInterface:
        try:
            return self._allocators[backend_type]
        except KeyError:
            raise UnknownBackendError(f"no job tracker registered for backend '{backend_type}'") from None

    def backends(self) -> list[str]:
        return sorted(self._allocators)

    def new_job_tracker(
        self,
        backend_type: str,
        session_name: str,
        init_params: Any = None,
    ) -> JobTracker:
        """Allocate a tracker for ``session_name`` from the backend's allocator."""
        allocator = self.allocator(backend_type)
        LOGGER.debug("Allocating %s job tracker for session %s", backend_type, session_name)
        return allocator.new(session_name, init_params)

    def __contains__(self, backend_type: object) -> bool:
        return backend_type in self._allocators


__all__ = ["JobTrackerRegistry", "UnknownBackendError"]
