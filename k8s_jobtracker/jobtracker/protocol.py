"""Protocol defining the job tracker interface used by job sessions.

A job tracker adapts one execution backend (Kubernetes, local processes,
batch schedulers) to the job session vocabulary. Trackers are produced by
allocators, which are registered per backend type in a
:class:`~k8s_jobtracker.jobtracker.registry.JobTrackerRegistry`.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from compoconf import RegistrableConfigInterface, register_interface

from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.jobtracker.template import JobInfo, JobTemplate


@runtime_checkable
class JobTracker(Protocol):
    """Job lifecycle operations for a single job session."""

    def list_job_categories(self) -> list[str]:  # pragma: no cover
        ...

    def list_jobs(self) -> list[str]:  # pragma: no cover
        """Return the ids of all jobs belonging to the session."""
        ...

    def add_job(self, template: JobTemplate) -> str:  # pragma: no cover
        """Submit a job and return its id."""
        ...

    def add_array_job(
        self,
        template: JobTemplate,
        begin: int,
        end: int,
        step: int,
        max_parallel: int,
    ) -> str:  # pragma: no cover
        """Submit an array job and return its composite id."""
        ...

    def list_array_jobs(self, array_job_id: str) -> list[str]:  # pragma: no cover
        ...

    def job_state(self, job_id: str) -> tuple[JobState, str]:  # pragma: no cover
        """Return ``(state, sub_state)`` for the job."""
        ...

    def job_info(self, job_id: str) -> JobInfo:  # pragma: no cover
        ...

    def job_control(self, job_id: str, action: str) -> None:  # pragma: no cover
        """Apply suspend, resume, hold, release or terminate."""
        ...

    def wait(
        self,
        job_id: str,
        timeout: float | None,
        *states: JobState,
    ) -> None:  # pragma: no cover
        """Block until the job is in one of ``states`` or ``timeout`` elapses.

        Raises:
            WaitTimeoutError: If none of the states is reached in time
        """
        ...

    def delete_job(self, job_id: str) -> None:  # pragma: no cover
        ...


@register_interface
class JobTrackerAllocatorInterface(RegistrableConfigInterface):
    """Registrable factory producing a tracker per job session.

    Implementations expose a ``backend_type`` key and a
    ``new(session_name, init_params)`` method.
    """

    backend_type: str = ""

    def new(self, session_name: str, init_params: Any = None) -> JobTracker:  # pragma: no cover
        raise NotImplementedError


__all__ = ["JobTracker", "JobTrackerAllocatorInterface"]
