"""Job template and job info records exchanged with trackers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from compoconf import ConfigInterface

from k8s_jobtracker.jobtracker.states import JobState


@dataclass(kw_only=True)
class JobTemplate(ConfigInterface):
    """Backend independent description of a job to run.

    Only a subset of the fields is meaningful for every backend; trackers
    ignore what they cannot express. Backend specific settings go into
    ``extension``.

    Attributes:
        remote_command: Executable started inside the job
        job_category: Backend category; for container backends the image
        min_phys_memory: Minimum memory in KiB
        start_time: ISO 8601 time (or ``datetime``) before which the job must not start
        deadline_time: ISO 8601 time (or ``datetime``) after which the job is stopped
        extension: Backend specific key/value settings
    """

    class_name: str = "JobTemplate"
    remote_command: str = ""
    args: list[str] = field(default_factory=list)
    submit_as_hold: bool = False
    rerunnable: bool = False
    job_environment: dict[str, str] = field(default_factory=dict)
    working_directory: str = ""
    job_category: str = ""
    email: list[str] = field(default_factory=list)
    email_on_started: bool = False
    email_on_terminated: bool = False
    job_name: str = ""
    input_path: str = ""
    output_path: str = ""
    error_path: str = ""
    join_files: bool = False
    reservation_id: str = ""
    queue_name: str = ""
    min_slots: int = 0
    max_slots: int = 0
    priority: int = 0
    candidate_machines: list[str] = field(default_factory=list)
    min_phys_memory: int = 0
    machine_os: str = ""
    machine_arch: str = ""
    start_time: str | None = None
    deadline_time: str | None = None
    stage_in_files: dict[str, str] = field(default_factory=dict)
    stage_out_files: dict[str, str] = field(default_factory=dict)
    resource_limits: dict[str, str] = field(default_factory=dict)
    accounting_id: str = ""
    extension: dict[str, Any] = field(default_factory=dict)


@dataclass(kw_only=True)
class JobInfo:
    """Snapshot of a job as reported by the backend at query time."""

    id: str
    state: JobState = JobState.UNDETERMINED
    sub_state: str = ""
    exit_status: int | None = None
    terminating_signal: str = ""
    annotation: str = ""
    allocated_machines: list[str] = field(default_factory=list)
    submission_machine: str = ""
    job_owner: str = ""
    slots: int = 0
    queue_name: str = ""
    wallclock_time: float | None = None
    cpu_time: float | None = None
    submission_time: datetime | None = None
    dispatch_time: datetime | None = None
    finish_time: datetime | None = None
    extension: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        def _time(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "id": self.id,
            "state": self.state.value,
            "sub_state": self.sub_state,
            "exit_status": self.exit_status,
            "terminating_signal": self.terminating_signal,
            "annotation": self.annotation,
            "allocated_machines": list(self.allocated_machines),
            "submission_machine": self.submission_machine,
            "job_owner": self.job_owner,
            "slots": self.slots,
            "queue_name": self.queue_name,
            "wallclock_time": self.wallclock_time,
            "cpu_time": self.cpu_time,
            "submission_time": _time(self.submission_time),
            "dispatch_time": _time(self.dispatch_time),
            "finish_time": _time(self.finish_time),
            "extension": dict(self.extension),
        }


__all__ = ["JobTemplate", "JobInfo"]
