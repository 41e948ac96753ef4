"""Lifecycle states reported by job trackers."""

from __future__ import annotations

from enum import Enum


class JobState(str, Enum):
    """DRMAA2 job states, derived on demand from the backend's workload."""

    UNSET = "unset"
    UNDETERMINED = "undetermined"
    QUEUED = "queued"
    QUEUED_HELD = "queued_held"
    RUNNING = "running"
    SUSPENDED = "suspended"
    REQUEUED = "requeued"
    REQUEUED_HELD = "requeued_held"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_finished(self) -> bool:
        return self in FINISHED_STATES

    @classmethod
    def parse(cls, value: str | JobState) -> JobState:
        """Accept enum members, their values and the CamelCase DRMAA2 names."""
        if isinstance(value, JobState):
            return value
        normalized = value.strip()
        for state in cls:
            if normalized in (state.value, state.name) or normalized.lower() == state.value.replace("_", ""):
                return state
        raise ValueError(f"Unknown job state: {value}")


FINISHED_STATES = frozenset({JobState.DONE, JobState.FAILED})


__all__ = ["JobState", "FINISHED_STATES"]
