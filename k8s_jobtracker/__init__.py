"""DRMAA2-style job tracker backed by Kubernetes batch Jobs."""

from k8s_jobtracker.jobtracker import (
    JobInfo,
    JobState,
    JobTemplate,
    JobTracker,
    JobTrackerError,
    JobTrackerRegistry,
)

__all__ = [
    "JobInfo",
    "JobState",
    "JobTemplate",
    "JobTracker",
    "JobTrackerError",
    "JobTrackerRegistry",
]
