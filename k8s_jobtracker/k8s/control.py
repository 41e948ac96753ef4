"""Job control actions applied to Kubernetes Jobs."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from kubernetes.client import BatchV1Api, V1Job
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from k8s_jobtracker.jobtracker.errors import (
    InvalidStateError,
    JobTrackerError,
    UnsupportedOperationError,
)
from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.k8s.convert import HELD_ANNOTATION, job_status_to_state

LOGGER = logging.getLogger(__name__)

API_ERRORS = (ApiException, HTTPError)


class JobAction(str, Enum):
    SUSPEND = "suspend"
    RESUME = "resume"
    HOLD = "hold"
    RELEASE = "release"
    TERMINATE = "terminate"


def parse_action(action: str | JobAction) -> JobAction:
    try:
        return JobAction(str(action.value if isinstance(action, JobAction) else action).lower())
    except ValueError:
        raise UnsupportedOperationError(f"unsupported job control action: {action}") from None


def _patch_body(action: JobAction, state: JobState) -> dict[str, Any]:
    if action is JobAction.SUSPEND:
        if state.is_finished:
            raise InvalidStateError(f"cannot suspend a job in state {state.value}")
        return {"spec": {"suspend": True}}
    if action is JobAction.RESUME:
        if state is not JobState.SUSPENDED:
            raise InvalidStateError(f"cannot resume a job in state {state.value}")
        return {"spec": {"suspend": False}}
    if action is JobAction.HOLD:
        if state not in (JobState.QUEUED, JobState.REQUEUED):
            raise InvalidStateError(f"cannot hold a job in state {state.value}")
        return {"metadata": {"annotations": {HELD_ANNOTATION: "true"}}, "spec": {"suspend": True}}
    if state not in (JobState.QUEUED_HELD, JobState.REQUEUED_HELD):
        raise InvalidStateError(f"cannot release a job in state {state.value}")
    # A null value removes the annotation.
    return {"metadata": {"annotations": {HELD_ANNOTATION: None}}, "spec": {"suspend": False}}


def delete_job(batch: BatchV1Api, job: V1Job, propagation_policy: str = "Background") -> None:
    name, namespace = job.metadata.name, job.metadata.namespace
    try:
        batch.delete_namespaced_job(name, namespace, propagation_policy=propagation_policy)
    except API_ERRORS as exc:
        raise JobTrackerError(f"deleting job {namespace}/{name}: {exc}") from exc
    LOGGER.info("Deleted job %s/%s", namespace, name)


def job_state_change(
    batch: BatchV1Api,
    job: V1Job,
    action: str | JobAction,
    propagation_policy: str = "Background",
) -> None:
    """Apply a control action to ``job``.

    Suspension uses the Job's ``spec.suspend`` field; held jobs are suspended
    jobs which additionally carry the held annotation. Termination deletes
    the Job.

    Raises:
        UnsupportedOperationError: If ``action`` is not a known action
        InvalidStateError: If the action does not apply to the job's state
        JobTrackerError: If the API call fails
    """
    job_action = parse_action(action)
    if job_action is JobAction.TERMINATE:
        delete_job(batch, job, propagation_policy=propagation_policy)
        return

    state, _ = job_status_to_state(job)
    body = _patch_body(job_action, state)
    name, namespace = job.metadata.name, job.metadata.namespace
    try:
        batch.patch_namespaced_job(name, namespace, body)
    except API_ERRORS as exc:
        raise JobTrackerError(f"{job_action.value} job {namespace}/{name}: {exc}") from exc
    LOGGER.info("Applied %s to job %s/%s", job_action.value, namespace, name)


__all__ = ["API_ERRORS", "JobAction", "delete_job", "job_state_change", "parse_action"]
