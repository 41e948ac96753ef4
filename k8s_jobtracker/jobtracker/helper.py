"""Backend independent helpers shared by job trackers.

Backends without a native array job primitive submit array jobs as single
jobs and hand out a composite id; waiting is a plain poll on ``job_state``.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable
from dataclasses import replace

from k8s_jobtracker.jobtracker.errors import InvalidArgumentError, WaitTimeoutError
from k8s_jobtracker.jobtracker.protocol import JobTracker
from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.jobtracker.template import JobTemplate

LOGGER = logging.getLogger(__name__)

TASK_ID_ENV = "TASK_ID"
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


def guids_to_array_job_id(guids: Iterable[str]) -> str:
    return json.dumps(list(guids))


def array_job_id_to_guids(array_job_id: str) -> list[str]:
    """Decode a composite array job id into the ids of its tasks."""
    try:
        guids = json.loads(array_job_id)
    except (TypeError, json.JSONDecodeError) as exc:
        raise InvalidArgumentError(f"malformed array job id: {array_job_id!r}") from exc
    if not isinstance(guids, list) or not all(isinstance(guid, str) for guid in guids):
        raise InvalidArgumentError(f"array job id is not a list of job ids: {array_job_id!r}")
    return guids


def task_template(template: JobTemplate, index: int) -> JobTemplate:
    """Return a copy of ``template`` for array task ``index``."""
    environment = dict(template.job_environment)
    environment[TASK_ID_ENV] = str(index)
    job_name = f"{template.job_name}-{index}" if template.job_name else ""
    return replace(template, job_environment=environment, job_name=job_name)


def add_array_job_as_single_jobs(
    template: JobTemplate,
    tracker: JobTracker,
    begin: int,
    end: int,
    step: int,
) -> str:
    """Submit one job per index in ``begin..end`` (inclusive) and return the
    composite id."""
    if step < 1:
        raise InvalidArgumentError(f"array job step must be positive, got {step}")
    if begin > end:
        raise InvalidArgumentError(f"array job begin ({begin}) is larger than end ({end})")

    guids: list[str] = []
    for index in range(begin, end + 1, step):
        try:
            guids.append(tracker.add_job(task_template(template, index)))
        except Exception:
            if guids:
                LOGGER.warning(
                    "Array job submission stopped at index %d; already submitted: %s",
                    index,
                    ", ".join(guids),
                )
            raise
    return guids_to_array_job_id(guids)


def wait_for_state(
    tracker: JobTracker,
    job_id: str,
    timeout: float | None,
    states: Iterable[JobState],
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> None:
    """Poll ``tracker.job_state`` until the job reaches one of ``states``.

    Args:
        tracker: Tracker answering the state queries
        job_id: Job to observe
        timeout: Seconds to wait; ``None`` or negative waits forever, ``0``
            checks exactly once
        states: Accepted target states
        poll_interval: Seconds between two state queries

    Raises:
        InvalidArgumentError: If no target state is given
        WaitTimeoutError: If none of the states was reached within ``timeout``
    """
    targets = frozenset(states)
    if not targets:
        raise InvalidArgumentError("no target states given to wait for")

    deadline = None if timeout is None or timeout < 0 else time.monotonic() + timeout
    while True:
        state, _ = tracker.job_state(job_id)
        if state in targets:
            return
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                wanted = ", ".join(sorted(target.value for target in targets))
                raise WaitTimeoutError(
                    f"timeout while waiting for job {job_id} to reach one of [{wanted}] "
                    f"(last state: {state.value})"
                )
            time.sleep(min(poll_interval, remaining))
        else:
            time.sleep(poll_interval)


__all__ = [
    "TASK_ID_ENV",
    "add_array_job_as_single_jobs",
    "array_job_id_to_guids",
    "guids_to_array_job_id",
    "task_template",
    "wait_for_state",
]
