import json
import threading
import time

import pytest

from k8s_jobtracker.jobtracker.errors import InvalidArgumentError, JobTrackerError, WaitTimeoutError
from k8s_jobtracker.jobtracker.helper import (
    TASK_ID_ENV,
    array_job_id_to_guids,
    guids_to_array_job_id,
    task_template,
    wait_for_state,
)
from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.jobtracker.template import JobTemplate


def test_array_job_id_is_json_list() -> None:
    array_job_id = guids_to_array_job_id(["a", "b"])

    assert json.loads(array_job_id) == ["a", "b"]
    assert array_job_id_to_guids(array_job_id) == ["a", "b"]
    assert array_job_id_to_guids("[]") == []


@pytest.mark.parametrize("array_job_id", ["", "not json", '{"a": 1}', "[1, 2]", '"job"'])
def test_malformed_array_job_ids(array_job_id) -> None:
    with pytest.raises(InvalidArgumentError):
        array_job_id_to_guids(array_job_id)


def test_task_template_sets_task_id_and_name() -> None:
    template = JobTemplate(remote_command="/bin/true", job_name="train", job_environment={"A": "1"})

    task = task_template(template, 3)

    assert task.job_environment == {"A": "1", TASK_ID_ENV: "3"}
    assert task.job_name == "train-3"
    assert template.job_environment == {"A": "1"}
    assert task_template(JobTemplate(), 1).job_name == ""


def test_add_array_job_submits_one_job_per_index(tracker, fake_api, template) -> None:
    array_job_id = tracker.add_array_job(template, 1, 3, 1, 0)

    job_ids = tracker.list_array_jobs(array_job_id)
    assert len(job_ids) == 3
    assert sorted(tracker.list_jobs()) == sorted(job_ids)
    task_ids = sorted(
        env.value
        for job in fake_api.jobs()
        for env in job.spec.template.spec.containers[0].env
        if env.name == TASK_ID_ENV
    )
    assert task_ids == ["1", "2", "3"]


def test_add_array_job_with_step(tracker, template) -> None:
    array_job_id = tracker.add_array_job(template, 2, 7, 2, 1)

    assert len(tracker.list_array_jobs(array_job_id)) == 3


@pytest.mark.parametrize(("begin", "end", "step"), [(1, 3, 0), (1, 3, -1), (4, 3, 1)])
def test_add_array_job_rejects_bad_ranges(tracker, template, begin, end, step) -> None:
    with pytest.raises(InvalidArgumentError):
        tracker.add_array_job(template, begin, end, step, 0)
    assert tracker.list_jobs() == []


def test_add_array_job_stops_at_first_failure(tracker, template, caplog) -> None:
    template.job_name = "fixed"
    tracker.add_job(task_template(template, 2))

    with pytest.raises(JobTrackerError):
        tracker.add_array_job(template, 1, 3, 1, 0)

    assert "fixed-1" in caplog.text
    assert sorted(tracker.list_jobs()) == ["fixed-1", "fixed-2"]


def test_wait_returns_when_state_reached(tracker, fake_api, template) -> None:
    job_id = tracker.add_job(template)
    timer = threading.Timer(0.1, fake_api.set_state, args=(job_id, JobState.DONE))
    timer.start()
    try:
        tracker.wait(job_id, 5.0, JobState.DONE, JobState.FAILED)
    finally:
        timer.cancel()

    assert tracker.job_state(job_id)[0] is JobState.DONE


def test_wait_times_out(tracker, template) -> None:
    job_id = tracker.add_job(template)

    start = time.monotonic()
    with pytest.raises(WaitTimeoutError, match="last state: queued"):
        tracker.wait(job_id, 0.2, JobState.RUNNING)
    assert time.monotonic() - start < 2.0


def test_wait_with_zero_timeout_checks_once(tracker, template) -> None:
    job_id = tracker.add_job(template)

    tracker.wait(job_id, 0, JobState.QUEUED)
    with pytest.raises(WaitTimeoutError):
        tracker.wait(job_id, 0, JobState.DONE)


def test_wait_requires_states() -> None:
    class _Tracker:
        def job_state(self, job_id):
            return JobState.RUNNING, ""

    with pytest.raises(InvalidArgumentError):
        wait_for_state(_Tracker(), "job", 1.0, [])
    wait_for_state(_Tracker(), "job", None, [JobState.RUNNING])
