from datetime import datetime, timedelta, timezone

import pytest
from kubernetes.client import V1Job, V1JobCondition, V1JobSpec, V1JobStatus, V1ObjectMeta, V1PodTemplateSpec

from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.k8s.convert import HELD_ANNOTATION, job_status_to_state, job_to_job_info


def _job(status=None, suspend=None, backoff_limit=0, annotations=None) -> V1Job:
    return V1Job(
        metadata=V1ObjectMeta(
            name="job-1",
            namespace="default",
            labels={"drmaa2jobsession": "s"},
            annotations=annotations,
            uid="uid-1",
        ),
        spec=V1JobSpec(
            template=V1PodTemplateSpec(),
            completions=1,
            parallelism=1,
            backoff_limit=backoff_limit,
            suspend=suspend,
        ),
        status=status,
    )


def _condition(condition_type: str, reason: str = "", message: str = "") -> V1JobCondition:
    return V1JobCondition(type=condition_type, status="True", reason=reason, message=message)


@pytest.mark.parametrize(
    ("job", "expected"),
    [
        (_job(status=None), JobState.QUEUED),
        (_job(status=V1JobStatus()), JobState.QUEUED),
        (_job(status=V1JobStatus(active=1)), JobState.RUNNING),
        (_job(status=V1JobStatus(succeeded=1)), JobState.DONE),
        (_job(status=V1JobStatus(failed=1)), JobState.FAILED),
        (_job(status=V1JobStatus(failed=1), backoff_limit=3), JobState.REQUEUED),
        (_job(status=V1JobStatus(conditions=[_condition("Complete")])), JobState.DONE),
        (_job(status=V1JobStatus(active=1, conditions=[_condition("Failed")])), JobState.FAILED),
        (_job(status=V1JobStatus(), suspend=True), JobState.SUSPENDED),
        (
            _job(status=V1JobStatus(), suspend=True, annotations={HELD_ANNOTATION: "true"}),
            JobState.QUEUED_HELD,
        ),
        (
            _job(
                status=V1JobStatus(failed=1),
                suspend=True,
                backoff_limit=3,
                annotations={HELD_ANNOTATION: "true"},
            ),
            JobState.REQUEUED_HELD,
        ),
    ],
)
def test_job_status_to_state(job: V1Job, expected: JobState) -> None:
    state, _ = job_status_to_state(job)
    assert state is expected


def test_sub_state_is_condition_reason() -> None:
    job = _job(status=V1JobStatus(conditions=[_condition("Failed", reason="DeadlineExceeded")]))
    assert job_status_to_state(job) == (JobState.FAILED, "DeadlineExceeded")


def test_false_conditions_are_ignored() -> None:
    resumed = V1JobCondition(type="Suspended", status="False", reason="JobResumed")
    job = _job(status=V1JobStatus(active=1, conditions=[resumed]), suspend=False)
    assert job_status_to_state(job)[0] is JobState.RUNNING


def test_job_to_job_info_finished_job() -> None:
    created = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    started = created + timedelta(seconds=5)
    finished = started + timedelta(seconds=90)
    job = _job(
        status=V1JobStatus(
            succeeded=1,
            start_time=started,
            completion_time=finished,
            conditions=[_condition("Complete", message="all pods succeeded")],
        )
    )
    job.metadata.creation_timestamp = created

    info = job_to_job_info("job-1", job)

    assert info.id == "job-1"
    assert info.state is JobState.DONE
    assert info.exit_status == 0
    assert info.slots == 1
    assert info.queue_name == "default"
    assert info.submission_time == created
    assert info.dispatch_time == started
    assert info.finish_time == finished
    assert info.wallclock_time == 90.0
    assert info.annotation == "all pods succeeded"
    assert info.extension["labels"] == {"drmaa2jobsession": "s"}
    assert info.to_dict()["finish_time"] == finished.isoformat()


def test_job_to_job_info_running_job_has_no_exit_status() -> None:
    info = job_to_job_info("job-1", _job(status=V1JobStatus(active=1)))
    assert info.state is JobState.RUNNING
    assert info.exit_status is None
    assert info.wallclock_time is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("done", JobState.DONE),
        ("QueuedHeld", JobState.QUEUED_HELD),
        ("RUNNING", JobState.RUNNING),
        (JobState.FAILED, JobState.FAILED),
    ],
)
def test_job_state_parse(value, expected) -> None:
    assert JobState.parse(value) is expected


def test_job_state_parse_unknown() -> None:
    with pytest.raises(ValueError):
        JobState.parse("exploded")
