"""In-memory Kubernetes batch API closely mirroring the real client's behaviour."""

from __future__ import annotations

import copy
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from compoconf import register
from kubernetes.client import V1Job, V1JobCondition, V1JobList, V1JobStatus
from kubernetes.client.exceptions import ApiException

from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.k8s.clientset import ClientSet
from k8s_jobtracker.k8s.convert import KUBERNETES_DEFAULT_BACKOFF_LIMIT
from k8s_jobtracker.k8s.tracker import BaseKubernetesAllocator, BaseKubernetesAllocatorConfig

# Alphabet the API server uses for generateName suffixes.
_NAME_SUFFIX_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _matches(labels: dict[str, str] | None, label_selector: str | None) -> bool:
    if not label_selector:
        return True
    labels = labels or {}
    for requirement in label_selector.split(","):
        key, sep, value = requirement.strip().partition("=")
        if not sep:
            if key not in labels:
                return False
            continue
        if labels.get(key.strip()) != value.lstrip("=").strip():
            return False
    return True


def _set_condition(job: V1Job, condition_type: str, status: str, reason: str | None = None, message: str | None = None) -> None:
    conditions = [c for c in job.status.conditions or [] if c.type != condition_type]
    conditions.append(
        V1JobCondition(
            type=condition_type,
            status=status,
            reason=reason,
            message=message,
            last_transition_time=_now(),
        )
    )
    job.status.conditions = conditions


class FakeBatchApi:
    """Stores Jobs in memory and answers the ``BatchV1Api`` calls the tracker uses.

    No controller runs: jobs stay queued until :meth:`set_state` moves them.
    """

    def __init__(self) -> None:
        self._jobs: dict[tuple[str, str], V1Job] = {}

    def _get(self, name: str, namespace: str) -> V1Job:
        try:
            return self._jobs[(namespace, name)]
        except KeyError:
            raise ApiException(status=404, reason=f'jobs.batch "{name}" not found') from None

    def _generate_name(self, prefix: str, namespace: str) -> str:
        while True:
            name = prefix + "".join(random.choices(_NAME_SUFFIX_ALPHABET, k=5))
            if (namespace, name) not in self._jobs:
                return name

    def create_namespaced_job(self, namespace: str, body: V1Job, **kwargs: Any) -> V1Job:
        job = copy.deepcopy(body)
        metadata = job.metadata
        if metadata.namespace and metadata.namespace != namespace:
            raise ApiException(status=400, reason="the namespace of the provided object does not match the namespace sent on the request")
        if not metadata.name:
            if not metadata.generate_name:
                raise ApiException(status=422, reason="name or generateName is required")
            metadata.name = self._generate_name(metadata.generate_name, namespace)
        if (namespace, metadata.name) in self._jobs:
            raise ApiException(status=409, reason=f'jobs.batch "{metadata.name}" already exists')
        metadata.namespace = namespace
        metadata.uid = str(uuid.uuid4())
        metadata.creation_timestamp = _now()
        job.status = V1JobStatus()
        if job.spec.suspend:
            _set_condition(job, "Suspended", "True", reason="JobSuspended", message="Job suspended")
        self._jobs[(namespace, metadata.name)] = job
        return copy.deepcopy(job)

    def read_namespaced_job(self, name: str, namespace: str, **kwargs: Any) -> V1Job:
        return copy.deepcopy(self._get(name, namespace))

    def list_namespaced_job(self, namespace: str, label_selector: str | None = None, **kwargs: Any) -> V1JobList:
        items = [
            copy.deepcopy(job)
            for (job_namespace, _), job in self._jobs.items()
            if job_namespace == namespace and _matches(job.metadata.labels, label_selector)
        ]
        return V1JobList(items=items)

    def list_job_for_all_namespaces(self, label_selector: str | None = None, **kwargs: Any) -> V1JobList:
        items = [copy.deepcopy(job) for job in self._jobs.values() if _matches(job.metadata.labels, label_selector)]
        return V1JobList(items=items)

    def patch_namespaced_job(self, name: str, namespace: str, body: dict[str, Any], **kwargs: Any) -> V1Job:
        job = self._get(name, namespace)
        metadata_patch = body.get("metadata") or {}
        for field_name in ("labels", "annotations"):
            if field_name not in metadata_patch:
                continue
            current = dict(getattr(job.metadata, field_name) or {})
            for key, value in metadata_patch[field_name].items():
                if value is None:
                    current.pop(key, None)
                else:
                    current[key] = value
            setattr(job.metadata, field_name, current or None)

        spec_patch = body.get("spec") or {}
        if "suspend" in spec_patch:
            suspend = bool(spec_patch["suspend"])
            was_suspended = bool(job.spec.suspend)
            job.spec.suspend = suspend
            if suspend and not was_suspended:
                job.status.active = 0
                job.status.start_time = None
                _set_condition(job, "Suspended", "True", reason="JobSuspended", message="Job suspended")
            elif not suspend and was_suspended:
                _set_condition(job, "Suspended", "False", reason="JobResumed", message="Job resumed")
        return copy.deepcopy(job)

    def delete_namespaced_job(self, name: str, namespace: str, **kwargs: Any) -> None:
        self._get(name, namespace)
        del self._jobs[(namespace, name)]

    def set_state(
        self,
        name: str,
        state: JobState | str,
        namespace: str = "default",
        reason: str | None = None,
        message: str | None = None,
    ) -> None:
        """Move a stored job into ``state`` the way the Job controller would."""
        job = self._get(name, namespace)
        state = JobState.parse(state)
        status = job.status
        if state is JobState.QUEUED:
            job.status = V1JobStatus()
        elif state is JobState.RUNNING:
            status.active = 1
            status.start_time = status.start_time or _now()
        elif state is JobState.REQUEUED:
            status.active = 0
            status.failed = (status.failed or 0) + 1
        elif state is JobState.DONE:
            status.active = 0
            status.succeeded = 1
            status.start_time = status.start_time or _now()
            status.completion_time = _now()
            _set_condition(job, "Complete", "True", reason=reason, message=message)
        elif state is JobState.FAILED:
            backoff_limit = job.spec.backoff_limit
            status.active = 0
            status.failed = (backoff_limit if backoff_limit is not None else KUBERNETES_DEFAULT_BACKOFF_LIMIT) + 1
            _set_condition(
                job,
                "Failed",
                "True",
                reason=reason or "BackoffLimitExceeded",
                message=message or "Job has reached the specified backoff limit",
            )
        else:
            raise ValueError(f"FakeBatchApi cannot simulate state {state.value}")

    def jobs(self) -> list[V1Job]:
        return [copy.deepcopy(job) for job in self._jobs.values()]


class FakeClientSet(ClientSet):
    """Client set whose batch API is a :class:`FakeBatchApi`."""

    def __init__(self, batch_api: FakeBatchApi | None = None) -> None:
        super().__init__(None)
        self.fake_batch_api = batch_api or FakeBatchApi()

    def batch_v1(self) -> FakeBatchApi:  # type: ignore[override]
        return self.fake_batch_api


@dataclass(kw_only=True)
class FakeKubernetesAllocatorConfig(BaseKubernetesAllocatorConfig):
    class_name: str = "FakeKubernetesAllocator"
    poll_interval_seconds: float = 0.05


@register
class FakeKubernetesAllocator(BaseKubernetesAllocator):
    """Allocator whose trackers share one in-memory cluster.

    The cluster lives as long as the allocator. The CLI builds a new
    allocator per command, so jobs submitted there are gone by the next
    command.
    """

    config: FakeKubernetesAllocatorConfig

    def __init__(self, config: FakeKubernetesAllocatorConfig | None = None) -> None:
        super().__init__(config or FakeKubernetesAllocatorConfig())
        self.batch_api = FakeBatchApi()

    def default_clientset(self) -> ClientSet:
        return FakeClientSet(self.batch_api)


__all__ = [
    "FakeBatchApi",
    "FakeClientSet",
    "FakeKubernetesAllocator",
    "FakeKubernetesAllocatorConfig",
]
