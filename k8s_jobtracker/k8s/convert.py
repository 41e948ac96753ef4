"""Translation between job templates, Kubernetes Jobs and job states."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from kubernetes.client import (
    V1Affinity,
    V1ConfigMapEnvSource,
    V1Container,
    V1EnvFromSource,
    V1EnvVar,
    V1Job,
    V1JobCondition,
    V1JobSpec,
    V1NodeAffinity,
    V1NodeSelector,
    V1NodeSelectorRequirement,
    V1NodeSelectorTerm,
    V1ObjectMeta,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceRequirements,
    V1SecretEnvSource,
    V1SecurityContext,
)

from k8s_jobtracker.jobtracker.errors import ConversionError
from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.jobtracker.template import JobInfo, JobTemplate

LOGGER = logging.getLogger(__name__)

SESSION_LABEL = "drmaa2jobsession"
HELD_ANNOTATION = "drmaa2os/held"
HOSTNAME_LABEL = "kubernetes.io/hostname"

EXTENSION_NAMESPACE = "namespace"
EXTENSION_LABELS = "labels"
EXTENSION_SCHEDULER = "scheduler"
EXTENSION_PRIVILEGED = "privileged"
EXTENSION_PULL_POLICY = "pullpolicy"
EXTENSION_RUNTIME_CLASS = "runtimeclass"
EXTENSION_ENV_FROM_SECRETS = "env-from-secrets"
EXTENSION_ENV_FROM_CONFIGMAPS = "env-from-configmaps"
EXTENSION_TTL_AFTER_FINISHED = "ttlsecondsafterfinished"

PULL_POLICIES = ("Always", "IfNotPresent", "Never")
DEFAULT_CONTAINER_NAME = "drmaa2os"
# Kubernetes applies this when a Job leaves backoffLimit unset.
KUBERNETES_DEFAULT_BACKOFF_LIMIT = 6

_DNS_LABEL_INVALID = re.compile(r"[^a-z0-9-]+")


def session_label_selector(job_session: str) -> str:
    return f"{SESSION_LABEL}={job_session}"


def parse_labels(value: Any) -> dict[str, str]:
    """Parse the ``labels`` extension: a mapping or ``k=v,k2=v2``."""
    if value is None or value == "":
        return {}
    if isinstance(value, Mapping):
        return {str(key): str(val) for key, val in value.items()}
    if not isinstance(value, str):
        raise ConversionError(f"labels extension must be a mapping or string, got {type(value).__name__}")
    labels: dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, val = item.partition("=")
        if not sep or not key.strip():
            raise ConversionError(f"invalid label '{item}', expected key=value")
        labels[key.strip()] = val.strip()
    return labels


def _split_names(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [name.strip() for name in value.split(",") if name.strip()]
    return [str(name) for name in value]


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_time(value: datetime | str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as local time."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ConversionError(f"invalid timestamp '{value}'") from exc
    if value.tzinfo is None:
        value = value.astimezone()
    return value


def container_name(job_name: str) -> str:
    name = _DNS_LABEL_INVALID.sub("-", job_name.lower()).strip("-")[:63].rstrip("-")
    return name or DEFAULT_CONTAINER_NAME


def _resources(template: JobTemplate) -> V1ResourceRequirements | None:
    requests: dict[str, str] = {}
    if template.min_phys_memory > 0:
        requests["memory"] = f"{template.min_phys_memory}Ki"
    limits = {str(key): str(val) for key, val in template.resource_limits.items()}
    if not requests and not limits:
        return None
    return V1ResourceRequirements(requests=requests or None, limits=limits or None)


def _env_from(extension: Mapping[str, Any]) -> list[V1EnvFromSource] | None:
    sources = [
        V1EnvFromSource(secret_ref=V1SecretEnvSource(name=name))
        for name in _split_names(extension.get(EXTENSION_ENV_FROM_SECRETS))
    ]
    sources.extend(
        V1EnvFromSource(config_map_ref=V1ConfigMapEnvSource(name=name))
        for name in _split_names(extension.get(EXTENSION_ENV_FROM_CONFIGMAPS))
    )
    return sources or None


def _container(template: JobTemplate) -> V1Container:
    if not template.job_category:
        raise ConversionError("JobCategory (container image) not set in job template")
    if not template.remote_command:
        raise ConversionError("RemoteCommand not set in job template")

    extension = template.extension
    pull_policy = extension.get(EXTENSION_PULL_POLICY)
    if pull_policy is not None and pull_policy not in PULL_POLICIES:
        raise ConversionError(
            f"unknown image pull policy '{pull_policy}', expected one of {', '.join(PULL_POLICIES)}"
        )
    env = [
        V1EnvVar(name=str(key), value=str(val))
        for key, val in sorted(template.job_environment.items())
    ]
    privileged = _parse_bool(extension.get(EXTENSION_PRIVILEGED, False))
    return V1Container(
        name=container_name(template.job_name),
        image=template.job_category,
        command=[template.remote_command],
        args=list(template.args) or None,
        env=env or None,
        env_from=_env_from(extension),
        working_dir=template.working_directory or None,
        resources=_resources(template),
        image_pull_policy=pull_policy,
        security_context=V1SecurityContext(privileged=True) if privileged else None,
    )


def _placement(candidate_machines: list[str]) -> tuple[dict[str, str] | None, V1Affinity | None]:
    if not candidate_machines:
        return None, None
    if len(candidate_machines) == 1:
        return {HOSTNAME_LABEL: candidate_machines[0]}, None
    requirement = V1NodeSelectorRequirement(
        key=HOSTNAME_LABEL, operator="In", values=list(candidate_machines)
    )
    affinity = V1Affinity(
        node_affinity=V1NodeAffinity(
            required_during_scheduling_ignored_during_execution=V1NodeSelector(
                node_selector_terms=[V1NodeSelectorTerm(match_expressions=[requirement])]
            )
        )
    )
    return None, affinity


def _active_deadline_seconds(template: JobTemplate) -> int | None:
    if not template.deadline_time:
        return None
    deadline = parse_time(template.deadline_time)
    remaining = (deadline - datetime.now(timezone.utc)).total_seconds()
    if remaining <= 0:
        raise ConversionError(f"deadline time {deadline.isoformat()} is in the past")
    return math.ceil(remaining)


def template_namespace(template: JobTemplate, default_namespace: str) -> str:
    return str(template.extension.get(EXTENSION_NAMESPACE) or default_namespace)


def convert_job(
    job_session: str,
    template: JobTemplate,
    *,
    namespace: str = "default",
    name_prefix: str = "drmaa2os-",
    rerun_backoff_limit: int = KUBERNETES_DEFAULT_BACKOFF_LIMIT,
    ttl_seconds_after_finished: int | None = None,
) -> V1Job:
    """Convert a job template into a ``batch/v1`` Job tagged with the session label.

    Raises:
        ConversionError: If the template cannot be expressed as a Job
    """
    extension = template.extension
    labels = parse_labels(extension.get(EXTENSION_LABELS))
    labels[SESSION_LABEL] = job_session

    annotations = {HELD_ANNOTATION: "true"} if template.submit_as_hold else None
    if template.start_time:
        LOGGER.debug("Ignoring start time %s: Kubernetes Jobs start immediately", template.start_time)

    ttl = extension.get(EXTENSION_TTL_AFTER_FINISHED, ttl_seconds_after_finished)
    try:
        ttl = int(ttl) if ttl is not None else None
    except (TypeError, ValueError) as exc:
        raise ConversionError(f"invalid {EXTENSION_TTL_AFTER_FINISHED} extension: {ttl}") from exc

    node_selector, affinity = _placement(template.candidate_machines)
    pod_spec = V1PodSpec(
        containers=[_container(template)],
        restart_policy="Never",
        node_selector=node_selector,
        affinity=affinity,
        scheduler_name=extension.get(EXTENSION_SCHEDULER) or None,
        runtime_class_name=extension.get(EXTENSION_RUNTIME_CLASS) or None,
    )
    return V1Job(
        api_version="batch/v1",
        kind="Job",
        metadata=V1ObjectMeta(
            name=template.job_name or None,
            generate_name=None if template.job_name else name_prefix,
            namespace=template_namespace(template, namespace),
            labels=labels,
            annotations=annotations,
        ),
        spec=V1JobSpec(
            template=V1PodTemplateSpec(metadata=V1ObjectMeta(labels=dict(labels)), spec=pod_spec),
            parallelism=1,
            completions=1,
            backoff_limit=rerun_backoff_limit if template.rerunnable else 0,
            active_deadline_seconds=_active_deadline_seconds(template),
            suspend=True if template.submit_as_hold else None,
            ttl_seconds_after_finished=ttl,
        ),
    )


def is_held(job: V1Job) -> bool:
    annotations = (job.metadata.annotations if job.metadata else None) or {}
    return annotations.get(HELD_ANNOTATION) == "true"


def _true_conditions(job: V1Job) -> dict[str, V1JobCondition]:
    if job.status is None:
        return {}
    return {
        condition.type: condition
        for condition in job.status.conditions or []
        if condition.status == "True"
    }


def job_status_to_state(job: V1Job) -> tuple[JobState, str]:
    """Derive ``(state, sub_state)`` from a Job's spec and status."""
    conditions = _true_conditions(job)
    if "Complete" in conditions:
        return JobState.DONE, conditions["Complete"].reason or ""
    if "Failed" in conditions:
        return JobState.FAILED, conditions["Failed"].reason or ""

    spec = job.spec
    suspended = conditions.get("Suspended")
    if suspended is not None or (spec is not None and spec.suspend):
        reason = (suspended.reason or "") if suspended is not None else ""
        if not is_held(job):
            return JobState.SUSPENDED, reason
        # Pod failures recorded before the hold keep the job requeued.
        failed = (job.status.failed if job.status is not None else None) or 0
        return (JobState.REQUEUED_HELD if failed else JobState.QUEUED_HELD), reason

    status = job.status
    if status is None:
        return JobState.QUEUED, ""
    completions = spec.completions if spec is not None and spec.completions else 1
    if (status.succeeded or 0) >= completions:
        return JobState.DONE, ""
    if status.active:
        return JobState.RUNNING, ""
    backoff_limit = (
        spec.backoff_limit
        if spec is not None and spec.backoff_limit is not None
        else KUBERNETES_DEFAULT_BACKOFF_LIMIT
    )
    failed = status.failed or 0
    if failed > backoff_limit:
        return JobState.FAILED, "BackoffLimitExceeded"
    if failed:
        return JobState.REQUEUED, ""
    return JobState.QUEUED, ""


def job_to_job_info(job_id: str, job: V1Job) -> JobInfo:
    state, sub_state = job_status_to_state(job)
    metadata = job.metadata or V1ObjectMeta()
    status = job.status
    conditions = _true_conditions(job)

    dispatch_time = status.start_time if status is not None else None
    finish_time = status.completion_time if status is not None else None
    if finish_time is None and "Failed" in conditions:
        finish_time = conditions["Failed"].last_transition_time
    wallclock_time = None
    if dispatch_time is not None and finish_time is not None:
        wallclock_time = (finish_time - dispatch_time).total_seconds()

    exit_status = {JobState.DONE: 0, JobState.FAILED: 1}.get(state)
    annotation = ""
    for condition_type in ("Failed", "Complete", "Suspended"):
        if condition_type in conditions:
            annotation = conditions[condition_type].message or ""
            break

    return JobInfo(
        id=job_id,
        state=state,
        sub_state=sub_state,
        exit_status=exit_status,
        annotation=annotation,
        slots=(job.spec.parallelism if job.spec is not None and job.spec.parallelism else 1),
        queue_name=metadata.namespace or "",
        wallclock_time=wallclock_time,
        submission_time=metadata.creation_timestamp,
        dispatch_time=dispatch_time,
        finish_time=finish_time,
        extension={
            "labels": dict(metadata.labels or {}),
            "uid": metadata.uid or "",
        },
    )


__all__ = [
    "SESSION_LABEL",
    "HELD_ANNOTATION",
    "convert_job",
    "is_held",
    "job_status_to_state",
    "job_to_job_info",
    "parse_labels",
    "session_label_selector",
    "template_namespace",
]
