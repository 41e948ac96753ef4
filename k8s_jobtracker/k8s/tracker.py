"""Job tracker translating job session operations into Kubernetes Jobs.

Every job submitted through a tracker is a ``batch/v1`` Job labelled with
``drmaa2jobsession=<session>``. The tracker keeps no state of its own: each
call reads the cluster again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from compoconf import ConfigInterface, register
from kubernetes.client import ApiClient, BatchV1Api, V1Job

from k8s_jobtracker.jobtracker.errors import (
    ClientUnavailableError,
    ConversionError,
    JobNotFoundError,
    JobTrackerError,
)
from k8s_jobtracker.jobtracker.helper import (
    add_array_job_as_single_jobs,
    array_job_id_to_guids,
    wait_for_state,
)
from k8s_jobtracker.jobtracker.protocol import JobTrackerAllocatorInterface
from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.jobtracker.template import JobInfo, JobTemplate
from k8s_jobtracker.k8s.clientset import ClientSet, load_clientset
from k8s_jobtracker.k8s.control import API_ERRORS, delete_job, job_state_change, parse_action
from k8s_jobtracker.k8s.convert import (
    KUBERNETES_DEFAULT_BACKOFF_LIMIT,
    SESSION_LABEL,
    convert_job,
    job_status_to_state,
    job_to_job_info,
    session_label_selector,
)

LOGGER = logging.getLogger(__name__)

KUBERNETES_BACKEND = "kubernetes"


@dataclass(kw_only=True)
class BaseKubernetesAllocatorConfig(ConfigInterface):
    """Settings shared by every tracker an allocator creates.

    Attributes:
        namespace: Namespace for lookups and for jobs without a namespace extension
        all_namespaces: List session jobs across all namespaces
        poll_interval_seconds: Delay between two state queries in ``wait``
        propagation_policy: Deletion propagation for ``delete_job`` and ``terminate``
        name_prefix: ``generateName`` prefix for templates without a job name
        rerun_backoff_limit: Pod retries for rerunnable templates
        ttl_seconds_after_finished: Garbage collect finished jobs after this delay
    """

    class_name: str
    namespace: str = "default"
    all_namespaces: bool = False
    poll_interval_seconds: float = 1.0
    propagation_policy: str = "Background"
    name_prefix: str = "drmaa2os-"
    rerun_backoff_limit: int = KUBERNETES_DEFAULT_BACKOFF_LIMIT
    ttl_seconds_after_finished: int | None = None


@dataclass(kw_only=True)
class KubernetesAllocatorConfig(BaseKubernetesAllocatorConfig):
    class_name: str = "KubernetesAllocator"
    config_file: str | None = None
    context: str | None = None
    in_cluster: bool | None = None


class KubernetesTracker:
    """Job tracker for one job session on a Kubernetes cluster."""

    def __init__(
        self,
        job_session: str,
        clientset: ClientSet,
        config: BaseKubernetesAllocatorConfig | None = None,
    ) -> None:
        self.job_session = job_session
        self.clientset = clientset
        self.config = config or KubernetesAllocatorConfig()

    # -- lookups --------------------------------------------------------

    def _jobs_client(self, operation: str) -> BatchV1Api:
        try:
            return self.clientset.batch_v1()
        except ClientUnavailableError as exc:
            raise ClientUnavailableError(f"{operation}: {exc}") from exc

    def _job_ref(self, job_id: str) -> tuple[str, str]:
        namespace, sep, name = job_id.rpartition("/")
        return (namespace if sep else self.config.namespace), name

    def _job_id(self, job: V1Job) -> str:
        namespace = job.metadata.namespace
        if namespace and namespace != self.config.namespace:
            return f"{namespace}/{job.metadata.name}"
        return job.metadata.name

    def _read_job(self, batch: BatchV1Api, job_id: str) -> V1Job:
        namespace, name = self._job_ref(job_id)
        try:
            job = batch.read_namespaced_job(name, namespace)
        except API_ERRORS as exc:
            if getattr(exc, "status", None) == 404:
                raise JobNotFoundError(f"job {job_id} not found") from exc
            raise JobTrackerError(f"getting job {job_id}: {exc}") from exc
        labels = (job.metadata.labels if job.metadata else None) or {}
        if labels.get(SESSION_LABEL) != self.job_session:
            raise JobNotFoundError(f"job {job_id} does not belong to job session {self.job_session}")
        LOGGER.debug("Read job %s/%s", namespace, name)
        return job

    def _lookup(self, job_id: str, operation: str) -> tuple[BatchV1Api, V1Job]:
        batch = self._jobs_client(operation)
        try:
            return batch, self._read_job(batch, job_id)
        except JobTrackerError as exc:
            raise type(exc)(f"{operation}: {exc}") from exc

    # -- job session operations ----------------------------------------

    def list_job_categories(self) -> list[str]:
        return []

    def list_jobs(self) -> list[str]:
        """Return the ids of all jobs labelled with this tracker's session."""
        batch = self._jobs_client("list jobs")
        selector = session_label_selector(self.job_session)
        try:
            if self.config.all_namespaces:
                jobs = batch.list_job_for_all_namespaces(label_selector=selector)
            else:
                jobs = batch.list_namespaced_job(self.config.namespace, label_selector=selector)
        except API_ERRORS as exc:
            raise JobTrackerError(f"listing jobs with client: {exc}") from exc
        return [self._job_id(job) for job in jobs.items]

    def add_job(self, template: JobTemplate) -> str:
        """Convert ``template`` into a Job, create it and return its id."""
        try:
            job = convert_job(
                self.job_session,
                template,
                namespace=self.config.namespace,
                name_prefix=self.config.name_prefix,
                rerun_backoff_limit=self.config.rerun_backoff_limit,
                ttl_seconds_after_finished=self.config.ttl_seconds_after_finished,
            )
        except ConversionError as exc:
            raise ConversionError(f"converting job template into a kubernetes job: {exc}") from exc
        namespace = job.metadata.namespace
        if namespace != self.config.namespace and not self.config.all_namespaces:
            raise ConversionError(
                f"converting job template into a kubernetes job: namespace {namespace} differs from "
                f"{self.config.namespace} and listing across namespaces is disabled"
            )
        batch = self._jobs_client("get client")
        try:
            created = batch.create_namespaced_job(job.metadata.namespace, job)
        except API_ERRORS as exc:
            raise JobTrackerError(f"creating new job: {exc}") from exc
        job_id = self._job_id(created)
        LOGGER.info("Created job %s in session %s", job_id, self.job_session)
        return job_id

    def add_array_job(
        self,
        template: JobTemplate,
        begin: int,
        end: int,
        step: int,
        max_parallel: int,
    ) -> str:
        """Submit one Job per index; ``max_parallel`` is ignored."""
        if max_parallel:
            LOGGER.debug("Ignoring max_parallel=%d for array job", max_parallel)
        return add_array_job_as_single_jobs(template, self, begin, end, step)

    def list_array_jobs(self, array_job_id: str) -> list[str]:
        return array_job_id_to_guids(array_job_id)

    def job_state(self, job_id: str) -> tuple[JobState, str]:
        """Return ``(state, sub_state)``; never raises.

        When the state cannot be determined the state is ``UNDETERMINED`` and
        the sub state names the cause.
        """
        try:
            batch = self.clientset.batch_v1()
        except ClientUnavailableError as exc:
            LOGGER.debug("No client for state of job %s: %s", job_id, exc)
            return JobState.UNDETERMINED, "client unavailable"
        try:
            job = self._read_job(batch, job_id)
        except JobNotFoundError:
            return JobState.UNDETERMINED, "job not found"
        except JobTrackerError as exc:
            LOGGER.warning("Could not determine state of job %s: %s", job_id, exc)
            return JobState.UNDETERMINED, "api error"
        return job_status_to_state(job)

    def job_info(self, job_id: str) -> JobInfo:
        _, job = self._lookup(job_id, "job info")
        return job_to_job_info(job_id, job)

    def job_control(self, job_id: str, action: str) -> None:
        """Apply suspend, resume, hold, release or terminate to a job."""
        job_action = parse_action(action)
        batch, job = self._lookup(job_id, "job control")
        job_state_change(batch, job, job_action, propagation_policy=self.config.propagation_policy)

    def wait(self, job_id: str, timeout: float | None, *states: JobState) -> None:
        wait_for_state(
            self,
            job_id,
            timeout,
            states,
            poll_interval=self.config.poll_interval_seconds,
        )

    def delete_job(self, job_id: str) -> None:
        batch, job = self._lookup(job_id, "delete job")
        delete_job(batch, job, propagation_policy=self.config.propagation_policy)


class BaseKubernetesAllocator(JobTrackerAllocatorInterface):
    """Creates a :class:`KubernetesTracker` per job session."""

    config: BaseKubernetesAllocatorConfig
    backend_type = KUBERNETES_BACKEND

    def __init__(self, config: BaseKubernetesAllocatorConfig) -> None:
        self.config = config

    def default_clientset(self) -> ClientSet:  # pragma: no cover - interface
        raise NotImplementedError

    def new(self, session_name: str, init_params: Any = None) -> KubernetesTracker:
        """Allocate a tracker for ``session_name``.

        Args:
            session_name: Job session the tracker is bound to
            init_params: ``None``, a :class:`ClientSet` or a kubernetes
                ``ApiClient``; ``None`` builds a client set from ambient
                configuration

        Raises:
            TypeError: If ``init_params`` is of another type
            ClientConfigurationError: If no cluster configuration can be loaded
        """
        if init_params is None:
            clientset = self.default_clientset()
        elif isinstance(init_params, ClientSet):
            clientset = init_params
        elif isinstance(init_params, ApiClient):
            clientset = ClientSet(init_params)
        else:
            raise TypeError(
                "job tracker init params must be a ClientSet or kubernetes ApiClient, "
                f"got {type(init_params).__name__}"
            )
        return KubernetesTracker(session_name, clientset, self.config)


@register
class KubernetesAllocator(BaseKubernetesAllocator):
    """Allocator talking to the cluster from kubeconfig or the pod's service
    account."""

    config: KubernetesAllocatorConfig

    def __init__(self, config: KubernetesAllocatorConfig | None = None) -> None:
        super().__init__(config or KubernetesAllocatorConfig())

    def default_clientset(self) -> ClientSet:
        return load_clientset(
            config_file=self.config.config_file,
            context=self.config.context,
            in_cluster=self.config.in_cluster,
        )


__all__ = [
    "KUBERNETES_BACKEND",
    "BaseKubernetesAllocator",
    "BaseKubernetesAllocatorConfig",
    "KubernetesAllocator",
    "KubernetesAllocatorConfig",
    "KubernetesTracker",
]
