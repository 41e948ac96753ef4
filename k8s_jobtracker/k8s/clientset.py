"""Cluster client handles for the Kubernetes job tracker."""

from __future__ import annotations

import logging

from kubernetes.client import ApiClient, BatchV1Api, Configuration
from kubernetes.config import load_incluster_config, new_client_from_config
from kubernetes.config.config_exception import ConfigException

from k8s_jobtracker.jobtracker.errors import ClientConfigurationError, ClientUnavailableError

LOGGER = logging.getLogger(__name__)


class ClientSet:
    """Handle to the cluster APIs a tracker talks to.

    Wraps a configured ``ApiClient``; a client set without one exists (for
    instance after a failed lazy configuration) but every API accessor raises
    :class:`ClientUnavailableError`.
    """

    def __init__(self, api_client: ApiClient | None = None) -> None:
        self.api_client = api_client

    def batch_v1(self) -> BatchV1Api:
        if self.api_client is None:
            raise ClientUnavailableError("no kubernetes API client configured")
        return BatchV1Api(self.api_client)


def load_clientset(
    config_file: str | None = None,
    context: str | None = None,
    in_cluster: bool | None = None,
) -> ClientSet:
    """Build a client set from ambient cluster configuration.

    Args:
        config_file: kubeconfig path; defaults to ``$KUBECONFIG`` or ``~/.kube/config``
        context: kubeconfig context to use instead of the current one
        in_cluster: ``True`` uses the pod service account only, ``False`` the
            kubeconfig only, ``None`` tries kubeconfig first and falls back to
            the service account

    Raises:
        ClientConfigurationError: If no configuration source works
    """
    errors: list[str] = []
    if in_cluster is not True:
        try:
            api_client = new_client_from_config(config_file=config_file, context=context)
            LOGGER.debug("Loaded kubernetes configuration from kubeconfig")
            return ClientSet(api_client)
        except (ConfigException, OSError) as exc:
            errors.append(f"kubeconfig: {exc}")
            if in_cluster is False:
                raise ClientConfigurationError(
                    f"could not load kubernetes configuration: {exc}"
                ) from exc

    configuration = Configuration()
    try:
        load_incluster_config(client_configuration=configuration)
    except ConfigException as exc:
        errors.append(f"in-cluster: {exc}")
        raise ClientConfigurationError(
            "could not load kubernetes configuration from kubeconfig or pod service account ("
            + "; ".join(errors)
            + ")"
        ) from exc
    LOGGER.debug("Loaded in-cluster kubernetes configuration")
    return ClientSet(ApiClient(configuration))


__all__ = ["ClientSet", "load_clientset"]
