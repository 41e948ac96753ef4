"""Kubernetes backend for the job tracker."""

from .clientset import ClientSet, load_clientset
from .fake import FakeBatchApi, FakeClientSet, FakeKubernetesAllocator, FakeKubernetesAllocatorConfig
from .tracker import (
    KUBERNETES_BACKEND,
    KubernetesAllocator,
    KubernetesAllocatorConfig,
    KubernetesTracker,
)

__all__ = [
    "ClientSet",
    "load_clientset",
    "FakeBatchApi",
    "FakeClientSet",
    "FakeKubernetesAllocator",
    "FakeKubernetesAllocatorConfig",
    "KUBERNETES_BACKEND",
    "KubernetesAllocator",
    "KubernetesAllocatorConfig",
    "KubernetesTracker",
]
