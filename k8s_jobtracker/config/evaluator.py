"""Convert typed configuration into an explicit tracker registry."""

from __future__ import annotations

from dataclasses import dataclass, field, MISSING

from . import schema
from ..jobtracker.protocol import JobTracker, JobTrackerAllocatorInterface
from ..jobtracker.registry import JobTrackerRegistry


@dataclass(kw_only=True)
class RuntimeConfig:
    """Holds the populated registry alongside the original config."""

    root: schema.RootConfig = field(default_factory=MISSING)
    registry: JobTrackerRegistry = field(default_factory=MISSING)
    backend_type: str = field(default_factory=MISSING)

    def new_job_tracker(self, session_name: str | None = None) -> JobTracker:
        return self.registry.new_job_tracker(self.backend_type, session_name or self.root.session_name)


def build_registry(
    root: schema.RootConfig, registry: JobTrackerRegistry | None = None
) -> tuple[JobTrackerRegistry, str]:
    """Instantiate the configured allocator and register it under its backend type."""
    registry = registry if registry is not None else JobTrackerRegistry()
    allocator = root.tracker.instantiate(JobTrackerAllocatorInterface)
    registry.register(allocator.backend_type, allocator)
    return registry, allocator.backend_type


def evaluate(root: schema.RootConfig) -> RuntimeConfig:
    registry, backend_type = build_registry(root)
    return RuntimeConfig(root=root, registry=registry, backend_type=backend_type)


__all__ = ["RuntimeConfig", "build_registry", "evaluate"]
