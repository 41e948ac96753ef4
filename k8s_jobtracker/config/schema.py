"""Configuration dataclasses for k8s_jobtracker.

The ``tracker`` section holds any allocator registered with compoconf under
``JobTrackerAllocatorInterface`` and is selected by its ``class_name``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, MISSING

from compoconf import ConfigInterface

from k8s_jobtracker.jobtracker.protocol import JobTrackerAllocatorInterface


@dataclass(kw_only=True)
class RootConfig(ConfigInterface):
    """Top-level configuration schema.

    Attributes:
        session_name: Job session the command line operates on
        tracker: Allocator configuration, e.g. ``class_name: KubernetesAllocator``
    """

    class_name: str = "Root"
    session_name: str = "default"
    tracker: JobTrackerAllocatorInterface.cfgtype = field(default_factory=MISSING)


__all__ = ["RootConfig", "JobTrackerAllocatorInterface"]
