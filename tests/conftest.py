import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from k8s_jobtracker.jobtracker.template import JobTemplate  # noqa: E402
from k8s_jobtracker.k8s.fake import (  # noqa: E402
    FakeBatchApi,
    FakeClientSet,
    FakeKubernetesAllocatorConfig,
)
from k8s_jobtracker.k8s.tracker import KubernetesTracker  # noqa: E402

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture
def fake_api() -> FakeBatchApi:
    return FakeBatchApi()


@pytest.fixture
def tracker_config() -> FakeKubernetesAllocatorConfig:
    return FakeKubernetesAllocatorConfig(poll_interval_seconds=0.01)


@pytest.fixture
def tracker(fake_api, tracker_config) -> KubernetesTracker:
    return KubernetesTracker("session-a", FakeClientSet(fake_api), tracker_config)


@pytest.fixture
def template() -> JobTemplate:
    return JobTemplate(
        remote_command="/bin/sleep",
        args=["10"],
        job_category="busybox:1.36",
    )
