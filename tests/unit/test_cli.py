import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner
from kubernetes.config.config_exception import ConfigException

from k8s_jobtracker.cli import cli
from k8s_jobtracker.k8s import clientset as clientset_module

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
CONFIG = str(DATA_DIR / "sample_config.yaml")
TEMPLATE = str(DATA_DIR / "job_template.yaml")


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _invoke(*args: str):
    return CliRunner().invoke(cli, ["--config-ref", CONFIG, *args])


def test_submit_prints_job_id() -> None:
    result = _invoke("submit", TEMPLATE)

    assert result.exit_code == 0, result.output
    assert result.output.strip().startswith("drmaa2os-")


def test_submit_array_prints_composite_id() -> None:
    result = _invoke("submit-array", TEMPLATE, "--begin", "1", "--end", "3")

    assert result.exit_code == 0, result.output
    assert len(json.loads(result.output)) == 3


def test_array_jobs_lists_members() -> None:
    result = _invoke("array-jobs", '["a", "b"]')

    assert result.exit_code == 0
    assert result.output.split() == ["a", "b"]


def test_state_of_unknown_job() -> None:
    result = _invoke("state", "missing")

    assert result.exit_code == 0
    assert result.output.strip() == "undetermined (job not found)"


def test_categories_and_list_are_empty() -> None:
    assert _invoke("categories").output == ""
    result = _invoke("--session", "other", "list")
    assert result.exit_code == 0
    assert result.output == ""


def test_errors_are_reported() -> None:
    result = _invoke("info", "missing")
    assert result.exit_code == 1
    assert "job info: job missing not found" in result.output

    result = _invoke("wait", "missing", "--timeout", "0")
    assert result.exit_code == 1
    assert "timeout while waiting for job missing" in result.output

    result = _invoke("array-jobs", "not-json")
    assert result.exit_code == 1
    assert "malformed array job id" in result.output


def test_control_rejects_unknown_action() -> None:
    result = _invoke("control", "job", "migrate")

    assert result.exit_code == 2
    assert "Invalid value" in result.output


def test_override_is_applied() -> None:
    result = CliRunner().invoke(
        cli, ["--config-ref", CONFIG, "--override", "tracker.namespace=other", "state", "missing"]
    )

    assert result.exit_code == 0
    assert "undetermined" in result.output


def test_missing_config_reference(tmp_path) -> None:
    result = CliRunner().invoke(cli, ["--config-ref", "absent", "--config-dir", str(tmp_path / "none"), "list"])

    assert result.exit_code == 1
    assert "Hydra config directory not found" in result.output


def test_default_config_without_cluster(monkeypatch) -> None:
    def no_config(*args, **kwargs):
        raise ConfigException("no configuration")

    monkeypatch.setattr(clientset_module, "new_client_from_config", no_config)
    monkeypatch.setattr(clientset_module, "load_incluster_config", no_config)

    result = CliRunner().invoke(cli, ["list"])

    assert result.exit_code == 1
    assert "could not load kubernetes configuration" in result.output
