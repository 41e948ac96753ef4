"""Helpers for reading configuration and job templates into typed dataclasses."""

from __future__ import annotations

from importlib import import_module
from pathlib import Path
from typing import Any
from collections.abc import Iterable, Mapping

import yaml
from compoconf import parse_config
from hydra import compose, initialize_config_dir
from omegaconf import OmegaConf

from . import schema
from ..jobtracker.template import JobTemplate


class ConfigLoaderError(RuntimeError):
    """Raised when a configuration file cannot be parsed."""


_REGISTRY_SENTINEL = {"loaded": False}


def _ensure_registrations() -> None:
    if _REGISTRY_SENTINEL["loaded"]:
        return

    for module in (
        "k8s_jobtracker.k8s.tracker",
        "k8s_jobtracker.k8s.fake",
    ):
        import_module(module)

    _REGISTRY_SENTINEL["loaded"] = True


def _apply_overrides(cfg: Any, overrides: Iterable[str]) -> None:
    for override in overrides:
        key, sep, value = override.partition("=")
        if not sep or not key:
            raise ConfigLoaderError(f"Invalid override '{override}', expected key=value")
        OmegaConf.update(cfg, key, yaml.safe_load(value) if value else value, merge=True)


def _parse_root(data: Any, source: str) -> schema.RootConfig:
    if not isinstance(data, Mapping):
        raise ConfigLoaderError(f"Configuration root must be a mapping: {source}")
    _ensure_registrations()
    try:
        return parse_config(schema.RootConfig, data)
    except Exception as exc:  # pragma: no cover - compoconf raises rich errors
        raise ConfigLoaderError(f"Unable to parse config {source}: {exc}") from exc


def load_config(path: str | Path, overrides: Iterable[str] | None = None) -> schema.RootConfig:
    """Load and validate a YAML configuration file into ``RootConfig``."""

    path = Path(path)
    if not path.exists():
        raise ConfigLoaderError(f"Configuration file not found: {path}")

    cfg = OmegaConf.load(path)
    _apply_overrides(cfg, overrides or [])
    data = OmegaConf.to_container(cfg, resolve=True)
    return _parse_root(data, str(path))


def load_hydra_config(
    config_name: str,
    config_dir: str | Path,
    overrides: Iterable[str] | None = None,
) -> schema.RootConfig:
    """Compose ``config_name`` from a Hydra config directory."""

    config_dir = Path(config_dir).resolve()
    if not config_dir.exists():
        raise ConfigLoaderError(f"Hydra config directory not found: {config_dir}")

    with initialize_config_dir(version_base=None, config_dir=str(config_dir)):
        cfg = compose(config_name=config_name, overrides=list(overrides or []))

    data = OmegaConf.to_container(cfg, resolve=True)
    return _parse_root(data, f"Hydra config {config_name}")


def load_config_reference(
    ref: str | Path,
    config_dir: str | Path,
    overrides: Iterable[str] | None = None,
) -> schema.RootConfig:
    """Load ``ref`` as a file when it exists, otherwise compose it with Hydra."""

    path = Path(ref)
    if path.is_file():
        return load_config(path, overrides)
    return load_hydra_config(str(ref), config_dir, overrides)


def default_config() -> schema.RootConfig:
    """Configuration used when no config file is given: the in-cluster or
    kubeconfig backed Kubernetes allocator."""

    return _parse_root({"tracker": {"class_name": "KubernetesAllocator"}}, "defaults")


def load_job_template(path: str | Path) -> JobTemplate:
    """Read a YAML job template; keys follow :class:`JobTemplate`'s fields."""

    path = Path(path)
    if not path.exists():
        raise ConfigLoaderError(f"Job template not found: {path}")
    data = OmegaConf.to_container(OmegaConf.load(path), resolve=True)
    if not isinstance(data, Mapping):
        raise ConfigLoaderError(f"Job template must be a mapping: {path}")
    try:
        return parse_config(JobTemplate, dict(data))
    except Exception as exc:  # pragma: no cover - compoconf raises rich errors
        raise ConfigLoaderError(f"Unable to parse job template {path}: {exc}") from exc


def ensure_registrations() -> None:
    """Expose registry initialisation for consumers that instantiate partial
    configs."""

    _ensure_registrations()


__all__ = [
    "ConfigLoaderError",
    "default_config",
    "ensure_registrations",
    "load_config",
    "load_config_reference",
    "load_hydra_config",
    "load_job_template",
]
