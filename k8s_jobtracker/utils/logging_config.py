"""Logging setup for the command line entry point."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "K8S_JOBTRACKER_LOG_LEVEL"
# Third party loggers that are noisy at INFO/DEBUG.
CLIENT_LOGGERS = ("kubernetes", "urllib3")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level_from_env(default: int = logging.WARNING, env_var: str = LOG_LEVEL_ENV) -> int:
    """Read a level name (``DEBUG`` ... ``CRITICAL``) from ``env_var``.

    Unknown or missing values fall back to ``default``.
    """
    return _LEVELS.get(os.getenv(env_var, "").strip().upper(), default)


def resolve_log_level(
    verbose: bool = False,
    debug: bool = False,
    level: int | None = None,
    respect_env: bool = True,
) -> int:
    """Pick the effective level.

    Priority: explicit ``level``, ``debug``, ``verbose``, the
    ``K8S_JOBTRACKER_LOG_LEVEL`` environment variable, ``WARNING``.
    """
    if level is not None:
        return level
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    if respect_env:
        return get_log_level_from_env()
    return logging.WARNING


def configure_logging(
    verbose: bool = False,
    debug: bool = False,
    level: int | None = None,
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt: str = "%Y-%m-%d %H:%M:%S",
    respect_env: bool = True,
) -> int:
    final_level = resolve_log_level(verbose=verbose, debug=debug, level=level, respect_env=respect_env)
    logging.basicConfig(level=final_level, format=format, datefmt=datefmt, force=True)
    # Request/response dumps from the API client only at DEBUG.
    client_level = logging.DEBUG if final_level <= logging.DEBUG else max(final_level, logging.WARNING)
    for name in CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(client_level)
    return final_level


__all__ = ["LOG_LEVEL_ENV", "configure_logging", "get_log_level_from_env", "resolve_log_level"]
