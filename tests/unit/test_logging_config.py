import logging

import pytest

from k8s_jobtracker.utils.logging_config import (
    LOG_LEVEL_ENV,
    configure_logging,
    get_log_level_from_env,
    resolve_log_level,
)


@pytest.fixture(autouse=True)
def _restore_loggers():
    names = ("", "kubernetes", "urllib3")
    saved = {name: (logging.getLogger(name).level, list(logging.getLogger(name).handlers)) for name in names}
    yield
    for name, (level, handlers) in saved.items():
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers[:] = handlers


def test_level_from_env(monkeypatch) -> None:
    monkeypatch.setenv(LOG_LEVEL_ENV, " info ")
    assert get_log_level_from_env() == logging.INFO

    monkeypatch.setenv(LOG_LEVEL_ENV, "chatty")
    assert get_log_level_from_env() == logging.WARNING

    monkeypatch.delenv(LOG_LEVEL_ENV)
    assert get_log_level_from_env(default=logging.ERROR) == logging.ERROR


def test_resolve_priority(monkeypatch) -> None:
    monkeypatch.setenv(LOG_LEVEL_ENV, "ERROR")

    assert resolve_log_level(level=logging.CRITICAL, debug=True) == logging.CRITICAL
    assert resolve_log_level(debug=True, verbose=True) == logging.DEBUG
    assert resolve_log_level(verbose=True) == logging.INFO
    assert resolve_log_level() == logging.ERROR
    assert resolve_log_level(respect_env=False) == logging.WARNING


def test_configure_logging_quiets_client_loggers(monkeypatch) -> None:
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)

    assert configure_logging(verbose=True) == logging.INFO
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("kubernetes").level == logging.WARNING
    assert logging.getLogger("urllib3").level == logging.WARNING

    assert configure_logging(debug=True) == logging.DEBUG
    assert logging.getLogger("urllib3").level == logging.DEBUG
