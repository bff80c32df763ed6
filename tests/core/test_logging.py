import logging

import pytest
from rich.logging import RichHandler

from rankd.core.logging import configure_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _managed_handlers() -> list[logging.Handler]:
    return [
        handler
        for handler in logging.getLogger().handlers
        if isinstance(handler, RichHandler) and getattr(handler, "_rankd_managed", False)
    ]


def test_configure_logging_installs_one_handler():
    configure_logging("DEBUG")
    configure_logging("DEBUG")

    assert len(_managed_handlers()) == 1
    assert logging.getLogger().level == logging.DEBUG


def test_environment_level_wins(monkeypatch):
    monkeypatch.setenv("RANKD_LOG_LEVEL", "ERROR")
    configure_logging("DEBUG")
    assert logging.getLogger().level == logging.ERROR


def test_ibis_stays_quiet_at_debug():
    configure_logging("DEBUG")
    assert logging.getLogger("ibis").level == logging.WARNING


def test_unknown_level_falls_back_to_info():
    configure_logging("LOUD")
    assert logging.getLogger().level == logging.INFO
