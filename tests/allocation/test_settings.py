from __future__ import annotations

import logging
from datetime import date

import pytest
from pydantic import ValidationError

from uma.allocation.factories import build_orchestrator
from uma.allocation.results import ResultKind, TaskType
from uma.core.logging_config import configure_from_settings, setup_logging
from uma.core.settings import AllocationSettings

from .conftest import enrol


def test_defaults() -> None:
    settings = AllocationSettings()
    assert settings.minimum_age == 10
    assert (settings.reference_month, settings.reference_day) == (6, 1)
    assert settings.commit_retries == 3


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("UMA_MINIMUM_AGE", "12")
    monkeypatch.setenv("UMA_REFERENCE_MONTH", "9")
    monkeypatch.setenv("UMA_LOG_LEVEL", " DEBUG ")

    settings = AllocationSettings()

    assert settings.minimum_age == 12
    assert settings.reference_month == 9
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"reference_month": 2, "reference_day": 30},
        {"reference_month": 13},
        {"minimum_age": -1},
        {"unknown_field": True},
    ],
)
def test_invalid_settings_are_rejected(overrides) -> None:
    with pytest.raises(ValidationError):
        AllocationSettings(**overrides)


def test_minimum_age_setting_drives_eligibility(store, eagles, clock, meters) -> None:
    orchestrator = build_orchestrator(
        store, settings=AllocationSettings(minimum_age=12), clock=clock, meters=meters
    )
    enrol(store, "x", born=date(2014, 3, 10))

    result = orchestrator.auto_allocate("membership-x", reference_year=2025)

    assert result.kind is ResultKind.BUSINESS_FAILURE
    assert result.task_type is TaskType.MEMBER_UNDER_AGE


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_installs_rotating_file(tmp_path, restore_root_logger) -> None:
    log_file = tmp_path / "logs" / "allocation.log"

    setup_logging("DEBUG", log_file)
    logging.getLogger("uma.allocation").info("hello")

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert any(isinstance(handler, logging.handlers.RotatingFileHandler) for handler in root.handlers)
    for handler in root.handlers:
        handler.flush()
    assert "hello" in log_file.read_text(encoding="utf-8")


def test_configure_from_settings_uses_level_and_file(tmp_path, restore_root_logger) -> None:
    log_file = tmp_path / "uma.log"

    configure_from_settings(AllocationSettings(log_level="warning", log_file=str(log_file)))

    root = restore_root_logger
    assert root.level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert log_file.exists()
