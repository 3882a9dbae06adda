from __future__ import annotations

import json
import logging

from prometheus_client import CollectorRegistry

from uma.allocation.contracts import AllocationOutcome
from uma.allocation.logging_utils import StructuredLogger, build_logger
from uma.allocation.metrics import AllocationMeters


def test_structured_logger_merges_bound_context(caplog) -> None:
    caplog.set_level(logging.INFO, logger="uma.tests")
    logger = StructuredLogger(logging.getLogger("uma.tests")).bind(member_id="member-1")

    logger.info("gender_change_processed", extra={"moved": 1})
    logger.debug("hidden")

    (record,) = caplog.records
    assert json.loads(record.getMessage()) == {
        "event": "gender_change_processed",
        "member_id": "member-1",
        "moved": 1,
    }


def test_default_logger_name() -> None:
    assert build_logger().name == "uma.allocation"


def test_meters_use_injected_registry() -> None:
    registry = CollectorRegistry()
    meters = AllocationMeters(registry)

    meters.record_decision(AllocationOutcome.FAILED)
    meters.record_decision(AllocationOutcome.FAILED)
    meters.record_conflict("stale")
    meters.record_validation_error("UNIT_NOT_FOUND")

    assert meters.registry is registry
    assert registry.get_sample_value("unit_allocation_decisions_total", {"outcome": "FAILED"}) == 2.0
    assert registry.get_sample_value("unit_allocation_conflicts_total", {"kind": "stale"}) == 1.0
    assert registry.get_sample_value(
        "unit_allocation_validation_errors_total", {"code": "UNIT_NOT_FOUND"}
    ) == 1.0
