"""Prometheus metrics for allocation decisions."""
from __future__ import annotations

from typing import Protocol

from prometheus_client import REGISTRY, CollectorRegistry, Counter

from .contracts import AllocationOutcome


class MeterLike(Protocol):
    """Observability hooks consumed by the orchestrator."""

    def record_decision(self, outcome: AllocationOutcome) -> None: ...

    def record_conflict(self, kind: str) -> None: ...

    def record_validation_error(self, code: str) -> None: ...


class AllocationMeters(MeterLike):
    """Wraps Prometheus primitives behind a friendly interface."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or REGISTRY
        self._decisions = Counter(
            "unit_allocation_decisions_total",
            "Allocation decisions written to the audit trail",
            ("outcome",),
            registry=self._registry,
        )
        self._conflicts = Counter(
            "unit_allocation_conflicts_total",
            "Allocation commits that lost a concurrent update",
            ("kind",),
            registry=self._registry,
        )
        self._validation = Counter(
            "unit_allocation_validation_errors_total",
            "Rejected allocation requests by error code",
            ("code",),
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_decision(self, outcome: AllocationOutcome) -> None:
        self._decisions.labels(outcome=outcome.value).inc()

    def record_conflict(self, kind: str) -> None:
        self._conflicts.labels(kind=kind).inc()

    def record_validation_error(self, code: str) -> None:
        self._validation.labels(code=code).inc()


DEFAULT_METERS = AllocationMeters()


__all__ = ["AllocationMeters", "DEFAULT_METERS", "MeterLike"]
