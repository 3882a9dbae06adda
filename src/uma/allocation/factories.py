"""Factory helpers wiring allocation components together."""
from __future__ import annotations

from typing import Callable, Protocol

from uma.core.clock import Clock
from uma.core.settings import AllocationSettings, load_settings
from uma.infrastructure.persistence.models import Base
from uma.infrastructure.persistence.session import make_engine, make_session_factory

from .age import AgeCalculator
from .contracts import AuditStore, MemberDirectory, MembershipStore, UnitCatalog
from .eligibility import EligibilityEvaluator
from .logging_utils import LoggerLike
from .metrics import MeterLike
from .orchestrator import AllocationOrchestrator
from .sql_store import SqlAlchemyAllocationStore


class AllocationStore(MemberDirectory, UnitCatalog, MembershipStore, AuditStore, Protocol):
    """A single backend serving every collaborator the orchestrator needs."""


def build_orchestrator(
    store: AllocationStore,
    *,
    settings: AllocationSettings | None = None,
    clock: Clock | None = None,
    meters: MeterLike | None = None,
    logger: LoggerLike | None = None,
) -> AllocationOrchestrator:
    """Create an ``AllocationOrchestrator`` over one store and the given settings."""

    settings = settings or load_settings()
    calculator = AgeCalculator(
        reference_month=settings.reference_month,
        reference_day=settings.reference_day,
    )
    return AllocationOrchestrator(
        members=store,
        units=store,
        memberships=store,
        audit_store=store,
        age_calculator=calculator,
        eligibility=EligibilityEvaluator(age_calculator=calculator, minimum_age=settings.minimum_age),
        clock=clock,
        meters=meters,
        logger=logger,
    )


def build_sql_store(
    settings: AllocationSettings | None = None,
    *,
    create_schema: bool = True,
    sleeper: Callable[[float], None] | None = None,
) -> SqlAlchemyAllocationStore:
    """Create a ``SqlAlchemyAllocationStore`` for ``settings.database_url``."""

    settings = settings or load_settings()
    engine = make_engine(settings.database_url)
    if create_schema:
        Base.metadata.create_all(engine)
    return SqlAlchemyAllocationStore(
        make_session_factory(engine),
        retries=settings.commit_retries,
        backoff_seconds=settings.commit_backoff_seconds,
        sleeper=sleeper,
    )


def build_sql_orchestrator(
    settings: AllocationSettings | None = None,
    *,
    clock: Clock | None = None,
    meters: MeterLike | None = None,
    logger: LoggerLike | None = None,
) -> tuple[AllocationOrchestrator, SqlAlchemyAllocationStore]:
    settings = settings or load_settings()
    store = build_sql_store(settings)
    orchestrator = build_orchestrator(store, settings=settings, clock=clock, meters=meters, logger=logger)
    return orchestrator, store


__all__ = ["AllocationStore", "build_orchestrator", "build_sql_orchestrator", "build_sql_store"]
