"""Membership unit allocation public API."""

from .age import AgeCalculator, age_on_reference_date
from .audit import AllocationAuditTrail, derive_status
from .capacity import CapacityTracker, UnitCapacity
from .contracts import (
    AllocationOutcome,
    AllocationRecord,
    AllocationStatus,
    Club,
    Gender,
    GenderRestriction,
    Member,
    MemberStatus,
    Membership,
    Unit,
)
from .eligibility import EligibilityEvaluator, EligibilityVerdict
from .errors import AllocationError, ErrorDetail
from .factories import build_orchestrator, build_sql_orchestrator, build_sql_store
from .matcher import UnitCompatibilityMatcher, ranking_key
from .memory import InMemoryAllocationStore
from .metrics import DEFAULT_METERS, AllocationMeters
from .orchestrator import AllocationOrchestrator
from .results import (
    AllocationResult,
    CompatibleUnit,
    GenderChangeResult,
    MembershipAllocationState,
    QueryResult,
    ReallocationCheck,
    ResultKind,
    TaskType,
)
from .sql_store import SqlAlchemyAllocationStore

__all__ = [
    "AgeCalculator",
    "age_on_reference_date",
    "AllocationAuditTrail",
    "derive_status",
    "CapacityTracker",
    "UnitCapacity",
    "AllocationOutcome",
    "AllocationRecord",
    "AllocationStatus",
    "Club",
    "Gender",
    "GenderRestriction",
    "Member",
    "MemberStatus",
    "Membership",
    "Unit",
    "EligibilityEvaluator",
    "EligibilityVerdict",
    "AllocationError",
    "ErrorDetail",
    "build_orchestrator",
    "build_sql_orchestrator",
    "build_sql_store",
    "UnitCompatibilityMatcher",
    "ranking_key",
    "InMemoryAllocationStore",
    "AllocationMeters",
    "DEFAULT_METERS",
    "AllocationOrchestrator",
    "AllocationResult",
    "CompatibleUnit",
    "GenderChangeResult",
    "MembershipAllocationState",
    "QueryResult",
    "ReallocationCheck",
    "ResultKind",
    "TaskType",
    "SqlAlchemyAllocationStore",
]
