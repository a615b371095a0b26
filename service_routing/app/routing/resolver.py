"""
Assignment resolver: explicit department, then rules, then default bucket.
"""

from datetime import datetime
from typing import Iterable, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from . import insurance
from .departments import DepartmentDirectory
from .engine import RuleEngine, RuleLike
from .models import InsuranceApproval, InsuranceStatus, Parcel, ParcelDraft, utcnow

# (inclusive upper bound in kg, department name); the last entry is unbounded.
DEFAULT_WEIGHT_BUCKETS = (
    (1.0, "Mail"),
    (10.0, "Regular"),
    (None, "Heavy"),
)


def default_department_name(weight_kg: Optional[float]) -> Optional[str]:
    """Built-in bucket for a weight; None when the weight is unknown."""
    if weight_kg is None:
        return None
    for max_kg, name in DEFAULT_WEIGHT_BUCKETS:
        if max_kg is None or weight_kg <= max_kg:
            return name
    return None


class AssignmentResolver:
    """Routes parcels that do not need insurance approval."""

    def __init__(
        self,
        directory: DepartmentDirectory,
        engine: RuleEngine,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.directory = directory
        self.engine = engine
        self.metrics = metrics or get_metrics_collector("routing")
        self.logger = get_logger("routing.resolver")

    async def resolve_assignment(self, draft: ParcelDraft, rules: Iterable[RuleLike]) -> ParcelDraft:
        """Assign a department to the draft and mark insurance as not required."""
        source = "none"
        department_id = None

        if draft.requested_department is not None:
            department_id = await self.directory.resolve(draft.requested_department)
            if department_id:
                source = "explicit"
            else:
                self.logger.info(
                    "Explicit department not resolved, falling back to rules",
                    tracking_id=draft.tracking_id,
                    requested_department=draft.requested_department
                )

        if not department_id:
            outcome = await self.engine.evaluate(draft, rules)
            if outcome.assigned_department:
                department_id = outcome.assigned_department
                source = "rule"

        if not department_id:
            department_id = await self.default_department(draft.weight_kg)
            if department_id:
                source = "default"

        draft.assigned_department = department_id
        draft.insurance_approval = InsuranceApproval(status=InsuranceStatus.NOT_REQUIRED)

        self.metrics.increment_counter("assignments_total", source=source)
        self.logger.debug(
            "Parcel assignment resolved",
            tracking_id=draft.tracking_id,
            department_id=department_id,
            source=source
        )
        return draft

    async def default_department(self, weight_kg: Optional[float]) -> Optional[str]:
        name = default_department_name(weight_kg)
        if name is None:
            return None
        return await self.directory.resolve(name)

    async def approve_insurance(
        self,
        parcel: Parcel,
        approved_by: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Parcel:
        """Approve a pending parcel; unassigned parcels get the static default bucket.

        Rules are deliberately not re-evaluated here.
        """
        parcel.insurance_approval = insurance.approve(parcel.insurance_approval, approved_by, at or utcnow())

        if not parcel.assigned_department:
            parcel.assigned_department = await self.default_department(parcel.weight_kg)

        self.metrics.increment_counter("insurance_decisions_total", status=InsuranceStatus.APPROVED.value)
        self.logger.info(
            "Insurance approved",
            parcel_id=parcel.parcel_id,
            tracking_id=parcel.tracking_id,
            approved_by=approved_by,
            department_id=parcel.assigned_department
        )
        return parcel

    async def reject_insurance(
        self,
        parcel: Parcel,
        rejected_by: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Parcel:
        """Reject a pending parcel. It stays without a department."""
        parcel.insurance_approval = insurance.reject(parcel.insurance_approval, rejected_by, at or utcnow())

        self.metrics.increment_counter("insurance_decisions_total", status=InsuranceStatus.REJECTED.value)
        self.logger.info(
            "Insurance rejected",
            parcel_id=parcel.parcel_id,
            tracking_id=parcel.tracking_id,
            rejected_by=rejected_by
        )
        return parcel
