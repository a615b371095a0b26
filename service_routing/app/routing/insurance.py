"""
Insurance gate and approval state machine.
"""

import math
from datetime import datetime
from typing import Optional

from shared.config import DEFAULT_INSURANCE_THRESHOLD_EUR
from shared.errors import ConfigurationError, InvalidTransitionError
from shared.logging import get_logger
from .models import InsuranceApproval, InsuranceStatus, ParcelDraft, utcnow

# not_required, approved and rejected are terminal.
ALLOWED_TRANSITIONS = {
    InsuranceStatus.PENDING: {InsuranceStatus.APPROVED, InsuranceStatus.REJECTED},
}


class InsuranceGate:
    """Decides whether a parcel needs manual insurance approval."""

    def __init__(self, threshold_eur: float = DEFAULT_INSURANCE_THRESHOLD_EUR):
        if isinstance(threshold_eur, bool) or not isinstance(threshold_eur, (int, float)) \
                or not math.isfinite(threshold_eur) or threshold_eur <= 0:
            raise ConfigurationError(
                "Insurance threshold must be a positive number",
                {"threshold_eur": threshold_eur}
            )
        self.threshold_eur = float(threshold_eur)
        self.logger = get_logger("routing.insurance")

    def requires_insurance(self, value_eur: Optional[float]) -> bool:
        return value_eur is not None and value_eur > self.threshold_eur

    def evaluate(self, draft: ParcelDraft) -> bool:
        """Park the draft as pending when its value exceeds the threshold."""
        required = self.requires_insurance(draft.value_eur)
        if required:
            draft.insurance_approval = InsuranceApproval(status=InsuranceStatus.PENDING)
            draft.assigned_department = None
            self.logger.info(
                "Parcel requires insurance approval",
                tracking_id=draft.tracking_id,
                value_eur=draft.value_eur,
                threshold_eur=self.threshold_eur
            )
        return required


def transition(
    approval: InsuranceApproval,
    target: InsuranceStatus,
    actor: Optional[str] = None,
    at: Optional[datetime] = None,
) -> InsuranceApproval:
    """Return the approval moved to ``target``; raises on a forbidden move."""
    if target not in ALLOWED_TRANSITIONS.get(approval.status, set()):
        raise InvalidTransitionError(approval.status.value, target.value)
    return InsuranceApproval(status=target, approved_by=actor, approved_at=at or utcnow())


def approve(approval: InsuranceApproval, actor: Optional[str] = None, at: Optional[datetime] = None) -> InsuranceApproval:
    return transition(approval, InsuranceStatus.APPROVED, actor, at)


def reject(approval: InsuranceApproval, actor: Optional[str] = None, at: Optional[datetime] = None) -> InsuranceApproval:
    return transition(approval, InsuranceStatus.REJECTED, actor, at)
