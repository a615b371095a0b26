"""
Rule-change cascade for the Routing Service.
"""

import asyncio
from typing import Iterable, List, Optional, Sequence, Tuple

from shared.logging import get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from ..persistence.base import ParcelStore
from ..routing.engine import RuleEngine, RuleLike, as_rules
from ..routing.models import CascadeSummary, Parcel, Rule

DEFAULT_CASCADE_CONCURRENCY = 5


class RuleChangeCascade:
    """Re-evaluates non-pending parcels after a weight rule is created or updated."""

    def __init__(
        self,
        engine: RuleEngine,
        parcel_store: ParcelStore,
        metrics: Optional[MetricsCollector] = None,
        concurrency: int = DEFAULT_CASCADE_CONCURRENCY,
    ):
        self.engine = engine
        self.parcel_store = parcel_store
        self.metrics = metrics or get_metrics_collector("routing")
        self.logger = get_logger("routing.cascade")
        self._semaphore = asyncio.Semaphore(max(1, concurrency))

    async def cascade(
        self,
        updated_rule: RuleLike,
        all_rules: Sequence[RuleLike],
        parcels: Iterable[Parcel],
    ) -> List[Parcel]:
        """Return the parcels whose department was re-assigned and saved."""
        updated, _, _ = await self._cascade(as_rules([updated_rule])[0], all_rules, parcels)
        return updated

    async def run(self, updated_rule: RuleLike, all_rules: Sequence[RuleLike]) -> CascadeSummary:
        """Load non-pending parcels from the store and cascade over them."""
        rule = as_rules([updated_rule])[0]
        if not rule.is_weight_rule:
            return CascadeSummary(rule_id=rule.rule_id, triggered=False)

        parcels = await self.parcel_store.list_not_pending()
        updated, evaluated, failed = await self._cascade(rule, all_rules, parcels)
        return CascadeSummary(
            rule_id=rule.rule_id,
            triggered=True,
            evaluated=evaluated,
            updated=len(updated),
            failed=failed
        )

    async def _cascade(
        self,
        rule: Rule,
        all_rules: Sequence[RuleLike],
        parcels: Iterable[Parcel],
    ) -> Tuple[List[Parcel], int, int]:
        if not rule.is_weight_rule:
            return [], 0, 0

        snapshot = as_rules(all_rules)
        candidates = [parcel for parcel in parcels if not parcel.is_pending]

        outcomes = await asyncio.gather(
            *(self._reevaluate(parcel, snapshot) for parcel in candidates)
        )

        updated = [parcel for parcel, status in outcomes if status == "updated"]
        failed = sum(1 for _, status in outcomes if status == "failed")

        self.logger.info(
            "Re-evaluated parcels after rule change",
            rule_id=rule.rule_id,
            rule=rule.label,
            evaluated=len(candidates),
            updated=len(updated),
            failed=failed
        )
        return updated, len(candidates), failed

    async def _reevaluate(self, parcel: Parcel, rules: List[Rule]) -> Tuple[Parcel, str]:
        async with self._semaphore:
            previous = parcel.assigned_department
            try:
                outcome = await self.engine.evaluate(parcel, rules)
                if not outcome.assigned_department:
                    self.metrics.increment_counter("cascade_parcels_total", result="unchanged")
                    return parcel, "unchanged"

                parcel.assigned_department = outcome.assigned_department
                await self.parcel_store.save(parcel)
            except Exception as e:
                parcel.assigned_department = previous
                self.metrics.increment_counter("cascade_parcels_total", result="failed")
                self.logger.error(
                    "Failed to re-evaluate parcel",
                    parcel_id=parcel.parcel_id,
                    tracking_id=parcel.tracking_id,
                    error=str(e)
                )
                return parcel, "failed"

            self.metrics.increment_counter("cascade_parcels_total", result="updated")
            return parcel, "updated"
