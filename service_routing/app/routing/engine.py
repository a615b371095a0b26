"""
Weight-bucket rule evaluation engine for the Routing Service.
"""

import math
import time
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from shared.logging import get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from .departments import DepartmentDirectory
from .insurance import InsuranceGate
from .models import Rule, RoutingOutcome, WeightBucket, to_finite_number

CATCH_ALL = math.inf

# Keys read from mapping parcels; attribute parcels expose weight_kg and value_eur.
WEIGHT_KEYS = ("weightKg", "weight_kg")
VALUE_KEYS = ("valueEur", "value_eur")

RuleLike = Union[Rule, Mapping[str, Any]]


def as_rules(rules: Iterable[RuleLike]) -> List[Rule]:
    """Accept Rule objects or stored rule records."""
    return [rule if isinstance(rule, Rule) else Rule.from_dict(rule) for rule in rules]


def sort_rules(rules: Iterable[RuleLike]) -> List[Rule]:
    """Ascending priority; ties keep their original relative order."""
    return sorted(as_rules(rules), key=lambda rule: rule.priority)


def bucket_ceiling(max_kg: Any) -> float:
    """Numeric ceiling of a bucket. Missing or malformed limits are catch-alls."""
    ceiling = to_finite_number(max_kg)
    return CATCH_ALL if ceiling is None else ceiling


def sorted_buckets(rule: Rule) -> List[Tuple[float, WeightBucket]]:
    """Buckets annotated with their ceiling, narrowest first (stable)."""
    annotated = [(bucket_ceiling(bucket.max_kg), bucket) for bucket in rule.weight_buckets()]
    annotated.sort(key=lambda item: item[0])
    return annotated


def _first_key(parcel: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if parcel.get(key) is not None:
            return parcel[key]
    return None


def parcel_measures(parcel: Any) -> Tuple[Optional[float], Optional[float]]:
    """Finite weight and value of a parcel object or a normalized parcel mapping."""
    if isinstance(parcel, Mapping):
        weight_kg = _first_key(parcel, WEIGHT_KEYS)
        value_eur = _first_key(parcel, VALUE_KEYS)
    else:
        weight_kg = getattr(parcel, "weight_kg", None)
        value_eur = getattr(parcel, "value_eur", None)
    return to_finite_number(weight_kg), to_finite_number(value_eur)


class RuleEngine:
    """Evaluates weight rules against a parcel; the first successful match wins."""

    def __init__(
        self,
        directory: DepartmentDirectory,
        insurance_gate: InsuranceGate,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.directory = directory
        self.insurance_gate = insurance_gate
        self.metrics = metrics or get_metrics_collector("routing")
        self.logger = get_logger("routing.rule_engine")

    async def evaluate(self, parcel: Any, rules: Iterable[RuleLike]) -> RoutingOutcome:
        """Evaluate rules against a parcel object or a ``{weightKg, valueEur}`` mapping."""
        start_time = time.time()
        weight_kg, value_eur = parcel_measures(parcel)

        outcome = RoutingOutcome(
            requires_insurance=self.insurance_gate.requires_insurance(value_eur)
        )

        with self.metrics.time_operation("rule_evaluation_duration_seconds"):
            for rule in sort_rules(rules):
                if not rule.is_weight_rule:
                    continue

                department_id = await self._match_rule(rule, weight_kg)
                if department_id is None:
                    continue

                outcome.assigned_department = department_id
                outcome.applied_rule_names.append(rule.label)
                outcome.assigned_department_name = await self.directory.name_of(department_id)

                self.logger.debug(
                    "Rule matched",
                    rule_id=rule.rule_id,
                    rule=rule.label,
                    weight_kg=weight_kg,
                    department_id=department_id
                )
                break

        outcome.evaluation_time_ms = (time.time() - start_time) * 1000
        self.metrics.increment_counter(
            "rule_evaluations_total",
            result="matched" if outcome.assigned_department else "unmatched"
        )
        return outcome

    async def _match_rule(self, rule: Rule, weight_kg: Optional[float]) -> Optional[str]:
        """Department of the first matching, resolvable bucket of a rule."""
        for ceiling, bucket in sorted_buckets(rule):
            if weight_kg is None:
                # Without a usable weight only catch-all buckets apply.
                if ceiling != CATCH_ALL:
                    continue
            elif ceiling < weight_kg:
                continue

            department_id = await self.directory.resolve(bucket.department_ref)
            if department_id is not None:
                return department_id

            self.logger.warning(
                "Skipping bucket with unresolvable department",
                rule_id=rule.rule_id,
                rule=rule.label,
                department_ref=bucket.department_ref,
                max_kg=bucket.max_kg
            )
        return None
