"""
Rule administration for the Routing Service.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from shared.errors import NotFoundError, UnresolvableReferenceError, ValidationError
from shared.logging import get_logger
from ..persistence.base import RuleStore
from ..routing.departments import DepartmentDirectory
from ..routing.engine import sort_rules
from ..routing.models import (
    CascadeSummary, Rule, RuleCreateRequest, RuleType, RuleUpdateRequest,
    bucket_department_ref, new_object_id, to_finite_number, utcnow
)
from .cascade import RuleChangeCascade


@dataclass
class RuleChange:
    """A stored rule plus the cascade it triggered, if any."""
    rule: Rule
    cascade: Optional[CascadeSummary] = None


class RuleAdministration:
    """Creates, updates and deletes rules; weight changes cascade to parcels."""

    def __init__(self, rule_store: RuleStore, directory: DepartmentDirectory, cascade: RuleChangeCascade):
        self.rule_store = rule_store
        self.directory = directory
        self.cascade = cascade
        self.logger = get_logger("routing.rules")

    async def normalize_buckets(self, buckets: Any) -> List[Dict[str, Any]]:
        """Resolve every bucket's department to a canonical id.

        Raises UnresolvableReferenceError for the first unknown department.
        """
        if not isinstance(buckets, list):
            return []

        normalized = []
        for bucket in buckets:
            if not isinstance(bucket, Mapping):
                raise ValidationError("Bucket must be an object", {"bucket": bucket})

            reference = bucket_department_ref(bucket)
            department_id = await self.directory.resolve(reference)
            if not department_id:
                raise UnresolvableReferenceError(reference)

            normalized.append({
                "departmentId": department_id,
                "maxKg": to_finite_number(bucket.get("maxKg")),
            })
        return normalized

    async def _normalize_config(self, rule_type: str, config: Dict[str, Any]) -> Dict[str, Any]:
        if rule_type != RuleType.WEIGHT.value or not isinstance(config.get("buckets"), list):
            return config
        return {**config, "buckets": await self.normalize_buckets(config["buckets"])}

    async def list_rules(self) -> List[Rule]:
        return sort_rules(await self.rule_store.list_rules())

    async def create_rule(self, request: RuleCreateRequest) -> RuleChange:
        config = await self._normalize_config(request.type, dict(request.config))
        rule = Rule(
            rule_id=new_object_id(),
            name=request.name,
            type=request.type,
            priority=request.priority,
            config=config,
            version=request.version,
        )
        await self.rule_store.save(rule)
        self.logger.info("Rule created", rule_id=rule.rule_id, name=rule.name, type=rule.type)

        return RuleChange(rule=rule, cascade=await self._cascade(rule))

    async def update_rule(self, rule_id: str, request: RuleUpdateRequest) -> RuleChange:
        rule = await self.rule_store.get(rule_id)
        if rule is None:
            raise NotFoundError("Rule", rule_id)

        if request.name is not None:
            rule.name = request.name
        if request.type is not None:
            rule.type = request.type
        if request.priority is not None:
            rule.priority = request.priority
        if request.version is not None:
            rule.version = request.version
        if request.config is not None:
            rule.config = await self._normalize_config(rule.type, dict(request.config))

        rule.updated_at = utcnow()
        await self.rule_store.save(rule)
        self.logger.info("Rule updated", rule_id=rule.rule_id, name=rule.name, type=rule.type)

        return RuleChange(rule=rule, cascade=await self._cascade(rule))

    async def delete_rule(self, rule_id: str) -> None:
        if not await self.rule_store.delete(rule_id):
            raise NotFoundError("Rule", rule_id)
        self.logger.info("Rule deleted", rule_id=rule_id)

    async def _cascade(self, rule: Rule) -> Optional[CascadeSummary]:
        """Run the cascade for weight rules. Failures never fail the mutation."""
        if not rule.is_weight_rule:
            return None
        try:
            return await self.cascade.run(rule, await self.rule_store.list_rules())
        except Exception as e:
            self.logger.error(
                "Error re-evaluating parcels after rule change",
                rule_id=rule.rule_id,
                error=str(e)
            )
            return None
