"""
Routing service for parcel department assignment.
"""

from typing import Any, Dict, Iterable, List, Optional, Union

from prometheus_client import CollectorRegistry

from shared.config import RoutingConfig, get_config
from shared.errors import ConfigurationError, NotFoundError, RoutingException, UnresolvableReferenceError
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

from .ingestion.batch import BatchIngestionProcessor
from .ingestion.xml_source import parse_parcel_document
from .persistence.base import DepartmentStore, ParcelStore, RuleStore
from .persistence.memory import InMemoryDepartmentStore, InMemoryParcelStore, InMemoryRuleStore
from .routing.departments import DepartmentDirectory
from .routing.engine import RuleEngine
from .routing.insurance import InsuranceGate
from .routing.models import (
    BatchIngestionResult, Parcel, Rule, RoutingOutcome, RuleCreateRequest, RuleUpdateRequest
)
from .routing.normalizer import FieldNormalizer
from .routing.resolver import AssignmentResolver
from .rules.admin import RuleAdministration, RuleChange
from .rules.cascade import RuleChangeCascade


class RoutingService:
    """Routing service implementation.

    Wires configuration, logging, metrics, the storage collaborators and the
    routing components. A transport layer calls these coroutines; nothing
    here performs network I/O itself.
    """

    def __init__(
        self,
        config: Optional[RoutingConfig] = None,
        department_store: Optional[DepartmentStore] = None,
        parcel_store: Optional[ParcelStore] = None,
        rule_store: Optional[RuleStore] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        self.config = config or get_config()
        self.name = self.config.service_name
        configure_logging(self.name, self.config.log_level)
        self.logger = get_logger(self.name)
        self.metrics = get_metrics_collector(self.name, registry)

        # Storage collaborators
        self.department_store = department_store or InMemoryDepartmentStore()
        self.parcel_store = parcel_store or InMemoryParcelStore()
        self.rule_store = rule_store or InMemoryRuleStore()

        # Routing components
        self.directory = DepartmentDirectory(self.department_store, self.config.department_id_pattern)
        self.normalizer = FieldNormalizer()
        self.insurance_gate = InsuranceGate(self.config.insurance_threshold_eur)
        self.rule_engine = RuleEngine(self.directory, self.insurance_gate, self.metrics)
        self.resolver = AssignmentResolver(self.directory, self.rule_engine, self.metrics)
        self.ingestion = BatchIngestionProcessor(
            self.normalizer,
            self.insurance_gate,
            self.resolver,
            self.parcel_store,
            self.metrics
        )
        self.cascade = RuleChangeCascade(
            self.rule_engine,
            self.parcel_store,
            self.metrics,
            concurrency=self.config.cascade_concurrency
        )
        self.rules = RuleAdministration(self.rule_store, self.directory, self.cascade)

    async def load_rules(self) -> List[Rule]:
        """Snapshot of all rules. An unreadable rule store is fatal."""
        try:
            return await self.rule_store.list_rules()
        except RoutingException:
            raise
        except Exception as e:
            self.logger.error("Failed to load rules", error=str(e))
            raise ConfigurationError("Rule store unavailable", {"error": str(e)}) from e

    async def evaluate(self, raw: Dict[str, Any]) -> RoutingOutcome:
        """Dry-run rule evaluation for a raw record; nothing is stored."""
        draft = self.normalizer.normalize(raw)
        return await self.rule_engine.evaluate(draft, await self.load_rules())

    async def create_parcel(self, raw: Dict[str, Any]) -> Parcel:
        set_request_id()
        try:
            parcel = await self.ingestion.ingest_one(raw, await self.load_rules())
            self.logger.info(
                "Parcel created",
                parcel_id=parcel.parcel_id,
                tracking_id=parcel.tracking_id,
                department_id=parcel.assigned_department,
                insurance=parcel.insurance_approval.status.value
            )
            return parcel
        finally:
            clear_context()

    async def ingest_batch(self, records: Iterable[Any]) -> BatchIngestionResult:
        set_request_id()
        try:
            return await self.ingestion.ingest(records, await self.load_rules())
        finally:
            clear_context()

    async def ingest_document(self, document: Union[str, bytes]) -> BatchIngestionResult:
        """Ingest a bulk XML parcel document."""
        return await self.ingest_batch(parse_parcel_document(document))

    async def get_parcel(self, parcel_id: str) -> Parcel:
        parcel = await self.parcel_store.get(parcel_id)
        if parcel is None:
            raise NotFoundError("Parcel", parcel_id)
        return parcel

    async def list_parcels(self, department: Optional[str] = None) -> List[Parcel]:
        """Parcels newest first, filtered by a department id or name when given."""
        department_id = None
        if department is not None:
            department_id = await self.directory.resolve(department)
            if department_id is None:
                raise UnresolvableReferenceError(department)
        return await self.parcel_store.list_parcels(department_id)

    async def approve_insurance(self, parcel_id: str, approved_by: Optional[str] = None) -> Parcel:
        parcel = await self.get_parcel(parcel_id)
        parcel = await self.resolver.approve_insurance(parcel, approved_by)
        return await self.parcel_store.save(parcel)

    async def reject_insurance(self, parcel_id: str, rejected_by: Optional[str] = None) -> Parcel:
        parcel = await self.get_parcel(parcel_id)
        parcel = await self.resolver.reject_insurance(parcel, rejected_by)
        return await self.parcel_store.save(parcel)

    async def list_rules(self) -> List[Rule]:
        return await self.rules.list_rules()

    async def create_rule(self, request: RuleCreateRequest) -> RuleChange:
        return await self.rules.create_rule(request)

    async def update_rule(self, rule_id: str, request: RuleUpdateRequest) -> RuleChange:
        return await self.rules.update_rule(rule_id, request)

    async def delete_rule(self, rule_id: str) -> None:
        await self.rules.delete_rule(rule_id)

    async def get_stats(self) -> Dict[str, Any]:
        """Routing configuration and store sizes."""
        rules = await self.load_rules()
        departments = await self.department_store.list_departments()
        return {
            "service": self.name,
            "insurance_threshold_eur": self.insurance_gate.threshold_eur,
            "rules": {
                "total": len(rules),
                "weight": len([r for r in rules if r.is_weight_rule]),
            },
            "departments": len(departments),
        }


def create_service(**kwargs: Any) -> RoutingService:
    """Create routing service from environment configuration."""
    return RoutingService(**kwargs)
