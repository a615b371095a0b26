"""
In-memory persistence layer for the Routing Service.
"""

import asyncio
import copy
from typing import Dict, Iterable, List, Optional

from shared.errors import DuplicateKeyError, ValidationError
from shared.logging import get_logger
from ..routing.models import Department, InsuranceStatus, Parcel, ParcelDraft, Rule, new_object_id, utcnow
from .base import DepartmentStore, ParcelStore, RuleStore


class InMemoryDepartmentStore(DepartmentStore):
    """Department store backed by a dict."""

    def __init__(self, departments: Optional[Iterable[Department]] = None):
        self.departments: Dict[str, Department] = {}
        for department in departments or []:
            self.add(department)

    def add(self, department: Department) -> Department:
        lowered = department.name.lower()
        for existing in self.departments.values():
            if existing.name.lower() == lowered and existing.department_id != department.department_id:
                raise ValidationError(
                    "Department name must be unique",
                    {"name": department.name}
                )
        self.departments[department.department_id] = department
        return department

    def create(self, name: str, description: Optional[str] = None) -> Department:
        return self.add(Department(department_id=new_object_id(), name=name, description=description))

    async def get_by_id(self, department_id: str) -> Optional[Department]:
        return self.departments.get(department_id)

    async def find_by_name(self, name: str) -> Optional[Department]:
        lowered = name.lower()
        for department in self.departments.values():
            if department.name.lower() == lowered:
                return department
        return None

    async def list_departments(self) -> List[Department]:
        return list(self.departments.values())


class InMemoryParcelStore(ParcelStore):
    """Parcel store with a unique index on tracking ID."""

    def __init__(self):
        self.logger = get_logger("routing.persistence.memory")
        self.parcels: Dict[str, Parcel] = {}
        self._by_tracking_id: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, parcel_id: str) -> Optional[Parcel]:
        parcel = self.parcels.get(parcel_id)
        return copy.deepcopy(parcel) if parcel else None

    async def find_by_tracking_id(self, tracking_id: str) -> Optional[Parcel]:
        parcel_id = self._by_tracking_id.get(tracking_id)
        return await self.get(parcel_id) if parcel_id else None

    async def create(self, draft: ParcelDraft) -> Parcel:
        if not isinstance(draft.tracking_id, str) or not draft.tracking_id.strip():
            raise ValidationError("trackingId is required", {"tracking_id": draft.tracking_id})

        async with self._lock:
            existing_id = self._by_tracking_id.get(draft.tracking_id)
            if existing_id:
                raise DuplicateKeyError(draft.tracking_id, existing_id)

            parcel = Parcel.from_draft(draft, new_object_id())
            self.parcels[parcel.parcel_id] = copy.deepcopy(parcel)
            self._by_tracking_id[parcel.tracking_id] = parcel.parcel_id

        self.logger.debug("Parcel stored", parcel_id=parcel.parcel_id, tracking_id=parcel.tracking_id)
        return parcel

    async def save(self, parcel: Parcel) -> Parcel:
        async with self._lock:
            owner = self._by_tracking_id.get(parcel.tracking_id)
            if owner and owner != parcel.parcel_id:
                raise DuplicateKeyError(parcel.tracking_id, owner)

            previous = self.parcels.get(parcel.parcel_id)
            if previous and previous.tracking_id != parcel.tracking_id:
                self._by_tracking_id.pop(previous.tracking_id, None)

            parcel.updated_at = utcnow()
            self.parcels[parcel.parcel_id] = copy.deepcopy(parcel)
            self._by_tracking_id[parcel.tracking_id] = parcel.parcel_id
        return parcel

    async def list_not_pending(self) -> List[Parcel]:
        return [
            copy.deepcopy(parcel) for parcel in self.parcels.values()
            if parcel.insurance_approval.status != InsuranceStatus.PENDING
        ]

    async def list_parcels(self, department_id: Optional[str] = None) -> List[Parcel]:
        # Insertion order is creation order; save() keeps a parcel's position.
        return [
            copy.deepcopy(parcel) for parcel in reversed(list(self.parcels.values()))
            if department_id is None or parcel.assigned_department == department_id
        ]


class InMemoryRuleStore(RuleStore):
    """Rule store that keeps insertion order."""

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        self.rules: Dict[str, Rule] = {}
        for rule in rules or []:
            self.rules[rule.rule_id] = rule

    async def list_rules(self) -> List[Rule]:
        return [copy.deepcopy(rule) for rule in self.rules.values()]

    async def get(self, rule_id: str) -> Optional[Rule]:
        rule = self.rules.get(rule_id)
        return copy.deepcopy(rule) if rule else None

    async def save(self, rule: Rule) -> Rule:
        if not rule.rule_id:
            rule.rule_id = new_object_id()
        self.rules[rule.rule_id] = copy.deepcopy(rule)
        return rule

    async def delete(self, rule_id: str) -> bool:
        return self.rules.pop(rule_id, None) is not None
