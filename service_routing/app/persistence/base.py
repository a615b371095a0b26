"""
Storage contracts for the Routing Service.

Every method is a coroutine: implementations may suspend on I/O and may
fail independently of each other.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..routing.models import Department, Parcel, ParcelDraft, Rule


class DepartmentStore(ABC):
    """Read-only department lookups."""

    @abstractmethod
    async def get_by_id(self, department_id: str) -> Optional[Department]:
        ...

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[Department]:
        """Case-insensitive exact name match."""

    @abstractmethod
    async def list_departments(self) -> List[Department]:
        ...


class ParcelStore(ABC):
    """Parcel existence, creation and update."""

    @abstractmethod
    async def get(self, parcel_id: str) -> Optional[Parcel]:
        ...

    @abstractmethod
    async def find_by_tracking_id(self, tracking_id: str) -> Optional[Parcel]:
        ...

    @abstractmethod
    async def create(self, draft: ParcelDraft) -> Parcel:
        """Persist a draft. Raises DuplicateKeyError on a tracking ID collision."""

    @abstractmethod
    async def save(self, parcel: Parcel) -> Parcel:
        ...

    @abstractmethod
    async def list_not_pending(self) -> List[Parcel]:
        """Parcels whose insurance approval is anything but pending."""

    @abstractmethod
    async def list_parcels(self, department_id: Optional[str] = None) -> List[Parcel]:
        """Parcels newest first, optionally only those assigned to one department."""


class RuleStore(ABC):
    """Rule storage."""

    @abstractmethod
    async def list_rules(self) -> List[Rule]:
        """All rules in storage order."""

    @abstractmethod
    async def get(self, rule_id: str) -> Optional[Rule]:
        ...

    @abstractmethod
    async def save(self, rule: Rule) -> Rule:
        ...

    @abstractmethod
    async def delete(self, rule_id: str) -> bool:
        ...
