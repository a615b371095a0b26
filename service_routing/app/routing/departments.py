"""
Department directory for the Routing Service.
"""

import re
from typing import Any, Optional, Pattern, Union

from shared.config import DEFAULT_DEPARTMENT_ID_PATTERN
from shared.logging import get_logger
from ..persistence.base import DepartmentStore
from .models import Department


class DepartmentDirectory:
    """Resolves department references (id or name) to canonical ids.

    One resolution rule is shared by explicit assignments, rule buckets and
    the default weight buckets:

    - empty or missing reference: None
    - identifier-shaped reference: lookup by id only; a miss is None and is
      never retried as a name
    - anything else: case-insensitive exact name match
    """

    def __init__(self, store: DepartmentStore, id_pattern: Union[str, Pattern[str]] = DEFAULT_DEPARTMENT_ID_PATTERN):
        self.store = store
        self.id_pattern = re.compile(id_pattern) if isinstance(id_pattern, str) else id_pattern
        self.logger = get_logger("routing.departments")

    def is_identifier(self, ref: str) -> bool:
        return bool(self.id_pattern.match(ref))

    async def resolve(self, ref: Any) -> Optional[str]:
        """Resolve a reference to a department id, or None."""
        if ref is None:
            return None
        candidate = str(ref).strip()
        if not candidate:
            return None

        if self.is_identifier(candidate):
            department = await self.store.get_by_id(candidate)
        else:
            department = await self.store.find_by_name(candidate)

        if department is None:
            self.logger.debug("Department reference not resolved", reference=candidate)
            return None
        return department.department_id

    async def get(self, department_id: Optional[str]) -> Optional[Department]:
        if not department_id:
            return None
        return await self.store.get_by_id(department_id)

    async def name_of(self, department_id: Optional[str]) -> Optional[str]:
        department = await self.get(department_id)
        return department.name if department else None
