"""
Unit tests for department reference resolution.
"""

from unittest.mock import AsyncMock

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import ValidationError
from shared.test_helpers import TestDataFactory, FRAGILE_ID, HEAVY_ID, MAIL_ID
from service_routing.app.persistence.memory import InMemoryDepartmentStore
from service_routing.app.routing.departments import DepartmentDirectory
from service_routing.app.routing.models import Department


class TestDepartmentDirectory:
    """Test cases for DepartmentDirectory."""

    @pytest.fixture
    def store(self):
        return InMemoryDepartmentStore(TestDataFactory.create_departments())

    @pytest.fixture
    def directory(self, store):
        return DepartmentDirectory(store)

    @pytest.mark.asyncio
    async def test_resolve_by_id(self, directory):
        assert await directory.resolve(HEAVY_ID) == HEAVY_ID

    @pytest.mark.asyncio
    async def test_resolve_by_name_is_case_insensitive(self, directory):
        """Test exact, case-insensitive name matching."""
        assert await directory.resolve("fragile") == FRAGILE_ID
        assert await directory.resolve("  MAIL ") == MAIL_ID

    @pytest.mark.asyncio
    async def test_name_match_is_exact(self, directory):
        """Test that partial names do not match."""
        assert await directory.resolve("Mai") is None
        assert await directory.resolve("Mail room") is None

    @pytest.mark.asyncio
    async def test_unknown_identifier_is_not_retried_as_name(self, store):
        """Test that an id-shaped reference is looked up by id only."""
        id_shaped_name = "abcdefabcdefabcdefabcdef"
        store.add(Department(department_id="65a0000000000000000000ff", name=id_shaped_name))
        directory = DepartmentDirectory(store)

        assert await directory.resolve(id_shaped_name) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ref", [None, "", "   "])
    async def test_empty_reference(self, directory, ref):
        assert await directory.resolve(ref) is None

    @pytest.mark.asyncio
    async def test_name_with_regex_characters(self, store):
        """Test that names are matched literally."""
        store.add(Department(department_id="65a0000000000000000000aa", name="Bulk (EU)"))
        directory = DepartmentDirectory(store)

        assert await directory.resolve("bulk (eu)") == "65a0000000000000000000aa"
        assert await directory.resolve("Bulk .EU.") is None

    @pytest.mark.asyncio
    async def test_custom_identifier_pattern(self):
        store = InMemoryDepartmentStore([Department(department_id="D-7", name="Returns")])
        directory = DepartmentDirectory(store, id_pattern=r"^D-\d+$")

        assert await directory.resolve("D-7") == "D-7"
        assert await directory.resolve("returns") == "D-7"

    @pytest.mark.asyncio
    async def test_name_of(self, directory):
        assert await directory.name_of(HEAVY_ID) == "Heavy"
        assert await directory.name_of(None) is None
        assert await directory.name_of("65a0000000000000000000ee") is None

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self):
        """Test that an unreadable store is not mistaken for a miss."""
        store = AsyncMock()
        store.find_by_name.side_effect = ConnectionError("department store offline")
        directory = DepartmentDirectory(store)

        with pytest.raises(ConnectionError):
            await directory.resolve("Heavy")

    def test_duplicate_names_rejected(self, store):
        with pytest.raises(ValidationError):
            store.create("heavy")
