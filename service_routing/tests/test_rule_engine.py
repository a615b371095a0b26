"""
Unit tests for the weight-bucket Rule Engine.
"""

import pytest
from prometheus_client import CollectorRegistry

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.metrics import MetricsCollector
from shared.test_helpers import (
    TestDataFactory, EXPRESS_ID, FRAGILE_ID, HEAVY_ID, MAIL_ID, REGULAR_ID
)
from service_routing.app.persistence.memory import InMemoryDepartmentStore
from service_routing.app.routing.departments import DepartmentDirectory
from service_routing.app.routing.engine import RuleEngine, bucket_ceiling, sort_rules, sorted_buckets
from service_routing.app.routing.insurance import InsuranceGate
from service_routing.app.routing.models import ParcelDraft, Rule


def parcel(weight_kg=None, value_eur=None):
    return ParcelDraft(tracking_id="T-1", weight_kg=weight_kg, value_eur=value_eur)


class TestRuleEngine:
    """Test cases for RuleEngine."""

    @pytest.fixture
    def registry(self):
        return CollectorRegistry()

    @pytest.fixture
    def rule_engine(self, registry):
        """Create RuleEngine over the standard departments."""
        directory = DepartmentDirectory(InMemoryDepartmentStore(TestDataFactory.create_departments()))
        return RuleEngine(directory, InsuranceGate(1000), MetricsCollector("routing", registry))

    @pytest.fixture
    def standard_rule(self):
        return TestDataFactory.create_standard_rule()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("weight, expected", [
        (0.5, EXPRESS_ID),
        (2, EXPRESS_ID),
        (2.01, FRAGILE_ID),
        (20, FRAGILE_ID),
        (25, HEAVY_ID),
    ])
    async def test_buckets_tried_narrowest_first(self, rule_engine, standard_rule, weight, expected):
        """Test that buckets are tried in ascending ceiling order regardless of storage order."""
        outcome = await rule_engine.evaluate(parcel(weight), [standard_rule])

        assert outcome.assigned_department == expected
        assert outcome.applied_rule_names == ["Standard weight split"]

    @pytest.mark.asyncio
    async def test_outcome_includes_department_name(self, rule_engine, standard_rule):
        outcome = await rule_engine.evaluate(parcel(25), [standard_rule])
        assert outcome.assigned_department_name == "Heavy"

    @pytest.mark.asyncio
    async def test_missing_weight_only_matches_catch_all(self, rule_engine, standard_rule):
        """Test that a parcel without weight lands in the unbounded bucket."""
        outcome = await rule_engine.evaluate(parcel(None), [standard_rule])
        assert outcome.assigned_department == HEAVY_ID

    @pytest.mark.asyncio
    async def test_missing_weight_without_catch_all(self, rule_engine):
        rule = TestDataFactory.create_weight_rule("r1", [{"departmentId": MAIL_ID, "maxKg": 1}])

        outcome = await rule_engine.evaluate(parcel(None), [rule])

        assert outcome.assigned_department is None
        assert outcome.applied_rule_names == []

    @pytest.mark.asyncio
    async def test_first_matching_rule_wins(self, rule_engine):
        """Test that evaluation stops at the first rule that produces a department."""
        narrow = TestDataFactory.create_weight_rule(
            "narrow", [{"departmentId": MAIL_ID, "maxKg": 1}], name="Narrow", priority=1
        )
        broad = TestDataFactory.create_weight_rule(
            "broad", [{"departmentId": HEAVY_ID, "maxKg": None}], name="Broad", priority=5
        )

        light = await rule_engine.evaluate(parcel(0.4), [broad, narrow])
        heavy = await rule_engine.evaluate(parcel(4), [broad, narrow])

        assert light.assigned_department == MAIL_ID
        assert light.applied_rule_names == ["Narrow"]
        assert heavy.assigned_department == HEAVY_ID
        assert heavy.applied_rule_names == ["Broad"]

    @pytest.mark.asyncio
    async def test_equal_priority_keeps_storage_order(self, rule_engine):
        first = TestDataFactory.create_weight_rule("first", [{"departmentId": MAIL_ID}], priority=3)
        second = TestDataFactory.create_weight_rule("second", [{"departmentId": REGULAR_ID}], priority=3)

        outcome = await rule_engine.evaluate(parcel(1), [first, second])

        assert outcome.assigned_department == MAIL_ID
        assert outcome.applied_rule_names == ["first"]

    @pytest.mark.asyncio
    async def test_unresolvable_bucket_is_skipped(self, rule_engine):
        """Test that a bucket with an unknown department falls through to the next one."""
        rule = TestDataFactory.create_weight_rule("r1", [
            {"departmentId": "65a0000000000000000000ee", "maxKg": 5},
            {"department": "regular", "maxKg": 10},
        ])

        outcome = await rule_engine.evaluate(parcel(3), [rule])

        assert outcome.assigned_department == REGULAR_ID

    @pytest.mark.asyncio
    async def test_rule_without_resolvable_buckets_falls_through(self, rule_engine):
        broken = TestDataFactory.create_weight_rule("broken", [{"name": "Nowhere"}], priority=1)
        fallback = TestDataFactory.create_weight_rule("fallback", [{"name": "Fragile"}], priority=2)

        outcome = await rule_engine.evaluate(parcel(3), [broken, fallback])

        assert outcome.assigned_department == FRAGILE_ID
        assert outcome.applied_rule_names == ["fallback"]

    @pytest.mark.asyncio
    async def test_non_weight_rules_ignored(self, rule_engine):
        other = Rule(rule_id="zone", type="zone", priority=0, config={"buckets": [{"departmentId": MAIL_ID}]})

        outcome = await rule_engine.evaluate(parcel(3), [other])

        assert outcome.assigned_department is None

    @pytest.mark.asyncio
    async def test_malformed_rules_tolerated(self, rule_engine):
        """Test that rules with missing or malformed config are skipped."""
        rules = [
            Rule(rule_id="no-config", config={}),
            Rule(rule_id="bad-buckets", config={"buckets": "heavy"}),
            Rule(rule_id="bad-entries", config={"buckets": [None, 3, "x"]}),
            TestDataFactory.create_weight_rule("ok", [{"departmentId": HEAVY_ID}], priority=99),
        ]

        outcome = await rule_engine.evaluate(parcel(3), rules)

        assert outcome.assigned_department == HEAVY_ID

    @pytest.mark.asyncio
    async def test_stored_rule_records_accepted(self, rule_engine):
        """Test that plain stored records are evaluated like Rule objects."""
        records = [{
            "_id": "rec-1",
            "type": "weight",
            "priority": "2",
            "config": {"buckets": [{"deptId": EXPRESS_ID, "maxKg": "3"}]},
        }]

        outcome = await rule_engine.evaluate(parcel(2.5), records)

        assert outcome.assigned_department == EXPRESS_ID
        assert outcome.applied_rule_names == ["rec-1"]

    @pytest.mark.asyncio
    async def test_mapping_parcel(self, rule_engine, standard_rule):
        """Test that a normalized parcel mapping is read like a parcel object."""
        outcome = await rule_engine.evaluate({"weightKg": 0.5, "valueEur": 5000}, [standard_rule])

        assert outcome.assigned_department == EXPRESS_ID
        assert outcome.requires_insurance is True

    @pytest.mark.asyncio
    async def test_mapping_parcel_snake_case_keys(self, rule_engine, standard_rule):
        outcome = await rule_engine.evaluate({"weight_kg": "5", "value_eur": 10}, [standard_rule])

        assert outcome.assigned_department == FRAGILE_ID
        assert outcome.requires_insurance is False

    @pytest.mark.asyncio
    async def test_requires_insurance_reported(self, rule_engine, standard_rule):
        outcome = await rule_engine.evaluate(parcel(1, value_eur=1500), [standard_rule])

        assert outcome.requires_insurance is True
        assert outcome.assigned_department == EXPRESS_ID

    @pytest.mark.asyncio
    async def test_no_rules(self, rule_engine):
        outcome = await rule_engine.evaluate(parcel(1), [])

        assert outcome.assigned_department is None
        assert outcome.assigned_department_name is None
        assert outcome.evaluation_time_ms >= 0

    @pytest.mark.asyncio
    async def test_evaluation_metrics(self, rule_engine, registry, standard_rule):
        await rule_engine.evaluate(parcel(1), [standard_rule])
        await rule_engine.evaluate(parcel(1), [])

        assert registry.get_sample_value("rule_evaluations_total", {"result": "matched"}) == 1.0
        assert registry.get_sample_value("rule_evaluations_total", {"result": "unmatched"}) == 1.0
        assert registry.get_sample_value("rule_evaluation_duration_seconds_count") == 2.0


class TestRuleOrdering:
    """Test cases for rule and bucket ordering helpers."""

    def test_sort_rules_is_stable(self):
        rules = [Rule(rule_id=str(i), priority=p) for i, p in enumerate([5, 1, 5, 1])]
        assert [r.rule_id for r in sort_rules(rules)] == ["1", "3", "0", "2"]

    @pytest.mark.parametrize("max_kg", [None, "", "abc", float("nan")])
    def test_unusable_ceiling_is_catch_all(self, max_kg):
        assert bucket_ceiling(max_kg) == float("inf")

    def test_numeric_string_ceiling(self):
        assert bucket_ceiling("7.5") == 7.5

    def test_catch_all_sorts_last(self):
        rule = TestDataFactory.create_standard_rule()
        assert [ceiling for ceiling, _ in sorted_buckets(rule)] == [2, 20, float("inf")]
