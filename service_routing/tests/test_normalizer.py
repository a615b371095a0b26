"""
Unit tests for the field normalizer.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import ValidationError
from service_routing.app.routing.normalizer import FieldNormalizer, generate_tracking_id


class TestFieldNormalizer:
    """Test cases for FieldNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return FieldNormalizer()

    def test_canonical_keys(self, normalizer):
        """Test a record already using canonical keys."""
        raw = {"trackingId": "PCL-001", "weightKg": 2.5, "valueEur": 99, "destination": "Berlin"}

        draft = normalizer.normalize(raw)

        assert draft.tracking_id == "PCL-001"
        assert draft.weight_kg == 2.5
        assert draft.value_eur == 99.0
        assert draft.destination == "Berlin"
        assert draft.raw_source is raw

    def test_xml_style_keys_are_coerced(self, normalizer):
        """Test capitalised aliases with string values."""
        draft = normalizer.normalize(
            {"TrackingId": "PCL-002", "Weight": " 5.30 ", "Value": "120", "Destination": "Munich"}
        )

        assert draft.tracking_id == "PCL-002"
        assert draft.weight_kg == pytest.approx(5.3)
        assert draft.value_eur == 120.0
        assert draft.destination == "Munich"

    def test_tracking_id_alias_order(self, normalizer):
        """Test that trackingId wins over later aliases."""
        raw = {"id": "db-1", "tracking": "T-3", "TrackingId": "T-2", "trackingId": "T-1"}

        assert normalizer.extract_tracking_id(raw) == "T-1"
        assert normalizer.extract_tracking_id({"id": "db-1", "tracking": "T-3"}) == "T-3"

    def test_blank_tracking_id_falls_through(self, normalizer):
        """Test that a blank alias is not treated as present."""
        assert normalizer.extract_tracking_id({"trackingId": "  ", "id": "X-9"}) == "X-9"

    def test_missing_tracking_id_is_generated(self, normalizer):
        """Test synthetic tracking IDs for records without one."""
        first = normalizer.normalize({"weight": 1})
        second = normalizer.normalize({"weight": 1})

        assert first.tracking_id.startswith("auto-")
        assert first.tracking_id != second.tracking_id

    def test_generated_ids_are_unique(self):
        """Test many synthetic IDs in a tight loop."""
        ids = {generate_tracking_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_explicit_tracking_id_overrides_record(self, normalizer):
        """Test that a caller-supplied tracking ID is used verbatim."""
        draft = normalizer.normalize({"trackingId": "ignored"}, tracking_id="chosen")
        assert draft.tracking_id == "chosen"

    @pytest.mark.parametrize("value", ["abc", "", "   ", "inf", "nan", True, [1], {"kg": 1}])
    def test_non_numeric_weight_left_unset(self, normalizer, value):
        """Test that unusable numbers leave the field unset, not zero."""
        draft = normalizer.normalize({"trackingId": "T", "weightKg": value, "valueEur": value})

        assert draft.weight_kg is None
        assert draft.value_eur is None

    def test_first_present_alias_wins_even_if_malformed(self, normalizer):
        """Test that a malformed first alias does not fall through to the next one."""
        draft = normalizer.normalize({"trackingId": "T", "Weight": "heavy", "weight": 4})
        assert draft.weight_kg is None

    def test_none_value_is_not_present(self, normalizer):
        """Test that None does not count as a present alias."""
        draft = normalizer.normalize({"trackingId": "T", "weightKg": None, "Weight": "3"})
        assert draft.weight_kg == 3.0

    def test_zero_weight_is_kept(self, normalizer):
        """Test that zero is a valid weight."""
        draft = normalizer.normalize({"trackingId": "T", "weightKg": 0})
        assert draft.weight_kg == 0.0

    def test_numeric_destination_is_stringified(self, normalizer):
        """Test that a numeric postal code is stored as text."""
        assert normalizer.normalize({"trackingId": "T", "destination": 10115}).destination == "10115"

    def test_destination_missing(self, normalizer):
        """Test that an empty destination is left unset."""
        assert normalizer.normalize({"trackingId": "T", "destination": ""}).destination is None

    def test_requested_department_captured(self, normalizer):
        """Test that an explicit department reference is carried on the draft."""
        draft = normalizer.normalize({"trackingId": "T", "assignedDepartment": "Fragile"})
        assert draft.requested_department == "Fragile"
        assert draft.assigned_department is None

    def test_keys_are_not_case_folded(self, normalizer):
        """Test that unknown casings are ignored."""
        draft = normalizer.normalize({"TRACKINGID": "T", "WEIGHT": 3, "weightkg": 3})

        assert draft.tracking_id.startswith("auto-")
        assert draft.weight_kg is None

    def test_non_mapping_record_rejected(self, normalizer):
        """Test that non-mapping input raises a validation error."""
        with pytest.raises(ValidationError):
            normalizer.normalize("PCL-001")
