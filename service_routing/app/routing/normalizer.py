"""
Field normalizer for raw parcel records.

Raw records arrive with differing key spellings (JSON bodies, XML
elements, spreadsheets). Each canonical field has an explicit, ordered
alias list; keys are matched exactly and never case-folded.
"""

import itertools
import time
from typing import Any, Mapping, Optional, Sequence

from shared.errors import ValidationError
from .models import ParcelDraft, to_finite_number

TRACKING_ID_ALIASES = ("trackingId", "TrackingId", "tracking", "id")
WEIGHT_ALIASES = ("weightKg", "Weight", "weight")
VALUE_ALIASES = ("valueEur", "Value", "value")
DESTINATION_ALIASES = ("destination", "Destination")
ASSIGNED_DEPARTMENT_ALIASES = ("assignedDepartment",)

_sequence = itertools.count(1)


def _first_present(raw: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    for key in aliases:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _first_non_blank(raw: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    for key in aliases:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def generate_tracking_id() -> str:
    """Synthetic tracking id: nanosecond clock plus a process-wide sequence."""
    return f"auto-{time.time_ns()}-{next(_sequence)}"


class FieldNormalizer:
    """Maps arbitrarily shaped records onto ParcelDraft."""

    def extract_tracking_id(self, raw: Any) -> Optional[str]:
        if not isinstance(raw, Mapping):
            return None
        value = _first_non_blank(raw, TRACKING_ID_ALIASES)
        return str(value).strip() if value is not None else None

    def normalize(self, raw: Any, tracking_id: Optional[str] = None) -> ParcelDraft:
        if not isinstance(raw, Mapping):
            raise ValidationError(
                "Parcel record must be a key-value mapping",
                {"type": type(raw).__name__}
            )

        tracking_id = tracking_id or self.extract_tracking_id(raw) or generate_tracking_id()
        destination = _first_non_blank(raw, DESTINATION_ALIASES)

        return ParcelDraft(
            tracking_id=tracking_id,
            weight_kg=to_finite_number(_first_present(raw, WEIGHT_ALIASES)),
            value_eur=to_finite_number(_first_present(raw, VALUE_ALIASES)),
            destination=str(destination) if destination is not None else None,
            raw_source=raw,
            requested_department=_first_non_blank(raw, ASSIGNED_DEPARTMENT_ALIASES),
        )
