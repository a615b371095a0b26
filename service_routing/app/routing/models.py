"""
Routing data models for the Routing Service.
"""

import math
import uuid
from typing import Dict, Any, Optional, List, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

DEFAULT_RULE_PRIORITY = 10
DEFAULT_RULE_VERSION = "1.0"

# Keys accepted for a bucket's department reference, in lookup order.
BUCKET_DEPARTMENT_ALIASES = ("departmentRef", "departmentId", "department", "deptId", "dept", "name")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_object_id() -> str:
    """24-hex identifier, same shape as a document-store object id."""
    return uuid.uuid4().hex[:24]


def to_finite_number(value: Any) -> Optional[float]:
    """Coerce a raw value to a finite float, or None when that is not possible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


class InsuranceStatus(str, Enum):
    """Insurance approval states."""
    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RuleType(str, Enum):
    """Rule types understood by the evaluator."""
    WEIGHT = "weight"


@dataclass
class InsuranceApproval:
    """Insurance approval state plus who decided and when."""
    status: InsuranceStatus = InsuranceStatus.NOT_REQUIRED
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None


@dataclass
class Department:
    """Handling department (read-only reference data)."""
    department_id: str
    name: str
    description: Optional[str] = None


@dataclass
class WeightBucket:
    """Weight ceiling to department mapping inside a weight rule."""
    department_ref: Any
    max_kg: Any = None


@dataclass
class Rule:
    """Routing rule."""
    rule_id: str
    name: Optional[str] = None
    type: str = RuleType.WEIGHT.value
    priority: int = DEFAULT_RULE_PRIORITY
    config: Dict[str, Any] = field(default_factory=dict)
    version: str = DEFAULT_RULE_VERSION
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def label(self) -> str:
        """Name used when reporting the rule; falls back to the id."""
        return self.name or self.rule_id

    @property
    def is_weight_rule(self) -> bool:
        return self.type == RuleType.WEIGHT.value

    def weight_buckets(self) -> List[WeightBucket]:
        """Buckets from config in storage order; malformed entries are dropped."""
        if not isinstance(self.config, Mapping):
            return []
        raw_buckets = self.config.get("buckets")
        if not isinstance(raw_buckets, list):
            return []

        buckets = []
        for raw in raw_buckets:
            if not isinstance(raw, Mapping):
                continue
            buckets.append(WeightBucket(
                department_ref=bucket_department_ref(raw),
                max_kg=raw.get("maxKg")
            ))
        return buckets

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Rule":
        """Build a rule from a stored record."""
        priority = to_finite_number(data.get("priority"))
        rule_id = data.get("rule_id") or data.get("id") or data.get("_id") or ""
        rule_type = data.get("type")
        return cls(
            rule_id=str(rule_id),
            name=data.get("name"),
            type=rule_type.value if isinstance(rule_type, Enum) else str(rule_type or ""),
            priority=int(priority) if priority is not None else DEFAULT_RULE_PRIORITY,
            config=dict(data.get("config") or {}),
            version=str(data.get("version") or DEFAULT_RULE_VERSION),
        )


def bucket_department_ref(raw_bucket: Mapping[str, Any]) -> Any:
    """First present department reference of a raw bucket."""
    for key in BUCKET_DEPARTMENT_ALIASES:
        value = raw_bucket.get(key)
        if value is not None and value != "":
            return value
    return None


@dataclass
class ParcelDraft:
    """Normalized, not yet persisted parcel."""
    tracking_id: str
    weight_kg: Optional[float] = None
    value_eur: Optional[float] = None
    destination: Optional[str] = None
    raw_source: Any = None
    requested_department: Any = None
    assigned_department: Optional[str] = None
    insurance_approval: Optional[InsuranceApproval] = None


@dataclass
class Parcel:
    """Persisted parcel."""
    parcel_id: str
    tracking_id: str
    weight_kg: Optional[float] = None
    value_eur: Optional[float] = None
    destination: Optional[str] = None
    assigned_department: Optional[str] = None
    insurance_approval: InsuranceApproval = field(default_factory=InsuranceApproval)
    raw_source: Any = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_pending(self) -> bool:
        return self.insurance_approval.status == InsuranceStatus.PENDING

    @classmethod
    def from_draft(cls, draft: ParcelDraft, parcel_id: str) -> "Parcel":
        return cls(
            parcel_id=parcel_id,
            tracking_id=draft.tracking_id,
            weight_kg=draft.weight_kg,
            value_eur=draft.value_eur,
            destination=draft.destination,
            assigned_department=draft.assigned_department,
            insurance_approval=draft.insurance_approval or InsuranceApproval(),
            raw_source=draft.raw_source,
        )


@dataclass
class RoutingOutcome:
    """Result of rule evaluation."""
    assigned_department: Optional[str] = None
    assigned_department_name: Optional[str] = None
    requires_insurance: bool = False
    applied_rule_names: List[str] = field(default_factory=list)
    evaluation_time_ms: float = 0.0

    def to_response(self) -> "RoutingOutcomeResponse":
        return RoutingOutcomeResponse(
            assigned_department=self.assigned_department,
            assigned_department_name=self.assigned_department_name,
            requires_insurance=self.requires_insurance,
            applied_rule_names=list(self.applied_rule_names),
        )


@dataclass
class FailedRecord:
    """Batch record that could not be stored."""
    raw: Any
    error: str
    code: str = "INTERNAL_ERROR"


@dataclass
class DuplicateRecord:
    """Batch record whose tracking ID already exists."""
    tracking_id: str
    existing_id: Optional[str] = None
    error: str = "Parcel with this tracking ID already exists"


@dataclass
class BatchIngestionResult:
    """Classification of every record of one batch."""
    total: int = 0
    created: List[Parcel] = field(default_factory=list)
    failed: List[FailedRecord] = field(default_factory=list)
    duplicates: List[DuplicateRecord] = field(default_factory=list)

    def to_response(self) -> "BatchIngestionResponse":
        return BatchIngestionResponse(
            total=self.total,
            created=len(self.created),
            failed=len(self.failed),
            duplicates=len(self.duplicates),
            parcels=[ParcelResponse.from_parcel(p) for p in self.created],
            failed_items=[
                FailedItem(raw=f.raw, error=f.error, code=f.code) for f in self.failed
            ] or None,
            duplicate_items=[
                DuplicateItem(tracking_id=d.tracking_id, existing_id=d.existing_id, error=d.error)
                for d in self.duplicates
            ] or None,
        )


class InsuranceApprovalResponse(BaseModel):
    """Insurance approval as exposed to collaborators."""
    status: InsuranceStatus
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None


class ParcelResponse(BaseModel):
    """Response model for a stored parcel."""
    parcel_id: str
    tracking_id: str
    weight_kg: Optional[float] = None
    value_eur: Optional[float] = None
    destination: Optional[str] = None
    assigned_department: Optional[str] = None
    insurance_approval: InsuranceApprovalResponse
    raw_source: Any = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_parcel(cls, parcel: Parcel) -> "ParcelResponse":
        approval = parcel.insurance_approval
        return cls(
            parcel_id=parcel.parcel_id,
            tracking_id=parcel.tracking_id,
            weight_kg=parcel.weight_kg,
            value_eur=parcel.value_eur,
            destination=parcel.destination,
            assigned_department=parcel.assigned_department,
            insurance_approval=InsuranceApprovalResponse(
                status=approval.status,
                approved_by=approval.approved_by,
                approved_at=approval.approved_at,
            ),
            raw_source=parcel.raw_source,
            created_at=parcel.created_at,
            updated_at=parcel.updated_at,
        )


class RoutingOutcomeResponse(BaseModel):
    """Response model for a rule evaluation."""
    assigned_department: Optional[str] = Field(None, description="Resolved department ID")
    assigned_department_name: Optional[str] = Field(None, description="Resolved department name")
    requires_insurance: bool = Field(False, description="Whether the value exceeds the insurance threshold")
    applied_rule_names: List[str] = Field(default_factory=list, description="Rules that produced the assignment")


class FailedItem(BaseModel):
    raw: Any
    error: str
    code: str


class DuplicateItem(BaseModel):
    tracking_id: str
    existing_id: Optional[str] = None
    error: str


class BatchIngestionResponse(BaseModel):
    """Response model for a batch ingestion."""
    total: int
    created: int
    failed: int
    duplicates: int
    parcels: List[ParcelResponse] = Field(default_factory=list)
    failed_items: Optional[List[FailedItem]] = None
    duplicate_items: Optional[List[DuplicateItem]] = None


class RuleCreateRequest(BaseModel):
    """Request model for creating a rule."""
    name: Optional[str] = Field(None, description="Rule name")
    type: str = Field(..., description="Rule type")
    priority: int = Field(DEFAULT_RULE_PRIORITY, description="Rule priority (lower evaluates first)")
    config: Dict[str, Any] = Field(default_factory=dict, description="Rule configuration")
    version: str = Field(DEFAULT_RULE_VERSION, description="Rule version")


class RuleUpdateRequest(BaseModel):
    """Request model for updating a rule."""
    name: Optional[str] = Field(None, description="Rule name")
    type: Optional[str] = Field(None, description="Rule type")
    priority: Optional[int] = Field(None, description="Rule priority")
    config: Optional[Dict[str, Any]] = Field(None, description="Rule configuration")
    version: Optional[str] = Field(None, description="Rule version")


class CascadeSummary(BaseModel):
    """Outcome of a rule-change cascade."""
    rule_id: str
    triggered: bool
    evaluated: int = 0
    updated: int = 0
    failed: int = 0
