"""
Batch ingestion processor for the Routing Service.
"""

import time
from typing import Any, Iterable, List, Optional, Sequence

from shared.errors import DuplicateKeyError, RoutingException
from shared.logging import bind_batch, get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from ..persistence.base import ParcelStore
from ..routing.engine import RuleLike, as_rules
from ..routing.insurance import InsuranceGate
from ..routing.models import BatchIngestionResult, DuplicateRecord, FailedRecord, Parcel, ParcelDraft
from ..routing.normalizer import FieldNormalizer
from ..routing.resolver import AssignmentResolver


class BatchIngestionProcessor:
    """Normalizes, gates, routes and stores raw parcel records."""

    def __init__(
        self,
        normalizer: FieldNormalizer,
        insurance_gate: InsuranceGate,
        resolver: AssignmentResolver,
        parcel_store: ParcelStore,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.normalizer = normalizer
        self.insurance_gate = insurance_gate
        self.resolver = resolver
        self.parcel_store = parcel_store
        self.metrics = metrics or get_metrics_collector("routing")
        self.logger = get_logger("routing.ingestion")

    async def prepare(
        self,
        raw: Any,
        rules: Sequence[RuleLike],
        tracking_id: Optional[str] = None,
    ) -> ParcelDraft:
        """Normalizer -> insurance gate -> assignment resolver."""
        draft = self.normalizer.normalize(raw, tracking_id=tracking_id)
        if self.insurance_gate.evaluate(draft):
            return draft
        return await self.resolver.resolve_assignment(draft, rules)

    async def ingest_one(self, raw: Any, rules: Sequence[RuleLike]) -> Parcel:
        """Create a single parcel. Raises DuplicateKeyError for a known tracking ID."""
        tracking_id = self.normalizer.extract_tracking_id(raw)
        if tracking_id:
            existing = await self.parcel_store.find_by_tracking_id(tracking_id)
            if existing:
                raise DuplicateKeyError(tracking_id, existing.parcel_id)

        draft = await self.prepare(raw, rules, tracking_id=tracking_id)
        parcel = await self.parcel_store.create(draft)
        self.metrics.increment_counter("parcels_ingested_total", result="created")
        return parcel

    async def ingest(self, records: Iterable[Any], rules: Sequence[RuleLike]) -> BatchIngestionResult:
        """Ingest records in order; one record's failure never aborts the batch."""
        start_time = time.time()
        records = list(records)
        # One rule snapshot for the whole batch.
        rules = as_rules(rules)
        batch_id = bind_batch()
        result = BatchIngestionResult(total=len(records))

        for raw in records:
            await self._ingest_record(raw, rules, result)

        self.logger.info(
            "Batch ingestion completed",
            batch_id=batch_id,
            total=result.total,
            created=len(result.created),
            duplicates=len(result.duplicates),
            failed=len(result.failed),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )
        return result

    async def _ingest_record(self, raw: Any, rules: List[RuleLike], result: BatchIngestionResult) -> None:
        try:
            tracking_id = self.normalizer.extract_tracking_id(raw)
            if tracking_id:
                existing = await self.parcel_store.find_by_tracking_id(tracking_id)
                if existing:
                    self._record_duplicate(result, tracking_id, existing.parcel_id)
                    return

            draft = await self.prepare(raw, rules, tracking_id=tracking_id)
            parcel = await self.parcel_store.create(draft)
        except DuplicateKeyError as e:
            # Lost a race against a concurrent writer; the store's unique index caught it.
            self._record_duplicate(result, e.tracking_id, e.existing_id)
            return
        except RoutingException as e:
            self._record_failure(result, raw, e.message, e.code)
            return
        except Exception as e:
            self._record_failure(result, raw, str(e) or type(e).__name__, "INTERNAL_ERROR")
            return

        result.created.append(parcel)
        self.metrics.increment_counter("parcels_ingested_total", result="created")

    def _record_duplicate(self, result: BatchIngestionResult, tracking_id: str, existing_id: Optional[str]) -> None:
        result.duplicates.append(DuplicateRecord(tracking_id=tracking_id, existing_id=existing_id))
        self.metrics.increment_counter("parcels_ingested_total", result="duplicate")
        self.logger.info("Duplicate parcel skipped", tracking_id=tracking_id, existing_id=existing_id)

    def _record_failure(self, result: BatchIngestionResult, raw: Any, error: str, code: str) -> None:
        result.failed.append(FailedRecord(raw=raw, error=error, code=code))
        self.metrics.increment_counter("parcels_ingested_total", result="failed")
        self.metrics.record_error(code)
        self.logger.error("Failed to create parcel from record", error=error, code=code)
