"""Port definitions for the catalog and the metric store."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence

from .models import CaseDefinition, OperationRecord, WeightedItem


@dataclass(frozen=True)
class RecordFilter:
    """Criteria for `MetricStore.query_records`. `None` fields match anything."""

    operation: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    case_id: Optional[str] = None
    success: Optional[bool] = None

    def matches(self, record: OperationRecord) -> bool:
        if self.operation is not None and record.operation != self.operation:
            return False
        if self.since is not None and record.timestamp < self.since:
            return False
        if self.until is not None and record.timestamp > self.until:
            return False
        if self.case_id is not None and record.case_id != self.case_id:
            return False
        if self.success is not None and record.success != self.success:
            return False
        return True


class CatalogReader(Protocol):
    """Read-only access to case definitions and their item pools."""

    def get_case_definition(self, case_id: str, include_inactive: bool = False) -> Optional[CaseDefinition]:
        """Return the case, or None if unknown. Inactive cases need `include_inactive`."""

    def get_weighted_item_pool(self, case_id: str) -> Sequence[WeightedItem]:
        """Return every active item in the case's pool."""


class MetricStore(Protocol):
    """Append/query store for operation records."""

    def insert_records(self, records: Sequence[OperationRecord]) -> None:
        """Persist the whole batch or raise."""

    def query_records(self, record_filter: RecordFilter) -> Sequence[OperationRecord]:
        """Return records matching the filter."""

    def fetch_recent_records(self, limit: int) -> Sequence[OperationRecord]:
        """Return up to `limit` records, newest first."""
