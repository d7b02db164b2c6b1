"""In-process adapters for tests, demos and single-node deployments."""

from threading import Lock
from typing import Dict, Iterable, List, Optional, Sequence

from ..errors import PersistenceError
from ..models import CaseDefinition, OperationRecord, WeightedItem
from ..ports import RecordFilter


class InMemoryMetricStore:
    """Thread-safe list-backed metric store."""

    def __init__(self):
        self._records: List[OperationRecord] = []
        self._lock = Lock()
        self._failures_remaining = 0
        self.insert_calls = 0

    def fail_next(self, count: int = 1) -> None:
        """Make the next `count` inserts raise PersistenceError."""
        with self._lock:
            self._failures_remaining = count

    def insert_records(self, records: Sequence[OperationRecord]) -> None:
        with self._lock:
            self.insert_calls += 1
            if self._failures_remaining > 0:
                self._failures_remaining -= 1
                raise PersistenceError("Simulated metric store outage")
            self._records.extend(records)

    def query_records(self, record_filter: RecordFilter) -> Sequence[OperationRecord]:
        with self._lock:
            return [record for record in self._records if record_filter.matches(record)]

    def fetch_recent_records(self, limit: int) -> Sequence[OperationRecord]:
        with self._lock:
            ordered = sorted(self._records, key=lambda record: record.timestamp, reverse=True)
        return ordered[:limit]

    def all_records(self) -> List[OperationRecord]:
        with self._lock:
            return list(self._records)


class InMemoryCatalog:
    """Dict-backed catalog of cases and their item pools."""

    def __init__(self, cases: Optional[Iterable[CaseDefinition]] = None):
        self._cases: Dict[str, CaseDefinition] = {}
        self._pools: Dict[str, List[WeightedItem]] = {}
        for case in cases or ():
            self.add_case(case)

    def add_case(self, case: CaseDefinition, pool: Iterable[WeightedItem] = ()) -> None:
        self._cases[case.id] = case
        self._pools[case.id] = list(pool)

    def get_case_definition(self, case_id: str, include_inactive: bool = False) -> Optional[CaseDefinition]:
        case = self._cases.get(case_id)
        if case is None or not (case.is_active or include_inactive):
            return None
        return case

    def get_weighted_item_pool(self, case_id: str) -> Sequence[WeightedItem]:
        return list(self._pools.get(case_id, ()))
