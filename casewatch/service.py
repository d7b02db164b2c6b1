"""Application service orchestrating the buffer, the store and pure analytics."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from .analytics import (
    compute_fairness_report,
    compute_performance_metrics,
    compute_system_health,
    parse_window,
    unreachable_store_health,
)
from .buffer import MetricBuffer
from .config import MonitorSettings
from .errors import TransientFlushFailure
from .models import FairnessReport, OperationRecord, PerformanceAggregate, SystemHealth
from .ports import CatalogReader, MetricStore, RecordFilter
from .recorder import (
    CASE_OPENING,
    CURRENCY_TRANSACTION,
    ITEM_SELECTION,
    OperationRecorder,
    utc_now,
)

logger = logging.getLogger(__name__)

DASHBOARD_OPERATIONS = (CASE_OPENING, ITEM_SELECTION, CURRENCY_TRANSACTION)


class MonitoringService:
    """Facade exposing recording, health, performance and fairness queries."""

    def __init__(
        self,
        store: MetricStore,
        catalog: CatalogReader,
        settings: Optional[MonitorSettings] = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.catalog = catalog
        self.settings = settings or MonitorSettings()
        self.now = now
        self.buffer = MetricBuffer(
            store,
            buffer_size=self.settings.buffer_size,
            flush_interval=self.settings.flush_interval_seconds,
        )
        self.recorder = OperationRecorder(self.buffer, now=now)

    @classmethod
    def from_env(cls, store: MetricStore, catalog: CatalogReader) -> "MonitoringService":
        return cls(store, catalog, settings=MonitorSettings.from_env())

    def start(self) -> None:
        self.buffer.start()

    def shutdown(self) -> None:
        self.buffer.shutdown(timeout=self.settings.shutdown_timeout_seconds)

    def force_flush(self) -> bool:
        try:
            self.buffer.flush()
        except TransientFlushFailure as failure:
            logger.error("%s", failure)
            return False
        return True

    def get_performance_metrics(
        self,
        operation: str,
        window: str = "24h",
    ) -> Optional[PerformanceAggregate]:
        since = self.now() - parse_window(window)
        try:
            records = self.store.query_records(RecordFilter(operation=operation, since=since))
        except Exception:
            logger.exception("Error fetching performance metrics for %s", operation)
            return None
        return compute_performance_metrics(records, operation, window)

    def get_system_health(self) -> SystemHealth:
        window_minutes = self.settings.health_window_minutes
        since = self.now() - timedelta(minutes=window_minutes)
        try:
            records = self.store.query_records(RecordFilter(since=since))
        except Exception:
            logger.exception("Error fetching metrics for system health")
            return unreachable_store_health("Failed to fetch metrics from store")
        return compute_system_health(records, window_minutes=window_minutes)

    def get_fairness_metrics(self, case_id: str) -> Optional[FairnessReport]:
        try:
            case = self.catalog.get_case_definition(case_id, include_inactive=True)
        except Exception:
            logger.exception("Error fetching case type %s", case_id)
            return None
        if case is None:
            logger.warning("Fairness requested for unknown case type %s", case_id)
            return None

        now = self.now()
        record_filter = RecordFilter(
            operation=CASE_OPENING,
            since=now - timedelta(days=self.settings.fairness_window_days),
            case_id=case_id,
            success=True,
        )
        try:
            openings = self.store.query_records(record_filter)
        except Exception:
            logger.exception("Error fetching case openings for %s", case_id)
            return None

        return compute_fairness_report(
            case_id,
            (record.rarity for record in openings),
            case.rarity_distribution,
            computed_at=now,
        )

    def get_recent_metrics(self, limit: Optional[int] = None) -> List[OperationRecord]:
        if limit is None:
            limit = self.settings.recent_metrics_limit
        try:
            return list(self.store.fetch_recent_records(limit))
        except Exception:
            logger.exception("Error fetching recent metrics")
            return []

    def get_dashboard_data(self, case_ids: Iterable[str] = ()) -> Dict:
        performance = [
            self.get_performance_metrics(operation) for operation in DASHBOARD_OPERATIONS
        ]

        fairness_alerts = []
        for case_id in case_ids:
            report = self.get_fairness_metrics(case_id)
            if report is not None and not report.is_fair:
                fairness_alerts.append(
                    {
                        "case_type_id": case_id,
                        "issue": (
                            f"Rarity distribution deviates from declared odds "
                            f"(chi-square {report.chi_square_statistic:.2f} "
                            f"over {report.total_openings} openings)"
                        ),
                    }
                )

        return {
            "system_health": self.get_system_health().to_dict(),
            "recent_metrics": [record.to_dict() for record in self.get_recent_metrics()],
            "performance_metrics": [metric.to_dict() for metric in performance if metric is not None],
            "fairness_alerts": fairness_alerts,
        }
