"""CaseWatch - weighted case draws with performance and fairness monitoring."""

from .analytics import (
    FAIRNESS_CRITICAL_VALUE,
    compute_fairness_report,
    compute_performance_metrics,
    compute_system_health,
)
from .buffer import MetricBuffer
from .config import MonitorSettings
from .errors import (
    CaseNotFoundError,
    CaseWatchError,
    ConfigurationError,
    EmptyPoolError,
    PersistenceError,
    TransientFlushFailure,
)
from .opening import CaseOpeningService
from .recorder import OperationRecorder
from .selector import calculate_item_value, select_item
from .service import MonitoringService

__all__ = [
    "CaseOpeningService",
    "MonitoringService",
    "MetricBuffer",
    "MonitorSettings",
    "OperationRecorder",
    "select_item",
    "calculate_item_value",
    "compute_performance_metrics",
    "compute_system_health",
    "compute_fairness_report",
    "FAIRNESS_CRITICAL_VALUE",
    "CaseWatchError",
    "ConfigurationError",
    "EmptyPoolError",
    "CaseNotFoundError",
    "PersistenceError",
    "TransientFlushFailure",
]

__version__ = "0.1.0"
