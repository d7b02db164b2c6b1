"""Pure analytics functions that work on operation records."""

from datetime import datetime, timedelta
from math import floor
from typing import Dict, Iterable, Mapping, Optional

from .models import (
    FairnessReport,
    HealthStatus,
    OperationRecord,
    PerformanceAggregate,
    Rarity,
    SystemHealth,
)

WINDOWS = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}

# Chi-square critical value for alpha=0.05 with 4 degrees of freedom.
FAIRNESS_CRITICAL_VALUE = 9.488

DEGRADED_RESPONSE_MS = 1000
UNHEALTHY_RESPONSE_MS = 5000
DEGRADED_ERROR_RATE = 5
UNHEALTHY_ERROR_RATE = 20
LOW_ACTIVITY_PER_MINUTE = 0.1

_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


def parse_window(window: str) -> timedelta:
    try:
        return WINDOWS[window]
    except KeyError:
        raise ValueError(f"Unsupported window {window!r}, expected one of {', '.join(WINDOWS)}") from None


def compute_performance_metrics(
    records: Iterable[OperationRecord],
    operation: str,
    window: str = "24h",
) -> Optional[PerformanceAggregate]:
    """Compute latency and success statistics for one operation."""
    records_list = [record for record in records if record.operation == operation]
    if not records_list:
        return None

    durations = [record.duration_ms for record in records_list]
    total = len(records_list)
    success_count = sum(1 for record in records_list if record.success)

    return PerformanceAggregate(
        operation=operation,
        avg_duration_ms=sum(durations) / total,
        min_duration_ms=min(durations),
        max_duration_ms=max(durations),
        total_operations=total,
        success_rate=success_count / total,
        error_count=total - success_count,
        window=window,
        latency_percentiles_ms=_compute_percentiles(durations),
    )


def compute_system_health(
    records: Iterable[OperationRecord],
    window_minutes: float = 60,
) -> SystemHealth:
    """
    Classify health from average latency and error rate.

    Either dimension can degrade the status; unhealthy always wins over
    degraded. No data is reported as healthy.
    """
    records_list = list(records)
    if not records_list:
        return SystemHealth(
            status=HealthStatus.HEALTHY,
            metrics=_health_metrics(0, 100, 0, 0),
            issues=[],
        )

    total = len(records_list)
    avg_response_time = sum(record.duration_ms for record in records_list) / total
    success_rate = sum(1 for record in records_list if record.success) / total * 100
    error_rate = 100 - success_rate
    operations_per_minute = total / window_minutes if window_minutes > 0 else 0.0

    status = HealthStatus.HEALTHY
    issues = []

    if avg_response_time > DEGRADED_RESPONSE_MS:
        issues.append(f"High average response time: {avg_response_time:.2f}ms")
        status = _worse(status, HealthStatus.DEGRADED)
    if avg_response_time > UNHEALTHY_RESPONSE_MS:
        status = HealthStatus.UNHEALTHY

    if error_rate > DEGRADED_ERROR_RATE:
        issues.append(f"High error rate: {error_rate:.2f}%")
        status = _worse(status, HealthStatus.DEGRADED)
    if error_rate > UNHEALTHY_ERROR_RATE:
        status = HealthStatus.UNHEALTHY

    if operations_per_minute < LOW_ACTIVITY_PER_MINUTE:
        issues.append(f"Low activity: {operations_per_minute:.2f} operations/minute")

    return SystemHealth(
        status=status,
        metrics=_health_metrics(avg_response_time, success_rate, error_rate, operations_per_minute),
        issues=issues,
    )


def unreachable_store_health(issue: str) -> SystemHealth:
    """Health report used when the records themselves could not be fetched."""
    return SystemHealth(
        status=HealthStatus.UNHEALTHY,
        metrics=_health_metrics(0, 0, 100, 0),
        issues=[issue],
    )


def compute_fairness_report(
    case_id: str,
    rarities: Iterable[Optional[str]],
    expected_distribution: Mapping[str, float],
    computed_at: datetime,
) -> Optional[FairnessReport]:
    """
    Compare observed rarity counts against the declared percentages.

    Uses Pearson's chi-square over tiers with a non-zero expected count and
    flags the case unfair once the statistic reaches FAIRNESS_CRITICAL_VALUE.
    """
    rarities_list = list(rarities)
    if not rarities_list:
        return None

    total = len(rarities_list)
    counts = {rarity.value: 0 for rarity in Rarity}
    for rarity in rarities_list:
        if rarity in counts:
            counts[rarity] += 1

    observed = {tier: count / total * 100 for tier, count in counts.items()}

    chi_square = 0.0
    for tier, expected_pct in expected_distribution.items():
        observed_count = observed.get(tier, 0.0) / 100 * total
        expected_count = float(expected_pct) / 100 * total
        if expected_count > 0:
            chi_square += (observed_count - expected_count) ** 2 / expected_count

    return FairnessReport(
        case_id=case_id,
        total_openings=total,
        observed_distribution=observed,
        expected_distribution=dict(expected_distribution),
        chi_square_statistic=chi_square,
        is_fair=is_distribution_fair(chi_square),
        computed_at=computed_at,
    )


def is_distribution_fair(chi_square: float) -> bool:
    return chi_square < FAIRNESS_CRITICAL_VALUE


def _worse(current: HealthStatus, candidate: HealthStatus) -> HealthStatus:
    return candidate if _SEVERITY[candidate] > _SEVERITY[current] else current


def _health_metrics(
    avg_response_time: float,
    success_rate: float,
    error_rate: float,
    operations_per_minute: float,
) -> Dict[str, float]:
    return {
        "avg_response_time": round(avg_response_time, 2),
        "success_rate": round(success_rate, 2),
        "error_rate": round(error_rate, 2),
        "operations_per_minute": round(operations_per_minute, 2),
    }


def _compute_percentiles(values: Iterable[float]) -> Dict[str, float]:
    points = [50, 90, 95, 99]
    sorted_values = sorted(float(value) for value in values)
    if not sorted_values:
        return _empty_percentiles()

    return {f"p{point}": _percentile(sorted_values, point / 100) for point in points}


def _percentile(sorted_values: list[float], quantile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return sorted_values[0]

    position = quantile * (len(sorted_values) - 1)
    lower_index = floor(position)
    upper_index = min(lower_index + 1, len(sorted_values) - 1)
    lower_value = sorted_values[lower_index]
    upper_value = sorted_values[upper_index]
    weight = position - lower_index
    return lower_value + (upper_value - lower_value) * weight


def _empty_percentiles() -> Dict[str, float]:
    return {"p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
