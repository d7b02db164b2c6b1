"""Core domain models for reward draws and operation monitoring."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from math import floor
from typing import Any, Dict, Mapping, Optional, Sequence


class Rarity(str, Enum):
    """Fixed rarity tiers, most common first."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


# Boundary ties resolve toward the rarer tier, so the walk order matters.
RARITY_ORDER_RAREST_FIRST = (
    Rarity.LEGENDARY,
    Rarity.EPIC,
    Rarity.RARE,
    Rarity.UNCOMMON,
    Rarity.COMMON,
)


class ItemCategory(str, Enum):
    MEDICAL = "medical"
    ELECTRONICS = "electronics"
    CONSUMABLES = "consumables"
    VALUABLES = "valuables"
    KEYCARDS = "keycards"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class CaseDefinition:
    """A purchasable case and its declared rarity distribution (percentages)."""

    id: str
    name: str
    price: int
    rarity_distribution: Mapping[str, float]
    is_active: bool = True


@dataclass(frozen=True)
class Item:
    id: str
    name: str
    rarity: Rarity
    base_value: float
    category: str


@dataclass(frozen=True)
class WeightedItem:
    """An item as it appears in one case's pool."""

    item: Item
    weight: float
    value_multiplier: float

    @property
    def rarity(self) -> Rarity:
        return self.item.rarity

    @property
    def effective_value(self) -> int:
        return int(floor(self.item.base_value * self.value_multiplier))


@dataclass(frozen=True)
class DrawResult:
    """Outcome of one draw. The caller credits `value` through its ledger."""

    weighted_item: WeightedItem
    rarity: Rarity
    value: int

    @property
    def item(self) -> Item:
        return self.weighted_item.item


@dataclass(frozen=True)
class CaseOpeningResult:
    case: CaseDefinition
    draw: DrawResult
    opening_id: str
    timestamp: datetime

    def to_dict(self) -> Dict:
        item = self.draw.item
        return {
            "case_type_id": self.case.id,
            "opening_id": self.opening_id,
            "item": {
                "id": item.id,
                "name": item.name,
                "rarity": self.draw.rarity.value,
                "base_value": item.base_value,
                "category": item.category,
            },
            "currency_awarded": self.draw.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class OperationRecord:
    """A single measured operation. Never mutated after creation."""

    timestamp: datetime
    operation: str
    duration_ms: float
    success: bool
    context: Mapping[str, Any] = field(default_factory=dict)

    @property
    def case_id(self) -> Optional[str]:
        return self.context.get("case_type_id")

    @property
    def rarity(self) -> Optional[str]:
        return self.context.get("item_rarity")

    @property
    def error_message(self) -> Optional[str]:
        return self.context.get("error_message")

    def to_dict(self) -> Dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "operation": self.operation,
            "duration_ms": self.duration_ms,
            "success": self.success,
            **dict(self.context),
        }


@dataclass(frozen=True)
class PerformanceAggregate:
    operation: str
    avg_duration_ms: float
    min_duration_ms: float
    max_duration_ms: float
    total_operations: int
    success_rate: float
    error_count: int
    window: str
    latency_percentiles_ms: Mapping[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "operation": self.operation,
            "avg_duration_ms": self.avg_duration_ms,
            "min_duration_ms": self.min_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "total_operations": self.total_operations,
            "success_rate": self.success_rate,
            "error_count": self.error_count,
            "window": self.window,
            "latency_percentiles_ms": dict(self.latency_percentiles_ms),
        }


@dataclass(frozen=True)
class FairnessReport:
    """Observed rarity mix of one case compared against its declared mix."""

    case_id: str
    total_openings: int
    observed_distribution: Mapping[str, float]
    expected_distribution: Mapping[str, float]
    chi_square_statistic: float
    is_fair: bool
    computed_at: datetime

    def to_dict(self) -> Dict:
        return {
            "case_type_id": self.case_id,
            "total_openings": self.total_openings,
            "rarity_distribution": dict(self.observed_distribution),
            "expected_distribution": dict(self.expected_distribution),
            "chi_square_statistic": self.chi_square_statistic,
            "is_fair": self.is_fair,
            "last_updated": self.computed_at.isoformat(),
        }


@dataclass(frozen=True)
class SystemHealth:
    status: HealthStatus
    metrics: Mapping[str, float]
    issues: Sequence[str]

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "metrics": dict(self.metrics),
            "issues": list(self.issues),
        }
