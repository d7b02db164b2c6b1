"""Two-stage weighted reward draw.

Stage one picks a rarity tier from the case's declared percentages, stage two
picks an item inside that tier proportionally to its pool weight.
"""

import random
from math import floor, isclose
from typing import Mapping, Optional, Protocol, Sequence

from .errors import ConfigurationError, EmptyPoolError
from .models import RARITY_ORDER_RAREST_FIRST, CaseDefinition, DrawResult, Rarity, WeightedItem

DISTRIBUTION_TOTAL = 100.0

_system_random = random.SystemRandom()


class RandomSource(Protocol):
    def random(self) -> float:
        """Return a float in [0, 1)."""


def validate_distribution(distribution: Mapping[str, float]) -> None:
    """Raise ConfigurationError unless all five tiers are present and sum to 100."""
    known = {rarity.value for rarity in Rarity}
    unknown = sorted(set(distribution) - known)
    if unknown:
        raise ConfigurationError(f"Unknown rarity tiers in distribution: {', '.join(unknown)}")

    missing = sorted(known - set(distribution))
    if missing:
        raise ConfigurationError(f"Rarity distribution is missing tiers: {', '.join(missing)}")

    for tier, percentage in distribution.items():
        if percentage < 0:
            raise ConfigurationError(f"Negative percentage for {tier}: {percentage}")

    total = sum(float(value) for value in distribution.values())
    if total <= 0:
        raise ConfigurationError("Invalid rarity distribution: all tiers are zero")
    if not isclose(total, DISTRIBUTION_TOTAL, rel_tol=0.0, abs_tol=1e-9):
        raise ConfigurationError(f"Rarity distribution must sum to 100, got {total:g}")


def select_rarity(distribution: Mapping[str, float], rng: RandomSource) -> Rarity:
    target = rng.random() * DISTRIBUTION_TOTAL

    cumulative = 0.0
    for rarity in RARITY_ORDER_RAREST_FIRST[:-1]:
        percentage = float(distribution[rarity.value])
        if percentage <= 0:
            # A 0% tier must stay unreachable even when target is exactly 0.
            continue
        cumulative += percentage
        if target <= cumulative:
            return rarity
    return Rarity.COMMON


def select_weighted_item(items: Sequence[WeightedItem], rng: RandomSource) -> WeightedItem:
    for weighted_item in items:
        if weighted_item.weight <= 0:
            raise ConfigurationError(
                f"Item {weighted_item.item.id} has non-positive weight {weighted_item.weight}"
            )

    total_weight = sum(weighted_item.weight for weighted_item in items)
    target = rng.random() * total_weight

    cumulative = 0.0
    for weighted_item in items:
        cumulative += weighted_item.weight
        if cumulative >= target:
            return weighted_item

    # Float rounding can leave target a hair above the final cumulative sum.
    return items[-1]


def select_item(
    case: CaseDefinition,
    pool: Sequence[WeightedItem],
    rng: Optional[RandomSource] = None,
) -> DrawResult:
    """Draw one reward from `pool` according to `case`'s rarity distribution."""
    rng = rng or _system_random
    validate_distribution(case.rarity_distribution)

    rarity = select_rarity(case.rarity_distribution, rng)
    candidates = [weighted_item for weighted_item in pool if weighted_item.rarity == rarity]
    if not candidates:
        raise EmptyPoolError(rarity.value, case.id)

    selected = select_weighted_item(candidates, rng)
    try:
        value = calculate_item_value(selected.item.base_value, selected.value_multiplier)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for item {selected.item.id}: {exc}") from exc
    return DrawResult(weighted_item=selected, rarity=rarity, value=value)


def calculate_item_value(base_value: float, value_multiplier: float) -> int:
    """Currency awarded for an item: floor(base_value * value_multiplier)."""
    if value_multiplier < 0:
        raise ValueError(f"value_multiplier must not be negative, got {value_multiplier}")
    if base_value < 0:
        raise ValueError(f"base_value must not be negative, got {base_value}")
    return int(floor(base_value * value_multiplier))
