import random
from collections import Counter

import pytest

from casewatch.errors import ConfigurationError, EmptyPoolError
from casewatch.models import CaseDefinition, Item, Rarity, WeightedItem
from casewatch.selector import (
    calculate_item_value,
    select_item,
    select_rarity,
    select_weighted_item,
    validate_distribution,
)

STANDARD_DISTRIBUTION = {"common": 60, "uncommon": 25, "rare": 10, "epic": 4, "legendary": 1}

# Cumulative cut points at 6.25, 12.5, 25 and 50 are exact in binary floats.
BINARY_DISTRIBUTION = {"common": 50, "uncommon": 25, "rare": 12.5, "epic": 6.25, "legendary": 6.25}


class SequenceRandom:
    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def _item(item_id, rarity, base_value=100, weight=1.0, multiplier=1.0, category="valuables"):
    return WeightedItem(
        item=Item(id=item_id, name=item_id.title(), rarity=rarity, base_value=base_value, category=category),
        weight=weight,
        value_multiplier=multiplier,
    )


def _full_pool():
    return [
        _item("bandage", Rarity.COMMON, base_value=50, weight=3.0),
        _item("painkillers", Rarity.COMMON, base_value=80, weight=1.0),
        _item("gpu", Rarity.UNCOMMON, base_value=200),
        _item("ledx", Rarity.RARE, base_value=500, multiplier=1.5),
        _item("labs_keycard", Rarity.EPIC, base_value=1000),
        _item("bitcoin", Rarity.LEGENDARY, base_value=5000, multiplier=2.0),
    ]


def _case(distribution=None):
    return CaseDefinition(
        id="case-1",
        name="Scav Case",
        price=250,
        rarity_distribution=dict(distribution or STANDARD_DISTRIBUTION),
    )


def test_distribution_fidelity_over_ten_thousand_draws():
    rng = random.Random(20260108)
    case = _case()
    pool = _full_pool()

    draws = 10_000
    counts = Counter(select_item(case, pool, rng).rarity.value for _ in range(draws))

    for tier, expected_pct in STANDARD_DISTRIBUTION.items():
        observed_pct = counts[tier] / draws * 100
        assert abs(observed_pct - expected_pct) <= 2, tier


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.0, Rarity.LEGENDARY),
        (0.0625, Rarity.LEGENDARY),
        (0.125, Rarity.EPIC),
        (0.25, Rarity.RARE),
        (0.5, Rarity.UNCOMMON),
        (0.5000001, Rarity.COMMON),
        (0.999999, Rarity.COMMON),
    ],
)
def test_rarity_boundary_resolves_to_rarer_tier(value, expected):
    assert select_rarity(BINARY_DISTRIBUTION, SequenceRandom(value)) is expected


def test_zero_percent_tier_is_never_selected():
    distribution = {"common": 70, "uncommon": 20, "rare": 10, "epic": 0, "legendary": 0}

    assert select_rarity(distribution, SequenceRandom(0.0)) is Rarity.RARE


def test_select_item_uses_second_draw_within_tier():
    case = _case(BINARY_DISTRIBUTION)
    pool = _full_pool()

    # First draw lands in common; second draw of 0.8 * total weight 4.0 = 3.2 passes bandage (3.0).
    result = select_item(case, pool, SequenceRandom(0.9, 0.8))

    assert result.rarity is Rarity.COMMON
    assert result.item.id == "painkillers"
    assert result.value == 80


def test_select_item_computes_effective_value():
    case = _case(BINARY_DISTRIBUTION)

    result = select_item(case, _full_pool(), SequenceRandom(0.0, 0.5))

    assert result.rarity is Rarity.LEGENDARY
    assert result.item.id == "bitcoin"
    assert result.value == 10_000
    assert result.value == result.weighted_item.effective_value


def test_weighted_item_boundary_and_fallback():
    items = [_item("a", Rarity.RARE, weight=1.0), _item("b", Rarity.RARE, weight=1.0)]

    assert select_weighted_item(items, SequenceRandom(0.0)).item.id == "a"
    assert select_weighted_item(items, SequenceRandom(0.5)).item.id == "a"
    assert select_weighted_item(items, SequenceRandom(0.75)).item.id == "b"
    assert select_weighted_item(items, SequenceRandom(1.0 - 1e-12)).item.id == "b"


def test_weighted_item_rejects_non_positive_weight():
    items = [_item("a", Rarity.RARE, weight=0.0)]

    with pytest.raises(ConfigurationError):
        select_weighted_item(items, SequenceRandom(0.3))


def test_calculate_item_value_floors():
    assert calculate_item_value(100, 1.5) == 150
    assert calculate_item_value(100, 1.33) == 133
    assert calculate_item_value(100, 0) == 0
    assert calculate_item_value(99.9, 1) == 99


def test_calculate_item_value_rejects_negative_multiplier():
    with pytest.raises(ValueError):
        calculate_item_value(100, -1)


def test_negative_multiplier_in_pool_raises_configuration_error():
    case = _case({"common": 100, "uncommon": 0, "rare": 0, "epic": 0, "legendary": 0})
    pool = [_item("cursed", Rarity.COMMON, multiplier=-0.5)]

    with pytest.raises(ConfigurationError, match="cursed"):
        select_item(case, pool, SequenceRandom(0.5, 0.5))


@pytest.mark.parametrize(
    "distribution",
    [
        {"common": 60, "uncommon": 25, "rare": 10, "epic": 4, "legendary": 0},
        {"common": 61, "uncommon": 25, "rare": 10, "epic": 4, "legendary": 1},
        {"common": 0, "uncommon": 0, "rare": 0, "epic": 0, "legendary": 0},
        {"common": 60, "uncommon": 25, "rare": 10, "epic": 5},
        {"common": 110, "uncommon": -10, "rare": 0, "epic": 0, "legendary": 0},
        {"common": 60, "uncommon": 25, "rare": 10, "epic": 4, "legendary": 1, "mythic": 0},
    ],
)
def test_invalid_distribution_raises_configuration_error(distribution):
    with pytest.raises(ConfigurationError):
        validate_distribution(distribution)


def test_invalid_distribution_aborts_draw_before_random_use():
    rng = SequenceRandom()
    case = _case({"common": 50, "uncommon": 25, "rare": 10, "epic": 4, "legendary": 1})

    with pytest.raises(ConfigurationError):
        select_item(case, _full_pool(), rng)


def test_fractional_distribution_is_accepted():
    validate_distribution({"common": 60.1, "uncommon": 24.9, "rare": 10.0, "epic": 4.5, "legendary": 0.5})


def test_empty_tier_raises_empty_pool_error():
    pool = [item for item in _full_pool() if item.rarity is not Rarity.LEGENDARY]

    with pytest.raises(EmptyPoolError) as excinfo:
        select_item(_case(BINARY_DISTRIBUTION), pool, SequenceRandom(0.01, 0.5))

    assert excinfo.value.rarity == "legendary"
    assert "legendary" in str(excinfo.value)


def test_empty_pool_raises_empty_pool_error():
    with pytest.raises(EmptyPoolError):
        select_item(_case(), [], random.Random(7))
