import math
import random

from rolimons_proxy.extract.ranking import MAX_PLAUSIBLE_VALUE, Ranker, dedupe, rank, select
from rolimons_proxy.models import Candidate


def _pool(*values, aggregate=False):
    return [Candidate(value=v, strategy="test", aggregate=aggregate) for v in values]


def test_select_returns_max():
    assert select(_pool(10, 12500, 42)) == 12500


def test_select_empty_pool_is_none():
    assert select([]) is None


def test_zero_is_a_valid_selection():
    assert select(_pool(0)) == 0


def test_negative_and_non_finite_are_discarded():
    assert select([-5, math.inf, math.nan, 7]) == 7
    assert select([-1, -2]) is None


def test_sanity_bound_rejects_concatenated_runs():
    assert select(_pool(MAX_PLAUSIBLE_VALUE, 123456789012, 5000)) == 5000
    assert select(_pool(MAX_PLAUSIBLE_VALUE - 1)) == MAX_PLAUSIBLE_VALUE - 1


def test_rank_is_deduplicated_and_descending():
    assert rank(_pool(3, 10, 3, 7, 10)) == [10, 7, 3]


def test_select_is_idempotent_under_dedupe():
    rng = random.Random(7)
    for _ in range(50):
        values = [rng.choice([0, 1, 5, 5, 99, 10**10, 10**11, -3]) for _ in range(8)]
        pool = _pool(*values)
        assert select(dedupe(pool)) == select(pool)


def test_select_matches_reference_definition():
    rng = random.Random(11)
    for _ in range(50):
        values = [rng.randint(-100, 2 * 10**10) for _ in range(rng.randint(0, 6))]
        survivors = [v for v in values if 0 <= v < MAX_PLAUSIBLE_VALUE]
        expected = max(survivors) if survivors else None
        assert select(values) == expected


def test_custom_bound():
    assert Ranker(max_value=1000).select(_pool(999, 1000, 5000)) == 999


def test_prefer_aggregate_picks_summed_candidate():
    pool = _pool(120000, 4000) + _pool(8000, aggregate=True)
    assert Ranker().select(pool) == 120000
    assert Ranker(prefer_aggregate=True).select(pool) == 8000


def test_prefer_aggregate_falls_back_without_aggregate():
    assert Ranker(prefer_aggregate=True).select(_pool(3, 9)) == 9
