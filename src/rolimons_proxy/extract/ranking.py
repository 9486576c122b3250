from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from ..models import Candidate

MAX_PLAUSIBLE_VALUE = 10**10

PoolItem = Union[Candidate, int, float]


def _as_value(item: PoolItem) -> Optional[int]:
    raw = item.value if isinstance(item, Candidate) else item
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    if isinstance(raw, float):
        if not math.isfinite(raw) or not raw.is_integer():
            return None
        raw = int(raw)
    if raw < 0:
        return None
    return raw


@dataclass(slots=True)
class Ranker:
    """Pick the most plausible total from a pool of competing candidates.

    The largest plausible number wins. Values at or above ``max_value`` are
    treated as concatenated digit runs and dropped. With ``prefer_aggregate``
    a summed section candidate beats single numbers when one survives.
    """

    max_value: int = MAX_PLAUSIBLE_VALUE
    prefer_aggregate: bool = False

    def rank(self, pool: Iterable[PoolItem]) -> List[int]:
        seen: set[int] = set()
        for item in pool:
            value = _as_value(item)
            if value is None or value >= self.max_value:
                continue
            seen.add(value)
        return sorted(seen, reverse=True)

    def select(self, pool: Iterable[PoolItem]) -> Optional[int]:
        items = list(pool)
        if self.prefer_aggregate:
            aggregates = [c for c in items if isinstance(c, Candidate) and c.aggregate]
            ranked_aggregates = self.rank(aggregates)
            if ranked_aggregates:
                return ranked_aggregates[0]
        ranked = self.rank(items)
        return ranked[0] if ranked else None


_DEFAULT = Ranker()


def rank(pool: Iterable[PoolItem]) -> List[int]:
    return _DEFAULT.rank(pool)


def select(pool: Iterable[PoolItem]) -> Optional[int]:
    return _DEFAULT.select(pool)


def dedupe(pool: Iterable[PoolItem]) -> List[PoolItem]:
    out: List[PoolItem] = []
    seen: set[object] = set()
    for item in pool:
        key = item.value if isinstance(item, Candidate) else item
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out
