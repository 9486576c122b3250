from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterator

from ..models import Candidate
from ..utils import normalize_number

logger = logging.getLogger(__name__)

VALUE_KEY_RE = re.compile(r"value|total|account|worth|robux|inventory|price", re.IGNORECASE)
MAX_DEPTH = 64


def search_json(value: Any, *, max_depth: int = MAX_DEPTH) -> Iterator[Candidate]:
    """Yield every numeric candidate found anywhere inside a decoded JSON value.

    Keys that look value-related are walked first, then every other key, so the
    whole document is covered but value-like paths are discovered early.
    """
    yield from _walk(value, "", 0, max_depth)


def _walk(node: Any, path: str, depth: int, max_depth: int) -> Iterator[Candidate]:
    if node is None or depth > max_depth:
        return
    if isinstance(node, bool):
        return
    if isinstance(node, (int, float)):
        if isinstance(node, float) and not math.isfinite(node):
            return
        number = int(node)
        if number >= 0:
            yield Candidate(value=number, strategy="json", snippet=path or None)
        return
    if isinstance(node, str):
        number = normalize_number(node)
        if number is not None:
            yield Candidate(value=number, strategy="json", snippet=path or None)
        return
    if isinstance(node, dict):
        keys = list(node.keys())
        preferred = [k for k in keys if VALUE_KEY_RE.search(str(k))]
        remaining = [k for k in keys if not VALUE_KEY_RE.search(str(k))]
        for key in preferred + remaining:
            child_path = f"{path}.{key}" if path else str(key)
            yield from _safe_walk(node, key, child_path, depth, max_depth)
        return
    if isinstance(node, (list, tuple)):
        for idx in range(len(node)):
            yield from _safe_walk(node, idx, f"{path}[{idx}]", depth, max_depth)


def _safe_walk(
    container: Any, key: Any, path: str, depth: int, max_depth: int
) -> Iterator[Candidate]:
    # A bad child must not abort the scan of its siblings
    try:
        found = list(_walk(container[key], path, depth + 1, max_depth))
    except Exception as exc:  # noqa: BLE001
        logger.debug("Skipping JSON node %s: %s", path, exc)
        return
    yield from found
