from __future__ import annotations

import re
from typing import Optional

NBSP = " "

_NOT_NUMERIC_CHARS = re.compile(r"[^\d,.\s ]")
_WHITESPACE = re.compile(r"[\s ]+")


def normalize_number(token: object) -> Optional[int]:
    """Turn a loosely formatted number ("25,000", "25.000", "25 000") into an int.

    Commas are always thousands separators. Periods are stripped as well: the
    upstream renders integers only, with "." used as a grouping mark in some
    locales. Returns None for anything that leaves no digits behind.
    """
    if not isinstance(token, str):
        return None
    cleaned = _NOT_NUMERIC_CHARS.sub("", token).strip()
    if not cleaned:
        return None
    tmp = _WHITESPACE.sub("", cleaned)
    tmp = tmp.replace(",", "")
    # "1.234.567" and "25.000" alike: no fractional values upstream
    tmp = tmp.replace(".", "")
    if not tmp.isdigit():
        return None
    try:
        return int(tmp, 10)
    except ValueError:
        return None


def truncate(text: Optional[str], limit: int) -> Optional[str]:
    if text is None:
        return None
    if limit <= 0:
        return ""
    return text[:limit]
