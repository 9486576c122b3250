"""Candidate extraction from player pages.

The upstream markup changes without notice, so no single selector is trusted.
Each strategy below is one heuristic that has worked against some version of
the page; all of them run and their candidates are pooled for ranking.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Optional, Sequence

from bs4 import BeautifulSoup
from bs4.element import PreformattedString, Tag

from ..models import Candidate
from ..utils import normalize_number
from .json_search import search_json

logger = logging.getLogger(__name__)

LABEL_RE = re.compile(
    r"(?:Total Value|Inventory Value|Account Value|Value Worth|Value|Worth|Robux)",
    re.IGNORECASE,
)
SCRIPT_HINT_RE = re.compile(r"value|player|account|inventory|robux", re.IGNORECASE)
GREEDY_OBJECT_RE = re.compile(r"(\{[\s\S]*\})")
NEIGHBOR_NUMBER_RE = re.compile(r"\d[\d,.\s ]{0,20}")
TEXT_NUMBER_RE = re.compile(r"\d[\d,.\s ]*")

NON_VISIBLE_TAGS = {"script", "style", "noscript", "template"}
SNIPPET_CHARS = 80


def _snippet(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()[:SNIPPET_CHARS]


class ExtractionStrategy(ABC):
    """One self-contained heuristic that turns a parsed page into candidates."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier recorded on every candidate."""

    @abstractmethod
    def extract(self, soup: BeautifulSoup) -> Iterator[Candidate]:
        """Yield candidates found in `soup`; must not mutate the document."""


class EmbeddedJsonStrategy(ExtractionStrategy):
    def __init__(self, min_script_chars: int = 50) -> None:
        self.min_script_chars = min_script_chars

    @property
    def name(self) -> str:
        return "embedded-json"

    def _parse(self, text: str) -> Optional[object]:
        try:
            return json.loads(text)
        except (TypeError, ValueError, RecursionError):
            return None

    def _from_payload(self, payload: object, origin: str) -> Iterator[Candidate]:
        for cand in search_json(payload):
            path = f"{origin}:{cand.snippet}" if cand.snippet else origin
            yield Candidate(value=cand.value, strategy=self.name, snippet=path)

    def extract(self, soup: BeautifulSoup) -> Iterator[Candidate]:
        handled: set[int] = set()
        islands: List[tuple[Tag, str]] = []
        next_data = soup.select_one("script#__NEXT_DATA__")
        if next_data is not None:
            islands.append((next_data, "__NEXT_DATA__"))
        for el in soup.select('script[type="application/ld+json"]'):
            islands.append((el, "ld+json"))

        for el, origin in islands:
            handled.add(id(el))
            payload = self._parse(el.string or "")
            if payload is not None:
                yield from self._from_payload(payload, origin)

        for el in soup.find_all("script"):
            if id(el) in handled:
                continue
            text = el.string or ""
            if len(text) <= self.min_script_chars or not SCRIPT_HINT_RE.search(text):
                continue
            match = GREEDY_OBJECT_RE.search(text)
            if not match:
                continue
            payload = self._parse(match.group(1))
            if payload is not None:
                yield from self._from_payload(payload, "script")


class LabeledNeighborhoodStrategy(ExtractionStrategy):
    """Find value labels and read numbers from the label's DOM neighborhood.

    Labels and their numbers tend to stay close together even when class names
    change between releases, so proximity beats CSS selectors here.
    """

    def __init__(self, label_re: re.Pattern[str] = LABEL_RE) -> None:
        self.label_re = label_re

    @property
    def name(self) -> str:
        return "labeled-neighborhood"

    def _own_text(self, el: Tag) -> str:
        parts = [
            str(s)
            for s in el.find_all(string=True, recursive=False)
            if not isinstance(s, PreformattedString)
        ]
        return " ".join(parts)

    def extract(self, soup: BeautifulSoup) -> Iterator[Candidate]:
        for el in soup.find_all(True):
            if el.name in NON_VISIBLE_TAGS or el.name == "head":
                continue
            if not self.label_re.search(self._own_text(el)):
                continue
            neighborhood = [el.get_text(" ")]
            sibling = el.find_next_sibling()
            if sibling is not None:
                neighborhood.append(sibling.get_text(" "))
            if isinstance(el.parent, Tag):
                neighborhood.append(el.parent.get_text(" "))
            for text in neighborhood:
                for match in NEIGHBOR_NUMBER_RE.finditer(text):
                    value = normalize_number(match.group(0))
                    if value is not None:
                        yield Candidate(
                            value=value,
                            strategy=self.name,
                            snippet=_snippet(self._own_text(el)),
                        )


class SectionSumStrategy(ExtractionStrategy):
    """Sum per-item values inside known inventory sections.

    Produces at most one candidate, flagged as an aggregate: the items are
    parts of a whole rather than competing guesses.
    """

    CONTAINER_SELECTORS: Sequence[str] = (
        "#inventory",
        ".inventory",
        "#player-inventory",
        '[data-section="inventory"]',
        ".inventory-table",
    )
    ITEM_SELECTORS: Sequence[str] = (
        "[data-item-id]",
        ".item",
        ".inventory-item",
        "tr.item-row",
    )
    VALUE_FIELD_SELECTOR = '.item-value, .value, [data-field="value"]'

    def __init__(
        self,
        container_selectors: Optional[Sequence[str]] = None,
        item_selectors: Optional[Sequence[str]] = None,
    ) -> None:
        self.container_selectors = tuple(container_selectors or self.CONTAINER_SELECTORS)
        self.item_selectors = tuple(item_selectors or self.ITEM_SELECTORS)

    @property
    def name(self) -> str:
        return "section-sum"

    def _item_value(self, item: Tag) -> Optional[int]:
        raw = item.get("data-value")
        if isinstance(raw, str):
            value = normalize_number(raw)
            if value is not None:
                return value
        field = item.select_one(self.VALUE_FIELD_SELECTOR)
        if field is None:
            return None
        return normalize_number(field.get_text(" ", strip=True))

    def extract(self, soup: BeautifulSoup) -> Iterator[Candidate]:
        containers = soup.select(", ".join(self.container_selectors))
        if not containers:
            return
        item_query = ", ".join(self.item_selectors)
        counted: set[int] = set()
        total = 0
        matched = 0
        for container in containers:
            for item in container.select(item_query):
                if id(item) in counted:
                    continue
                counted.add(id(item))
                value = self._item_value(item)
                if value is None:
                    continue
                total += value
                matched += 1
        if matched:
            yield Candidate(
                value=total,
                strategy=self.name,
                snippet=f"{matched} items",
                aggregate=True,
            )


class GlobalTextStrategy(ExtractionStrategy):
    @property
    def name(self) -> str:
        return "global-text"

    def visible_text(self, soup: BeautifulSoup) -> str:
        root = soup.body or soup
        parts: List[str] = []
        for s in root.find_all(string=True):
            if isinstance(s, PreformattedString):
                continue
            parent = s.parent
            if parent is not None and parent.name in NON_VISIBLE_TAGS:
                continue
            parts.append(str(s))
        return " ".join(parts)

    def extract(self, soup: BeautifulSoup) -> Iterator[Candidate]:
        for match in TEXT_NUMBER_RE.finditer(self.visible_text(soup)):
            value = normalize_number(match.group(0))
            if value is not None:
                yield Candidate(
                    value=value, strategy=self.name, snippet=_snippet(match.group(0))
                )


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    EmbeddedJsonStrategy(),
    LabeledNeighborhoodStrategy(),
    SectionSumStrategy(),
    GlobalTextStrategy(),
)


def search_html(
    soup: BeautifulSoup, strategies: Optional[Iterable[ExtractionStrategy]] = None
) -> Iterator[Candidate]:
    for strategy in strategies if strategies is not None else DEFAULT_STRATEGIES:
        try:
            found = list(strategy.extract(soup))
        except Exception as exc:  # noqa: BLE001
            logger.debug("Strategy %s failed: %s", strategy.name, exc)
            continue
        logger.debug("Strategy %s produced %d candidates", strategy.name, len(found))
        yield from found


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def extract_from_html(
    html: str, strategies: Optional[Iterable[ExtractionStrategy]] = None
) -> List[Candidate]:
    return list(search_html(parse_html(html), strategies))
