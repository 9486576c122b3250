from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

SHAPE_JSON = "json"
SHAPE_HTML = "html"
SHAPES = (SHAPE_JSON, SHAPE_HTML)


@dataclass(slots=True)
class Candidate:
    value: int
    strategy: str
    snippet: Optional[str] = None
    # True only for summed candidates (one per document from section-sum)
    aggregate: bool = False


CandidatePool = List[Candidate]


@dataclass(frozen=True, slots=True)
class EndpointSpec:
    url_template: str
    expected_shape: str = SHAPE_JSON

    def url_for(self, subject_id: str) -> str:
        return self.url_template.format(subject_id=subject_id)


DEFAULT_ENDPOINTS: Tuple[EndpointSpec, ...] = (
    EndpointSpec("https://api.rolimons.com/player/{subject_id}", SHAPE_JSON),
    EndpointSpec("https://www.rolimons.com/api/player/{subject_id}", SHAPE_JSON),
    EndpointSpec("https://www.rolimons.com/player/{subject_id}", SHAPE_HTML),
    EndpointSpec("https://www.rolimons.com/ajax/player/{subject_id}", SHAPE_JSON),
)


@dataclass(slots=True)
class FetchResult:
    url: str
    status_code: int
    content_type: str
    body: str
    encoding: Optional[str]
    fetched_at: datetime
    elapsed_sec: float = 0.0


@dataclass(slots=True)
class EndpointAttempt:
    url: str
    outcome: str
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    candidate_count: int = 0

    @property
    def usable(self) -> bool:
        return self.outcome in {"empty", "selected"}


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    selected_value: Optional[int]
    source: str
    candidates: Tuple[Candidate, ...] = ()
    raw_trace: Optional[str] = None


@dataclass(slots=True)
class ChainReport:
    subject_id: str
    result: Optional[ExtractionResult] = None
    attempts: List[EndpointAttempt] = field(default_factory=list)
    raw_trace: Optional[str] = None

    @property
    def any_usable(self) -> bool:
        return any(a.usable for a in self.attempts)

    @property
    def last_usable(self) -> Optional[EndpointAttempt]:
        for attempt in reversed(self.attempts):
            if attempt.usable:
                return attempt
        return None


@dataclass(slots=True)
class CacheEntry:
    subject_id: str
    value: int
    timestamp: float
    source: Optional[str] = None
    debug_trace: Optional[Dict[str, Any]] = None
    note: Optional[str] = None
    status: Optional[str] = None
