from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import ProxyConfig
from .extract.ranking import Ranker
from .fetch.fetcher import Fetcher, FetcherConfig
from .models import ChainReport
from .pipeline import AsyncFetcher, EndpointChain
from .storage.cache import ResultCache

logger = logging.getLogger(__name__)

NOTE_AMBIGUOUS = "Could not extract numeric value"
NOTE_UNAVAILABLE = "upstream unavailable"

STATUS_OK = "ok"
STATUS_AMBIGUOUS = "ambiguous"
STATUS_UNAVAILABLE = "unavailable"


class InvalidSubjectError(ValueError):
    """Raised for a missing or malformed subject id, before any fetch."""


@dataclass(slots=True)
class LookupResponse:
    subject_id: str
    value: int
    source: Optional[str]
    cached: bool = False
    status: str = STATUS_OK
    note: Optional[str] = None
    debug: Optional[Dict[str, Any]] = None

    @property
    def http_status(self) -> int:
        return 502 if self.status == STATUS_UNAVAILABLE else 200

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "value": self.value,
            "totalValue": self.value,
            "source": self.source,
            "cached": self.cached,
        }
        if self.note:
            payload["note"] = self.note
        if self.debug:
            payload.update(self.debug)
        return payload


@dataclass(slots=True)
class LookupService:
    chain: EndpointChain
    cache: ResultCache
    subject_id_pattern: str = r"^\d{1,20}$"
    cache_upstream_failures: bool = True
    _pattern: re.Pattern[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._pattern = re.compile(self.subject_id_pattern)

    @classmethod
    def from_config(
        cls,
        config: ProxyConfig,
        *,
        fetcher: AsyncFetcher | None = None,
        cache: ResultCache | None = None,
    ) -> "LookupService":
        fetcher = fetcher or Fetcher(
            config=FetcherConfig(
                user_agent=config.fetch.user_agent,
                timeout_sec=config.fetch.timeout_sec,
            )
        )
        chain = EndpointChain(
            fetcher,
            config.endpoints,
            ranker=Ranker(
                max_value=config.ranking.max_value,
                prefer_aggregate=config.ranking.prefer_aggregate,
            ),
            trace_chars=config.debug_snippet_chars,
        )
        return cls(
            chain=chain,
            cache=cache or ResultCache(ttl_sec=config.cache.ttl_sec),
            subject_id_pattern=config.subject_id_pattern,
            cache_upstream_failures=config.cache.cache_upstream_failures,
        )

    def validate_subject_id(self, subject_id: Optional[str]) -> str:
        cleaned = (subject_id or "").strip()
        if not cleaned:
            raise InvalidSubjectError("Missing userId")
        if not self._pattern.match(cleaned):
            raise InvalidSubjectError("Invalid userId")
        return cleaned

    def _debug_trace(self, report: ChainReport) -> Dict[str, Any]:
        ranked: List[int] = []
        if report.result is not None:
            ranked = self.chain.ranker.rank(report.result.candidates)
        return {
            "candidates": ranked,
            "rawSnippet": report.raw_trace,
            "attempts": [
                {
                    "url": a.url,
                    "outcome": a.outcome,
                    "status": a.status_code,
                    "candidates": a.candidate_count,
                }
                for a in report.attempts
            ],
        }

    async def lookup(
        self,
        subject_id: Optional[str],
        *,
        no_cache: bool = False,
        debug: bool = False,
    ) -> LookupResponse:
        key = self.validate_subject_id(subject_id)

        if not no_cache:
            entry = self.cache.get(key)
            if entry is not None:
                logger.debug("Cache hit for subject=%s", key)
                return LookupResponse(
                    subject_id=key,
                    value=entry.value,
                    source=entry.source,
                    cached=True,
                    status=entry.status or STATUS_OK,
                    note=entry.note,
                    debug=entry.debug_trace if debug else None,
                )

        report = await self.chain.run(key)
        trace = self._debug_trace(report)
        result = report.result

        if result is not None and result.selected_value is not None:
            self.cache.store(key, result.selected_value, result.source, debug_trace=trace)
            return LookupResponse(
                subject_id=key,
                value=result.selected_value,
                source=result.source,
                debug=trace if debug else None,
            )

        if report.any_usable:
            last = report.last_usable
            source = last.url if last is not None else None
            self.cache.store(
                key, 0, source, debug_trace=trace, note=NOTE_AMBIGUOUS, status=STATUS_AMBIGUOUS
            )
            return LookupResponse(
                subject_id=key,
                value=0,
                source=source,
                status=STATUS_AMBIGUOUS,
                note=NOTE_AMBIGUOUS,
                debug=trace if debug else None,
            )

        logger.warning("Upstream unavailable for subject=%s", key)
        if self.cache_upstream_failures:
            self.cache.store(
                key, 0, None, debug_trace=trace, note=NOTE_UNAVAILABLE, status=STATUS_UNAVAILABLE
            )
        return LookupResponse(
            subject_id=key,
            value=0,
            source=None,
            status=STATUS_UNAVAILABLE,
            note=NOTE_UNAVAILABLE,
            debug=trace if debug else None,
        )

    def invalidate(self, subject_id: Optional[str]) -> bool:
        key = self.validate_subject_id(subject_id)
        existed = self.cache.invalidate(key)
        logger.info("Cache invalidated subject=%s existed=%s", key, existed)
        return existed
