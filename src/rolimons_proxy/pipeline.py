from __future__ import annotations

import json
import logging
from typing import Awaitable, Iterable, List, Optional, Protocol, Sequence

from .extract.html_search import ExtractionStrategy, parse_html, search_html
from .extract.json_search import search_json
from .extract.ranking import Ranker
from .models import (
    DEFAULT_ENDPOINTS,
    Candidate,
    ChainReport,
    EndpointAttempt,
    EndpointSpec,
    ExtractionResult,
    FetchResult,
)
from .utils import truncate

logger = logging.getLogger(__name__)

DEFAULT_TRACE_CHARS = 20000


class AsyncFetcher(Protocol):
    def fetch(self, url: str, expected_shape: str = ...) -> Awaitable[Optional[FetchResult]]: ...


class EndpointChain:
    """Try each endpoint in order until one yields a rankable candidate.

    Classification is by the response's declared content type, not by the
    endpoint's expected shape: the upstream serves HTML from "API" URLs and
    vice versa depending on the day.
    """

    def __init__(
        self,
        fetcher: AsyncFetcher,
        endpoints: Sequence[EndpointSpec] = DEFAULT_ENDPOINTS,
        *,
        ranker: Ranker | None = None,
        strategies: Optional[Iterable[ExtractionStrategy]] = None,
        trace_chars: int = DEFAULT_TRACE_CHARS,
    ) -> None:
        self.fetcher = fetcher
        self.endpoints = tuple(endpoints)
        self.ranker = ranker or Ranker()
        self.strategies = tuple(strategies) if strategies is not None else None
        self.trace_chars = trace_chars

    def _candidates_for(self, fetched: FetchResult) -> tuple[str, List[Candidate]]:
        ctype = fetched.content_type
        if "json" in ctype:
            try:
                payload = json.loads(fetched.body)
            except (ValueError, RecursionError) as exc:
                logger.debug("Invalid JSON from %s: %s", fetched.url, exc)
                return "parse-error", []
            return "ok", list(search_json(payload))
        if "text/html" in ctype:
            soup = parse_html(fetched.body)
            return "ok", list(search_html(soup, self.strategies))
        return "bad-content-type", []

    async def run(self, subject_id: str) -> ChainReport:
        report = ChainReport(subject_id=subject_id)
        for endpoint in self.endpoints:
            url = endpoint.url_for(subject_id)
            try:
                fetched = await self.fetcher.fetch(url, endpoint.expected_shape)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Fetcher raised for %s: %s", url, exc)
                fetched = None
            if fetched is None:
                report.attempts.append(EndpointAttempt(url=url, outcome="transport-error"))
                continue
            attempt = EndpointAttempt(
                url=url,
                outcome="bad-status",
                status_code=fetched.status_code,
                content_type=fetched.content_type,
            )
            report.attempts.append(attempt)
            if fetched.status_code != 200:
                logger.debug("Skipping %s: status %s", url, fetched.status_code)
                continue

            status, candidates = self._candidates_for(fetched)
            if status != "ok":
                attempt.outcome = status
                logger.debug("Skipping %s: %s (%s)", url, status, fetched.content_type)
                continue

            attempt.candidate_count = len(candidates)
            report.raw_trace = truncate(fetched.body, self.trace_chars)
            selected = self.ranker.select(candidates)
            if selected is None:
                attempt.outcome = "empty"
                logger.info("No usable candidates from %s", url)
                continue

            attempt.outcome = "selected"
            report.result = ExtractionResult(
                selected_value=selected,
                source=url,
                candidates=tuple(candidates),
                raw_trace=report.raw_trace,
            )
            logger.info(
                "Resolved subject=%s value=%s source=%s candidates=%d",
                subject_id,
                selected,
                url,
                len(candidates),
            )
            return report

        logger.info(
            "Endpoints exhausted for subject=%s usable=%s",
            subject_id,
            report.any_usable,
        )
        return report

    async def resolve(self, subject_id: str) -> Optional[ExtractionResult]:
        report = await self.run(subject_id)
        return report.result
