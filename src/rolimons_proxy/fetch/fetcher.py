from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import requests
from requests.adapters import HTTPAdapter

from ..models import SHAPE_HTML, SHAPE_JSON, FetchResult

logger = logging.getLogger(__name__)

ACCEPT_HEADERS = {
    SHAPE_JSON: "application/json, text/plain;q=0.9, */*;q=0.8",
    SHAPE_HTML: "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
}

_META_CHARSET_RE = re.compile(rb"charset\s*=\s*[\"']?([A-Za-z0-9_\-]+)", re.IGNORECASE)


@dataclass(slots=True)
class FetcherConfig:
    # Override via env PROXY_USER_AGENT
    user_agent: str = os.environ.get("PROXY_USER_AGENT", "AvatarValueProxy/2.0")
    timeout_sec: float = 10.0
    pool_size: int = 10


def build_session(config: FetcherConfig | None = None) -> requests.Session:
    config = config or FetcherConfig()
    session = requests.Session()
    # One attempt per endpoint; the fallback chain moves on instead of retrying
    adapter = HTTPAdapter(
        max_retries=0,
        pool_connections=config.pool_size,
        pool_maxsize=config.pool_size,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": config.user_agent})
    return session


class Fetcher:
    """Blocking requests fetcher with an asyncio front.

    `fetch` runs `fetch_sync` on worker threads. requests does not promise that a
    Session is thread-safe, so unless one is injected each worker thread builds
    and keeps its own session. An injected session is shared as-is.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        config: FetcherConfig | None = None,
    ) -> None:
        self.config = config or FetcherConfig()
        self._shared = session
        self._local = threading.local()
        self._owned: List[requests.Session] = []
        self._lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        if self._shared is not None:
            return self._shared
        session = getattr(self._local, "session", None)
        if session is None:
            session = build_session(self.config)
            self._local.session = session
            with self._lock:
                self._owned.append(session)
        return session

    def _decode_bytes(
        self,
        body: bytes,
        content_type: Optional[str],
        apparent: Optional[str] = None,
    ) -> tuple[str, Optional[str]]:
        # 1) charset from HTTP header
        header_enc: Optional[str] = None
        if content_type:
            lower = content_type.lower()
            if "charset=" in lower:
                header_enc = lower.split("charset=")[-1].split(";")[0].strip(" \"'")

        # 2) charset from HTML <meta> in the first few KB
        meta_enc: Optional[str] = None
        m = _META_CHARSET_RE.search(body[:4096])
        if m:
            meta_enc = m.group(1).decode("ascii", errors="ignore").lower()

        # 3) header -> apparent -> meta -> utf-8 -> latin-1
        candidates = [
            header_enc,
            apparent.lower() if apparent else None,
            meta_enc,
            "utf-8",
            "latin-1",
        ]
        for enc in candidates:
            if not enc:
                continue
            try:
                return body.decode(enc, errors="strict"), enc
            except (LookupError, UnicodeDecodeError):
                continue
        return body.decode("utf-8", errors="replace"), "utf-8"

    def fetch_sync(self, url: str, expected_shape: str = SHAPE_JSON) -> Optional[FetchResult]:
        """GET `url` once. Non-2xx responses are returned, transport errors give None."""
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept": ACCEPT_HEADERS.get(expected_shape, "*/*"),
        }
        t0 = time.monotonic()
        try:
            response = self.session.get(url, headers=headers, timeout=self.config.timeout_sec)
        except requests.RequestException as exc:
            logger.debug("Fetch failed for %s: %s", url, exc)
            return None
        elapsed = time.monotonic() - t0
        content_type = response.headers.get("Content-Type") or ""
        body, encoding = self._decode_bytes(
            response.content,
            content_type,
            getattr(response, "apparent_encoding", None),
        )
        logger.debug(
            "Fetched %s status=%s type=%s in %.2fs",
            url,
            response.status_code,
            content_type,
            elapsed,
        )
        return FetchResult(
            url=url,
            status_code=response.status_code,
            content_type=content_type.lower(),
            body=body,
            encoding=encoding,
            fetched_at=datetime.now(timezone.utc),
            elapsed_sec=elapsed,
        )

    async def fetch(self, url: str, expected_shape: str = SHAPE_JSON) -> Optional[FetchResult]:
        return await asyncio.to_thread(self.fetch_sync, url, expected_shape)

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
        with self._lock:
            owned, self._owned = self._owned, []
        for session in owned:
            session.close()
