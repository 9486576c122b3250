import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

# Ensure the src/ package is importable without installation
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from rolimons_proxy.models import FetchResult  # noqa: E402

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def make_response(
    url: str,
    body: Union[str, dict, list],
    content_type: str = "application/json; charset=utf-8",
    status: int = 200,
) -> FetchResult:
    text = body if isinstance(body, str) else json.dumps(body)
    return FetchResult(
        url=url,
        status_code=status,
        content_type=content_type,
        body=text,
        encoding="utf-8",
        fetched_at=datetime.now(timezone.utc),
    )


class FakeFetcher:
    """Serves canned FetchResults by URL; unknown URLs behave like transport errors."""

    def __init__(self, responses: Optional[Dict[str, FetchResult]] = None) -> None:
        self.responses = dict(responses or {})
        self.calls: List[str] = []
        self.closed = False

    async def fetch(self, url: str, expected_shape: str = "json") -> Optional[FetchResult]:
        self.calls.append(url)
        return self.responses.get(url)

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fixture_html() -> Callable[[str], str]:
    return load_fixture


@pytest.fixture
def response() -> Callable[..., FetchResult]:
    return make_response


@pytest.fixture
def fake_fetcher() -> Callable[..., FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
