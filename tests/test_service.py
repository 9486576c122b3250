import pytest

from rolimons_proxy.models import DEFAULT_ENDPOINTS
from rolimons_proxy.pipeline import EndpointChain
from rolimons_proxy.service import (
    NOTE_AMBIGUOUS,
    NOTE_UNAVAILABLE,
    InvalidSubjectError,
    LookupService,
)
from rolimons_proxy.storage.cache import ResultCache

SUBJECT = "123"
URLS = [e.url_for(SUBJECT) for e in DEFAULT_ENDPOINTS]


def _service(fetcher, clock, **kwargs):
    return LookupService(
        chain=EndpointChain(fetcher),
        cache=ResultCache(ttl_sec=3600, clock=clock),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_lookup_resolves_and_caches(fake_fetcher, response, clock):
    fetcher = fake_fetcher({URLS[0]: response(URLS[0], {"stats": {"value": 54321}})})
    service = _service(fetcher, clock)

    first = await service.lookup(SUBJECT)
    assert (first.value, first.source, first.cached) == (54321, URLS[0], False)
    assert first.http_status == 200

    second = await service.lookup(SUBJECT)
    assert (second.value, second.cached) == (54321, True)
    assert fetcher.calls == [URLS[0]]


@pytest.mark.asyncio
async def test_no_cache_refreshes(fake_fetcher, response, clock):
    fetcher = fake_fetcher({URLS[0]: response(URLS[0], {"value": 1})})
    service = _service(fetcher, clock)
    await service.lookup(SUBJECT)
    fetcher.responses[URLS[0]] = response(URLS[0], {"value": 2})

    refreshed = await service.lookup(SUBJECT, no_cache=True)
    assert (refreshed.value, refreshed.cached) == (2, False)
    assert (await service.lookup(SUBJECT)).value == 2


@pytest.mark.asyncio
async def test_ttl_expiry_triggers_refetch(fake_fetcher, response, clock):
    fetcher = fake_fetcher({URLS[0]: response(URLS[0], {"value": 1})})
    service = _service(fetcher, clock)
    await service.lookup(SUBJECT)
    clock.advance(3600)
    again = await service.lookup(SUBJECT)
    assert again.cached is False
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_upstream_unavailable_returns_zero_with_note(fake_fetcher, response, clock):
    fetcher = fake_fetcher({url: response(url, "", status=500) for url in URLS})
    service = _service(fetcher, clock)

    result = await service.lookup(SUBJECT)
    assert result.value == 0
    assert result.note == NOTE_UNAVAILABLE
    assert result.source is None
    assert result.http_status == 502
    payload = result.to_payload()
    assert payload["value"] == 0 and payload["note"] == "upstream unavailable"

    cached = await service.lookup(SUBJECT)
    assert cached.cached is True
    assert cached.note == NOTE_UNAVAILABLE
    assert cached.http_status == 502
    assert cached.to_payload()["note"] == "upstream unavailable"


@pytest.mark.asyncio
async def test_upstream_failures_can_skip_cache(fake_fetcher, clock):
    service = _service(fake_fetcher(), clock, cache_upstream_failures=False)
    await service.lookup(SUBJECT)
    assert service.cache.get(SUBJECT) is None


@pytest.mark.asyncio
async def test_ambiguous_extraction_caches_zero(fake_fetcher, response, clock):
    page = "<html><body>Profile is private</body></html>"
    fetcher = fake_fetcher({URLS[2]: response(URLS[2], page, content_type="text/html")})
    service = _service(fetcher, clock)

    result = await service.lookup(SUBJECT, debug=True)
    assert result.value == 0
    assert result.note == NOTE_AMBIGUOUS
    assert result.source == URLS[2]
    assert result.http_status == 200
    assert result.debug["rawSnippet"] == page
    assert service.cache.get(SUBJECT).value == 0

    cached = await service.lookup(SUBJECT)
    assert cached.cached is True
    assert cached.status == "ambiguous"
    assert cached.http_status == 200


@pytest.mark.asyncio
async def test_debug_payload_lists_ranked_candidates(fake_fetcher, response, clock):
    fetcher = fake_fetcher({URLS[0]: response(URLS[0], {"value": 5, "rap": [3, 5, 9]})})
    service = _service(fetcher, clock)
    result = await service.lookup(SUBJECT, debug=True)
    payload = result.to_payload()
    assert payload["candidates"] == [9, 5, 3]
    assert payload["attempts"][0]["outcome"] == "selected"

    cached = await service.lookup(SUBJECT, debug=True)
    assert cached.to_payload()["candidates"] == [9, 5, 3]
    assert "candidates" not in (await service.lookup(SUBJECT)).to_payload()


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", [None, "", "   ", "abc", "12/../x"])
async def test_invalid_subject_rejected_before_fetch(fake_fetcher, clock, bad):
    fetcher = fake_fetcher()
    service = _service(fetcher, clock)
    with pytest.raises(InvalidSubjectError):
        await service.lookup(bad)
    assert fetcher.calls == []


def test_invalidate(fake_fetcher, clock):
    service = _service(fake_fetcher(), clock)
    service.cache.store(SUBJECT, 10, "s")
    assert service.invalidate(" 123 ") is True
    assert service.cache.get(SUBJECT) is None
