import json

from rolimons_proxy import __version__, cli
from rolimons_proxy.models import DEFAULT_ENDPOINTS
from rolimons_proxy.pipeline import EndpointChain
from rolimons_proxy.service import LookupService
from rolimons_proxy.storage.cache import ResultCache


def _patch_service(monkeypatch, fetcher):
    service = LookupService(chain=EndpointChain(fetcher), cache=ResultCache())
    monkeypatch.setattr("rolimons_proxy.cli.LookupService.from_config", lambda config: service)
    return service


def test_version(capsys):
    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_lookup_prints_one_json_line_per_id(monkeypatch, capsys, fake_fetcher, response):
    responses = {}
    for subject, value in (("1", 100), ("2", 200)):
        url = DEFAULT_ENDPOINTS[0].url_for(subject)
        responses[url] = response(url, {"value": value})
    _patch_service(monkeypatch, fake_fetcher(responses))

    assert cli.main(["lookup", "1", "2"]) == 0
    lines = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
    assert [(r["userId"], r["value"]) for r in lines] == [("1", 100), ("2", 200)]


def test_lookup_reports_unavailable(monkeypatch, capsys, fake_fetcher):
    _patch_service(monkeypatch, fake_fetcher())
    assert cli.main(["lookup", "9"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["value"] == 0
    assert out["note"] == "upstream unavailable"


def test_lookup_rejects_invalid_ids(monkeypatch, fake_fetcher):
    fetcher = fake_fetcher()
    _patch_service(monkeypatch, fetcher)
    assert cli.main(["lookup", "1", "abc"]) == 2
    assert fetcher.calls == []
