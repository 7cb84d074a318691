"""Tests for the EDirect and E-utilities fetchers and the backend factory."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

from mutation_miner.config import FetchConfig
from mutation_miner.core.errors import FetchFailure
from mutation_miner.core.types import ProcessResult
from mutation_miner.fetch import edirect, eutils
from mutation_miner.fetch.base import join_identifiers
from mutation_miner.fetch.edirect import EDirectFetcher
from mutation_miner.fetch.eutils import EutilsFetcher
from mutation_miner.fetch.factory import available_fetchers, create_fetcher

from xml_samples import esearch_xml, pubmed_article, pubmed_xml


class FakeRunner:
    """Stands in for run_command, replaying canned stdout per program."""

    def __init__(self, outputs: dict[str, str]):
        self.outputs = outputs
        self.calls: list[dict] = []

    def __call__(self, args, timeout=None, input_text=None, logger=None):
        self.calls.append({"args": list(args), "timeout": timeout, "input_text": input_text})
        return ProcessResult(args=list(args), returncode=0, stdout=self.outputs[Path(args[0]).name])


def test_join_identifiers():
    assert join_identifiers(["1", " 2 ", "", "3"]) == "1,2,3"
    with pytest.raises(ValueError):
        join_identifiers([])


def test_edirect_fetch_abstracts_builds_efetch_call(monkeypatch):
    doc = pubmed_xml(pubmed_article("1", "G12D"))
    runner = FakeRunner({"efetch": doc})
    monkeypatch.setattr(edirect, "run_command", runner)

    fetcher = EDirectFetcher(FetchConfig(edirect_dir="/opt/edirect", timeout_seconds=30))
    assert fetcher.fetch_abstracts(["1", "2", "3"]) == doc

    assert runner.calls[0]["args"] == [
        str(Path("/opt/edirect") / "efetch"),
        "-db",
        "pubmed",
        "-id",
        "1,2,3",
        "-format",
        "xml",
    ]
    assert runner.calls[0]["timeout"] == 30


def test_edirect_uses_path_when_dir_is_empty(monkeypatch):
    runner = FakeRunner({"esearch": esearch_xml(5)})
    monkeypatch.setattr(edirect, "run_command", runner)

    assert EDirectFetcher(FetchConfig(edirect_dir="")).search_count("BRCA1") == 5
    assert runner.calls[0]["args"] == ["esearch", "-db", "pubmed", "-query", "BRCA1"]


def test_edirect_fetch_identifiers_pipes_search_into_efetch(monkeypatch):
    runner = FakeRunner({"esearch": esearch_xml(2), "efetch": "101\n102\n"})
    monkeypatch.setattr(edirect, "run_command", runner)

    ids = EDirectFetcher(FetchConfig()).fetch_identifiers("KRAS protein")

    assert ids == ["101", "102"]
    assert runner.calls[0]["args"][-2:] == ["-query", "KRAS protein"]
    assert runner.calls[1]["args"][1:] == ["-format", "uid"]
    assert runner.calls[1]["input_text"] == esearch_xml(2)


def test_edirect_failure_propagates(monkeypatch):
    def failing(args, timeout=None, input_text=None, logger=None):
        raise FetchFailure("Command exited with status 1", returncode=1)

    monkeypatch.setattr(edirect, "run_command", failing)
    with pytest.raises(FetchFailure):
        EDirectFetcher(FetchConfig()).fetch_abstracts(["1"])


def _eutils(handler, **cfg) -> EutilsFetcher:
    cfg.setdefault("retries", 2)
    return EutilsFetcher(FetchConfig(backend="eutils", **cfg), transport=httpx.MockTransport(handler))


def test_eutils_search_count():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="<eSearchResult><Count>42</Count></eSearchResult>")

    fetcher = _eutils(handler, api_key="secret", email="lab@example.org")
    assert fetcher.search_count("TP53") == 42

    request = seen[0]
    assert request.url.path.endswith("/esearch.fcgi")
    assert request.url.params["term"] == "TP53"
    assert request.url.params["db"] == "pubmed"
    assert request.url.params["api_key"] == "secret"
    assert request.url.params["email"] == "lab@example.org"


def test_eutils_fetch_abstracts_posts_ids():
    doc = pubmed_xml(pubmed_article("7", "V600E"))
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=doc)

    assert _eutils(handler).fetch_abstracts(["7", "8"]) == doc
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path.endswith("/efetch.fcgi")
    form = parse_qs(request.content.decode())
    assert form["id"] == ["7,8"]
    assert form["retmode"] == ["xml"]


def _history_handler(total: int, served: int | None = None):
    """Answer a usehistory search with total hits and page uids out of efetch."""
    served = total if served is None else served
    calls: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        calls.append(params)
        if request.url.path.endswith("/esearch.fcgi"):
            if params.get("usehistory") != "y" and int(params.get("retstart", "0")) > 9998:
                return httpx.Response(
                    200, text="<eSearchResult><ERROR>retstart too large</ERROR></eSearchResult>"
                )
            return httpx.Response(
                200,
                text=(
                    f"<eSearchResult><Count>{total}</Count><QueryKey>1</QueryKey>"
                    "<WebEnv>MCID_1</WebEnv><IdList/></eSearchResult>"
                ),
            )
        start, size = int(params["retstart"]), int(params["retmax"])
        uids = [str(100000 + n) for n in range(start, min(start + size, served))]
        return httpx.Response(200, text="\n".join(uids) + "\n")

    return handler, calls


def test_eutils_fetch_identifiers_pages_through_history():
    handler, calls = _history_handler(3)
    assert _eutils(handler).fetch_identifiers("EGFR") == ["100000", "100001", "100002"]
    assert calls[0]["usehistory"] == "y"
    assert calls[1]["WebEnv"] == "MCID_1"
    assert calls[1]["query_key"] == "1"
    assert calls[1]["rettype"] == "uid"


def test_eutils_fetch_identifiers_beyond_esearch_limit():
    handler, calls = _history_handler(10005)
    ids = _eutils(handler).fetch_identifiers("TP53")
    assert len(ids) == 10005
    assert ids[-1] == "110004"
    assert [c["retstart"] for c in calls[1:]] == ["0", "10000"]


def test_eutils_short_identifier_list_raises():
    handler, _calls = _history_handler(10005, served=10000)
    with pytest.raises(FetchFailure, match="10000 of 10005"):
        _eutils(handler).fetch_identifiers("TP53")


def test_eutils_retries_server_errors(monkeypatch):
    monkeypatch.setattr(eutils.time, "sleep", lambda _seconds: None)
    responses = [httpx.Response(503), httpx.Response(200, text="<x><Count>1</Count></x>")]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    assert _eutils(handler).search_count("ALK") == 1
    assert responses == []


def test_eutils_gives_up_after_retries(monkeypatch):
    monkeypatch.setattr(eutils.time, "sleep", lambda _seconds: None)
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchFailure):
        _eutils(handler, retries=1).fetch_abstracts(["1"])
    assert calls == 2


def test_eutils_client_error_is_not_retried():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(400, text="bad request")

    with pytest.raises(FetchFailure, match="HTTP 400"):
        _eutils(handler).fetch_abstracts(["1"])
    assert calls == 1


def test_available_fetchers_contains_expected_backends():
    names = available_fetchers()
    assert "edirect" in names
    assert "eutils" in names


def test_create_fetcher_by_name():
    assert isinstance(create_fetcher(FetchConfig(backend="edirect")), EDirectFetcher)
    assert isinstance(create_fetcher(FetchConfig(backend=" EUtils ")), EutilsFetcher)


def test_create_fetcher_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unsupported fetch backend"):
        create_fetcher(FetchConfig(backend="ftp"))
