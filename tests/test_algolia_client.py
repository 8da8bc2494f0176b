import json

import pytest
import requests

from conftest import make_hit

from api.settings import settings
from scraper import algolia_client as client_mod
from scraper.algolia_client import AlgoliaClient, SearchAPIError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.reason = "Error" if status_code >= 400 else "OK"
        self.content = b"" if payload is None else json.dumps(payload).encode()

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.headers = {}
        self.posted = []

    def post(self, url, data=None, timeout=None):
        self.posted.append(json.loads(data))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def head(self, url, timeout=None, allow_redirects=True):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(client_mod, "_sleep_jitter", lambda *a, **k: None)


def _results(hits, nb_hits=None):
    return {"results": [{"hits": hits, "nbHits": nb_hits or len(hits), "page": 0, "nbPages": 1}]}


def test_search_parses_hits_and_drops_non_books() -> None:
    session = FakeSession([FakeResponse(payload=_results([
        make_hit("b1", "Dune"),
        make_hit("d1", "Dune (film)", productType="DVD"),
    ], nb_hits=2))])
    client = AlgoliaClient(settings, session=session)

    page = client.search_products("dune", page=0, hits_per_page=20, price_min=0.99, price_max=200, in_stock=True)

    assert [b.source_id for b in page.products] == ["b1"]
    assert page.total_hits == 2
    sent = session.posted[0]["requests"][0]
    assert sent["query"] == "dune"
    assert sent["filters"] == "fromPrice >= 0.99 AND fromPrice <= 200 AND inStock:true"
    assert sent["hitsPerPage"] == 20
    assert session.headers["x-algolia-application-id"] == settings.ALGOLIA_APP_ID


def test_browse_collection_filter() -> None:
    session = FakeSession([FakeResponse(payload=_results([]))])
    AlgoliaClient(settings, session=session).browse_collection("520304558353", page=3)
    sent = session.posted[0]["requests"][0]
    assert sent["filters"] == "collection_ids:520304558353 AND fromPrice > 0 AND productType:Book"
    assert sent["page"] == 3


def test_empty_results_give_empty_page() -> None:
    session = FakeSession([FakeResponse(payload={"results": []})])
    page = AlgoliaClient(settings, session=session).search_products("nothing")
    assert page.products == []
    assert page.total_hits == 0


def test_retries_server_errors_then_succeeds() -> None:
    session = FakeSession([
        FakeResponse(status_code=503, payload={}),
        requests.ConnectionError("reset"),
        FakeResponse(payload=_results([make_hit("b1")])),
    ])
    page = AlgoliaClient(settings, session=session).search_products("x")
    assert len(page.products) == 1
    assert len(session.posted) == 3


def test_client_error_is_not_retried() -> None:
    session = FakeSession([FakeResponse(status_code=403, payload={"message": "forbidden"})])
    with pytest.raises(SearchAPIError):
        AlgoliaClient(settings, session=session).search_products("x")
    assert len(session.posted) == 1


def test_gives_up_after_retries() -> None:
    attempts = settings.REQUEST_RETRIES + 1
    session = FakeSession([FakeResponse(status_code=500, payload={}) for _ in range(attempts)])
    with pytest.raises(SearchAPIError):
        AlgoliaClient(settings, session=session).search_products("x")
    assert len(session.posted) == attempts


def test_image_is_accessible() -> None:
    session = FakeSession([
        FakeResponse(headers={"Content-Type": "image/jpeg"}),
        FakeResponse(headers={"Content-Type": "text/html"}),
        FakeResponse(status_code=404),
        requests.Timeout("slow"),
    ])
    client = AlgoliaClient(settings, session=session)
    assert client.image_is_accessible("https://cdn.example.com/a.jpg")
    assert not client.image_is_accessible("https://cdn.example.com/b.jpg")
    assert not client.image_is_accessible("https://cdn.example.com/c.jpg")
    assert not client.image_is_accessible("https://cdn.example.com/d.jpg")
    assert not client.image_is_accessible(None)


def test_honours_retry_after(monkeypatch) -> None:
    waits = []
    monkeypatch.setattr(client_mod, "_sleep_jitter", lambda base, jitter=0.25: waits.append(base))
    session = FakeSession([
        FakeResponse(status_code=429, payload={}, headers={"Retry-After": "7"}),
        FakeResponse(payload=_results([make_hit("b1")])),
    ])
    page = AlgoliaClient(settings, session=session).search_products("x")
    assert waits == [7.0]
    assert len(page.products) == 1


def test_malformed_hits_are_skipped_not_the_page() -> None:
    session = FakeSession([FakeResponse(payload=_results([
        make_hit("bad-title", title=None, legacyTitle=123),
        make_hit("bad-author", author=["A", "B"]),
        make_hit("good", datePublished="0000"),
    ]))])
    page = AlgoliaClient(settings, session=session).search_products("x")
    assert [b.source_id for b in page.products] == ["good"]
    assert page.products[0].publication_date is None
