# HTTP client for the storefront's hosted search index

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from api.settings import Settings

from .parse import ScrapedBook, is_book, parse_hit

logger = logging.getLogger(__name__)

FACETS = [
    "author", "availableConditions", "bindingType", "hierarchicalCategories.lvl0",
    "platform", "priceRanges", "productType", "publisher",
]

RETRYABLE = (429, 500, 502, 503, 504)


class SearchAPIError(RuntimeError):
    pass


@dataclass
class SearchPage:
    products: List[ScrapedBook] = field(default_factory=list)
    total_hits: int = 0
    page: int = 0
    total_pages: int = 0


def _sleep_jitter(base: float, jitter: float = 0.25) -> None:
    time.sleep(max(0.0, base + random.random() * jitter))


class AlgoliaClient:
    """
    Thin wrapper over the multi-query search endpoint.
    Parses hits into ScrapedBook and silently drops non-book products.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.url = f"https://{settings.ALGOLIA_APP_ID.lower()}-dsn.algolia.net/1/indexes/*/queries"
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Accept-Language": "en-US,en;q=0.9",
            "Content-Type": "text/plain",
            "Origin": settings.SOURCE_BASE_URL,
            "Referer": settings.SOURCE_BASE_URL + "/",
            "User-Agent": "Mozilla/5.0 (compatible; BookScraper/1.0)",
            "x-algolia-api-key": settings.ALGOLIA_API_KEY,
            "x-algolia-application-id": settings.ALGOLIA_APP_ID,
        })

    # ---------- Transport ----------

    def _post(self, body: dict) -> dict:
        """
        POST with exponential backoff + jitter for 429/5xx/network errors.
        Other 4xx responses are not retried.
        """
        retries = self.settings.REQUEST_RETRIES
        backoff = 1.0
        for attempt in range(1, retries + 2):
            try:
                r = self.session.post(
                    self.url, data=json.dumps(body), timeout=self.settings.REQUEST_TIMEOUT
                )
                if r.status_code in RETRYABLE and attempt <= retries:
                    ra = r.headers.get("Retry-After")
                    _sleep_jitter(float(ra) if ra and ra.isdigit() else backoff, 0.5)
                    backoff = min(30.0, backoff * 2)
                    continue
                if r.status_code >= 400:
                    raise SearchAPIError(f"Search request failed: {r.status_code} {r.reason}")
                return r.json() if r.content else {}
            except (requests.RequestException, ValueError) as e:
                if attempt <= retries:
                    logger.debug("search request attempt %s failed: %s", attempt, e)
                    _sleep_jitter(backoff, 0.5)
                    backoff = min(30.0, backoff * 2)
                    continue
                raise SearchAPIError(f"Search request failed: {e}") from e
        raise SearchAPIError("Search request failed: retries exhausted")

    def _request(self, page: int, hits_per_page: int, *, query: str = "", filters: str = "") -> SearchPage:
        body = {
            "requests": [{
                "indexName": self.settings.ALGOLIA_INDEX,
                "query": query,
                "facets": FACETS,
                "filters": filters,
                "maxValuesPerFacet": 10,
                "page": page,
                "hitsPerPage": hits_per_page,
                "userToken": f"anonymous-{int(time.time() * 1000)}",
            }]
        }
        data = self._post(body)
        results = data.get("results") or []
        if not results:
            return SearchPage(page=page)

        result = results[0]
        products: List[ScrapedBook] = []
        for hit in result.get("hits") or []:
            if not is_book(hit):
                continue
            try:
                products.append(parse_hit(hit, self.settings.SOURCE_BASE_URL, self.settings.DEFAULT_CURRENCY))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed hit %s: %s", hit.get("objectID") or hit.get("id"), e)
        return SearchPage(
            products=products,
            total_hits=int(result.get("nbHits") or 0),
            page=int(result.get("page") or page),
            total_pages=int(result.get("nbPages") or 0),
        )

    # ---------- Public API ----------

    def search_products(
        self,
        query: str,
        page: int = 0,
        hits_per_page: int = 20,
        price_min: Optional[float] = None,
        price_max: Optional[float] = None,
        in_stock: bool = False,
    ) -> SearchPage:
        """Free-text search with optional price window and stock filter."""
        clauses = []
        if price_min is not None:
            clauses.append(f"fromPrice >= {price_min}")
        if price_max is not None:
            clauses.append(f"fromPrice <= {price_max}")
        if in_stock:
            clauses.append("inStock:true")
        return self._request(page, hits_per_page, query=query, filters=" AND ".join(clauses))

    def browse_collection(self, collection_id: str, page: int = 0, hits_per_page: int = 20) -> SearchPage:
        filters = f"collection_ids:{collection_id} AND fromPrice > 0 AND productType:Book"
        return self._request(page, hits_per_page, filters=filters)

    def image_is_accessible(self, url: Optional[str]) -> bool:
        """HEAD the image; True only for 2xx with an image/* content type."""
        if not url:
            return False
        try:
            r = self.session.head(url, timeout=self.settings.REQUEST_TIMEOUT, allow_redirects=True)
        except requests.RequestException:
            return False
        return r.ok and r.headers.get("Content-Type", "").startswith("image/")
