# Normalises raw search-index hits into ScrapedBook records

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

# Images served from the legacy host are broken thumbnails
LEGACY_IMAGE_HOST = "images.worldofbooks.com"

_UNSAFE_CHARS = re.compile(r"[^\w\s\-.,!?'\"():;]")
_SPACES = re.compile(r"\s+")


@dataclass
class ScrapedBook:
    source_id: str
    title: str
    author: Optional[str]
    price: float
    currency: str
    image_url: Optional[str]
    source_url: str
    in_stock: bool
    isbn: Optional[str] = None
    isbn10: Optional[str] = None
    isbn13: Optional[str] = None
    description: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[dt.date] = None
    page_count: Optional[int] = None
    binding_type: Optional[str] = None
    product_type: Optional[str] = None
    available_conditions: List[str] = field(default_factory=list)
    year_published: Optional[int] = None
    hierarchical_categories: Dict[str, str] = field(default_factory=dict)
    genres: List[str] = field(default_factory=list)

    def specs(self) -> dict:
        """Loose attributes stored as JSON on the product detail."""
        return {
            "bindingType": self.binding_type,
            "availableConditions": self.available_conditions,
            "isbn10": self.isbn10,
            "isbn13": self.isbn13,
            "yearPublished": self.year_published,
            "productType": self.product_type,
            "hierarchicalCategories": self.hierarchical_categories,
        }


def sanitize_text(text: str, limit: int = 500) -> str:
    """Keep word chars and common punctuation, collapse whitespace, cut to limit."""
    text = _UNSAFE_CHARS.sub("", text or "")
    return _SPACES.sub(" ", text).strip()[:limit]


def strip_html(text: str) -> str:
    return BeautifulSoup(text or "", "html.parser").get_text(" ", strip=True)


def is_book(hit: dict) -> bool:
    product_type = hit.get("productType")
    return product_type is None or product_type == "Book"


def pick_image_url(hit: dict) -> Optional[str]:
    for url in (hit.get("imageURL"), hit.get("imageUrl")):
        if url and url.startswith("http") and LEGACY_IMAGE_HOST not in url:
            return url
    return None


def build_source_url(hit: dict, base_url: str) -> str:
    product_url = hit.get("productUrl")
    if product_url:
        return product_url if product_url.startswith("http") else f"{base_url}{product_url}"
    handle = hit.get("productHandle") or hit.get("id") or hit.get("objectID")
    return f"{base_url}/products/{handle}"


def parse_publication_date(value) -> Optional[dt.date]:
    """Accept ISO dates/datetimes or a bare year; anything else is None."""
    if value is None or value == "":
        return None
    text = str(value).strip()
    try:
        if re.fullmatch(r"\d{4}", text):
            return dt.date(int(text), 1, 1)
        return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def extract_genres(hit: dict) -> List[str]:
    levels = hit.get("hierarchicalCategories") or {}
    genres = []
    for value in [levels.get(k) for k in ("lvl0", "lvl1", "lvl2")] + [hit.get("bindingType")]:
        # levels may hold a list of paths for multi-category products
        genres.extend(value if isinstance(value, list) else [value])
    return [g for g in genres if isinstance(g, str) and g]


def _to_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _describe(hit: dict, author: Optional[str], publisher: Optional[str]) -> str:
    raw = hit.get("description")
    if raw:
        return sanitize_text(strip_html(raw), limit=5000)
    return (
        f"A {hit.get('bindingType') or 'book'} by {author or 'the author'}. "
        f"Published by {publisher or 'various publishers'}."
    )


def parse_hit(hit: dict, base_url: str, default_currency: str = "USD") -> ScrapedBook:
    """Map one search hit to a ScrapedBook. Raises ValueError if it has no id."""
    source_id = hit.get("id") or hit.get("objectID")
    if not source_id:
        raise ValueError("hit has no id/objectID")

    title = (
        hit.get("legacyTitle") or hit.get("longTitle") or hit.get("shortTitle")
        or hit.get("title") or "Unknown Title"
    )
    author = sanitize_text(hit["author"]) if hit.get("author") else None
    publisher = sanitize_text(hit["publisher"]) if hit.get("publisher") else None
    price = hit.get("bestConditionPrice") or hit.get("fromPrice") or 0

    return ScrapedBook(
        source_id=str(source_id),
        title=sanitize_text(title) or "Unknown Title",
        author=author,
        price=float(price),
        currency=hit.get("currency") or default_currency,
        image_url=pick_image_url(hit),
        source_url=build_source_url(hit, base_url),
        in_stock=bool(hit.get("inStock", True)),
        isbn=hit.get("isbn13") or hit.get("isbn10") or hit.get("isbn"),
        isbn10=hit.get("isbn10"),
        isbn13=hit.get("isbn13"),
        description=_describe(hit, author, publisher),
        publisher=publisher,
        publication_date=parse_publication_date(hit.get("datePublished") or hit.get("publicationDate")),
        page_count=_to_int(hit.get("pageCount")),
        binding_type=hit.get("bindingType"),
        product_type=hit.get("productType"),
        available_conditions=list(hit.get("availableConditions") or []),
        year_published=_to_int(hit.get("yearPublished")),
        hierarchical_categories=dict(hit.get("hierarchicalCategories") or {}),
        genres=extract_genres(hit),
    )
