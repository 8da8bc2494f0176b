import datetime as dt

import pytest

from scraper.parse import is_book, parse_hit, parse_publication_date, sanitize_text

BASE = "https://www.worldofbooks.com"


def test_parse_hit_prefers_legacy_title_and_best_condition_price() -> None:
    hit = {
        "objectID": "obj-1",
        "legacyTitle": "The Hobbit: Illustrated",
        "shortTitle": "The Hobbit",
        "fromPrice": 3.0,
        "bestConditionPrice": 5.25,
        "inStock": True,
    }
    book = parse_hit(hit, BASE)
    assert book.source_id == "obj-1"
    assert book.title == "The Hobbit: Illustrated"
    assert book.price == 5.25
    assert book.currency == "USD"


def test_parse_hit_falls_back_to_unknown_title_and_zero_price() -> None:
    book = parse_hit({"id": "x1"}, BASE)
    assert book.title == "Unknown Title"
    assert book.price == 0.0
    assert book.author is None


def test_parse_hit_without_id_raises() -> None:
    with pytest.raises(ValueError):
        parse_hit({"title": "No id"}, BASE)


def test_image_url_rejects_legacy_host_and_relative_paths() -> None:
    assert parse_hit({"id": "1", "imageURL": "/img/a.jpg"}, BASE).image_url is None
    legacy = {"id": "2", "imageURL": "https://images.worldofbooks.com/a.jpg"}
    assert parse_hit(legacy, BASE).image_url is None
    both = {"id": "3", "imageURL": "https://images.worldofbooks.com/a.jpg", "imageUrl": "https://cdn.shopify.com/b.jpg"}
    assert parse_hit(both, BASE).image_url == "https://cdn.shopify.com/b.jpg"


def test_source_url_building() -> None:
    assert parse_hit({"id": "1", "productUrl": "/products/dune"}, BASE).source_url == f"{BASE}/products/dune"
    assert parse_hit({"id": "1", "productUrl": "https://x.test/p"}, BASE).source_url == "https://x.test/p"
    assert parse_hit({"id": "1", "productHandle": "dune-pb"}, BASE).source_url == f"{BASE}/products/dune-pb"
    assert parse_hit({"id": "9"}, BASE).source_url == f"{BASE}/products/9"


def test_isbn_preference_and_genres() -> None:
    hit = {
        "id": "1",
        "isbn10": "0306406152",
        "isbn13": "9780306406157",
        "bindingType": "Paperback",
        "hierarchicalCategories": {"lvl0": "Fiction", "lvl1": "Fiction > Fantasy"},
    }
    book = parse_hit(hit, BASE)
    assert book.isbn == "9780306406157"
    assert book.genres == ["Fiction", "Fiction > Fantasy", "Paperback"]
    assert book.specs()["isbn10"] == "0306406152"
    assert book.specs()["hierarchicalCategories"]["lvl0"] == "Fiction"

    assert parse_hit({"id": "2", "isbn": "123"}, BASE).isbn == "123"


def test_description_strips_html_or_is_generated() -> None:
    book = parse_hit({"id": "1", "description": "<p>A <b>great</b> read.</p>"}, BASE)
    assert book.description == "A great read."

    generated = parse_hit({"id": "2", "author": "Ann Smith", "bindingType": "Hardback"}, BASE)
    assert generated.description == "A Hardback by Ann Smith. Published by various publishers."


def test_publication_date_parsing() -> None:
    assert parse_publication_date("2004") == dt.date(2004, 1, 1)
    assert parse_publication_date("2019-05-01") == dt.date(2019, 5, 1)
    assert parse_publication_date("2019-05-01T10:00:00Z") == dt.date(2019, 5, 1)
    assert parse_publication_date("not a date") is None
    assert parse_publication_date("0000") is None
    assert parse_publication_date(None) is None


def test_sanitize_text() -> None:
    assert sanitize_text("  Hello\t\n  *World*  ") == "Hello World"
    assert sanitize_text("Tom & Jerry") == "Tom Jerry"
    assert len(sanitize_text("a" * 600)) == 500


def test_is_book() -> None:
    assert is_book({"productType": "Book"})
    assert is_book({})
    assert not is_book({"productType": "DVD"})


def test_genres_flatten_list_levels_and_drop_non_strings() -> None:
    hit = {
        "id": "1",
        "hierarchicalCategories": {"lvl0": "Fiction", "lvl1": ["Fiction > Crime", "Fiction > Thriller"], "lvl2": 7},
        "bindingType": "Paperback",
    }
    assert parse_hit(hit, BASE).genres == ["Fiction", "Fiction > Crime", "Fiction > Thriller", "Paperback"]


def test_invalid_year_keeps_the_book() -> None:
    book = parse_hit({"id": "1", "datePublished": "0000"}, BASE)
    assert book.publication_date is None
