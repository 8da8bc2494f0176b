import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_USERNAME", "admin")

import dataclasses

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.database import Base, init_db
from api.settings import settings
from scraper.algolia_client import SearchAPIError, SearchPage
from scraper.parse import parse_hit


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_db(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def fast_settings():
    return dataclasses.replace(
        settings,
        TARGET_BOOK_COUNT=10,
        BATCH_SIZE=5,
        HITS_PER_PAGE=2,
        DELAY_BETWEEN_QUERIES=0,
        DELAY_BETWEEN_PAGES=0,
        DELAY_RANDOM=0,
    )


def make_hit(source_id: str, title: str = "A Book", **extra) -> dict:
    hit = {
        "objectID": source_id,
        "id": source_id,
        "title": title,
        "author": "Jane Doe",
        "fromPrice": 4.5,
        "currency": "GBP",
        "imageURL": f"https://cdn.example.com/{source_id}.jpg",
        "productHandle": f"handle-{source_id}",
        "inStock": True,
        "productType": "Book",
    }
    hit.update(extra)
    return hit


def make_book(source_id: str, title: str = "A Book", **extra):
    return parse_hit(make_hit(source_id, title, **extra), "https://www.example.com")


class FakeClient:
    """Stands in for AlgoliaClient: pages keyed by (query, page)."""

    def __init__(self, pages=None, failing=(), broken_images=()):
        self.pages = pages or {}
        self.failing = set(failing)
        self.broken_images = set(broken_images)
        self.calls = []

    def search_products(self, query, page=0, hits_per_page=20, **filters):
        self.calls.append((query, page))
        if (query, page) in self.failing or query in self.failing:
            raise SearchAPIError("boom")
        return SearchPage(products=list(self.pages.get((query, page), [])), page=page)

    def browse_collection(self, collection_id, page=0, hits_per_page=20):
        return self.search_products(collection_id, page, hits_per_page)

    def image_is_accessible(self, url):
        return bool(url) and url not in self.broken_images


@pytest.fixture
def fake_client_cls():
    return FakeClient
