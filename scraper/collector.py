# Batch collection pipeline: search index -> classify -> relational store

from __future__ import annotations

import logging
import math
import random
import time
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from api.models import Category, Navigation, Product, ProductDetail, utcnow
from api.repository import SQLProductRepository
from api.settings import Settings

from .algolia_client import AlgoliaClient, SearchAPIError, SearchPage
from .classify import NAVIGATION_TREE, find_best_category, infer_genres, slugify
from .parse import ScrapedBook

logger = logging.getLogger(__name__)

DEFAULT_QUERIES = [
    # Popular fiction authors
    "Stephen King", "J.K. Rowling", "George R.R. Martin", "Agatha Christie", "Dan Brown",
    "John Grisham", "James Patterson", "Lee Child", "Gillian Flynn", "Haruki Murakami",
    # Classic literature
    "Shakespeare", "Jane Austen", "Charles Dickens", "Mark Twain", "Ernest Hemingway",
    "F. Scott Fitzgerald", "George Orwell", "Harper Lee", "J.R.R. Tolkien", "Virginia Woolf",
    # Non-fiction topics
    "biography", "history", "science", "psychology", "philosophy", "business",
    "self help", "cooking", "travel", "art", "music", "politics",
    # Academic subjects
    "mathematics", "physics", "chemistry", "biology", "computer science",
    "engineering", "medicine", "law", "economics", "sociology",
    # Genres
    "mystery", "thriller", "romance", "fantasy", "science fiction",
    "horror", "adventure", "historical", "contemporary", "literary",
    # Children's and YA
    "children books", "young adult", "picture books", "educational",
    "Dr. Seuss", "Roald Dahl", "Rick Riordan", "Suzanne Collins",
    # Series and franchises
    "Harry Potter", "Lord of the Rings", "Game of Thrones", "Hunger Games",
    "Twilight", "Sherlock Holmes", "Marvel", "Star Wars",
    # Publishers and imprints
    "Penguin Classics", "Oxford", "Cambridge", "Norton", "Vintage",
    # General terms
    "bestseller", "award winner", "classic", "new release", "popular",
]

RANDOM_QUERIES = ["book", "novel", "story", "guide", "manual", "textbook", "bestseller"]
RANDOM_MAX_REQUESTS = 200
RANDOM_MAX_PAGE = 50

# Storefront catalogue collections
COLLECTION_IDS = {
    "520304558353": "Fiction",
    "520304591121": "Non-Fiction",
    "520304623889": "Children's Books",
    "520304656657": "Academic",
    "520304689425": "Biography",
    "520304722193": "History",
    "520304754961": "Science",
    "520304787729": "Self-Help",
    "520304820497": "Business",
    "520304853265": "Cooking",
    "520304886033": "Travel",
    "520304918801": "Health & Fitness",
}


class BookCollector:
    """
    Sequential collector. Every failure is logged and skipped:
    a bad item skips the item, a bad page ends the query, a bad query moves on.
    """

    def __init__(
        self,
        client: AlgoliaClient,
        db: Session,
        settings: Settings,
        validate_images: bool = False,
        sleep=time.sleep,
    ):
        self.client = client
        self.db = db
        self.settings = settings
        self.validate_images = validate_images
        self.repo = SQLProductRepository(db)
        self._sleep = sleep
        self._seen: Set[str] = set()
        self._category_ids: Dict[str, int] = {}

    # ---------- Navigation structure ----------

    def ensure_navigation_structure(self) -> None:
        """Create any missing navigation headings and categories (looked up by slug)."""
        logger.info("Creating navigation structure...")
        base = self.settings.SOURCE_BASE_URL
        now = utcnow()

        for nav_title, nav_slug, category_titles in NAVIGATION_TREE:
            navigation = self.db.scalar(select(Navigation).where(Navigation.slug == nav_slug))
            if navigation is None:
                navigation = Navigation(
                    title=nav_title,
                    slug=nav_slug,
                    source_url=f"{base}/en-gb/category/{nav_slug}",
                    last_scraped_at=now,
                )
                self.db.add(navigation)
                self.db.flush()
                logger.info("Created navigation: %s", nav_title)

            for cat_title in category_titles:
                cat_slug = slugify(cat_title)
                exists = self.db.scalar(select(Category.id).where(Category.slug == cat_slug))
                if exists is None:
                    self.db.add(Category(
                        navigation_id=navigation.id,
                        title=cat_title,
                        slug=cat_slug,
                        source_url=f"{base}/en-gb/category/{nav_slug}/{cat_slug}",
                        last_scraped_at=now,
                    ))
                    self.db.flush()
                    logger.info("Created category: %s", cat_title)

        self.db.commit()
        self._load_categories()

    def _load_categories(self) -> None:
        rows = self.db.execute(select(Category.slug, Category.id).order_by(Category.id)).all()
        self._category_ids = {slug: cid for slug, cid in rows}

    # ---------- Persistence ----------

    def is_duplicate(self, source_id: str) -> bool:
        return source_id in self._seen or self.repo.source_id_exists(source_id)

    def save_book(self, book: ScrapedBook) -> Product:
        """Classify and store one book with its detail row."""
        if not book.genres:
            book.genres = infer_genres(book.title, book.author)
        slug = find_best_category(book, self._category_ids)
        product = Product(
            source_id=book.source_id,
            category_id=self._category_ids.get(slug) if slug else None,
            title=book.title,
            author=book.author,
            price=book.price,
            currency=book.currency,
            image_url=book.image_url,
            source_url=book.source_url,
            in_stock=book.in_stock,
            last_scraped_at=utcnow(),
        )
        product.detail = ProductDetail(
            description=book.description,
            isbn=book.isbn,
            publisher=book.publisher,
            publication_date=book.publication_date,
            page_count=book.page_count,
            genres=book.genres,
            specs=book.specs(),
            reviews_count=0,
        )
        self.db.add(product)
        self.db.commit()
        self._seen.add(book.source_id)
        return product

    def _store_page(self, page: SearchPage, saved: List[Product], max_books: int, label: str) -> None:
        for book in page.products:
            if len(saved) >= max_books:
                break
            try:
                if self.is_duplicate(book.source_id):
                    continue
                if self.validate_images and not self.client.image_is_accessible(book.image_url):
                    logger.debug("Skipping book with invalid image: %s", book.title)
                    continue
                saved.append(self.save_book(book))
                if len(saved) % 10 == 0:
                    logger.debug("Saved %s products for %s", len(saved), label)
            except Exception as e:
                self.db.rollback()
                logger.warning("Failed to save product %s: %s", book.source_id, e)

    # ---------- Collection loops ----------

    def _collect_pages(self, fetch, max_books: int, label: str) -> List[Product]:
        saved: List[Product] = []
        hits = max(1, self.settings.HITS_PER_PAGE)
        max_pages = math.ceil(max_books / hits)
        page = 0
        while len(saved) < max_books and page < max_pages:
            try:
                result = fetch(page, min(hits, max_books - len(saved)))
            except SearchAPIError as e:
                logger.warning("Failed to fetch page %s for %s: %s", page, label, e)
                break
            if not result.products:
                logger.debug("No more results for %s at page %s", label, page)
                break
            self._store_page(result, saved, max_books, label)
            page += 1
            self._sleep(self.settings.DELAY_BETWEEN_PAGES)
        return saved

    def collect_for_query(self, query: str, max_books: int) -> List[Product]:
        s = self.settings

        def fetch(page, size):
            return self.client.search_products(
                query, page, size, price_min=s.PRICE_MIN, price_max=s.PRICE_MAX, in_stock=True
            )

        return self._collect_pages(fetch, max_books, f'query "{query}"')

    def collect_collection(self, collection_id: str, max_books: int) -> List[Product]:
        # page size is fixed by the collection browse
        def fetch(page, size):
            return self.client.browse_collection(collection_id, page, self.settings.HITS_PER_PAGE)

        return self._collect_pages(fetch, max_books, f"collection {collection_id}")

    def _collect_batches(self, sources: List[str], collect_one, label: str) -> List[Product]:
        target = self.settings.TARGET_BOOK_COUNT
        collected: List[Product] = []
        for idx, source in enumerate(sources):
            if len(collected) >= target:
                break
            logger.info("Processing %s %s/%s: %r", label, idx + 1, len(sources), source)
            try:
                batch = collect_one(source, min(self.settings.BATCH_SIZE, target - len(collected)))
            except Exception as e:
                logger.warning("Failed to collect books for %s %r: %s", label, source, e)
                continue
            collected.extend(batch)
            logger.info(
                "Collected %s books for %s %r. Total: %s/%s",
                len(batch), label, source, len(collected), target,
            )
            if idx < len(sources) - 1:
                self._sleep(self.settings.DELAY_BETWEEN_QUERIES)
        return collected

    def collect_from_queries(self, queries: Optional[Iterable[str]] = None, fill_random: bool = True) -> List[Product]:
        queries = list(queries or DEFAULT_QUERIES)
        collected = self._collect_batches(queries, self.collect_for_query, "query")
        remaining = self.settings.TARGET_BOOK_COUNT - len(collected)
        if fill_random and remaining > 0:
            logger.info("Collecting additional random books to reach target...")
            collected.extend(self.collect_random(remaining))
        logger.info("Book collection completed. Total collected: %s", len(collected))
        return collected

    def collect_from_collections(self, collection_ids: Optional[Iterable[str]] = None) -> List[Product]:
        ids = list(collection_ids or COLLECTION_IDS)
        collected = self._collect_batches(ids, self.collect_collection, "collection")
        logger.info("Collection scraping completed. Total collected: %s", len(collected))
        return collected

    def collect_random(self, count: int) -> List[Product]:
        """Single-hit requests on random generic queries and pages."""
        logger.info("Collecting %s random books...", count)
        s = self.settings
        saved: List[Product] = []
        for i in range(min(count, RANDOM_MAX_REQUESTS)):
            if len(saved) >= count:
                break
            query = random.choice(RANDOM_QUERIES)
            page_no = random.randrange(RANDOM_MAX_PAGE)
            try:
                page = self.client.search_products(
                    query, page_no, 1, price_min=s.PRICE_MIN, price_max=s.PRICE_MAX, in_stock=True
                )
            except SearchAPIError as e:
                logger.warning("Failed to collect random book %s: %s", i, e)
                continue
            self._store_page(page, saved, count, f'random "{query}"')
            self._sleep(s.DELAY_RANDOM)
        return saved

    # ---------- Reporting ----------

    def check_image_accessibility(self, sample: int = 20) -> dict:
        products = self.repo.sample_products(limit=sample, newest=False, with_images=True)
        ok = sum(1 for p in products if self.client.image_is_accessible(p.image_url))
        pct = round(ok / len(products) * 100, 1) if products else 0.0
        logger.info("Image accessibility: %s/%s sample images are accessible (%.1f%%)", ok, len(products), pct)
        return {"checked": len(products), "accessible": ok, "pct": pct}

    def run(self, mode: str = "queries", queries: Optional[Iterable[str]] = None) -> dict:
        """Full pipeline: navigation -> collection -> statistics."""
        logger.info("Starting collection of %s book records (mode=%s)...", self.settings.TARGET_BOOK_COUNT, mode)
        try:
            self.ensure_navigation_structure()
            if mode == "collections":
                collected = self.collect_from_collections()
            else:
                collected = self.collect_from_queries(queries)
            stats = self.repo.collection_stats()
            stats["collected_this_run"] = len(collected)
        except Exception:
            logger.exception("Dataset collection failed")
            raise
        log_stats(stats)
        return stats


def log_stats(stats: dict) -> None:
    logger.info("=== DATASET COLLECTION COMPLETE ===")
    logger.info("Total products: %s", stats["total_products"])
    logger.info(
        "Products with images: %s (%.1f%%)", stats["products_with_images"], stats["image_coverage_pct"]
    )
    logger.info(
        "Products with details: %s (%.1f%%)", stats["products_with_details"], stats["detail_coverage_pct"]
    )
    logger.info("Products with ISBN: %s", stats["products_with_isbn"])
    logger.info("Products with publisher: %s", stats["products_with_publisher"])
    logger.info("Categories: %s, navigations: %s", stats["total_categories"], stats["total_navigations"])
    logger.info("Average price: %.2f", stats["avg_price"])
    logger.info("Price range: %.2f - %.2f", stats["min_price"], stats["max_price"])
    top = stats.get("top_authors", [])[:5]
    logger.info("Top authors: %s", ", ".join(f"{a['author']} ({a['count']})" for a in top))
    cats = stats.get("top_categories", [])[:5]
    logger.info("Top categories: %s", ", ".join(f"{c['category']} ({c['count']})" for c in cats))
