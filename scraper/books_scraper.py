# Command-line entry point for the collection scripts
#   python -m scraper.books_scraper collect --target 500
#   python -m scraper.books_scraper collections
#   python -m scraper.books_scraper check-db | check-details | test-search | image-check

import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from api.database import SessionLocal, init_db
from api.repository import SQLProductRepository
from api.settings import Settings, settings

from .algolia_client import AlgoliaClient
from .collector import BookCollector

logger = logging.getLogger("scraper")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _tuned_settings(args) -> Settings:
    """Apply CLI overrides on top of env settings."""
    changes = {}
    if getattr(args, "target", None):
        changes["TARGET_BOOK_COUNT"] = args.target
    if getattr(args, "batch_size", None):
        changes["BATCH_SIZE"] = args.batch_size
    return dataclasses.replace(settings, **changes) if changes else settings


def run_collection(mode: str, cfg: Settings = settings, queries: Optional[List[str]] = None,
                   validate_images: bool = False) -> dict:
    """Run one collection in its own session (also used by the admin API trigger)."""
    init_db()
    db = SessionLocal()
    try:
        collector = BookCollector(AlgoliaClient(cfg), db, cfg, validate_images=validate_images)
        stats = collector.run(mode=mode, queries=queries)
        if validate_images:
            stats["image_check"] = collector.check_image_accessibility()
        return stats
    finally:
        db.close()


def check_db() -> None:
    db = SessionLocal()
    try:
        repo = SQLProductRepository(db)
        overview = repo.stats_overview()
        logger.info("Total products in database: %s", overview["total_products"])
        logger.info("Products with images: %s", overview["products_with_images"])
        logger.info("Sample products:")
        for i, p in enumerate(repo.sample_products(limit=5), start=1):
            logger.info("%s. ID: %s | %s | %s | %s %s | %s", i, p.id, p.title, p.author, p.currency, p.price, p.image_url)
    finally:
        db.close()


def check_details() -> None:
    db = SessionLocal()
    try:
        repo = SQLProductRepository(db)
        overview = repo.stats_overview()
        coverage = repo.detail_coverage()
        logger.info("Total products: %s", overview["total_products"])
        logger.info("Total product details: %s", overview["products_with_details"])
        logger.info("Coverage: %.1f%%", overview["detail_coverage_pct"])
        logger.info("Sample products WITH details:")
        for i, p in enumerate(coverage["with_details"], start=1):
            d = p.detail
            logger.info(
                "%s. ID: %s | %s | publisher=%s | isbn=%s | genres=%s",
                i, p.id, p.title, d.publisher or "N/A", d.isbn or "N/A", ", ".join(d.genres or []) or "N/A",
            )
        logger.info("Sample products WITHOUT details:")
        for i, p in enumerate(coverage["without_details"], start=1):
            logger.info("%s. ID: %s | %s | author=%s", i, p.id, p.title, p.author or "N/A")
        lo, hi = coverage["id_range"]
        logger.info("ID range with details: %s - %s", lo, hi)
    finally:
        db.close()


def sample_search(query: str) -> None:
    page = AlgoliaClient(settings).search_products(
        query, 0, 5, price_min=1, price_max=50, in_stock=True
    )
    logger.info("Total hits: %s", page.total_hits)
    logger.info("Products returned: %s", len(page.products))
    for i, b in enumerate(page.products, start=1):
        logger.info(
            "%s. %s by %s | %s %s | image=%s | in_stock=%s",
            i, b.title, b.author or "Unknown", b.currency, b.price, "yes" if b.image_url else "no", b.in_stock,
        )


def image_check(sample: int) -> None:
    db = SessionLocal()
    try:
        BookCollector(AlgoliaClient(settings), db, settings).check_image_accessibility(sample)
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="books_scraper",
        description="Collect book listings from the storefront search index into the catalogue database",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("collect", "Collect books for a list of search terms"),
        ("collections", "Collect books from storefront catalogue collections"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--target", type=int, default=None, help="Total books to collect")
        p.add_argument("--batch-size", type=int, default=None, help="Max books per query/collection")
        p.add_argument("--validate-images", action="store_true", help="HEAD-check cover images before saving")
        if name == "collect":
            p.add_argument("--queries", nargs="+", default=None, help="Override the default search terms")

    sub.add_parser("check-db", help="Print totals and the newest products")
    sub.add_parser("check-details", help="Print product detail coverage")
    p = sub.add_parser("test-search", help="Run one search and print the results")
    p.add_argument("query", nargs="?", default="Harry Potter")
    p = sub.add_parser("image-check", help="HEAD-check a sample of stored cover images")
    p.add_argument("--sample", type=int, default=20)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    try:
        if args.command in ("collect", "collections"):
            mode = "queries" if args.command == "collect" else "collections"
            run_collection(
                mode,
                cfg=_tuned_settings(args),
                queries=getattr(args, "queries", None),
                validate_images=args.validate_images,
            )
        else:
            init_db()
            if args.command == "check-db":
                check_db()
            elif args.command == "check-details":
                check_details()
            elif args.command == "test-search":
                sample_search(args.query)
            elif args.command == "image-check":
                image_check(args.sample)
    except Exception:
        logger.exception("%s failed", args.command)
        return 1
    return 0


# Entry point
if __name__ == "__main__":
    sys.exit(main())
