from scraper import books_scraper


def test_collect_passes_cli_overrides(monkeypatch) -> None:
    calls = []

    def fake_run(mode, cfg, queries=None, validate_images=False):
        calls.append((mode, cfg.TARGET_BOOK_COUNT, cfg.BATCH_SIZE, queries, validate_images))
        return {}

    monkeypatch.setattr(books_scraper, "run_collection", fake_run)

    rc = books_scraper.main(["collect", "--target", "50", "--batch-size", "10", "--queries", "dune", "tolkien"])

    assert rc == 0
    assert calls == [("queries", 50, 10, ["dune", "tolkien"], False)]


def test_collections_mode(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(
        books_scraper, "run_collection",
        lambda mode, cfg, queries=None, validate_images=False: calls.append((mode, validate_images)),
    )
    assert books_scraper.main(["collections", "--validate-images"]) == 0
    assert calls == [("collections", True)]


def test_failures_return_nonzero(monkeypatch) -> None:
    def boom(query):
        raise RuntimeError("search down")

    monkeypatch.setattr(books_scraper, "sample_search", boom)
    assert books_scraper.main(["test-search", "dune"]) == 1


def test_default_settings_untouched_without_overrides() -> None:
    args = books_scraper.build_parser().parse_args(["collect"])
    assert books_scraper._tuned_settings(args) is books_scraper.settings
