from conftest import make_book

from scraper.classify import NAVIGATION_TREE, find_best_category, infer_genres, slugify

ALL_SLUGS = [slugify(title) for _, _, titles in NAVIGATION_TREE for title in titles]


def test_slugify() -> None:
    assert slugify("Mystery & Thriller") == "mystery-thriller"
    assert slugify("Health & Fitness") == "health-fitness"
    assert slugify("Self-Help") == "self-help"


def test_most_keyword_hits_wins() -> None:
    book = make_book("1", "The Dragon Wizard and the Magic Quest")
    assert find_best_category(book, ALL_SLUGS) == "fantasy"


def test_author_and_genres_are_searched() -> None:
    book = make_book("1", "Untitled", author="Detective Press")
    assert find_best_category(book, ALL_SLUGS) == "mystery-thriller"

    book = make_book("2", "Untitled", hierarchicalCategories={"lvl0": "Cookbook recipes"})
    assert find_best_category(book, ALL_SLUGS) == "cooking"


def test_tie_goes_to_earlier_table_entry() -> None:
    # one hit each for mystery-thriller ("murder") and romance ("love")
    book = make_book("1", "Murder and Love", author="")
    assert find_best_category(book, ALL_SLUGS) == "mystery-thriller"


def test_unavailable_slugs_are_skipped_and_fallbacks_apply() -> None:
    book = make_book("1", "Dragon magic", author="")
    assert find_best_category(book, ["romance", "literary-fiction"]) == "literary-fiction"
    assert find_best_category(book, ["romance", "fiction"]) == "fiction"
    assert find_best_category(book, ["reference"]) == "reference"
    assert find_best_category(book, []) is None


def test_infer_genres() -> None:
    assert infer_genres("Murder on the Orient Express", "Agatha Christie") == ["Mystery", "Crime"]
    assert infer_genres("A Love Story") == ["Romance"]
    assert infer_genres("Untitled") == ["Fiction"]
