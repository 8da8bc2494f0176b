# Keyword-based category assignment and the fixed navigation tree

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple

from .parse import ScrapedBook

# (navigation title, navigation slug, category titles)
NAVIGATION_TREE: List[Tuple[str, str, List[str]]] = [
    ("Fiction", "fiction", [
        "Literary Fiction", "Science Fiction", "Fantasy", "Mystery & Thriller",
        "Romance", "Historical Fiction", "Horror", "Adventure", "Contemporary Fiction",
    ]),
    ("Non-Fiction", "non-fiction", [
        "Biography", "History", "Science", "Self-Help", "Business", "Philosophy",
        "Politics", "Travel", "Health & Fitness", "Cooking", "Art & Design",
    ]),
    ("Academic", "academic", [
        "Textbooks", "Reference", "Research", "Educational", "Medical",
        "Engineering", "Computer Science", "Mathematics", "Law",
    ]),
    ("Children's Books", "childrens-books", [
        "Picture Books", "Young Adult", "Educational", "Adventure",
        "Fantasy & Magic", "Animals", "Bedtime Stories", "Teen Fiction",
    ]),
]

# Order matters: on equal hit counts the earlier slug wins
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "mystery-thriller": ["mystery", "thriller", "detective", "crime", "murder", "suspense", "noir"],
    "science-fiction": ["sci-fi", "science fiction", "space", "future", "robot", "alien", "dystopian"],
    "fantasy": ["fantasy", "magic", "dragon", "wizard", "quest", "realm", "epic fantasy"],
    "romance": ["romance", "love", "heart", "passion", "romantic"],
    "historical-fiction": ["historical", "history", "war", "century", "ancient", "period"],
    "horror": ["horror", "scary", "ghost", "vampire", "zombie", "supernatural"],
    "biography": ["biography", "life", "memoir", "autobiography", "biographical"],
    "self-help": ["self help", "guide", "how to", "improve", "success", "motivation"],
    "business": ["business", "management", "leadership", "entrepreneur", "finance", "economics"],
    "cooking": ["cookbook", "recipe", "cooking", "chef", "kitchen", "food"],
    "childrens-books": ["children", "kids", "young", "picture book", "juvenile"],
    "young-adult": ["young adult", "teen", "teenager", "ya", "adolescent"],
    "textbooks": ["textbook", "edition", "course", "study", "academic", "university"],
    "health-fitness": ["health", "fitness", "diet", "exercise", "wellness", "medical"],
    "travel": ["travel", "guide", "tourism", "destination", "journey"],
    "art-design": ["art", "design", "photography", "creative", "visual"],
    "computer-science": ["computer", "programming", "software", "technology", "coding"],
    "mathematics": ["math", "mathematics", "calculus", "algebra", "geometry"],
    "science": ["science", "physics", "chemistry", "biology", "research"],
    "philosophy": ["philosophy", "wisdom", "ethics", "meaning", "existence"],
    "politics": ["politics", "government", "policy", "political", "democracy"],
}

FALLBACK_SLUGS = ("literary-fiction", "fiction")

GENRE_KEYWORDS: Dict[str, List[str]] = {
    "Mystery": ["mystery", "detective", "murder"],
    "Romance": ["romance", "love"],
    "Fantasy": ["fantasy", "magic", "dragon"],
    "Science Fiction": ["science fiction", "sci-fi", "space"],
    "Historical": ["history", "historical"],
    "Biography": ["biography", "memoir"],
    "Cooking": ["cookbook", "recipe"],
    "Children's": ["children", "kids"],
}

AUTHOR_GENRES: Dict[str, List[str]] = {
    "stephen king": ["Horror", "Thriller"],
    "agatha christie": ["Mystery", "Crime"],
    "j.k. rowling": ["Fantasy", "Young Adult"],
}


def slugify(title: str) -> str:
    """'Mystery & Thriller' -> 'mystery-thriller'."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def _search_text(book: ScrapedBook) -> str:
    parts = [book.title or "", book.author or "", " ".join(book.genres)]
    return " ".join(parts).lower()


def find_best_category(book: ScrapedBook, available: Iterable[str]) -> Optional[str]:
    """
    Return the available slug whose keywords hit the book text most often.
    Falls back to literary-fiction / fiction / first available, or None.
    """
    slugs = list(available)
    known = set(slugs)
    text = _search_text(book)

    best, best_hits = None, 0
    for slug, keywords in CATEGORY_KEYWORDS.items():
        if slug not in known:
            continue
        hits = sum(1 for kw in keywords if kw in text)
        if hits > best_hits:
            best, best_hits = slug, hits

    if best:
        return best
    for slug in FALLBACK_SLUGS:
        if slug in known:
            return slug
    return slugs[0] if slugs else None


def infer_genres(title: str, author: Optional[str] = None) -> List[str]:
    title_l = (title or "").lower()
    author_l = (author or "").lower()
    genres: List[str] = []
    for genre, keywords in GENRE_KEYWORDS.items():
        if any(kw in title_l for kw in keywords):
            genres.append(genre)
    for name, extra in AUTHOR_GENRES.items():
        if name in author_l:
            genres.extend(g for g in extra if g not in genres)
    return genres or ["Fiction"]
