"""Helpers for approved customer reviews."""
from datetime import date
from typing import Iterable, List

MAX_RATING = 5


def is_valid_review(review) -> bool:
    """A publishable review has a 1-5 rating, a name, some text and a date."""
    if not isinstance(review, dict):
        return False
    rating = review.get("rating")
    name = review.get("name")
    text = review.get("review")
    return (
        isinstance(rating, int)
        and not isinstance(rating, bool)
        and 1 <= rating <= MAX_RATING
        and isinstance(name, str)
        and name.strip() != ""
        and isinstance(text, str)
        and text.strip() != ""
        and isinstance(review.get("date"), str)
    )


def sort_by_date_desc(reviews: Iterable[dict]) -> List[dict]:
    """Newest first. Ties keep their original order."""
    return sorted(reviews, key=lambda r: date.fromisoformat(r["date"]), reverse=True)


def star_display(rating: int) -> str:
    rating = max(0, min(MAX_RATING, rating))
    return "★" * rating + "☆" * (MAX_RATING - rating)


def format_date(value: str) -> str:
    """'2026-01-15' -> 'Jan 15, 2026'"""
    d = date.fromisoformat(value)
    return f"{d.strftime('%b')} {d.day}, {d.year}"
