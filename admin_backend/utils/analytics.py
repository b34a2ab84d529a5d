"""
Library statistics for the analytics page
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime, timedelta

from admin_backend.utils.response import convert_decimals, serialize_book_response

TOP_BOOKS_LIMIT = 10
RECENT_CHANGES_LIMIT = 10


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    # Stored timestamps are UTC even when the offset is missing
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _uploaded_since(books: list[dict], since: datetime) -> int:
    count = 0
    for book in books:
        uploaded = _parse_timestamp(book.get("upload_date"))
        if uploaded and uploaded >= since:
            count += 1
    return count


def _distribution(books: list[dict], field: str) -> list[dict]:
    counts = Counter(book[field] for book in books if book.get(field))
    return [{field: value, "count": count} for value, count in counts.most_common()]


def compute_analytics(books: list[dict], changes: list[dict], now: datetime) -> dict:
    """
    Summarize the library.

    Args:
        books: All Book items
        changes: All BookChange items
        now: Timezone-aware reference time for the weekly/monthly upload counts

    Returns:
        dict: Totals, upload counts, top books by popularity, most recent
              changes and subject/level distributions (most common first)
    """
    subject_distribution = _distribution(books, "subject")
    level_distribution = _distribution(books, "level")

    top_books = sorted(
        books, key=lambda book: float(book.get("popularity_score") or 0), reverse=True
    )[:TOP_BOOKS_LIMIT]
    recent_changes = sorted(
        changes, key=lambda change: change.get("created_at") or "", reverse=True
    )[:RECENT_CHANGES_LIMIT]

    return {
        "totalBooks": len(books),
        "featuredBooks": sum(1 for book in books if book.get("featured")),
        "totalSubjects": len(subject_distribution),
        "totalLevels": len(level_distribution),
        "uploadsThisWeek": _uploaded_since(books, now - timedelta(days=7)),
        "uploadsThisMonth": _uploaded_since(books, now - timedelta(days=30)),
        "topBooks": [serialize_book_response(book) for book in top_books],
        "recentChanges": convert_decimals(recent_changes),
        "subjectDistribution": subject_distribution,
        "levelDistribution": level_distribution,
    }
