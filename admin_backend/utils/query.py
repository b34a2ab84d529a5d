"""
Dashboard listing query construction for the Books table

Translates the dashboard's search box, level/subject filters and page
number into a DynamoDB scan plus an offset page ordered by upload date.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import reduce

from boto3.dynamodb.conditions import Attr

from admin_backend import config
from admin_backend.utils.dynamodb import scan_all
from admin_backend.utils.response import error_response


@dataclass(frozen=True)
class BookQuery:
    search: str = ""
    level: str = ""
    subject: str = ""
    page: int = 1
    page_size: int = config.PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def scan_kwargs(self) -> dict:
        """Scan arguments carrying the exact-match level/subject filters."""
        conditions = []
        if self.level:
            conditions.append(Attr("level").eq(self.level))
        if self.subject:
            conditions.append(Attr("subject").eq(self.subject))
        if not conditions:
            return {}
        return {"FilterExpression": reduce(lambda left, right: left & right, conditions)}

    def matches(self, book: dict) -> bool:
        """Case-insensitive substring match of the search term on title or author."""
        if not self.search:
            return True
        term = self.search.lower()
        return any(term in (book.get(field) or "").lower() for field in ("title", "author"))


def build_book_query(params: dict[str, str]) -> tuple[BookQuery | None, dict | None]:
    """
    Build a BookQuery from query string parameters.

    Recognized parameters: search, level, subject, page (1-based).

    Returns:
        tuple: (query, error_response) - If successful, error_response is None
    """
    raw_page = params.get("page") or "1"
    try:
        page = int(raw_page)
    except (TypeError, ValueError):
        return None, error_response(400, "page must be an integer")
    if page < 1:
        return None, error_response(400, "page must be 1 or greater")

    return BookQuery(
        search=(params.get("search") or "").strip(),
        level=(params.get("level") or "").strip(),
        subject=(params.get("subject") or "").strip(),
        page=page,
    ), None


def run_book_query(table, query: BookQuery) -> dict:
    """
    Execute a BookQuery against the Books table.

    Returns:
        dict: {"items", "page", "pageSize", "total", "totalPages"} where
              items are raw DynamoDB items for the requested page
    """
    items = [item for item in scan_all(table, **query.scan_kwargs()) if query.matches(item)]
    items.sort(key=lambda item: item.get("upload_date") or "", reverse=True)

    total = len(items)
    return {
        "items": items[query.offset:query.offset + query.page_size],
        "page": query.page,
        "pageSize": query.page_size,
        "total": total,
        "totalPages": math.ceil(total / query.page_size),
    }
