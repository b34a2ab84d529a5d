"""
Lambda handlers for book read operations (dashboard listing, detail, analytics)

All of these are admin-only views over the Books and BookChanges tables.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from botocore.exceptions import ClientError

from admin_backend import config
from admin_backend.utils.analytics import compute_analytics
from admin_backend.utils.auth import require_admin
from admin_backend.utils.dynamodb import scan_all
from admin_backend.utils.query import build_book_query, run_book_query
from admin_backend.utils.response import (
    api_response,
    cors_enabled,
    error_response,
    serialize_book_response,
)
from admin_backend.utils.validation import get_path_param, get_query_params

logger = logging.getLogger()
logger.setLevel(logging.INFO)


@cors_enabled
def list_books_handler(event, context):
    """
    Lambda handler for the dashboard book listing.

    Query string parameters:
    - search: case-insensitive substring of title or author
    - level, subject: exact-match filters
    - page: 1-based page number (10 books per page)

    Books are ordered by upload date, newest first.
    """
    logger.info("list_books_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        query, error = build_book_query(get_query_params(event))
        if error:
            return error

        logger.info(
            f"Listing books page {query.page} (search='{query.search}', "
            f"level='{query.level}', subject='{query.subject}')"
        )

        result = run_book_query(config.books_table, query)
        books = [serialize_book_response(item) for item in result.pop("items")]

        logger.info(f"Returning {len(books)} of {result['total']} matching books")

        response_data = {
            "books": books,
            **result,
            "subjects": sorted({book["subject"] for book in books if book["subject"]}),
            "levels": sorted({book["level"] for book in books if book["level"]}),
        }
        return api_response(200, response_data)

    except Exception as e:
        logger.error(f"Error listing books: {str(e)}", exc_info=True)
        return error_response(500, str(e))


@cors_enabled
def get_book_handler(event, context):
    """
    Lambda handler returning a single book's metadata.
    Expects book ID in path parameter 'id'.
    """
    logger.info("get_book_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        book_id, error = get_path_param(event, "id")
        if error:
            return error

        try:
            response = config.books_table.get_item(Key={"id": book_id})
        except ClientError as e:
            logger.error(f"DynamoDB error: {str(e)}", exc_info=True)
            return error_response(500, str(e))

        if "Item" not in response:
            logger.warning(f"Book not found: {book_id}")
            return error_response(404, "Book not found")

        return api_response(200, serialize_book_response(response["Item"]))

    except Exception as e:
        logger.error(f"Error fetching book: {str(e)}", exc_info=True)
        return error_response(500, str(e))


@cors_enabled
def analytics_handler(event, context):
    """
    Lambda handler for library statistics: totals, recent uploads,
    popular books, recent audit entries and subject/level distributions.
    """
    logger.info("analytics_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        books = scan_all(config.books_table)
        changes = scan_all(config.book_changes_table)
        logger.info(f"Computing analytics over {len(books)} books and {len(changes)} changes")

        return api_response(200, compute_analytics(books, changes, datetime.now(UTC)))

    except Exception as e:
        logger.error(f"Error computing analytics: {str(e)}", exc_info=True)
        return error_response(500, str(e))
