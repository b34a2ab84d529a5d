"""
Audit log for book changes (BookChanges table)

Rows are append-only: one per create, update or delete performed by an admin.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from admin_backend import config

logger = logging.getLogger()


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with a Z suffix."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def record_change(
    book_id: str, admin_id: str, action: ChangeAction, changes: dict[str, Any]
) -> dict:
    """
    Append a BookChange row.

    Args:
        book_id: Book the change applies to
        admin_id: User ID of the admin who made the change
        action: create, update or delete
        changes: Snapshot of the submitted or deleted metadata

    Returns:
        dict: The stored audit item

    Raises:
        ClientError: If the write fails
    """
    item = {
        "id": str(uuid.uuid4()),
        "book_id": book_id,
        "admin_id": admin_id,
        "action": action.value,
        "changes": changes,
        "created_at": utc_timestamp(),
    }
    config.book_changes_table.put_item(
        Item=item, ConditionExpression="attribute_not_exists(id)"
    )
    logger.info(f"Recorded {action.value} of book {book_id} by {admin_id}")
    return item
