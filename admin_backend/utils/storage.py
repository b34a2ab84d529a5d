"""
S3 storage utilities for Library Admin API

Book files live under a per-book prefix:
    books/{book_id}/pdf/{filename}
    books/{book_id}/cover/{filename}
"""

from __future__ import annotations

import logging

from admin_backend import config
from admin_backend.utils.validation import UploadedFile

logger = logging.getLogger()

DELETE_BATCH_SIZE = 1000  # S3 DeleteObjects limit


def book_prefix(book_id: str) -> str:
    """Storage prefix holding every object of a book."""
    return f"{config.BOOKS_PREFIX}{book_id}/"


def pdf_key(book_id: str, filename: str) -> str:
    return f"{book_prefix(book_id)}pdf/{filename}"


def cover_key(book_id: str, filename: str) -> str:
    return f"{book_prefix(book_id)}cover/{filename}"


def upload_file(key: str, uploaded: UploadedFile) -> None:
    """
    Upload a file to the books bucket without overwriting an existing object.

    Raises:
        ClientError: If the upload fails or the key already exists
    """
    logger.info(f"Uploading {uploaded.size} bytes to s3://{config.BUCKET_NAME}/{key}")
    config.s3_client.put_object(
        Bucket=config.BUCKET_NAME,
        Key=key,
        Body=uploaded.data,
        ContentType=uploaded.content_type,
        IfNoneMatch="*",
    )


def create_signed_url(key: str) -> str:
    """Generate a time-limited GET URL for a stored object."""
    return config.s3_client.generate_presigned_url(
        "get_object",
        Params={"Bucket": config.BUCKET_NAME, "Key": key},
        ExpiresIn=config.SIGNED_URL_EXPIRY_SECONDS,
    )


def list_book_files(book_id: str) -> list[str]:
    """
    List every object key stored under a book's prefix.

    Raises:
        ClientError: If listing fails
    """
    keys: list[str] = []
    params = {"Bucket": config.BUCKET_NAME, "Prefix": book_prefix(book_id)}

    while True:
        response = config.s3_client.list_objects_v2(**params)
        keys.extend(obj["Key"] for obj in response.get("Contents", []))
        if not response.get("IsTruncated"):
            break
        params["ContinuationToken"] = response["NextContinuationToken"]

    return keys


def delete_book_files(book_id: str) -> int:
    """
    Delete every object stored under a book's prefix.

    Per-object failures reported by S3 are logged and not counted.

    Returns:
        int: Number of objects deleted

    Raises:
        ClientError: If listing or the delete request itself fails
    """
    keys = list_book_files(book_id)
    if not keys:
        logger.info(f"No stored files for book: {book_id}")
        return 0

    deleted = 0
    for start in range(0, len(keys), DELETE_BATCH_SIZE):
        batch = keys[start:start + DELETE_BATCH_SIZE]
        response = config.s3_client.delete_objects(
            Bucket=config.BUCKET_NAME,
            Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
        )
        errors = response.get("Errors", [])
        for error in errors:
            logger.error(f"Failed to delete {error.get('Key')}: {error.get('Message')}")
        deleted += len(batch) - len(errors)

    logger.info(f"Deleted {deleted} stored files for book: {book_id}")
    return deleted
