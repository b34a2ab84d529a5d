"""
Lambda handlers for admin book operations (upload, delete, update)

These handlers require the admin role and are the only paths that write
book files to storage or append to the audit log.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from botocore.exceptions import ClientError

from admin_backend import config
from admin_backend.utils.audit import ChangeAction, record_change, utc_timestamp
from admin_backend.utils.auth import require_admin
from admin_backend.utils.dynamodb import build_update_params
from admin_backend.utils.metadata import count_pdf_pages, derive_keywords
from admin_backend.utils.response import (
    api_response,
    cors_enabled,
    error_response,
    serialize_book_response,
)
from admin_backend.utils.storage import (
    book_prefix,
    cover_key,
    create_signed_url,
    delete_book_files,
    pdf_key,
    upload_file,
)
from admin_backend.utils.validation import (
    UploadedFile,
    get_path_param,
    parse_json_body,
    parse_multipart_form,
    validate_boolean_field,
    validate_string_field,
    validate_upload_files,
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Optional text metadata accepted on upload and update
METADATA_FIELDS = ("author", "subject", "level", "class_level", "description")


def _max_length(field: str) -> int:
    if field == "description":
        return config.MAX_DESCRIPTION_LENGTH
    return config.MAX_STRING_LENGTH


def _validate_metadata(body: dict) -> dict | None:
    """Validate title and optional metadata fields, returning an error response or None."""
    error = validate_string_field(body, "title", max_length=config.MAX_STRING_LENGTH)
    if error:
        return error
    for field in METADATA_FIELDS:
        error = validate_string_field(body, field, max_length=_max_length(field))
        if error:
            return error
    return None


def _store_new_book(
    book_id: str,
    metadata: dict[str, Any],
    pdf: UploadedFile,
    cover: UploadedFile | None,
) -> dict:
    """
    Upload a book's files and insert its Books row.

    Files are written before the row. Nothing is rolled back if a later
    step fails, so a failed insert leaves the uploaded files in storage.

    Raises:
        ClientError: If any storage or database call fails
    """
    pdf_path = pdf_key(book_id, pdf.filename)
    upload_file(pdf_path, pdf)

    cover_path = None
    if cover:
        cover_path = cover_key(book_id, cover.filename)
        upload_file(cover_path, cover)

    item = {
        "id": book_id,
        **metadata,
        "cover_url": create_signed_url(cover_path) if cover_path else None,
        "file_path": create_signed_url(pdf_path),
        "upload_date": utc_timestamp(),
        "popularity_score": 0,
    }

    config.books_table.put_item(Item=item, ConditionExpression="attribute_not_exists(id)")
    logger.info(f"Inserted book record: {book_id}")
    return item


@cors_enabled
def upload_handler(event, context):
    """
    Lambda handler that uploads a PDF (and optional cover) and creates the book.
    Requires admin role.

    Expects multipart/form-data with:
    - title: (required) Book title
    - pdf: (required) PDF file, application/pdf
    - cover: (optional) Cover image, JPEG/PNG/WebP
    - author, subject, level, class_level, description: (optional) metadata
    - featured: (optional) "true" to feature the book

    Returns {success, book} with the created Books row.
    """
    logger.info("upload_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        fields, files, error = parse_multipart_form(event)
        if error:
            return error

        title = (fields.get("title") or "").strip()
        pdf = files.get("pdf")
        cover = files.get("cover")

        if not title or not pdf:
            logger.warning("Upload missing title or PDF")
            return error_response(400, "Title and PDF file are required")

        error = validate_upload_files(pdf, cover)
        if error:
            return error

        error = _validate_metadata(fields)
        if error:
            return error

        book_id = str(uuid.uuid4())
        logger.info(f"Upload of '{title}' as book {book_id} by admin {auth.user_id}")

        pages = count_pdf_pages(pdf.data)
        keywords = derive_keywords(title, fields.get("subject"))

        metadata: dict[str, Any] = {"title": title}
        for field in METADATA_FIELDS:
            metadata[field] = (fields.get(field) or "").strip() or None
        metadata["featured"] = fields.get("featured") == "true"
        metadata["pages"] = pages
        metadata["keywords"] = keywords

        try:
            book = _store_new_book(book_id, metadata, pdf, cover)
        except ClientError as e:
            logger.error(
                f"Upload failed for book {book_id}, files already written under "
                f"{book_prefix(book_id)} are not removed: {str(e)}",
                exc_info=True,
            )
            return error_response(500, str(e))

        try:
            record_change(book_id, auth.user_id, ChangeAction.CREATE, dict(metadata))
        except ClientError as e:
            logger.error(f"Error recording create of book {book_id}: {str(e)}", exc_info=True)

        return api_response(200, {"success": True, "book": serialize_book_response(book)})

    except Exception as e:
        logger.error(f"Error uploading book: {str(e)}", exc_info=True)
        return error_response(500, str(e))


def _delete_book_record(book_id: str) -> None:
    """
    Delete book record from Books table.

    Raises:
        ClientError: If book not found or DynamoDB error
    """
    config.books_table.delete_item(
        Key={"id": book_id}, ConditionExpression="attribute_exists(id)"
    )
    logger.info(f"Successfully deleted book record: {book_id}")


@cors_enabled
def delete_book_handler(event, context):
    """
    Lambda handler to delete a book's stored files and its Books row.
    Requires admin role.

    Expects JSON body with:
    - book_id: ID of the book to delete
    - confirm: must be true

    Storage failures are logged and do not stop the record deletion.
    Returns {success, message}.
    """
    logger.info("delete_book_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        body, error = parse_json_body(event)
        if error:
            return error

        book_id = body.get("book_id")
        if not book_id or not isinstance(book_id, str):
            logger.warning("Missing book_id in delete request")
            return error_response(400, "Book ID is required")

        if body.get("confirm") is not True:
            logger.warning(f"Delete of {book_id} without confirmation")
            return error_response(400, "Confirmation required")

        logger.info(f"Delete request for book {book_id} from admin {auth.user_id}")

        try:
            response = config.books_table.get_item(Key={"id": book_id})
        except ClientError as e:
            logger.error(f"DynamoDB error: {str(e)}", exc_info=True)
            return error_response(500, str(e))

        book = response.get("Item")
        if not book:
            logger.warning(f"Book not found: {book_id}")
            return error_response(404, "Book not found")

        try:
            delete_book_files(book_id)
        except ClientError as e:
            # Continue with record deletion
            logger.error(f"Error deleting stored files for {book_id}: {str(e)}", exc_info=True)

        try:
            _delete_book_record(book_id)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":  # type: ignore[typeddict-item]
                logger.warning(f"Book not found during deletion: {book_id}")
                return error_response(404, "Book not found")
            logger.error(f"Error deleting book record {book_id}: {str(e)}", exc_info=True)
            return error_response(500, "Error deleting book record")

        snapshot = {
            "deleted_book": {
                field: book.get(field)
                for field in ("title", "author", "subject", "level", "class_level")
            }
        }
        try:
            record_change(book_id, auth.user_id, ChangeAction.DELETE, snapshot)
        except ClientError as e:
            logger.error(f"Error recording delete of book {book_id}: {str(e)}", exc_info=True)

        return api_response(200, {"success": True, "message": "Book deleted successfully"})

    except Exception as e:
        logger.error(f"Error deleting book: {str(e)}", exc_info=True)
        return error_response(500, str(e))


@cors_enabled
def update_book_handler(event, context):
    """
    Lambda handler to update book metadata. Requires admin role.
    Expects book ID in path parameter 'id'.

    Accepts JSON body with any of:
    - title: non-empty string
    - author, subject, level, class_level, description: string (empty or null clears)
    - featured: boolean

    Keywords are recomputed when title or subject change.
    Returns the updated book.
    """
    logger.info("update_book_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        book_id, error = get_path_param(event, "id")
        if error:
            return error

        body, error = parse_json_body(event)
        if error:
            return error

        error = _validate_metadata(body)
        if error:
            return error

        error = validate_boolean_field(body, "featured")
        if error:
            return error

        if "title" in body and not (body["title"] or "").strip():
            return error_response(400, 'Field "title" cannot be empty')

        metadata_fields: dict[str, Any] = {}
        if "title" in body:
            metadata_fields["title"] = body["title"].strip()
        for field in METADATA_FIELDS:
            if field in body:
                metadata_fields[field] = (body[field] or "").strip() or None
        if "featured" in body:
            metadata_fields["featured"] = body["featured"]

        if not metadata_fields:
            return error_response(400, "No valid fields to update")

        logger.info(f"Updating book {book_id} fields: {list(metadata_fields.keys())}")

        try:
            response = config.books_table.get_item(Key={"id": book_id})
        except ClientError as e:
            logger.error(f"DynamoDB error: {str(e)}", exc_info=True)
            return error_response(500, str(e))

        current_book = response.get("Item")
        if not current_book:
            logger.warning(f"Book not found: {book_id}")
            return error_response(404, "Book not found")

        if "title" in metadata_fields or "subject" in metadata_fields:
            metadata_fields["keywords"] = derive_keywords(
                metadata_fields.get("title", current_book.get("title")),
                metadata_fields["subject"] if "subject" in metadata_fields else current_book.get("subject"),
            )

        update_params = build_update_params(
            key={"id": book_id},
            fields=metadata_fields,
            allow_remove=True,
            condition_expression="attribute_exists(id)",
            return_values="ALL_NEW",
        )

        try:
            updated_book = config.books_table.update_item(**update_params)["Attributes"]
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":  # type: ignore[typeddict-item]
                logger.warning(f"Book not found during update: {book_id}")
                return error_response(404, "Book not found")
            raise

        try:
            record_change(book_id, auth.user_id, ChangeAction.UPDATE, metadata_fields)
        except ClientError as e:
            logger.error(f"Error recording update of book {book_id}: {str(e)}", exc_info=True)

        return api_response(200, serialize_book_response(updated_book))

    except Exception as e:
        logger.error(f"Error updating book: {str(e)}", exc_info=True)
        return error_response(500, str(e))
