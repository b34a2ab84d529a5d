"""
Request validation utilities for Library Admin API

Provides functions to validate and extract data from API Gateway events,
including multipart/form-data bodies carrying PDF and cover uploads.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from email import policy
from email.parser import BytesParser
from urllib.parse import unquote

from admin_backend import config
from admin_backend.utils.response import error_response

logger = logging.getLogger()


@dataclass
class UploadedFile:
    """A file part from a multipart/form-data request."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def get_header(event: dict, name: str) -> str | None:
    """Case-insensitive header lookup on an API Gateway event."""
    headers = event.get("headers") or {}
    for header_name, value in headers.items():
        if header_name.lower() == name.lower():
            return value
    return None


def get_path_param(event: dict, param: str) -> tuple[str | None, dict | None]:
    """
    Extract and URL-decode a path parameter from API Gateway event.

    Args:
        event: API Gateway event
        param: Parameter name to extract

    Returns:
        tuple: (decoded_value, error_response) - If successful, error_response is None
    """
    path_params = event.get("pathParameters") or {}
    if param not in path_params or not path_params[param]:
        logger.warning(f"Missing {param} in path parameters")
        return None, error_response(400, f"{param} is required in path")
    return unquote(path_params[param]), None


def get_query_params(event: dict) -> dict[str, str]:
    """Return the query string parameters of an API Gateway event (never None)."""
    return event.get("queryStringParameters") or {}


def _raw_body(event: dict) -> bytes:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body)
    if isinstance(body, bytes):
        return body
    return body.encode("utf-8")


def parse_json_body(event: dict) -> tuple[dict, dict | None]:
    """
    Parse JSON body from API Gateway event.

    Args:
        event: API Gateway event

    Returns:
        tuple: (parsed_body, error_response) - If successful, error_response is None
               If error, parsed_body is empty dict (caller should check error first)
    """
    try:
        body = json.loads(_raw_body(event) or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError, binascii.Error):
        logger.warning("Invalid JSON in request body")
        return {}, error_response(400, "Invalid JSON in request body")

    if not isinstance(body, dict):
        logger.warning("JSON request body is not an object")
        return {}, error_response(400, "Request body must be a JSON object")
    return body, None


def parse_multipart_form(
    event: dict,
) -> tuple[dict[str, str], dict[str, UploadedFile], dict | None]:
    """
    Parse a multipart/form-data body from API Gateway event.

    API Gateway delivers binary bodies base64-encoded, so the body is
    decoded first and then handed to the email parser together with the
    request's Content-Type (which carries the boundary).

    Args:
        event: API Gateway event

    Returns:
        tuple: (fields, files, error_response) - If successful, error_response is None
    """
    content_type = get_header(event, "Content-Type") or ""
    if "multipart/form-data" not in content_type.lower():
        logger.warning(f"Unexpected content type for upload: {content_type}")
        return {}, {}, error_response(400, "Expected multipart/form-data body")

    try:
        raw = _raw_body(event)
    except binascii.Error:
        logger.warning("Invalid base64 request body")
        return {}, {}, error_response(400, "Malformed multipart body")

    header = f"Content-Type: {content_type}\r\n\r\n".encode("utf-8")
    message = BytesParser(policy=policy.HTTP).parsebytes(header + raw)
    if not message.is_multipart():
        logger.warning("Multipart body could not be parsed")
        return {}, {}, error_response(400, "Malformed multipart body")

    fields: dict[str, str] = {}
    files: dict[str, UploadedFile] = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue

        payload = part.get_payload(decode=True) or b""
        filename = part.get_filename()
        if filename is not None:
            # Browsers send an empty file part when no file was chosen
            if not filename and not payload:
                continue
            files[name] = UploadedFile(
                filename=os.path.basename(filename.replace("\\", "/")),
                content_type=part.get_content_type(),
                data=payload,
            )
        else:
            fields[name] = payload.decode(part.get_content_charset() or "utf-8", errors="replace")

    return fields, files, None


def validate_upload_files(pdf: UploadedFile | None, cover: UploadedFile | None) -> dict | None:
    """
    Validate the PDF and optional cover image of an upload.

    Size limits are checked before content types, each file independently.

    Returns:
        dict: Error response if validation fails, None if valid
    """
    if pdf.size > config.MAX_UPLOAD_BYTES:
        logger.warning(f"PDF too large: {pdf.size} bytes")
        return error_response(400, "PDF file too large")

    if cover and cover.size > config.MAX_UPLOAD_BYTES:
        logger.warning(f"Cover image too large: {cover.size} bytes")
        return error_response(400, "Cover image too large")

    if pdf.content_type != config.PDF_CONTENT_TYPE:
        logger.warning(f"Invalid PDF content type: {pdf.content_type}")
        return error_response(400, "Invalid file type for PDF")

    if cover and cover.content_type not in config.COVER_CONTENT_TYPES:
        logger.warning(f"Invalid cover content type: {cover.content_type}")
        return error_response(400, "Invalid file type for cover image")

    return None


def validate_string_field(
    body: dict, field: str, max_length: int = 500, required: bool = False
) -> dict | None:
    """
    Validate a string field in request body.

    Args:
        body: Request body dictionary
        field: Field name to validate
        max_length: Maximum allowed length
        required: Whether the field is required

    Returns:
        dict: Error response if validation fails, None if valid
    """
    if field not in body:
        if required:
            return error_response(400, f'Field "{field}" is required')
        return None

    value = body[field]
    if value is None and not required:
        return None

    if not isinstance(value, str):
        return error_response(400, f'Field "{field}" must be a string')

    if len(value) > max_length:
        return error_response(400, f'Field "{field}" exceeds maximum length of {max_length}')

    if required and not value.strip():
        return error_response(400, f'Field "{field}" cannot be empty')

    return None


def validate_boolean_field(body: dict, field: str) -> dict | None:
    """
    Validate a boolean field in request body.

    Args:
        body: Request body dictionary
        field: Field name to validate

    Returns:
        dict: Error response if validation fails, None if valid
    """
    if field in body and not isinstance(body[field], bool):
        return error_response(400, f'Field "{field}" must be a boolean')
    return None
