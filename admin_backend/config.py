"""
Configuration and AWS client initialization for Library Admin Lambda handlers

This module provides:
- AWS service clients (S3, DynamoDB, Cognito)
- Environment variable configuration
- Constants used across handlers
"""

from __future__ import annotations

import functools
import os
from typing import TYPE_CHECKING

import boto3
from botocore.config import Config

if TYPE_CHECKING:
    from mypy_boto3_cognito_idp.client import CognitoIdentityProviderClient
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table
    from mypy_boto3_s3.client import S3Client

# Constants
SIGNED_URL_EXPIRY_SECONDS = 86400  # 24 hours for signed file URLs
MAX_STRING_LENGTH = 500  # Maximum length for string fields
MAX_DESCRIPTION_LENGTH = 5000
PAGE_SIZE = 10  # Dashboard listing page size
PDF_CONTENT_TYPE = "application/pdf"
COVER_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp")

REGION = os.environ.get("AWS_REGION", "us-east-2")

# Initialize AWS clients with type hints
s3_client: "S3Client" = boto3.client(
    "s3",
    region_name=REGION,
    endpoint_url=f"https://s3.{REGION}.amazonaws.com",
    config=Config(signature_version="s3v4"),
)
dynamodb: "DynamoDBServiceResource" = boto3.resource("dynamodb", region_name=REGION)
cognito_client: "CognitoIdentityProviderClient" = boto3.client("cognito-idp", region_name=REGION)


@functools.cache
def cognito_client_for(region: str) -> "CognitoIdentityProviderClient":
    """Cognito client pinned to a user pool region, created once per container.

    Lambda@Edge runs in the replica region nearest the viewer and has no
    environment variables, so the route guard cannot rely on REGION.
    """
    return boto3.client("cognito-idp", region_name=region)


# Environment configuration
BUCKET_NAME = os.environ.get("BUCKET_NAME", "YOUR_BUCKET")
BOOKS_PREFIX = os.environ.get("BOOKS_PREFIX", "books/")
BOOKS_TABLE_NAME = os.environ.get("BOOKS_TABLE")
PROFILES_TABLE_NAME = os.environ.get("PROFILES_TABLE")
BOOK_CHANGES_TABLE_NAME = os.environ.get("BOOK_CHANGES_TABLE")
USER_POOL_ID = os.environ.get("USER_POOL_ID")
USER_POOL_CLIENT_ID = os.environ.get("USER_POOL_CLIENT_ID")
MAX_UPLOAD_BYTES = int(os.environ.get("UPLOAD_MAX_BYTES", str(100 * 1024 * 1024)))  # 100MB
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]

# Route guard
SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "library_admin_session")
LOGIN_PATH = "/login"
DASHBOARD_PATH = "/dashboard"
PROTECTED_PATHS = ("/dashboard", "/books", "/settings", "/analytics")

# Initialize DynamoDB tables
# For type checking: treat as non-None (tests will mock these)
# For production: Lambda environment must have these env vars set
if BOOKS_TABLE_NAME:
    books_table: "Table" = dynamodb.Table(BOOKS_TABLE_NAME)
else:
    books_table = None  # type: ignore[assignment]

if PROFILES_TABLE_NAME:
    profiles_table: "Table" = dynamodb.Table(PROFILES_TABLE_NAME)
else:
    profiles_table = None  # type: ignore[assignment]

if BOOK_CHANGES_TABLE_NAME:
    book_changes_table: "Table" = dynamodb.Table(BOOK_CHANGES_TABLE_NAME)
else:
    book_changes_table = None  # type: ignore[assignment]
