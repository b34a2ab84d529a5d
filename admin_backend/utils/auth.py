"""
Authentication and authorization utilities for Library Admin API

Resolves the caller's bearer token through Cognito, loads their Profile
from DynamoDB and checks the admin capability. Every handler that touches
books, storage or profiles goes through require_admin.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from botocore.exceptions import ClientError

from admin_backend import config
from admin_backend.utils.response import error_response
from admin_backend.utils.validation import get_header

logger = logging.getLogger()

INVALID_TOKEN_CODES = ("NotAuthorizedException", "UserNotFoundException")
COGNITO_ISSUER = re.compile(r"^https://cognito-idp\.([a-z0-9-]+)\.amazonaws\.com/[^/]+$")


class Role(Enum):
    ADMIN = "admin"
    USER = "user"

    @classmethod
    def parse(cls, value: object) -> "Role | None":
        """Map a stored role string to a Role, or None for anything unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


def can_manage_library(role: Role | None) -> bool:
    """Return True if the role may perform admin operations."""
    match role:
        case Role.ADMIN:
            return True
        case Role.USER | None:
            return False


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller for a single request."""

    user_id: str
    email: str | None
    role: Role | None
    profile: dict = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return can_manage_library(self.role)


def get_bearer_token(event: dict) -> str | None:
    """
    Extract the bearer token from the Authorization header.

    Args:
        event: API Gateway event

    Returns:
        str: The token (may be empty), or None if there is no Authorization header
    """
    auth_header = get_header(event, "Authorization")
    if auth_header is None:
        return None
    return auth_header.replace("Bearer ", "", 1).strip()


def token_region(token: str) -> str | None:
    """
    Read the user pool region from the iss claim of a Cognito JWT.

    The signature is not checked here; Cognito validates the token in
    resolve_user.

    Returns:
        str: Region such as "us-east-2", or None if the token is not a Cognito JWT
    """
    try:
        payload = token.split(".")[1]
        claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
    except (IndexError, ValueError):
        return None

    if not isinstance(claims, dict):
        return None
    match = COGNITO_ISSUER.match(str(claims.get("iss", "")))
    return match.group(1) if match else None


def resolve_user(token: str, client=None) -> tuple[str, str | None] | None:
    """
    Resolve a Cognito access token to the user's identity.

    Args:
        token: Cognito access token
        client: Cognito client to ask (default: config.cognito_client)

    Returns:
        tuple: (user_id, email), or None if the token is invalid or expired

    Raises:
        ClientError: For Cognito failures other than an invalid token
    """
    if not token:
        return None

    try:
        response = (client or config.cognito_client).get_user(AccessToken=token)
    except ClientError as e:
        if e.response["Error"]["Code"] in INVALID_TOKEN_CODES:  # type: ignore[typeddict-item]
            logger.warning(f"Rejected access token: {e.response['Error']['Code']}")  # type: ignore[typeddict-item]
            return None
        raise

    attributes = {attr["Name"]: attr["Value"] for attr in response.get("UserAttributes", [])}
    user_id = attributes.get("sub") or response.get("Username")
    if not user_id:
        return None
    return user_id, attributes.get("email")


def get_profile(user_id: str) -> dict | None:
    """
    Load a Profile row by user ID.

    Args:
        user_id: Cognito sub

    Returns:
        dict: The profile item, or None if it does not exist
    """
    response = config.profiles_table.get_item(Key={"id": user_id})
    return response.get("Item")


def authenticate(event: dict) -> tuple[AuthContext | None, dict | None]:
    """
    Resolve the caller of an API Gateway event into an AuthContext.

    Args:
        event: API Gateway event

    Returns:
        tuple: (auth_context, error_response) - If successful, error_response is None
    """
    token = get_bearer_token(event)
    if token is None:
        logger.warning("Request without authorization header")
        return None, error_response(401, "No authorization header")

    return authenticate_token(token)


def authenticate_token(token: str) -> tuple[AuthContext | None, dict | None]:
    """
    Resolve an access token into an AuthContext.

    Returns:
        tuple: (auth_context, error_response) - If successful, error_response is None
    """
    user = resolve_user(token)
    if not user:
        return None, error_response(401, "Invalid token")

    user_id, email = user

    try:
        profile = get_profile(user_id)
    except ClientError as e:
        logger.error(f"Error loading profile for {user_id}: {str(e)}", exc_info=True)
        profile = None

    role = Role.parse(profile.get("role")) if profile else None
    return AuthContext(user_id=user_id, email=email, role=role, profile=profile or {}), None


def require_admin(event: dict) -> tuple[AuthContext | None, dict | None]:
    """
    Check that the caller holds a valid token and an admin profile.

    Shared by every handler that mutates books, storage or profiles.

    Args:
        event: API Gateway event with Authorization header

    Returns:
        tuple: (auth_context, error_response) - If successful, error_response is None
    """
    auth, error = authenticate(event)
    if error:
        return None, error

    if not auth.is_admin:
        logger.warning(f"Non-admin user {auth.user_id} attempted an admin operation")
        return None, error_response(403, "Unauthorized - admin role required")

    return auth, None
