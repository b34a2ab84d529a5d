"""
Lambda handlers for admin sessions (login, session info, refresh, logout)
and the CloudFront route guard.

The session cookie holds the Cognito access token. The route guard runs as
a Lambda@Edge viewer-request function in front of the admin panel pages.
"""

from __future__ import annotations

import logging

from botocore.exceptions import ClientError

from admin_backend import config
from admin_backend.utils.auth import (
    authenticate,
    authenticate_token,
    get_bearer_token,
    resolve_user,
    token_region,
)
from admin_backend.utils.response import api_response, cors_enabled, error_response
from admin_backend.utils.routes import (
    clear_session_cookie,
    get_cookie,
    is_protected,
    resolve_route,
    session_cookie,
)
from admin_backend.utils.validation import parse_json_body, validate_string_field

logger = logging.getLogger()
logger.setLevel(logging.INFO)

INVALID_CREDENTIAL_CODES = ("NotAuthorizedException", "UserNotFoundException")


def _session_payload(auth, tokens: dict | None = None) -> dict:
    payload = {
        "user": {"id": auth.user_id, "email": auth.email},
        "profile": auth.profile or None,
        "isAdmin": auth.is_admin,
    }
    if tokens:
        payload["accessToken"] = tokens["AccessToken"]
        payload["expiresIn"] = tokens.get("ExpiresIn")
        if tokens.get("RefreshToken"):
            payload["refreshToken"] = tokens["RefreshToken"]
    return payload


def _start_session(tokens: dict) -> dict:
    """Build the response for freshly issued Cognito tokens, admins only."""
    auth, error = authenticate_token(tokens["AccessToken"])
    if error:
        return error

    if not auth.is_admin:
        logger.warning(f"Non-admin user {auth.user_id} attempted to sign in")
        try:
            config.cognito_client.global_sign_out(AccessToken=tokens["AccessToken"])
        except ClientError as e:
            logger.error(f"Error revoking tokens of {auth.user_id}: {str(e)}", exc_info=True)
        return error_response(403, "Unauthorized - admin role required")

    cookie = session_cookie(tokens["AccessToken"], int(tokens.get("ExpiresIn", 3600)))
    return api_response(200, _session_payload(auth, tokens), headers={"Set-Cookie": cookie})


@cors_enabled
def login_handler(event, context):
    """
    Lambda handler to sign an admin in with email and password.

    Expects JSON body with:
    - email: account email
    - password: account password

    Sets the session cookie and returns tokens plus the admin profile.
    """
    logger.info("login_handler invoked")

    try:
        body, error = parse_json_body(event)
        if error:
            return error

        for field in ("email", "password"):
            error = validate_string_field(body, field, max_length=320, required=True)
            if error:
                return error

        email = body["email"].strip().lower()

        try:
            response = config.cognito_client.initiate_auth(
                ClientId=config.USER_POOL_CLIENT_ID,
                AuthFlow="USER_PASSWORD_AUTH",
                AuthParameters={"USERNAME": email, "PASSWORD": body["password"]},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] in INVALID_CREDENTIAL_CODES:  # type: ignore[typeddict-item]
                logger.warning(f"Failed sign-in for {email}")
                return error_response(401, "Invalid email or password")
            raise

        if "AuthenticationResult" not in response:
            challenge = response.get("ChallengeName", "UNKNOWN")
            logger.info(f"Sign-in for {email} requires challenge {challenge}")
            return error_response(409, f"Sign-in challenge required: {challenge}")

        return _start_session(response["AuthenticationResult"])

    except Exception as e:
        logger.error(f"Error signing in: {str(e)}", exc_info=True)
        return error_response(500, str(e))


@cors_enabled
def session_handler(event, context):
    """
    Lambda handler returning the current user and profile for a bearer token.
    """
    logger.info("session_handler invoked")

    try:
        auth, error = authenticate(event)
        if error:
            return error
        return api_response(200, _session_payload(auth))

    except Exception as e:
        logger.error(f"Error loading session: {str(e)}", exc_info=True)
        return error_response(500, str(e))


@cors_enabled
def refresh_session_handler(event, context):
    """
    Lambda handler exchanging a refresh token for a new access token.

    Expects JSON body with:
    - refresh_token: Cognito refresh token
    """
    logger.info("refresh_session_handler invoked")

    try:
        body, error = parse_json_body(event)
        if error:
            return error

        error = validate_string_field(body, "refresh_token", max_length=4096, required=True)
        if error:
            return error

        try:
            response = config.cognito_client.initiate_auth(
                ClientId=config.USER_POOL_CLIENT_ID,
                AuthFlow="REFRESH_TOKEN_AUTH",
                AuthParameters={"REFRESH_TOKEN": body["refresh_token"]},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] in INVALID_CREDENTIAL_CODES:  # type: ignore[typeddict-item]
                logger.warning("Rejected refresh token")
                return error_response(401, "Invalid refresh token")
            raise

        return _start_session(response["AuthenticationResult"])

    except Exception as e:
        logger.error(f"Error refreshing session: {str(e)}", exc_info=True)
        return error_response(500, str(e))


@cors_enabled
def logout_handler(event, context):
    """
    Lambda handler that revokes the caller's tokens and clears the session cookie.
    Always clears the cookie, even when the token was already invalid.
    """
    logger.info("logout_handler invoked")

    try:
        token = get_bearer_token(event)
        if token:
            try:
                config.cognito_client.global_sign_out(AccessToken=token)
            except ClientError as e:
                logger.warning(f"Sign-out with invalid token: {str(e)}")

        return api_response(
            200, {"success": True}, headers={"Set-Cookie": clear_session_cookie()}
        )

    except Exception as e:
        logger.error(f"Error signing out: {str(e)}", exc_info=True)
        return error_response(500, str(e))


def _cookie_header(request: dict) -> str | None:
    # CloudFront headers are lower-cased keys mapping to lists of {key, value}
    entries = request.get("headers", {}).get("cookie", [])
    if not entries:
        return None
    return "; ".join(entry["value"] for entry in entries)


def _has_session(request: dict) -> bool:
    token = get_cookie(_cookie_header(request), config.SESSION_COOKIE_NAME)
    if not token:
        return False

    region = token_region(token)
    if not region:
        logger.warning("Session cookie is not a Cognito access token")
        return False

    try:
        return resolve_user(token, config.cognito_client_for(region)) is not None
    except ClientError as e:
        logger.error(f"Error validating session cookie: {str(e)}")
        return False


def route_guard_handler(event, context):
    """
    Lambda@Edge viewer-request handler guarding the admin panel pages.

    Protected pages without a valid session redirect to /login, and /login
    with a valid session redirects to /dashboard. Anything else passes
    through unchanged.
    """
    request = event["Records"][0]["cf"]["request"]
    pathname = request.get("uri", "/")

    if not is_protected(pathname) and pathname != config.LOGIN_PATH:
        return request

    decision = resolve_route(pathname, _has_session(request))
    if decision.allowed:
        return request

    logger.info(f"Redirecting {pathname} to {decision.location}")
    return {
        "status": "302",
        "statusDescription": "Found",
        "headers": {
            "location": [{"key": "Location", "value": decision.location}],
            "cache-control": [{"key": "Cache-Control", "value": "no-store"}],
        },
    }
