"""
Lambda handlers for admin account settings (list, invite, remove admins)
"""

from __future__ import annotations

import logging

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from admin_backend import config
from admin_backend.utils.audit import utc_timestamp
from admin_backend.utils.auth import Role, get_profile, require_admin
from admin_backend.utils.dynamodb import build_update_params, scan_all
from admin_backend.utils.response import api_response, cors_enabled, error_response
from admin_backend.utils.validation import get_path_param, parse_json_body, validate_string_field

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def _cognito_user_id(attributes: list[dict], username: str) -> str:
    """The sub attribute of a Cognito user, falling back to the username."""
    values = {attr["Name"]: attr["Value"] for attr in attributes}
    return values.get("sub") or username


def _serialize_profile(profile: dict) -> dict:
    return {
        "id": profile.get("id"),
        "full_name": profile.get("full_name"),
        "role": profile.get("role"),
        "created_at": profile.get("created_at"),
    }


@cors_enabled
def list_admins_handler(event, context):
    """
    Lambda handler listing every admin profile, newest first.
    """
    logger.info("list_admins_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        profiles = scan_all(
            config.profiles_table, FilterExpression=Attr("role").eq(Role.ADMIN.value)
        )
        profiles.sort(key=lambda profile: profile.get("created_at") or "", reverse=True)

        return api_response(200, {"admins": [_serialize_profile(p) for p in profiles]})

    except Exception as e:
        logger.error(f"Error listing admins: {str(e)}", exc_info=True)
        return error_response(500, str(e))


@cors_enabled
def invite_admin_handler(event, context):
    """
    Lambda handler to invite a new admin by email.

    Creates the Cognito user (Cognito emails the temporary password) and
    an admin Profile for them. An email that already has a Cognito account
    gets its Profile promoted to admin instead (409 only if it already is one).

    Expects JSON body with:
    - email: (required) address to invite
    - full_name: (optional) display name
    """
    logger.info("invite_admin_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        body, error = parse_json_body(event)
        if error:
            return error

        error = validate_string_field(body, "email", max_length=320, required=True)
        if error:
            return error
        error = validate_string_field(body, "full_name", max_length=config.MAX_STRING_LENGTH)
        if error:
            return error

        email = body["email"].strip().lower()
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            return error_response(400, "A valid email address is required")

        logger.info(f"Admin {auth.user_id} inviting {email}")

        existing_profile = None
        try:
            response = config.cognito_client.admin_create_user(
                UserPoolId=config.USER_POOL_ID,
                Username=email,
                UserAttributes=[
                    {"Name": "email", "Value": email},
                    {"Name": "email_verified", "Value": "true"},
                ],
                DesiredDeliveryMediums=["EMAIL"],
            )
            user_id = _cognito_user_id(
                response["User"].get("Attributes", []), response["User"]["Username"]
            )
        except ClientError as e:
            if e.response["Error"]["Code"] != "UsernameExistsException":  # type: ignore[typeddict-item]
                raise
            # Existing account, or an earlier invite whose profile write failed
            response = config.cognito_client.admin_get_user(
                UserPoolId=config.USER_POOL_ID, Username=email
            )
            user_id = _cognito_user_id(response.get("UserAttributes", []), response["Username"])
            existing_profile = get_profile(user_id)
            if Role.parse((existing_profile or {}).get("role")) is Role.ADMIN:
                logger.warning(f"Invite for existing admin: {email}")
                return error_response(409, "This user is already an admin")
            logger.info(f"Invite for existing user {email}, promoting profile {user_id}")

        full_name = (body.get("full_name") or "").strip() or None
        profile = {**(existing_profile or {}), "id": user_id, "role": Role.ADMIN.value}
        if full_name or "full_name" not in profile:
            profile["full_name"] = full_name
        profile.setdefault("created_at", utc_timestamp())

        config.profiles_table.put_item(Item=profile)
        logger.info(f"Stored admin profile {user_id} for {email}")

        return api_response(200, {"success": True, "profile": _serialize_profile(profile)})

    except Exception as e:
        logger.error(f"Error inviting admin: {str(e)}", exc_info=True)
        return error_response(500, str(e))


@cors_enabled
def remove_admin_handler(event, context):
    """
    Lambda handler that demotes an admin to a regular user.
    Expects profile ID in path parameter 'id'. Admins cannot demote themselves.
    """
    logger.info("remove_admin_handler invoked")

    try:
        auth, error = require_admin(event)
        if error:
            return error

        profile_id, error = get_path_param(event, "id")
        if error:
            return error

        if profile_id == auth.user_id:
            logger.warning(f"Admin {auth.user_id} attempted to remove their own admin role")
            return error_response(400, "You cannot remove your own admin role")

        update_params = build_update_params(
            key={"id": profile_id},
            fields={"role": Role.USER.value},
            condition_expression="attribute_exists(id)",
            return_values="ALL_NEW",
        )

        try:
            updated = config.profiles_table.update_item(**update_params)["Attributes"]
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":  # type: ignore[typeddict-item]
                logger.warning(f"Profile not found: {profile_id}")
                return error_response(404, "Profile not found")
            raise

        logger.info(f"Admin {auth.user_id} removed admin role from {profile_id}")
        return api_response(200, {"success": True, "profile": _serialize_profile(updated)})

    except Exception as e:
        logger.error(f"Error removing admin: {str(e)}", exc_info=True)
        return error_response(500, str(e))
