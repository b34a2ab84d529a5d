#!/usr/bin/env python3
"""
Grant the admin role to an existing Cognito user.

Bootstraps the first admin of a fresh deployment (invites can only be
sent by an existing admin).

This script:
1. Looks up the Cognito user by email to get their sub
2. Creates or updates their Profile with role = admin

Usage:
    python3 scripts/promote-admin.py admin@school.example --name "Jane Smith"
    python3 scripts/promote-admin.py admin@school.example --dry-run

Environment variables:
    AWS_REGION: AWS region (default: us-east-2)
    USER_POOL_ID: Cognito user pool ID (required)
    PROFILES_TABLE: DynamoDB profiles table name (default: Profiles)
"""

import argparse
import os
import sys
from datetime import UTC, datetime

import boto3
from botocore.exceptions import ClientError

# Configuration
REGION = os.environ.get("AWS_REGION", "us-east-2")
USER_POOL_ID = os.environ.get("USER_POOL_ID")
TABLE_NAME = os.environ.get("PROFILES_TABLE", "Profiles")


def find_user_sub(cognito, email: str) -> str | None:
    """Return the Cognito sub for an email address, or None if no such user."""
    try:
        response = cognito.admin_get_user(UserPoolId=USER_POOL_ID, Username=email)
    except ClientError as e:
        if e.response["Error"]["Code"] == "UserNotFoundException":
            return None
        raise

    for attr in response.get("UserAttributes", []):
        if attr["Name"] == "sub":
            return attr["Value"]
    return None


def promote_admin(email: str, full_name: str | None = None, dry_run: bool = False, profile: str | None = None):
    """Set the Profile of the Cognito user with this email to role admin."""
    session = boto3.Session(profile_name=profile, region_name=REGION)
    cognito = session.client("cognito-idp")
    table = session.resource("dynamodb").Table(TABLE_NAME)

    print("=" * 60)
    print("🔑 Promote Admin")
    print("=" * 60)
    print(f"Region: {REGION}")
    print(f"User pool: {USER_POOL_ID}")
    print(f"Table: {TABLE_NAME}")
    if dry_run:
        print("Mode: DRY RUN (no changes will be made)")
    print()

    print(f"🔍 Looking up {email}...")
    user_id = find_user_sub(cognito, email)
    if not user_id:
        print(f"❌ No Cognito user found for {email}")
        return False

    print(f"  Found user: {user_id}")

    if dry_run:
        print(f"  [DRY RUN] Would set role=admin on profile {user_id}")
        return True

    update_expression = "SET #role = :role, created_at = if_not_exists(created_at, :now)"
    values = {":role": "admin", ":now": datetime.now(UTC).isoformat().replace("+00:00", "Z")}
    if full_name:
        update_expression += ", full_name = :name"
        values[":name"] = full_name

    table.update_item(
        Key={"id": user_id},
        UpdateExpression=update_expression,
        ExpressionAttributeNames={"#role": "role"},
        ExpressionAttributeValues=values,
    )

    print(f"✅ {email} is now an admin")
    return True


def main():
    parser = argparse.ArgumentParser(
        description="Grant the admin role to an existing Cognito user"
    )
    parser.add_argument("email", help="Email address of the Cognito user")
    parser.add_argument("--name", type=str, help="Full name to store on the profile")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be updated without making changes",
    )
    parser.add_argument(
        "--profile",
        type=str,
        help="AWS profile name to use",
    )

    args = parser.parse_args()

    if not USER_POOL_ID:
        print("❌ USER_POOL_ID environment variable is required")
        sys.exit(2)

    try:
        ok = promote_admin(
            args.email.strip().lower(),
            full_name=(args.name or "").strip() or None,
            dry_run=args.dry_run,
            profile=args.profile,
        )
    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n\n❌ Error: {e}")
        sys.exit(1)

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
