"""
Lambda handlers for the School Library Admin API

This module serves as the entry point for all Lambda functions.
It re-exports handlers from their respective modules for Lambda function configuration.

Architecture:
- API Gateway -> Lambda -> DynamoDB (Books, Profiles, BookChanges)
- API Gateway -> Lambda -> S3 (book PDFs and cover images, signed URLs)
- API Gateway -> Lambda -> Cognito (access token validation, sign-in)
- CloudFront viewer request -> Lambda@Edge (route guard for admin pages)

Handlers:
1. upload_handler: Uploads PDF/cover, creates the book and its audit entry (admin only)
2. delete_book_handler: Removes stored files and the book, writes audit entry (admin only)
3. update_book_handler: Edits book metadata, writes audit entry (admin only)
4. list_books_handler: Paginated, filtered dashboard listing (admin only)
5. get_book_handler: Single book metadata (admin only)
6. analytics_handler: Library statistics (admin only)
7. list_admins_handler / invite_admin_handler / remove_admin_handler: Admin accounts
8. login_handler / session_handler / refresh_session_handler / logout_handler: Sessions
9. route_guard_handler: Redirects page navigations based on the session cookie
"""

from admin_backend.config import book_changes_table, books_table, cognito_client, profiles_table, s3_client
from admin_backend.handlers.admin_handlers import delete_book_handler, update_book_handler, upload_handler
from admin_backend.handlers.book_handlers import analytics_handler, get_book_handler, list_books_handler
from admin_backend.handlers.session_handlers import (
    login_handler,
    logout_handler,
    refresh_session_handler,
    route_guard_handler,
    session_handler,
)
from admin_backend.handlers.settings_handlers import (
    invite_admin_handler,
    list_admins_handler,
    remove_admin_handler,
)

# Make handlers available at module level for Lambda
__all__ = [
    "upload_handler",
    "delete_book_handler",
    "update_book_handler",
    "list_books_handler",
    "get_book_handler",
    "analytics_handler",
    "list_admins_handler",
    "invite_admin_handler",
    "remove_admin_handler",
    "login_handler",
    "session_handler",
    "refresh_session_handler",
    "logout_handler",
    "route_guard_handler",
    # Also export config for tests
    "books_table",
    "profiles_table",
    "book_changes_table",
    "s3_client",
    "cognito_client",
]
