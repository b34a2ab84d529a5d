"""
Pytest configuration for E2E tests against a deployed admin API.

Uses Playwright's API request context (from pytest-playwright) so no
browser needs to be installed.

Environment variables:
    API_URL: API Gateway stage URL (e.g. https://abc.execute-api.us-east-2.amazonaws.com/Prod)
    ADMIN_SITE_URL: CloudFront URL of the admin panel (route guard tests)
    TEST_ADMIN_EMAIL / TEST_ADMIN_PASSWORD: credentials of an admin account
"""

import os

import pytest

from tests.e2e.routes import LOGIN_ROUTE


@pytest.fixture(scope="session")
def api_url():
    """API URL for the backend."""
    url = os.getenv("API_URL")
    if not url:
        pytest.skip("API_URL not provided. Set API_URL to run API E2E tests.")
    return url.rstrip("/") + "/"


@pytest.fixture(scope="session")
def admin_site_url():
    """Admin panel URL served through CloudFront."""
    url = os.getenv("ADMIN_SITE_URL")
    if not url:
        pytest.skip("ADMIN_SITE_URL not provided. Set ADMIN_SITE_URL to run route guard tests.")
    return url.rstrip("/")


@pytest.fixture(scope="session")
def admin_credentials():
    """Admin user credentials from environment variables."""
    email = os.getenv("TEST_ADMIN_EMAIL")
    password = os.getenv("TEST_ADMIN_PASSWORD")

    if not email or not password:
        pytest.skip(
            "Admin credentials not provided. Set TEST_ADMIN_EMAIL and TEST_ADMIN_PASSWORD environment variables."
        )

    return {"email": email, "password": password}


@pytest.fixture(scope="session")
def api(api_url, playwright):
    """Playwright API request context bound to the API URL."""
    context = playwright.request.new_context(base_url=api_url)
    yield context
    context.dispose()


@pytest.fixture(scope="session")
def admin_session(admin_credentials, api):
    """Sign in once and return the login response body (tokens + profile)."""
    response = api.post(LOGIN_ROUTE, data=admin_credentials)
    assert response.status == 200, response.text()
    return response.json()


@pytest.fixture(scope="session")
def auth_headers(admin_session):
    """Authorization header for the signed-in admin."""
    return {"Authorization": f"Bearer {admin_session['accessToken']}"}


@pytest.fixture
def site(admin_site_url, playwright):
    """Request context for the admin panel that does not follow redirects."""
    context = playwright.request.new_context(base_url=admin_site_url)
    yield context
    context.dispose()
