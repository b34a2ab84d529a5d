"""
Unit tests for utility modules
"""

import base64
import json
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import Mock, patch

import fitz
import pytest
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from admin_backend import config
from admin_backend.utils.analytics import compute_analytics
from admin_backend.utils.auth import (
    Role,
    can_manage_library,
    get_bearer_token,
    require_admin,
    token_region,
)
from admin_backend.utils.dynamodb import build_update_expression, build_update_params, scan_all
from admin_backend.utils.metadata import count_pdf_pages, derive_keywords
from admin_backend.utils.query import BookQuery, build_book_query, run_book_query
from admin_backend.utils.response import convert_decimals, cors_headers, serialize_book_response
from admin_backend.utils.routes import get_cookie, is_protected, resolve_route
from admin_backend.utils.storage import delete_book_files, list_book_files
from admin_backend.utils.validation import (
    UploadedFile,
    parse_multipart_form,
    validate_upload_files,
)


def make_pdf(pages: int) -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page()
    data = doc.tobytes()
    doc.close()
    return data


# ============================================================================
# Keyword and Page Count Tests
# ============================================================================


def test_derive_keywords_union_of_title_and_subject():
    """Test keywords are lower-cased words longer than two characters from title and subject"""

    keywords = derive_keywords("Intro to Algebra", "Math Algebra")

    assert keywords == ["intro", "algebra", "math"]


def test_derive_keywords_drops_short_words():
    """Test words of two characters or fewer are not keywords"""

    assert derive_keywords("An Ox is at Sea", None) == ["sea"]


def test_derive_keywords_deduplicates_case_insensitively():
    """Test the same word in different cases appears once"""

    assert derive_keywords("Physics PHYSICS physics", "physics") == ["physics"]


def test_derive_keywords_handles_missing_text():
    """Test empty title and subject produce no keywords"""

    assert derive_keywords("", None) == []


def test_derive_keywords_ignores_extra_whitespace():
    """Test repeated spaces do not produce empty keywords"""

    assert derive_keywords("World   History", "  ") == ["world", "history"]


def test_count_pdf_pages_real_pdf():
    """Test page counting on a generated PDF"""

    assert count_pdf_pages(make_pdf(3)) == 3


def test_count_pdf_pages_unreadable_returns_none():
    """Test unreadable PDF data yields None instead of raising"""

    assert count_pdf_pages(b"this is not a pdf") is None


# ============================================================================
# Auth Tests
# ============================================================================


def test_role_parse_known_values():
    """Test stored role strings map to Role members"""

    assert Role.parse("admin") is Role.ADMIN
    assert Role.parse("user") is Role.USER


def test_role_parse_unknown_values():
    """Test unknown or mistyped role strings map to no role"""

    assert Role.parse("Admin") is None
    assert Role.parse("superuser") is None
    assert Role.parse(None) is None


def test_can_manage_library():
    """Test only the admin role may manage the library"""

    assert can_manage_library(Role.ADMIN) is True
    assert can_manage_library(Role.USER) is False
    assert can_manage_library(None) is False


def test_get_bearer_token_case_insensitive_header():
    """Test the Authorization header is found regardless of case"""

    assert get_bearer_token({"headers": {"authorization": "Bearer abc"}}) == "abc"
    assert get_bearer_token({"headers": {"Authorization": "Bearer abc"}}) == "abc"


def test_get_bearer_token_missing_header():
    """Test a missing Authorization header returns None"""

    assert get_bearer_token({"headers": {}}) is None
    assert get_bearer_token({}) is None


def jwt_with_claims(claims):
    def encode(part):
        return base64.urlsafe_b64encode(json.dumps(part).encode()).decode().rstrip("=")

    return f"{encode({'alg': 'RS256'})}.{encode(claims)}.sig"


def test_token_region_reads_cognito_issuer():
    """Test the pool region is taken from the iss claim"""

    token = jwt_with_claims({"iss": "https://cognito-idp.us-east-2.amazonaws.com/us-east-2_AbC123"})

    assert token_region(token) == "us-east-2"


def test_token_region_rejects_other_tokens():
    """Test tokens that are not Cognito JWTs have no region"""

    assert token_region("") is None
    assert token_region("opaque-session-value") is None
    assert token_region("header.@@@.sig") is None
    assert token_region(jwt_with_claims(["not", "a", "dict"])) is None
    assert token_region(jwt_with_claims({"sub": "user-1"})) is None
    spoofed = jwt_with_claims({"iss": "https://evil.example/cognito-idp.us-east-2.amazonaws.com/p"})
    assert token_region(spoofed) is None


def test_require_admin_profile_lookup_error_is_forbidden():
    """Test a failing profile lookup is treated as no admin role"""

    mock_get_user = Mock(return_value={
        "Username": "admin-user",
        "UserAttributes": [{"Name": "sub", "Value": "admin-user"}],
    })
    mock_profiles = Mock()
    mock_profiles.get_item.side_effect = ClientError(
        {"Error": {"Code": "InternalServerError"}}, "GetItem"
    )

    with (
        patch.object(config.cognito_client, "get_user", mock_get_user),
        patch.object(config, "profiles_table", mock_profiles),
    ):
        auth, error = require_admin({"headers": {"Authorization": "Bearer token"}})

    assert auth is None
    assert error["statusCode"] == 403


def test_require_admin_cognito_outage_raises():
    """Test Cognito errors other than an invalid token propagate"""

    mock_get_user = Mock(side_effect=ClientError(
        {"Error": {"Code": "InternalErrorException"}}, "GetUser"
    ))

    with patch.object(config.cognito_client, "get_user", mock_get_user):
        with pytest.raises(ClientError):
            require_admin({"headers": {"Authorization": "Bearer token"}})


# ============================================================================
# Query Tests
# ============================================================================


def test_build_book_query_defaults():
    """Test missing parameters produce an unfiltered first page"""

    query, error = build_book_query({})

    assert error is None
    assert query == BookQuery(search="", level="", subject="", page=1)
    assert query.offset == 0
    assert query.page_size == 10


def test_build_book_query_invalid_page():
    """Test non-numeric and non-positive pages are rejected"""

    _, error = build_book_query({"page": "abc"})
    assert error["statusCode"] == 400

    _, error = build_book_query({"page": "0"})
    assert error["statusCode"] == 400


def test_book_query_offset():
    """Test page 3 starts after the first twenty books"""

    assert BookQuery(page=3).offset == 20


def test_book_query_scan_kwargs_without_filters():
    """Test no FilterExpression is sent when no filters are selected"""

    assert BookQuery(search="math").scan_kwargs() == {}


def test_book_query_scan_kwargs_with_filters():
    """Test level and subject filters become one combined FilterExpression"""

    kwargs = BookQuery(level="Primary", subject="Science").scan_kwargs()

    assert kwargs["FilterExpression"] == (
        Attr("level").eq("Primary") & Attr("subject").eq("Science")
    )


def test_book_query_matches_title_or_author_case_insensitively():
    """Test search matches substrings of title or author in any case"""

    query = BookQuery(search="ALGEB")

    assert query.matches({"title": "Intro to Algebra", "author": None})
    assert BookQuery(search="smith").matches({"title": "Chemistry", "author": "Jane Smith"})
    assert not query.matches({"title": "Chemistry", "author": "Jane Smith"})


def test_run_book_query_orders_and_paginates():
    """Test results are newest first and sliced to the requested page"""

    items = [
        {"id": f"book-{i}", "title": f"Book {i}", "upload_date": f"2025-01-{i:02d}T00:00:00Z"}
        for i in range(1, 13)
    ]
    table = Mock()
    table.scan.return_value = {"Items": items}

    first = run_book_query(table, BookQuery(page=1))
    second = run_book_query(table, BookQuery(page=2))

    assert first["total"] == 12
    assert first["totalPages"] == 2
    assert [item["id"] for item in first["items"]][:2] == ["book-12", "book-11"]
    assert len(first["items"]) == 10
    assert [item["id"] for item in second["items"]] == ["book-2", "book-1"]


# ============================================================================
# Route Guard Tests
# ============================================================================


@pytest.mark.parametrize(
    "pathname, has_session, expected",
    [
        ("/dashboard", False, "/login"),
        ("/books/123/edit", False, "/login"),
        ("/analytics", False, "/login"),
        ("/settings", False, "/login"),
        ("/login", True, "/dashboard"),
    ],
)
def test_resolve_route_redirects(pathname, has_session, expected):
    """Test the redirect cases of the route guard"""

    decision = resolve_route(pathname, has_session)

    assert decision.allowed is False
    assert decision.location == expected


@pytest.mark.parametrize(
    "pathname, has_session",
    [
        ("/dashboard", True),
        ("/books/new", True),
        ("/login", False),
        ("/", False),
        ("/bookshelf", False),
    ],
)
def test_resolve_route_allows(pathname, has_session):
    """Test navigations that proceed unmodified"""

    decision = resolve_route(pathname, has_session)

    assert decision.allowed is True
    assert decision.location is None


def test_is_protected_matches_whole_segments():
    """Test protected prefixes only match whole path segments"""

    assert is_protected("/books")
    assert is_protected("/books/abc")
    assert not is_protected("/bookshelf")


def test_get_cookie():
    """Test reading a single cookie from a Cookie header"""

    header = f"theme=dark; {config.SESSION_COOKIE_NAME}=token-123"

    assert get_cookie(header, config.SESSION_COOKIE_NAME) == "token-123"
    assert get_cookie(header, "missing") is None
    assert get_cookie(None, config.SESSION_COOKIE_NAME) is None


# ============================================================================
# Analytics Tests
# ============================================================================


def test_compute_analytics():
    """Test totals, upload windows, popularity ranking and distributions"""

    now = datetime(2025, 6, 30, 12, 0, tzinfo=UTC)
    books = [
        {"id": "a", "title": "A", "subject": "Math", "level": "Primary", "featured": True,
         "upload_date": "2025-06-28T00:00:00Z", "popularity_score": Decimal("5")},
        {"id": "b", "title": "B", "subject": "Math", "level": "Secondary", "featured": False,
         "upload_date": "2025-06-10T00:00:00Z", "popularity_score": Decimal("9")},
        {"id": "c", "title": "C", "subject": "Science", "level": None, "featured": False,
         "upload_date": "2025-01-01T00:00:00Z"},
    ]
    changes = [
        {"id": "1", "action": "create", "created_at": "2025-06-01T00:00:00Z"},
        {"id": "2", "action": "update", "created_at": "2025-06-02T00:00:00Z"},
    ]

    result = compute_analytics(books, changes, now)

    assert result["totalBooks"] == 3
    assert result["featuredBooks"] == 1
    assert result["totalSubjects"] == 2
    assert result["totalLevels"] == 2
    assert result["uploadsThisWeek"] == 1
    assert result["uploadsThisMonth"] == 2
    assert [book["id"] for book in result["topBooks"]] == ["b", "a", "c"]
    assert result["topBooks"][0]["popularity_score"] == 9
    assert [change["id"] for change in result["recentChanges"]] == ["2", "1"]
    assert result["subjectDistribution"] == [
        {"subject": "Math", "count": 2},
        {"subject": "Science", "count": 1},
    ]


def test_compute_analytics_empty_library():
    """Test analytics on an empty library"""

    result = compute_analytics([], [], datetime(2025, 1, 1, tzinfo=UTC))

    assert result["totalBooks"] == 0
    assert result["topBooks"] == []
    assert result["subjectDistribution"] == []


# ============================================================================
# Response Tests
# ============================================================================


def test_convert_decimals_nested():
    """Test Decimal values are converted inside nested structures"""

    value = {"pages": Decimal("12"), "scores": [Decimal("1.5")], "changes": {"pages": Decimal("3")}}

    assert convert_decimals(value) == {"pages": 12, "scores": [1.5], "changes": {"pages": 3}}


def test_serialize_book_response_fills_missing_fields():
    """Test absent attributes are returned as null with consistent defaults"""

    book = serialize_book_response({"id": "b1", "title": "Algebra", "pages": Decimal("40")})

    assert book["pages"] == 40
    assert book["author"] is None
    assert book["featured"] is False
    assert book["keywords"] == []


def test_cors_headers_wildcard():
    """Test a wildcard allow-list answers any origin"""

    with patch.object(config, "ALLOWED_ORIGINS", ["*"]):
        headers = cors_headers("https://anything.example")

    assert headers["Access-Control-Allow-Origin"] == "*"


def test_cors_headers_specific_origins():
    """Test only listed origins are echoed back"""

    with patch.object(config, "ALLOWED_ORIGINS", ["https://admin.school.example"]):
        allowed = cors_headers("https://admin.school.example")
        denied = cors_headers("https://evil.example")

    assert allowed["Access-Control-Allow-Origin"] == "https://admin.school.example"
    assert "Access-Control-Allow-Origin" not in denied


# ============================================================================
# Validation Tests
# ============================================================================


def test_parse_multipart_form_fields_and_files():
    """Test text fields and file parts are separated"""

    boundary = "TestBoundary123"
    body = (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="title"\r\n\r\n'
        "Algebra I\r\n"
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="pdf"; filename="algebra.pdf"\r\n'
        "Content-Type: application/pdf\r\n\r\n"
    ).encode() + b"%PDF-1.4\x00\xff binary\r\n" + f"--{boundary}--\r\n".encode()
    event = {
        "headers": {"Content-Type": f"multipart/form-data; boundary={boundary}"},
        "body": base64.b64encode(body).decode(),
        "isBase64Encoded": True,
    }

    fields, files, error = parse_multipart_form(event)

    assert error is None
    assert fields == {"title": "Algebra I"}
    assert files["pdf"].filename == "algebra.pdf"
    assert files["pdf"].content_type == "application/pdf"
    assert files["pdf"].data == b"%PDF-1.4\x00\xff binary"


def test_parse_multipart_form_rejects_other_content_types():
    """Test a JSON body is not accepted as an upload"""

    event = {"headers": {"Content-Type": "application/json"}, "body": json.dumps({"title": "x"})}

    _, _, error = parse_multipart_form(event)

    assert error["statusCode"] == 400


def test_validate_upload_files_size_checked_before_type():
    """Test an oversized PDF is reported even when its type is also wrong"""

    pdf = UploadedFile("big.txt", "text/plain", b"x" * 20)

    with patch.object(config, "MAX_UPLOAD_BYTES", 10):
        error = validate_upload_files(pdf, None)

    assert json.loads(error["body"])["error"] == "PDF file too large"


def test_validate_upload_files_size_limit_is_inclusive():
    """Test a file exactly at the size limit is accepted"""

    pdf = UploadedFile("book.pdf", "application/pdf", b"x" * 10)

    with patch.object(config, "MAX_UPLOAD_BYTES", 10):
        assert validate_upload_files(pdf, None) is None


def test_validate_upload_files_cover_types():
    """Test JPEG, PNG and WebP covers are allowed and GIF is not"""

    pdf = UploadedFile("book.pdf", "application/pdf", b"%PDF")

    for content_type in ("image/jpeg", "image/png", "image/webp"):
        assert validate_upload_files(pdf, UploadedFile("c", content_type, b"img")) is None

    error = validate_upload_files(pdf, UploadedFile("c.gif", "image/gif", b"img"))
    assert json.loads(error["body"])["error"] == "Invalid file type for cover image"


# ============================================================================
# Storage Tests
# ============================================================================


def test_list_book_files_follows_continuation():
    """Test listing follows truncated S3 responses"""

    mock_s3 = Mock()
    mock_s3.list_objects_v2.side_effect = [
        {"Contents": [{"Key": "books/b1/pdf/a.pdf"}], "IsTruncated": True, "NextContinuationToken": "t"},
        {"Contents": [{"Key": "books/b1/cover/a.png"}], "IsTruncated": False},
    ]

    with patch.object(config, "s3_client", mock_s3):
        keys = list_book_files("b1")

    assert keys == ["books/b1/pdf/a.pdf", "books/b1/cover/a.png"]
    assert mock_s3.list_objects_v2.call_args_list[1].kwargs["ContinuationToken"] == "t"


def test_delete_book_files_counts_failures():
    """Test per-object delete errors are not counted as deleted"""

    mock_s3 = Mock()
    mock_s3.list_objects_v2.return_value = {
        "Contents": [{"Key": "books/b1/pdf/a.pdf"}, {"Key": "books/b1/cover/a.png"}],
    }
    mock_s3.delete_objects.return_value = {
        "Errors": [{"Key": "books/b1/cover/a.png", "Message": "Access Denied"}]
    }

    with patch.object(config, "s3_client", mock_s3):
        deleted = delete_book_files("b1")

    assert deleted == 1
    mock_s3.delete_objects.assert_called_once()


def test_delete_book_files_nothing_stored():
    """Test no delete request is sent when the prefix is empty"""

    mock_s3 = Mock()
    mock_s3.list_objects_v2.return_value = {"IsTruncated": False}

    with patch.object(config, "s3_client", mock_s3):
        assert delete_book_files("b1") == 0

    mock_s3.delete_objects.assert_not_called()


# ============================================================================
# DynamoDB Utility Tests
# ============================================================================


def test_scan_all_follows_pagination():
    """Test scan_all keeps scanning while LastEvaluatedKey is returned"""

    table = Mock()
    table.scan.side_effect = [
        {"Items": [{"id": "1"}], "LastEvaluatedKey": {"id": "1"}},
        {"Items": [{"id": "2"}]},
    ]

    items = scan_all(table, FilterExpression="f")

    assert items == [{"id": "1"}, {"id": "2"}]
    assert table.scan.call_args_list[1].kwargs == {
        "ExclusiveStartKey": {"id": "1"},
        "FilterExpression": "f",
    }


def test_build_update_expression_basic():
    """Test build_update_expression with basic fields"""

    fields = {"author": "New Author", "level": "Primary"}

    expr, values, names = build_update_expression(fields)

    assert expr == "SET #author = :author, #level = :level"
    assert values == {":author": "New Author", ":level": "Primary"}
    assert names == {"#author": "author", "#level": "level"}


def test_build_update_expression_with_remove():
    """Test None and empty values become REMOVE clauses when allow_remove=True"""

    fields = {"title": "Algebra", "subject": None, "description": ""}

    expr, values, names = build_update_expression(fields, allow_remove=True)

    assert expr == "SET #title = :title REMOVE #subject, #description"
    assert values == {":title": "Algebra"}
    assert names["#subject"] == "subject"


def test_build_update_expression_keeps_false():
    """Test False is set, not removed"""

    expr, values, _ = build_update_expression({"featured": False}, allow_remove=True)

    assert expr == "SET #featured = :featured"
    assert values[":featured"] is False


def test_build_update_params_with_remove_only():
    """Test build_update_params omits empty ExpressionAttributeValues"""

    params = build_update_params(
        key={"id": "book-1"},
        fields={"author": ""},
        allow_remove=True,
    )

    assert params["Key"] == {"id": "book-1"}
    assert params["UpdateExpression"] == "REMOVE #author"
    assert "ExpressionAttributeValues" not in params
    assert "ConditionExpression" not in params
    assert params["ReturnValues"] == "ALL_NEW"


def test_build_update_params_with_condition():
    """Test build_update_params includes the condition and return values"""

    params = build_update_params(
        key={"id": "book-1"},
        fields={"role": "user"},
        condition_expression="attribute_exists(id)",
        return_values="NONE",
    )

    assert params["ConditionExpression"] == "attribute_exists(id)"
    assert params["ReturnValues"] == "NONE"
    assert params["ExpressionAttributeValues"] == {":role": "user"}
