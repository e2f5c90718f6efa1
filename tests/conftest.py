"""Pytest configuration and shared fixtures."""

import os
from typing import Generator

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.requests import Request as StarletteRequest

# Set test environment variables before importing settings
os.environ.update({
    "ENVIRONMENT": "development",
    "IDENTITY_BACKEND": "mock",
    "MOCK_SESSION_TOKENS": '{"valid-token": "user_123"}',
    "SENTRY_DSN": "",
})

VALID_TOKEN = "valid-token"
VALID_USER = "user_123"


def make_request(
    path: str = "/",
    method: str = "GET",
    headers: dict[str, str] | None = None,
    query_string: bytes = b"",
) -> StarletteRequest:
    """Build a bare Starlette request for unit tests."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "scheme": "http",
        "server": ("testserver", 80),
        "client": ("127.0.0.1", 12345),
        "query_string": query_string,
        "headers": [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in (headers or {}).items()
        ],
    }
    return StarletteRequest(scope)


def add_downstream_routes(app: FastAPI) -> None:
    """Register stand-ins for the page and API handlers behind the gatekeeper."""

    @app.get("/")
    async def home():
        return {"page": "home"}

    @app.get("/settings/profile")
    async def settings_profile(request: Request):
        return {"page": "profile", "user_id": request.state.session.user_id}

    @app.get("/admin/reports")
    async def admin_reports():
        return {"page": "reports"}

    @app.get("/library")
    async def library():
        return {"page": "library"}

    @app.get("/libraryX")
    async def library_x():
        return {"page": "libraryX"}

    @app.post("/library/echo")
    async def library_echo(request: Request):
        body = await request.body()
        return {
            "method": request.method,
            "path": request.url.path,
            "body": body.decode(),
            "x_custom": request.headers.get("x-custom"),
        }

    @app.get("/sign-in/oauth/callback")
    async def sign_in_callback():
        return {"page": "sign-in"}

    @app.get("/api/webhooks/identity-provider")
    async def identity_webhook():
        return {"received": True}

    @app.get("/unclassified/random-path")
    async def unclassified():
        return {"page": "unclassified"}

    @app.get("/api/export.csv")
    async def export_csv():
        return {"export": True}


@pytest.fixture
def test_settings():
    """Provide test settings instance."""
    from src.config.settings import Settings
    return Settings(
        _env_file=None,
        environment="development",
        identity_backend="mock",
        mock_session_tokens={VALID_TOKEN: VALID_USER},
        sentry_dsn=None,
    )


@pytest.fixture
def mock_verifier():
    """Provide a mock identity verifier that knows one valid token."""
    from src.gatekeeper.identity import MockIdentityVerifier
    return MockIdentityVerifier(sessions={VALID_TOKEN: VALID_USER})


@pytest.fixture
def app(test_settings, mock_verifier) -> FastAPI:
    """Provide the gateway app with downstream stand-in routes."""
    from src.main import create_app
    application = create_app(settings=test_settings, verifier=mock_verifier)
    add_downstream_routes(application)
    return application


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Headers carrying a valid session token."""
    return {"Authorization": f"Bearer {VALID_TOKEN}"}


@pytest.fixture
def client_factory():
    """Provide a factory building a test client for given settings and verifier."""
    from src.main import create_app

    def _build(settings, verifier) -> TestClient:
        application = create_app(settings=settings, verifier=verifier)
        add_downstream_routes(application)
        return TestClient(application)

    return _build


@pytest.fixture
def request_factory():
    """Provide a factory for bare Starlette requests."""
    return make_request
