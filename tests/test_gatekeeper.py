"""Tests for the Gatekeeper Middleware.

Tests cover:
- Public routes pass regardless of session or identity provider state
- Protected routes challenge without a session and pass with one
- Fail-closed behaviour on identity provider errors and timeouts
- Open-by-default and deny policies for unclassified paths
- Matcher exclusion filter
- Request passthrough is unchanged
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from src.exceptions import IdentityProviderUnavailableError
from src.gatekeeper.identity import MockIdentityVerifier

VALID_TOKEN = "valid-token"
VALID_USER = "user_123"


def _decisions(route_class: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "campus_stream_gatekeeper_decisions_total",
        {"route_class": route_class, "outcome": outcome},
    )
    return value or 0.0


class SlowVerifier(MockIdentityVerifier):
    """Verifier whose provider never answers in time."""

    async def get_session(self, request):
        await asyncio.sleep(5)
        return await super().get_session(request)


class TestConcreteScenarios:
    """End-to-end gatekeeper scenarios."""

    def test_root_without_session_passes(self, client: TestClient):
        """GET / with no session reaches the handler (public root)."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"page": "home"}

    def test_protected_without_session_is_challenged(self, client: TestClient):
        """GET /settings/profile with no session is challenged."""
        response = client.get("/settings/profile")
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_protected_with_session_passes(self, client: TestClient, auth_headers):
        """GET /settings/profile with a valid session reaches the handler."""
        response = client.get("/settings/profile", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"page": "profile", "user_id": VALID_USER}

    def test_public_api_namespace_without_session_passes(self, client: TestClient):
        """Webhook receivers are public even though they sit under /api."""
        response = client.get("/api/webhooks/identity-provider")
        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_unclassified_without_session_passes(self, client: TestClient):
        """Paths in neither table are open by default."""
        response = client.get("/unclassified/random-path")
        assert response.status_code == 200

    def test_identity_provider_error_fails_closed(self, client: TestClient, mock_verifier):
        """A collaborator error on a protected route challenges, never passes."""
        mock_verifier.fail_with(RuntimeError("identity backend exploded"))

        response = client.get("/admin/reports")

        assert response.status_code == 401
        assert response.json()["reason"] == "identity_unavailable"


class TestPublicRoutes:
    """Public routes never consult the identity provider."""

    def test_public_route_skips_verifier(self, client: TestClient, mock_verifier):
        """Verifier is never called for public routes."""
        client.get("/")
        client.get("/sign-in/oauth/callback")
        assert mock_verifier.calls == 0

    def test_public_route_passes_when_provider_down(self, client: TestClient, mock_verifier):
        """Public routes pass even when no identity provider is reachable."""
        mock_verifier.fail_with(IdentityProviderUnavailableError("mock", "down"))

        assert client.get("/").status_code == 200
        assert client.get("/api/webhooks/identity-provider").status_code == 200
        assert client.get("/healthz").status_code == 200

    def test_public_route_passes_with_invalid_token(self, client: TestClient):
        """An invalid token does not affect public routes."""
        response = client.get("/", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 200


class TestProtectedRoutes:
    """Protected routes require a verified session."""

    def test_invalid_token_is_challenged(self, client: TestClient):
        """Unknown token is challenged with reason invalid_session."""
        response = client.get("/library", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["reason"] == "invalid_session"

    def test_missing_token_reason(self, client: TestClient):
        """No token is challenged with reason missing_session."""
        response = client.get("/library")
        assert response.json()["reason"] == "missing_session"

    def test_session_cookie_is_accepted(self, app):
        """The session cookie authenticates like the bearer header."""
        with TestClient(app) as c:
            c.cookies.set("__session", VALID_TOKEN)
            response = c.get("/settings/profile")
        assert response.status_code == 200
        assert response.json()["user_id"] == VALID_USER

    def test_handler_not_invoked_when_challenged(self, app, client: TestClient):
        """The downstream handler never runs for a challenged request."""
        invoked = []

        @app.get("/admin/side-effect")
        async def side_effect():
            invoked.append(True)
            return {}

        response = client.get("/admin/side-effect")

        assert response.status_code == 401
        assert invoked == []

    def test_browser_navigation_redirects_to_sign_in(self, client: TestClient):
        """Interactive clients are redirected to the sign-in page."""
        response = client.get(
            "/settings/profile",
            headers={"Accept": "text/html,application/xhtml+xml"},
            follow_redirects=False,
        )
        assert response.status_code == 307
        location = response.headers["location"]
        assert location.startswith("/sign-in?redirect_url=")
        assert "settings%2Fprofile" in location

    def test_passthrough_preserves_request(self, client: TestClient, auth_headers):
        """Method, path, body and headers reach the handler unchanged."""
        response = client.post(
            "/library/echo",
            content=b"hello library",
            headers={**auth_headers, "X-Custom": "kept"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "method": "POST",
            "path": "/library/echo",
            "body": "hello library",
            "x_custom": "kept",
        }

    def test_path_boundary(self, client: TestClient):
        """/libraryX is not covered by the /library protected pattern."""
        assert client.get("/libraryX").status_code == 200
        assert client.get("/library").status_code == 401

    @pytest.mark.parametrize("path", [
        "/library/%2e%2e",
        "/admin/%2e%2e",
        "/admin/x/%2e%2e/%2e%2e/unclassified",
        "/admin/%2e%2e/static/app",
    ])
    def test_dot_segments_cannot_reach_protected_handlers(self, app, client: TestClient, path):
        """Paths the router dispatches into a protected area are challenged."""
        invoked = []

        @app.get("/library/{item_id}")
        async def library_item(item_id: str):
            invoked.append(item_id)
            return {"item": item_id}

        @app.get("/admin/{rest:path}")
        async def admin_any(rest: str):
            invoked.append(rest)
            return {"rest": rest}

        response = client.get(path)

        assert response.status_code == 401
        assert invoked == []

    def test_dot_segments_cannot_escape_public_prefix(self, client: TestClient):
        """A public prefix followed by dot segments is still protected."""
        response = client.get("/api/webhooks/%2e%2e/%2e%2e/admin/reports")
        assert response.status_code == 401

    def test_dot_segments_with_session_pass(self, app, client: TestClient, auth_headers):
        """A valid session still reaches the handler, path unchanged."""

        @app.get("/library/{item_id}")
        async def library_item(item_id: str):
            return {"item": item_id}

        response = client.get("/library/%2e%2e", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"item": ".."}


class TestFailClosed:
    """Identity provider failures never let a protected request through."""

    def test_provider_unavailable_is_challenged(self, client: TestClient, mock_verifier, auth_headers):
        """Unavailable provider challenges even a request with a valid token."""
        mock_verifier.fail_with(IdentityProviderUnavailableError("mock", "connection refused"))

        response = client.get("/settings/profile", headers=auth_headers)

        assert response.status_code == 401

    def test_provider_timeout_is_challenged(self, test_settings, client_factory):
        """A verification that exceeds the timeout is a failure."""
        settings = test_settings.model_copy(update={"identity_timeout_s": 0.05})
        verifier = SlowVerifier(sessions={VALID_TOKEN: VALID_USER})

        with client_factory(settings, verifier) as c:
            response = c.get(
                "/settings/profile",
                headers={"Authorization": f"Bearer {VALID_TOKEN}"},
            )

        assert response.status_code == 401
        assert response.json()["reason"] == "identity_unavailable"

    def test_provider_recovers(self, client: TestClient, mock_verifier, auth_headers):
        """No state is kept between requests: recovery is immediate."""
        mock_verifier.fail_with(RuntimeError("blip"))
        assert client.get("/library", headers=auth_headers).status_code == 401

        mock_verifier.fail_with(None)
        assert client.get("/library", headers=auth_headers).status_code == 200


class TestUnclassifiedPolicy:
    """Unclassified paths follow the configured policy."""

    def test_deny_policy_challenges_unclassified(self, test_settings, mock_verifier, client_factory):
        """With unclassified_policy=deny, unmatched paths need a session."""
        settings = test_settings.model_copy(update={"unclassified_policy": "deny"})

        with client_factory(settings, mock_verifier) as c:
            assert c.get("/unclassified/random-path").status_code == 401
            assert c.get(
                "/unclassified/random-path",
                headers={"Authorization": f"Bearer {VALID_TOKEN}"},
            ).status_code == 200

    def test_deny_policy_keeps_public_routes_open(self, test_settings, mock_verifier, client_factory):
        """Public routes and health probes stay open under deny."""
        settings = test_settings.model_copy(update={"unclassified_policy": "deny"})

        with client_factory(settings, mock_verifier) as c:
            assert c.get("/").status_code == 200
            assert c.get("/healthz").status_code == 200


class TestMatcherIntegration:
    """Requests excluded by the matcher bypass the gatekeeper."""

    def test_static_asset_bypasses_gatekeeper(self, test_settings, mock_verifier, client_factory):
        """Static assets are never challenged, even under deny."""
        settings = test_settings.model_copy(update={"unclassified_policy": "deny"})

        with client_factory(settings, mock_verifier) as c:
            response = c.get("/static/app.css")

        assert response.status_code == 404  # No handler, but not challenged
        assert mock_verifier.calls == 0

    def test_api_paths_always_evaluated(self, test_settings, mock_verifier, client_factory):
        """API paths are evaluated even when they look like static files."""
        settings = test_settings.model_copy(update={"unclassified_policy": "deny"})

        with client_factory(settings, mock_verifier) as c:
            response = c.get("/api/export.csv")

        assert response.status_code == 401


class TestDecisionMetrics:
    """Decisions are counted."""

    def test_allowed_and_challenged_are_counted(self, client: TestClient):
        """Public allows and protected challenges increment their counters."""
        public_before = _decisions("public", "allowed")
        protected_before = _decisions("protected", "challenged")

        client.get("/")
        client.get("/admin/reports")

        assert _decisions("public", "allowed") == public_before + 1
        assert _decisions("protected", "challenged") == protected_before + 1
