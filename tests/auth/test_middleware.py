"""
Test Authentication Middleware
============================

This module contains tests for the authentication middleware.
"""

import pytest
from fastapi import FastAPI, Depends
from fastapi.testclient import TestClient

from auth.middleware import AuthMiddleware, get_current_user_id
from auth.jwt_service import create_token

pytestmark = [pytest.mark.unit]

class TestAuthMiddleware:
    """Test cases for authentication middleware."""

    @pytest.fixture
    def test_app(self):
        """Create a small app with one public and one protected route."""
        app = FastAPI()
        app.add_middleware(AuthMiddleware, protected_paths=["/protected", "/agents/*"])

        @app.get("/public")
        async def public_route():
            return {"message": "public"}

        @app.get("/protected")
        async def protected_route(user_id: str = Depends(get_current_user_id)):
            return {"user_id": user_id}

        @app.get("/agents/{agent_id}")
        async def agent_route(agent_id: str, user_id: str = Depends(get_current_user_id)):
            return {"agent_id": agent_id, "user_id": user_id}

        return app

    @pytest.fixture
    def client(self, test_app):
        return TestClient(test_app)

    @pytest.fixture
    def token(self):
        return create_token("user-1")["token"]

    def test_public_path(self, client):
        """Public paths need no token."""
        response = client.get("/public")
        assert response.status_code == 200
        assert response.json() == {"message": "public"}

    def test_protected_path_without_token(self, client):
        """Protected paths reject requests without a token."""
        response = client.get("/protected")
        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"

    def test_protected_path_with_bearer_token(self, client, token):
        response = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json() == {"user_id": "user-1"}

    def test_protected_path_with_cookie(self, client, token):
        client.cookies.set("access_token", token)
        response = client.get("/protected")
        assert response.status_code == 200
        assert response.json() == {"user_id": "user-1"}

    def test_wildcard_protected_path(self, client, token):
        assert client.get("/agents/abc").status_code == 401
        response = client.get("/agents/abc", headers={"Authorization": f"Bearer {token}"})
        assert response.json() == {"agent_id": "abc", "user_id": "user-1"}

    def test_invalid_token(self, client):
        response = client.get("/protected", headers={"Authorization": "Bearer invalid"})
        assert response.status_code == 401

    def test_requires_auth_matching(self):
        middleware = AuthMiddleware(FastAPI(), protected_paths=["/exact", "/prefix/*"])
        assert middleware._requires_auth("/exact") is True
        assert middleware._requires_auth("/exact/child") is False
        assert middleware._requires_auth("/prefix/anything") is True
        assert middleware._requires_auth("/other") is False
