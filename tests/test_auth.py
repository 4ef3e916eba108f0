"""Tests for admin sign-in against SQLite and the hosted auth service."""

import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from auth import AdminSession, AuthError, HostedAuth, SqliteAuth, create_authenticator


class TestSqliteAuth:
    def _auth(self, tmp_path):
        return SqliteAuth(str(tmp_path / "orders.db"), "Admin@Example.com", "secret-pass")

    def test_default_admin_can_sign_in(self, tmp_path):
        admin = self._auth(tmp_path).sign_in(" ADMIN@example.com ", "secret-pass")
        assert admin.email == "admin@example.com"
        assert admin.access_token is None
        assert not admin.is_expired()

    def test_wrong_password(self, tmp_path):
        with pytest.raises(AuthError, match="Invalid email or password."):
            self._auth(tmp_path).sign_in("admin@example.com", "nope")

    def test_unknown_email(self, tmp_path):
        with pytest.raises(AuthError):
            self._auth(tmp_path).sign_in("someone@example.com", "secret-pass")

    def test_seed_only_runs_on_empty_table(self, tmp_path):
        self._auth(tmp_path)
        SqliteAuth(str(tmp_path / "orders.db"), "other@example.com", "other-pass")
        with pytest.raises(AuthError):
            SqliteAuth(str(tmp_path / "orders.db")).sign_in("other@example.com", "other-pass")

    def test_add_admin(self, tmp_path):
        auth = self._auth(tmp_path)
        auth.add_admin("ops@example.com", "ops-pass")
        assert auth.sign_in("ops@example.com", "ops-pass").email == "ops@example.com"
        with pytest.raises(AuthError, match="already exists"):
            auth.add_admin("OPS@example.com", "again")


class TestAdminSession:
    def test_round_trip_and_expiry(self):
        admin = AdminSession("a@example.com", "tok", time.time() + 60)
        restored = AdminSession.from_dict(admin.to_dict())
        assert restored == admin
        assert not restored.is_expired()
        assert restored.is_expired(now=time.time() + 120)

    @pytest.mark.parametrize("data", [None, {}, {"email": ""}, {"email": "a@b.c", "expires_at": "soon"}])
    def test_invalid_session_data(self, data):
        assert AdminSession.from_dict(data) is None


def _response(status, payload=None):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.json.return_value = payload or {}
    return response


class TestHostedAuth:
    def setup_method(self):
        self.auth = HostedAuth("https://demo.supabase.co", "anon-key", timeout=5)

    def test_requires_credentials(self):
        with pytest.raises(AuthError):
            HostedAuth("https://demo.supabase.co", "")

    @patch("auth.requests.post")
    def test_sign_in(self, mock_post):
        mock_post.return_value = _response(
            200, {"access_token": "tok", "expires_in": 3600, "user": {"email": "ops@example.com"}}
        )
        admin = self.auth.sign_in("ops@example.com", "pw")

        assert admin.email == "ops@example.com"
        assert admin.access_token == "tok"
        assert admin.expires_at > time.time() + 3500
        args, kwargs = mock_post.call_args
        assert args == ("https://demo.supabase.co/auth/v1/token",)
        assert kwargs["params"] == {"grant_type": "password"}
        assert kwargs["json"] == {"email": "ops@example.com", "password": "pw"}
        assert kwargs["headers"]["apikey"] == "anon-key"

    @patch("auth.requests.post")
    def test_rejected_credentials(self, mock_post):
        mock_post.return_value = _response(400, {"error": "invalid_grant"})
        with pytest.raises(AuthError, match="Invalid email or password."):
            self.auth.sign_in("ops@example.com", "bad")

    @patch("auth.requests.post")
    def test_service_error(self, mock_post):
        mock_post.return_value = _response(503)
        with pytest.raises(AuthError, match="Sign-in failed"):
            self.auth.sign_in("ops@example.com", "pw")

    @patch("auth.requests.post")
    def test_unreachable(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("down")
        with pytest.raises(AuthError, match="Could not reach"):
            self.auth.sign_in("ops@example.com", "pw")

    @patch("auth.requests.post")
    def test_sign_out(self, mock_post):
        self.auth.sign_out(AdminSession("ops@example.com", "tok", time.time() + 60))
        args, kwargs = mock_post.call_args
        assert args == ("https://demo.supabase.co/auth/v1/logout",)
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    @patch("auth.requests.post")
    def test_sign_out_failure_is_not_raised(self, mock_post):
        mock_post.side_effect = requests.Timeout("slow")
        self.auth.sign_out(AdminSession("ops@example.com", "tok", time.time() + 60))


def test_create_authenticator(tmp_path):
    hosted = create_authenticator(
        {"ORDER_BACKEND": "hosted", "SUPABASE_URL": "https://demo.supabase.co", "SUPABASE_ANON_KEY": "k"}
    )
    assert isinstance(hosted, HostedAuth)
    local = create_authenticator({"ORDER_BACKEND": "sqlite", "SQLITE_PATH": str(tmp_path / "a.db")})
    assert isinstance(local, SqliteAuth)
