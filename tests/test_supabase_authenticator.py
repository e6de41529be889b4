"""
Tests for Supabase sign-in and the session cache.
"""

import json

import pendulum
import pytest

from peerpool.adapters import supabase_authenticator
from peerpool.adapters.supabase_authenticator import SupabaseAuthenticator
from peerpool.domain.exceptions import AuthenticationError
from peerpool.domain.models import Session


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.ok = status_code < 400
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("No JSON")
        return self._body


def _token_body(user_id="alice", expires_in=3600, **extra):
    body = {
        "access_token": f"token-{user_id}",
        "refresh_token": f"refresh-{user_id}",
        "expires_in": expires_in,
        "user": {"id": user_id, "email": f"{user_id}@example.com"},
    }
    body.update(extra)
    return body


@pytest.fixture
def fake_auth(monkeypatch):
    calls = []
    responses = []

    def fake_request(method, url, **kwargs):
        calls.append({"method": method, "url": url, **kwargs})
        return responses.pop(0)

    monkeypatch.setattr(supabase_authenticator.requests, "request", fake_request)
    return calls, responses


@pytest.fixture
def authenticator(tmp_path):
    return SupabaseAuthenticator(
        "https://demo.supabase.co",
        "anon-key",
        cache_file=tmp_path / "session.json",
    )


class TestSignIn:
    """Tests for the password grant."""

    def test_sign_in_caches_session(self, authenticator, fake_auth):
        calls, responses = fake_auth
        responses.append(FakeResponse(body=_token_body()))

        session = authenticator.sign_in("alice@example.com", "secret")

        assert session.user_id == "alice"
        assert session.access_token == "token-alice"
        assert session.expires_at > pendulum.now("UTC").int_timestamp
        assert calls[0]["url"] == "https://demo.supabase.co/auth/v1/token"
        assert calls[0]["params"] == {"grant_type": "password"}
        assert calls[0]["json"] == {"email": "alice@example.com", "password": "secret"}

        cached = json.loads(authenticator.cache_file.read_text())
        assert cached["user_id"] == "alice"
        assert authenticator.cache_file.stat().st_mode & 0o777 == 0o600

    def test_rejected_credentials(self, authenticator, fake_auth):
        _, responses = fake_auth
        responses.append(FakeResponse(status_code=400, body={"error_description": "Invalid login credentials"}))

        with pytest.raises(AuthenticationError, match="Invalid login credentials"):
            authenticator.sign_in("alice@example.com", "wrong")

        assert not authenticator.cache_file.exists()

    def test_response_without_user(self, authenticator, fake_auth):
        _, responses = fake_auth
        responses.append(FakeResponse(body={"access_token": "t"}))

        with pytest.raises(AuthenticationError, match="no user"):
            authenticator.sign_in("alice@example.com", "secret")


class TestCurrentSession:
    """Tests for reading and refreshing the cached session."""

    def _cache(self, authenticator, session):
        authenticator.cache_file.write_text(json.dumps(session.__dict__))

    def test_nobody_signed_in(self, authenticator):
        assert authenticator.current_session() is None

    def test_valid_session_is_returned(self, authenticator, fake_auth):
        calls, _ = fake_auth
        session = Session(user_id="alice", access_token="t", expires_at=pendulum.now("UTC").int_timestamp + 600)
        self._cache(authenticator, session)

        assert authenticator.current_session() == session
        assert calls == []

    def test_expired_session_is_refreshed(self, authenticator, fake_auth):
        calls, responses = fake_auth
        responses.append(FakeResponse(body=_token_body(access_token="fresh")))
        self._cache(authenticator, Session(user_id="alice", access_token="old", refresh_token="r", expires_at=1))

        session = authenticator.current_session()

        assert session.access_token == "fresh"
        assert calls[0]["params"] == {"grant_type": "refresh_token"}
        assert calls[0]["json"] == {"refresh_token": "r"}

    def test_failed_refresh_means_signed_out(self, authenticator, fake_auth):
        _, responses = fake_auth
        responses.append(FakeResponse(status_code=401, body={"msg": "Invalid Refresh Token"}))
        self._cache(authenticator, Session(user_id="alice", refresh_token="r", expires_at=1))

        assert authenticator.current_session() is None

    def test_expired_without_refresh_token(self, authenticator):
        self._cache(authenticator, Session(user_id="alice", expires_at=1))

        assert authenticator.current_session() is None

    def test_corrupt_cache_is_ignored(self, authenticator):
        authenticator.cache_file.write_text("{not json")

        assert authenticator.current_session() is None

    def test_sign_out_removes_cache(self, authenticator):
        self._cache(authenticator, Session(user_id="alice"))

        authenticator.sign_out()
        authenticator.sign_out()

        assert not authenticator.cache_file.exists()


def test_cache_directory_is_created(tmp_path, fake_auth):
    """A cache file in a directory that doesn't exist yet is still written."""
    _, responses = fake_auth
    responses.append(FakeResponse(body=_token_body()))
    cache_file = tmp_path / "nested" / "peerpool" / "session.json"
    authenticator = SupabaseAuthenticator("https://demo.supabase.co", "anon-key", cache_file=cache_file)

    authenticator.sign_in("alice@example.com", "secret")

    assert json.loads(cache_file.read_text())["user_id"] == "alice"
