"""
Supabase authentication (GoTrue password grant) with a local session cache.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

import pendulum
import requests

from ..domain.exceptions import AuthenticationError
from ..domain.models import Session

logger = logging.getLogger(__name__)


class SupabaseAuthenticator:
    """
    Signs users in against Supabase Auth and keeps the session on disk.

    Flow:
    1. ``sign_in`` exchanges email and password for a session
    2. The session is cached in a JSON file readable by the owner only
    3. ``current_session`` returns the cached session, refreshing it
       with the refresh token once the access token has expired
    """

    AUTH_PATH = "/auth/v1"

    def __init__(
        self,
        url: str,
        anon_key: str,
        cache_file: Path | None = None,
        timeout: float = 10
    ):
        """
        Initialize the authenticator.

        Args:
            url: Supabase project URL
            anon_key: Public anon API key
            cache_file: Optional path to the session cache file
            timeout: Request timeout in seconds
        """
        self.auth_url = url.rstrip("/") + self.AUTH_PATH
        self.anon_key = anon_key
        self.cache_file = cache_file or Path.home() / ".peerpool_session.json"
        self.timeout = timeout

    def sign_in(self, email: str, password: str) -> Session:
        """
        Sign in with email and password.

        Raises:
            AuthenticationError: If the credentials are rejected or the
                request fails
        """
        data = self._token_request("password", {"email": email, "password": password})
        session = self._session_from_response(data)
        self._save_session(session)
        return session

    def current_session(self) -> Session | None:
        """
        Return the cached session, refreshing it when expired.

        Returns None when nobody is signed in or the refresh is rejected.
        """
        session = self._load_session()
        if session is None:
            return None

        if not session.is_expired():
            return session

        if not session.refresh_token:
            logger.info("Cached session expired and has no refresh token")
            return None

        try:
            return self.refresh(session)
        except AuthenticationError as exc:
            logger.warning("Could not refresh session: %s", exc)
            return None

    def refresh(self, session: Session) -> Session:
        """Exchange the refresh token for a new session and cache it."""
        data = self._token_request("refresh_token", {"refresh_token": session.refresh_token})
        refreshed = self._session_from_response(data)
        self._save_session(refreshed)
        return refreshed

    def sign_out(self) -> None:
        """Forget the cached session (sign in again next time)."""
        if self.cache_file.exists():
            self.cache_file.unlink()

    def _token_request(self, grant_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.auth_url}/token"

        try:
            response = requests.request(
                "POST",
                url,
                params={"grant_type": grant_type},
                headers={"apikey": self.anon_key, "Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Authentication request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            message = (
                data.get("error_description")
                or data.get("msg")
                or data.get("message")
                or f"HTTP {response.status_code}"
            )
            raise AuthenticationError(f"Authentication failed: {message}")

        if "access_token" not in data:
            raise AuthenticationError("Authentication failed: no access token in response")

        return data

    @staticmethod
    def _session_from_response(data: Dict[str, Any]) -> Session:
        user = data.get("user") or {}
        if not user.get("id"):
            raise AuthenticationError("Authentication failed: response has no user")

        expires_at = data.get("expires_at")
        if not expires_at and data.get("expires_in"):
            expires_at = pendulum.now("UTC").int_timestamp + int(data["expires_in"])

        return Session(
            user_id=user["id"],
            email=user.get("email") or "",
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            expires_at=int(expires_at or 0),
        )

    def _load_session(self) -> Session | None:
        if not self.cache_file.exists():
            return None

        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Session(**data)
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Could not load session cache: %s", exc)
            return None

    def _save_session(self, session: Session) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as f:
                json.dump(
                    {
                        "user_id": session.user_id,
                        "email": session.email,
                        "access_token": session.access_token,
                        "refresh_token": session.refresh_token,
                        "expires_at": session.expires_at,
                    },
                    f,
                )
            # Set restrictive permissions (owner only)
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save session cache: %s", exc)
