"""
Supabase (PostgREST) client for reading and writing Peerpool tables.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Sequence, Tuple

import requests

from ..domain.exceptions import BackendError
from ..domain.models import Session
from .query import Filter

logger = logging.getLogger(__name__)

# Characters that force quoting inside PostgREST "in.(...)" lists
_RESERVED = set(',()"')


class SupabaseClient:
    """
    Client for the PostgREST endpoint of a Supabase project.

    Every call takes the caller's Session explicitly; the bearer token is
    never kept on the client.
    """

    REST_PATH = "/rest/v1"

    def __init__(self, url: str, anon_key: str, timeout: float = 10):
        """
        Initialize the client.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            anon_key: Public anon API key
            timeout: Request timeout in seconds
        """
        self.base_url = url.rstrip("/") + self.REST_PATH
        self.anon_key = anon_key
        self.timeout = timeout

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        session: Session,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch rows from a table.

        Returns:
            List of row dicts

        Raises:
            BackendError: If the request fails
        """
        params: List[Tuple[str, str]] = [("select", columns)]
        params.extend(self.encode_filter(f) for f in filters)

        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))

        data = self._request("GET", table, session=session, params=params)
        return list(data or [])

    def insert(self, table: str, row: Dict[str, Any], *, session: Session) -> Dict[str, Any]:
        """Insert a row and return the stored representation."""
        data = self._request(
            "POST",
            table,
            session=session,
            json=self._serialize_row(row),
            prefer="return=representation",
        )
        return self._first_row(table, data)

    def upsert(
        self,
        table: str,
        row: Dict[str, Any],
        *,
        session: Session,
        on_conflict: Sequence[str],
    ) -> Dict[str, Any]:
        """Insert or merge a row on the given unique columns."""
        data = self._request(
            "POST",
            table,
            session=session,
            params=[("on_conflict", ",".join(on_conflict))],
            json=self._serialize_row(row),
            prefer="resolution=merge-duplicates,return=representation",
        )
        return self._first_row(table, data)

    def _headers(self, session: Session, prefer: str | None = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {session.access_token or self.anon_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        table: str,
        *,
        session: Session,
        params: List[Tuple[str, str]] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        url = f"{self.base_url}/{table}"
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = requests.request(
                method,
                url,
                params=params,
                headers=self._headers(session, prefer),
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise BackendError(f"Request to '{table}' failed: {exc}", table=table) from exc

        if not response.ok:
            raise BackendError(
                f"Request to '{table}' failed with HTTP {response.status_code}: "
                f"{self._error_message(response)}",
                table=table,
                status_code=response.status_code,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(f"Invalid JSON from '{table}': {exc}", table=table) from exc

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or "unknown error"
        if isinstance(body, dict):
            return body.get("message") or body.get("error") or str(body)
        return str(body)

    @staticmethod
    def _first_row(table: str, data: Any) -> Dict[str, Any]:
        if isinstance(data, list) and data:
            return data[0]
        if isinstance(data, dict):
            return data
        raise BackendError(f"No row returned from '{table}'", table=table)

    @classmethod
    def encode_filter(cls, flt: Filter) -> Tuple[str, str]:
        """
        Encode a filter as a PostgREST query parameter.

        Example: Filter("status", "in", ("planning", "confirmed"))
        -> ("status", "in.(planning,confirmed)")
        """
        if flt.op == "in":
            values = ",".join(cls._quote(cls._format_value(v)) for v in flt.value)
            return flt.column, f"in.({values})"
        return flt.column, f"{flt.op}.{cls._format_value(flt.value)}"

    @staticmethod
    def _format_value(value: Any) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)

    @staticmethod
    def _quote(value: str) -> str:
        if any(ch in _RESERVED for ch in value):
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}"'
        return value

    @classmethod
    def _serialize_row(cls, row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in row.items()
        }
