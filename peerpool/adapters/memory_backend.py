"""
In-memory backend that evaluates row queries over plain dicts.

Used for tests and for the CLI's offline ``--seed`` mode, without requiring
a Supabase project or network access.
"""

import copy
import json
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import pendulum

from ..domain.exceptions import BackendError
from ..domain.models import Session, parse_instant
from .query import Filter

TABLES = ("profiles", "availability_blocks", "hangouts", "hangout_participants", "friendships")

# Column defaults mirrored from the database schema
TABLE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "availability_blocks": {"status": "available"},
    "hangouts": {"status": "planning", "is_public": False, "description": None,
                 "start_time": None, "end_time": None},
    "hangout_participants": {"status": "invited"},
    "friendships": {"status": "pending"},
}


class InMemoryBackend:
    """
    Row store implementing the RowBackend protocol.

    Rows are stored the way the REST API returns them: timestamps as
    ISO 8601 strings.
    """

    def __init__(self, tables: Mapping[str, List[Dict[str, Any]]] | None = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in TABLES}
        for name, rows in (tables or {}).items():
            self._check_table(name)
            for row in rows:
                self.tables[name].append(self._prepare(name, row))

    @classmethod
    def from_json(cls, path: Path) -> "InMemoryBackend":
        """
        Load a fixture file of the form ``{"hangouts": [...], ...}``.

        Raises:
            FileNotFoundError: If the fixture doesn't exist
            ValueError: If the fixture is not a mapping of tables
        """
        if not path.exists():
            raise FileNotFoundError(f"Seed file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError("Seed file must contain a mapping of table names to rows.")

        return cls(tables=data)

    def save_json(self, path: Path) -> None:
        """Write every table back to a fixture file."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.tables, f, indent=2, ensure_ascii=False)

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
        self._check_table(table)
        rows = [row for row in self.tables[table] if all(self._matches(row, f) for f in filters)]

        if order_by:
            present = [r for r in rows if r.get(order_by) is not None]
            missing = [r for r in rows if r.get(order_by) is None]
            present.sort(key=lambda r: self._sort_key(r[order_by]), reverse=descending)
            rows = present + missing

        if limit is not None:
            rows = rows[:limit]

        return [self._project(row, columns) for row in rows]

    def insert(self, table: str, row: Dict[str, Any], *, session: Session) -> Dict[str, Any]:
        self._check_table(table)
        stored = self._prepare(table, row)

        if any(existing["id"] == stored["id"] for existing in self.tables[table]):
            raise BackendError(
                f"duplicate key value violates unique constraint on '{table}'",
                table=table,
                status_code=409,
            )

        self.tables[table].append(stored)
        return copy.deepcopy(stored)

    def upsert(
        self,
        table: str,
        row: Dict[str, Any],
        *,
        session: Session,
        on_conflict: Sequence[str],
    ) -> Dict[str, Any]:
        self._check_table(table)
        incoming = self._serialize(row)

        for existing in self.tables[table]:
            if all(existing.get(col) == incoming.get(col) for col in on_conflict):
                existing.update(incoming)
                existing["updated_at"] = self._now()
                return copy.deepcopy(existing)

        return self.insert(table, row, session=session)

    def _check_table(self, table: str) -> None:
        if table not in self.tables:
            raise BackendError(f"relation '{table}' does not exist", table=table, status_code=404)

    def _prepare(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        now = self._now()
        stored = dict(TABLE_DEFAULTS.get(table, {}))
        stored.update(self._serialize(row))
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", now)
        stored.setdefault("updated_at", now)
        return stored

    @staticmethod
    def _now() -> str:
        return pendulum.now("UTC").isoformat()

    @staticmethod
    def _serialize(row: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in row.items()
        }

    @staticmethod
    def _project(row: Dict[str, Any], columns: str) -> Dict[str, Any]:
        if columns.strip() == "*":
            return copy.deepcopy(row)
        wanted = [c.strip() for c in columns.split(",") if c.strip()]
        return {c: copy.deepcopy(row.get(c)) for c in wanted}

    @staticmethod
    def _sort_key(value: Any) -> Any:
        if isinstance(value, str):
            try:
                return parse_instant(value).int_timestamp
            except ValueError:
                return value
        return value

    @classmethod
    def _matches(cls, row: Mapping[str, Any], flt: Filter) -> bool:
        actual = row.get(flt.column)

        if flt.op == "is":
            return actual is flt.value or actual == flt.value

        if actual is None:
            return False

        if flt.op == "in":
            return any(cls._compare(actual, v) == 0 for v in flt.value)

        cmp = cls._compare(actual, flt.value)
        if cmp is None:
            return False

        return {
            "eq": cmp == 0,
            "neq": cmp != 0,
            "gt": cmp > 0,
            "gte": cmp >= 0,
            "lt": cmp < 0,
            "lte": cmp <= 0,
        }[flt.op]

    @staticmethod
    def _compare(actual: Any, expected: Any) -> int | None:
        """Three-way compare, parsing timestamps when the filter is a datetime."""
        if isinstance(expected, Enum):
            expected = expected.value

        if isinstance(expected, datetime):
            try:
                left = parse_instant(actual)
            except ValueError:
                return None
            right = pendulum.instance(expected)
        elif type(actual) is type(expected):
            left, right = actual, expected
        else:
            left, right = str(actual), str(expected)

        if left == right:
            return 0
        try:
            return -1 if left < right else 1
        except TypeError:
            return None
