"""
Row-query vocabulary shared by every backend adapter.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Protocol, Sequence

from ..domain.models import Session

OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "in", "is")


@dataclass(frozen=True)
class Filter:
    """A single column predicate, e.g. ``Filter("status", "eq", "accepted")``."""
    column: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")
        if self.op == "in" and isinstance(self.value, (str, bytes)):
            raise ValueError("'in' filters need a collection of values")


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def is_(column: str, value: Any) -> Filter:
    """``is`` matches null and booleans (``is_("start_time", None)``)."""
    return Filter(column, "is", value)


class RowBackend(Protocol):
    """Protocol describing the table access the services need."""

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
        """Return the rows matching every filter."""

    def insert(self, table: str, row: Dict[str, Any], *, session: Session) -> Dict[str, Any]:
        """Insert one row and return it as stored."""

    def upsert(
        self,
        table: str,
        row: Dict[str, Any],
        *,
        session: Session,
        on_conflict: Sequence[str],
    ) -> Dict[str, Any]:
        """Insert or update the row keyed by ``on_conflict`` and return it."""
