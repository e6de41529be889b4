"""
Application service for the hangout views and participation actions.

The service coordinates row fetches via a backend adapter and delegates the
actual bucketing to the domain-level ``HangoutVisibility``. Reads degrade to
empty lists when a source fails; writes propagate errors to the caller.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Sequence, TypeVar

import pendulum
from pendulum import DateTime

from ..adapters.query import Filter, RowBackend, eq, gte, in_, lte, neq
from ..domain.drafts import HangoutDraft
from ..domain.exceptions import BackendError, VisibilityError
from ..domain.models import (
    Hangout,
    HangoutStatus,
    Participation,
    ParticipationStatus,
    Profile,
    Session,
)
from ..domain.visibility import HangoutFeed, HangoutVisibility
from ..domain.windowing import TimeFilter, resolve_time_range

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACTIVE_STATUSES = (HangoutStatus.PLANNING.value, HangoutStatus.CONFIRMED.value)


def fetch_rows(
    backend: RowBackend,
    table: str,
    filters: Sequence[Filter],
    *,
    session: Session,
    parse: Callable[[Dict[str, Any]], T],
    failures: List[str],
    source: str | None = None,
    **select_kwargs: Any,
) -> List[T]:
    """
    Select and parse rows, defaulting to an empty list on backend failure.

    Failed sources are appended to ``failures``; unparseable rows are skipped.
    """
    source = source or table
    try:
        rows = backend.select(table, filters, session=session, **select_kwargs)
    except BackendError as exc:
        logger.warning("Could not load %s: %s", source, exc)
        failures.append(source)
        return []

    parsed: List[T] = []
    for row in rows:
        try:
            parsed.append(parse(row))
        except (KeyError, ValueError) as exc:
            logger.warning("Skipping invalid %s row %s: %s", table, row.get("id"), exc)
    return parsed


class HangoutService:
    """
    Loads hangout feeds and performs join / interested / create actions.
    """

    def __init__(
        self,
        backend: RowBackend,
        *,
        timezone: str = "UTC",
        include_current_weekend: bool = False,
    ) -> None:
        self._backend = backend
        self.timezone = timezone
        self.include_current_weekend = include_current_weekend

    def load_feed(
        self,
        session: Session,
        time_filter: TimeFilter | str,
        now: DateTime | None = None,
    ) -> HangoutFeed:
        """
        Load and classify every hangout relevant to the session user.

        Sources: hangouts created by the user, hangouts the user has a
        participation row for, and public active hangouts by others that
        start inside the resolved time range.
        """
        now = now or pendulum.now(self.timezone)
        time_range = resolve_time_range(
            time_filter, now, include_current_weekend=self.include_current_weekend
        )
        failures: List[str] = []

        created = self._hangouts([eq("creator_id", session.user_id)], session, failures, "created hangouts")

        own_participations = fetch_rows(
            self._backend,
            "hangout_participants",
            [eq("user_id", session.user_id)],
            session=session,
            parse=Participation.from_row,
            failures=failures,
            source="participations",
        )

        known_ids = {h.id for h in created}
        participating_ids = sorted({p.hangout_id for p in own_participations} - known_ids)
        participating: List[Hangout] = []
        if participating_ids:
            participating = self._hangouts(
                [in_("id", participating_ids)], session, failures, "joined hangouts"
            )

        public = self._hangouts(
            [
                eq("is_public", True),
                in_("status", ACTIVE_STATUSES),
                neq("creator_id", session.user_id),
                gte("start_time", time_range.start),
                lte("start_time", time_range.end),
            ],
            session,
            failures,
            "public hangouts",
            order_by="start_time",
        )

        candidates = created + participating + public
        participants = self._participants_for(
            [h.id for h in candidates], session, failures, fallback=own_participations
        )

        visibility = HangoutVisibility(session.user_id, time_range)
        feed = visibility.partition(candidates, participants)
        feed.participants = participants
        feed.creators = self._creators(candidates, session, failures)
        feed.failures = tuple(failures)

        logger.debug(
            "Feed for %s (%s): %d mine, %d joined, %d past, %d discoverable",
            session.user_id,
            TimeFilter(time_filter).value,
            len(feed.mine),
            len(feed.joined),
            len(feed.past),
            len(feed.discoverable),
        )
        return feed

    def happening_around(
        self,
        session: Session,
        time_filter: TimeFilter | str,
        now: DateTime | None = None,
        limit: int = 4,
    ) -> HangoutFeed:
        """Discoverable hangouts for the home view, capped at ``limit``."""
        feed = self.load_feed(session, time_filter, now)
        return HangoutFeed(
            discoverable=feed.discoverable[:limit],
            participants=feed.participants,
            creators=feed.creators,
            failures=feed.failures,
        )

    def create_hangout(
        self,
        session: Session,
        draft: HangoutDraft,
        now: DateTime | None = None,
    ) -> Hangout:
        """
        Insert a new hangout in "planning" status.

        Raises:
            ValueError: If the resolved start is not before the end
            BackendError: If the insert fails
        """
        now = now or pendulum.now(self.timezone)
        start = draft.resolve_start(now)
        end = draft.resolve_end(now)

        if start and end and start >= end:
            raise ValueError("end_time must be later than start_time")

        row = self._backend.insert(
            "hangouts",
            {
                "title": draft.title,
                "description": draft.description,
                "creator_id": session.user_id,
                "start_time": start,
                "end_time": end,
                "status": HangoutStatus.PLANNING.value,
                "is_public": draft.is_public,
            },
            session=session,
        )
        hangout = Hangout.from_row(row, self.timezone)
        logger.info("Created hangout %s (%s)", hangout.id, hangout.title)
        return hangout

    def join(self, session: Session, hangout_id: str) -> Participation:
        """Accept a hangout. Joining twice returns the same participation."""
        return self._participate(session, hangout_id, ParticipationStatus.ACCEPTED)

    def mark_interested(self, session: Session, hangout_id: str) -> Participation:
        """Mark interest ("maybe"). Never downgrades an accepted participation."""
        return self._participate(session, hangout_id, ParticipationStatus.MAYBE)

    def _participate(
        self,
        session: Session,
        hangout_id: str,
        status: ParticipationStatus,
    ) -> Participation:
        hangout = self._get_hangout(session, hangout_id)

        if hangout.creator_id == session.user_id:
            raise VisibilityError("You can't join your own hangout")

        if not hangout.status.is_active:
            raise VisibilityError(f"Hangout is {hangout.status.value}")

        existing_rows = self._backend.select(
            "hangout_participants",
            [eq("hangout_id", hangout_id), eq("user_id", session.user_id)],
            session=session,
        )
        existing = Participation.from_row(existing_rows[0]) if existing_rows else None

        if existing is None and not hangout.is_public:
            raise VisibilityError("This hangout is invite-only")

        if existing is not None and existing.status is ParticipationStatus.ACCEPTED:
            # already going; both join and interested are no-ops
            return existing

        row = self._backend.upsert(
            "hangout_participants",
            {"hangout_id": hangout_id, "user_id": session.user_id, "status": status.value},
            session=session,
            on_conflict=("hangout_id", "user_id"),
        )
        participation = Participation.from_row(row)
        logger.info("%s is %s for hangout %s", session.user_id, participation.status.value, hangout_id)
        return participation

    def _get_hangout(self, session: Session, hangout_id: str) -> Hangout:
        rows = self._backend.select("hangouts", [eq("id", hangout_id)], session=session, limit=1)
        if not rows:
            raise VisibilityError(f"Hangout not found: {hangout_id}")
        return Hangout.from_row(rows[0], self.timezone)

    def _hangouts(
        self,
        filters: Sequence[Filter],
        session: Session,
        failures: List[str],
        source: str,
        **select_kwargs: Any,
    ) -> List[Hangout]:
        return fetch_rows(
            self._backend,
            "hangouts",
            filters,
            session=session,
            parse=lambda row: Hangout.from_row(row, self.timezone),
            failures=failures,
            source=source,
            **select_kwargs,
        )

    def _participants_for(
        self,
        hangout_ids: Sequence[str],
        session: Session,
        failures: List[str],
        fallback: Sequence[Participation],
    ) -> Dict[str, List[Participation]]:
        """
        Group participation rows by hangout.

        If the lookup fails, the user's own rows still keep joined hangouts
        out of the discoverable list.
        """
        ids = sorted(set(hangout_ids))
        rows: List[Participation] = []

        if ids:
            before = len(failures)
            rows = fetch_rows(
                self._backend,
                "hangout_participants",
                [in_("hangout_id", ids)],
                session=session,
                parse=Participation.from_row,
                failures=failures,
                source="participants",
            )
            if len(failures) > before:
                rows = list(fallback)

        grouped: Dict[str, List[Participation]] = defaultdict(list)
        for participation in rows:
            grouped[participation.hangout_id].append(participation)
        return dict(grouped)

    def _creators(
        self,
        hangouts: Sequence[Hangout],
        session: Session,
        failures: List[str],
    ) -> Dict[str, Profile]:
        ids = sorted({h.creator_id for h in hangouts if h.creator_id != session.user_id})
        if not ids:
            return {}
        profiles = fetch_rows(
            self._backend,
            "profiles",
            [in_("id", ids)],
            session=session,
            parse=Profile.from_row,
            failures=failures,
            source="creators",
        )
        return {p.id: p for p in profiles}
