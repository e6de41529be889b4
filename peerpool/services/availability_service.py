"""
Application service for broadcasting availability and the "who's free when" views.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import pendulum
from pendulum import DateTime

from ..adapters.query import RowBackend, eq, gte, in_, lte
from ..domain.models import (
    AvailabilityBlock,
    AvailabilityStatus,
    Friendship,
    FriendshipStatus,
    Hangout,
    Profile,
    Session,
    parse_instant,
)
from ..domain.windowing import (
    Period,
    TimeFilter,
    bucket_period,
    group_by_period,
    periods_covered,
    resolve_time_range,
)
from .hangout_service import HangoutService, fetch_rows

logger = logging.getLogger(__name__)


@dataclass
class PeriodSummary:
    """Who is free, who might be, and what is planned in one period."""
    period: Period
    free: List[Profile] = field(default_factory=list)
    maybe: List[Profile] = field(default_factory=list)
    planned: List[Hangout] = field(default_factory=list)

    @property
    def people_count(self) -> int:
        return len(self.free) + len(self.maybe)


@dataclass
class TimeView:
    periods: List[PeriodSummary]
    failures: Tuple[str, ...] = ()

    def summary(self, period: Period) -> PeriodSummary:
        return next(s for s in self.periods if s.period is period)


@dataclass
class AvailabilityHighlights:
    """Free friends per period; periods with nobody free are omitted."""
    groups: Dict[Period, List[Profile]]
    failures: Tuple[str, ...] = ()


class AvailabilityService:
    """
    Reads friends' availability blocks and buckets them per period.
    """

    def __init__(
        self,
        backend: RowBackend,
        *,
        timezone: str = "UTC",
        include_current_weekend: bool = False,
        hangout_service: HangoutService | None = None,
    ) -> None:
        self._backend = backend
        self.timezone = timezone
        self.include_current_weekend = include_current_weekend
        self._hangouts = hangout_service or HangoutService(
            backend, timezone=timezone, include_current_weekend=include_current_weekend
        )

    def broadcast(
        self,
        session: Session,
        start: DateTime,
        end: DateTime,
        status: AvailabilityStatus | str = AvailabilityStatus.AVAILABLE,
    ) -> AvailabilityBlock:
        """
        Publish an availability block for the session user.

        Raises:
            ValueError: If start is not before end
            BackendError: If the insert fails
        """
        status = AvailabilityStatus(status)
        start = parse_instant(start, self.timezone)
        end = parse_instant(end, self.timezone)

        if start >= end:
            raise ValueError(f"Start time {start} must be before end time {end}")

        row = self._backend.insert(
            "availability_blocks",
            {
                "user_id": session.user_id,
                "start_time": start,
                "end_time": end,
                "status": status.value,
            },
            session=session,
        )
        block = AvailabilityBlock.from_row(row, self.timezone)
        logger.info("%s is %s %s", session.user_id, block.status.value, block.time_range)
        return block

    def friend_ids(self, session: Session) -> List[str]:
        """Ids of accepted friends, in either direction of the friendship."""
        return self._friend_ids(session, [])

    def load_time_view(
        self,
        session: Session,
        time_filter: TimeFilter | str,
        now: DateTime | None = None,
    ) -> TimeView:
        """
        Build the per-period view of free friends and planned hangouts.

        Returns:
            TimeView with one PeriodSummary per period, morning to night
        """
        now = now or pendulum.now(self.timezone)
        time_range = resolve_time_range(
            time_filter, now, include_current_weekend=self.include_current_weekend
        )
        failures: List[str] = []

        friend_ids = self._friend_ids(session, failures)
        profiles = self._profiles(friend_ids, session, failures)
        blocks = self._blocks(friend_ids, time_range, session, failures)

        free_pairs: List[Tuple[Period, Profile]] = []
        maybe_pairs: List[Tuple[Period, Profile]] = []

        for block in blocks:
            if block.status is AvailabilityStatus.BUSY:
                continue
            profile = profiles.get(block.user_id) or Profile(id=block.user_id, email="")
            target = free_pairs if block.status is AvailabilityStatus.AVAILABLE else maybe_pairs
            for period in periods_covered(block.time_range, within=time_range):
                target.append((period, profile))

        free = group_by_period(free_pairs, key=lambda pair: pair[0])
        maybe = group_by_period(maybe_pairs, key=lambda pair: pair[0])

        feed = self._hangouts.load_feed(session, time_filter, now)
        failures.extend(feed.failures)
        planned = group_by_period(
            [h for h in feed.mine + feed.joined if h.start_time and time_range.contains(h.start_time)],
            key=lambda h: bucket_period(h.start_time, self.timezone),
        )

        periods = [
            PeriodSummary(
                period=period,
                free=_unique_profiles(p for _, p in free[period]),
                maybe=_unique_profiles(p for _, p in maybe[period]),
                planned=planned[period],
            )
            for period in Period
        ]
        return TimeView(periods=periods, failures=tuple(failures))

    def availability_highlights(
        self,
        session: Session,
        time_filter: TimeFilter | str,
        now: DateTime | None = None,
    ) -> AvailabilityHighlights:
        """Free friends grouped per period for the home view."""
        view = self.load_time_view(session, time_filter, now)
        groups = {s.period: s.free for s in view.periods if s.free}
        return AvailabilityHighlights(groups=groups, failures=view.failures)

    def _friend_ids(self, session: Session, failures: List[str]) -> List[str]:
        accepted = eq("status", FriendshipStatus.ACCEPTED.value)
        outgoing = fetch_rows(
            self._backend,
            "friendships",
            [eq("user_id", session.user_id), accepted],
            session=session,
            parse=Friendship.from_row,
            failures=failures,
            source="friends",
        )
        incoming = fetch_rows(
            self._backend,
            "friendships",
            [eq("friend_id", session.user_id), accepted],
            session=session,
            parse=Friendship.from_row,
            failures=failures,
            source="friend requests",
        )

        ids: List[str] = []
        for friendship in outgoing + incoming:
            other = friendship.other(session.user_id)
            if other != session.user_id and other not in ids:
                ids.append(other)
        return ids

    def _profiles(self, ids: List[str], session: Session, failures: List[str]) -> Dict[str, Profile]:
        if not ids:
            return {}
        profiles = fetch_rows(
            self._backend,
            "profiles",
            [in_("id", ids)],
            session=session,
            parse=Profile.from_row,
            failures=failures,
        )
        return {p.id: p for p in profiles}

    def _blocks(self, ids, time_range, session: Session, failures: List[str]) -> List[AvailabilityBlock]:
        if not ids:
            return []
        return fetch_rows(
            self._backend,
            "availability_blocks",
            [
                in_("user_id", ids),
                lte("start_time", time_range.end),
                gte("end_time", time_range.start),
            ],
            session=session,
            parse=lambda row: AvailabilityBlock.from_row(row, self.timezone),
            failures=failures,
            source="availability",
            order_by="start_time",
        )


def _unique_profiles(profiles) -> List[Profile]:
    seen: set[str] = set()
    unique: List[Profile] = []
    for profile in profiles:
        if profile.id not in seen:
            seen.add(profile.id)
            unique.append(profile)
    return unique
