"""
Domain models for profiles, availability, hangouts and time ranges.

Rows arrive from the backend as plain dicts; every model offers a
``from_row`` constructor that validates status values and parses instants.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

import pendulum
from pendulum import DateTime


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    MAYBE = "maybe"


class HangoutStatus(str, Enum):
    PLANNING = "planning"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_active(self) -> bool:
        """Planning and confirmed hangouts are still upcoming."""
        return self in (HangoutStatus.PLANNING, HangoutStatus.CONFIRMED)


class ParticipationStatus(str, Enum):
    INVITED = "invited"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    MAYBE = "maybe"

    @property
    def is_attending(self) -> bool:
        return self in (ParticipationStatus.ACCEPTED, ParticipationStatus.MAYBE)


class FriendshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    BLOCKED = "blocked"


def parse_instant(value: Any, timezone: str | None = None) -> DateTime | None:
    """
    Parse a backend timestamp into a pendulum DateTime.

    Args:
        value: ISO 8601 string, datetime, pendulum DateTime or None
        timezone: Optional IANA timezone to convert the result into

    Returns:
        Pendulum DateTime, or None when value is None

    Raises:
        ValueError: If the value cannot be parsed as a date-time
    """
    if value is None:
        return None

    if isinstance(value, DateTime):
        dt = value
    elif isinstance(value, datetime):
        dt = pendulum.instance(value)
    else:
        try:
            dt = pendulum.parse(str(value))
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Could not parse datetime: {value}") from exc
        if not isinstance(dt, DateTime):
            raise ValueError(f"Could not parse datetime: {value}")

    if timezone:
        return dt.in_timezone(timezone)
    return dt


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end. Both bounds are inclusive.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def contains(self, instant: DateTime) -> bool:
        """Check whether an instant lies inside the range."""
        return self.start <= instant <= self.end

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        return TimeRange(start=max(self.start, other.start), end=min(self.end, other.end))

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('DD.MM.YYYY HH:mm')}"


@dataclass(frozen=True)
class Profile:
    id: str
    email: str
    full_name: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Profile":
        return cls(
            id=row["id"],
            email=row.get("email") or "",
            full_name=row.get("full_name"),
            avatar_url=row.get("avatar_url"),
        )

    @property
    def display_name(self) -> str:
        """Full name when set, otherwise the local part of the email."""
        if self.full_name:
            return self.full_name
        return self.email.split("@", 1)[0] or self.id

    @property
    def initial(self) -> str:
        return self.display_name[:1].upper()


@dataclass(frozen=True)
class AvailabilityBlock:
    """
    A user-declared window with a status.

    Invariant: start_time must be before end_time.
    """
    id: str
    user_id: str
    start_time: DateTime
    end_time: DateTime
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Availability start {self.start_time} must be before end {self.end_time}"
            )

    @classmethod
    def from_row(cls, row: Mapping[str, Any], timezone: str | None = None) -> "AvailabilityBlock":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            start_time=parse_instant(row["start_time"], timezone),
            end_time=parse_instant(row["end_time"], timezone),
            status=AvailabilityStatus(row.get("status") or AvailabilityStatus.AVAILABLE.value),
        )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)


@dataclass(frozen=True)
class Hangout:
    """A plannable social event; start and end are optional ("Time TBD")."""
    id: str
    title: str
    creator_id: str
    description: str | None = None
    start_time: DateTime | None = None
    end_time: DateTime | None = None
    status: HangoutStatus = HangoutStatus.PLANNING
    is_public: bool = False

    def __post_init__(self):
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValueError(
                f"Hangout start {self.start_time} must be before end {self.end_time}"
            )

    @classmethod
    def from_row(cls, row: Mapping[str, Any], timezone: str | None = None) -> "Hangout":
        return cls(
            id=row["id"],
            title=row["title"],
            creator_id=row["creator_id"],
            description=row.get("description"),
            start_time=parse_instant(row.get("start_time"), timezone),
            end_time=parse_instant(row.get("end_time"), timezone),
            status=HangoutStatus(row.get("status") or HangoutStatus.PLANNING.value),
            is_public=bool(row.get("is_public", False)),
        )


@dataclass(frozen=True)
class Participation:
    hangout_id: str
    user_id: str
    status: ParticipationStatus = ParticipationStatus.INVITED

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Participation":
        return cls(
            hangout_id=row["hangout_id"],
            user_id=row["user_id"],
            status=ParticipationStatus(row.get("status") or ParticipationStatus.INVITED.value),
        )


@dataclass(frozen=True)
class Friendship:
    user_id: str
    friend_id: str
    status: FriendshipStatus = FriendshipStatus.PENDING

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Friendship":
        return cls(
            user_id=row["user_id"],
            friend_id=row["friend_id"],
            status=FriendshipStatus(row.get("status") or FriendshipStatus.PENDING.value),
        )

    def other(self, user_id: str) -> str:
        """Return the id on the other side of the friendship."""
        return self.friend_id if self.user_id == user_id else self.user_id


@dataclass(frozen=True)
class Session:
    """
    Explicit authentication context passed to every data-access call.
    """
    user_id: str
    email: str = ""
    access_token: str = ""
    refresh_token: str = ""
    expires_at: int = 0  # unix seconds, 0 = never expires

    def is_expired(self, now: DateTime | None = None) -> bool:
        if not self.expires_at:
            return False
        now = now or pendulum.now("UTC")
        return now.int_timestamp >= self.expires_at
