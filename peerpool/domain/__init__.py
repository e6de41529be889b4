"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import AuthenticationError, BackendError, PeerpoolError, VisibilityError
from .models import (
    AvailabilityBlock,
    AvailabilityStatus,
    Friendship,
    FriendshipStatus,
    Hangout,
    HangoutStatus,
    Participation,
    ParticipationStatus,
    Profile,
    Session,
    TimeRange,
)
from .visibility import HangoutBucket, HangoutFeed, HangoutVisibility
from .windowing import Period, TimeFilter, bucket_period, group_by_period, resolve_time_range

__all__ = [
    "AuthenticationError",
    "BackendError",
    "PeerpoolError",
    "VisibilityError",
    "AvailabilityBlock",
    "AvailabilityStatus",
    "Friendship",
    "FriendshipStatus",
    "Hangout",
    "HangoutStatus",
    "Participation",
    "ParticipationStatus",
    "Profile",
    "Session",
    "TimeRange",
    "HangoutBucket",
    "HangoutFeed",
    "HangoutVisibility",
    "Period",
    "TimeFilter",
    "bucket_period",
    "group_by_period",
    "resolve_time_range",
]
