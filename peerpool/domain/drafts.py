"""
Hangout creation drafts and the prefill links that open the create flow.
"""

from datetime import datetime
from enum import Enum
from typing import Mapping, Optional
from urllib.parse import urlencode

import pendulum
from pendulum import DateTime
from pydantic import BaseModel, Field, field_validator, model_validator

from .windowing import Period, period_range

CREATE_PATH = "/create"
DESCRIPTION_MAX_LENGTH = 200


class Visibility(str, Enum):
    SELECTED = "selected"
    ALL_FRIENDS = "all_friends"
    PUBLIC = "public"


class TimeSlot(str, Enum):
    """Time choices offered by the create flow."""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    TONIGHT = "tonight"
    CUSTOM = "custom"

    @property
    def period(self) -> Period | None:
        if self is TimeSlot.TONIGHT:
            return Period.NIGHT
        if self is TimeSlot.CUSTOM:
            return None
        return Period(self.value)

    @property
    def opening_hour(self) -> int | None:
        """Local hour a slot starts at when picked ahead of time."""
        return _SLOT_OPENING_HOURS.get(self)


# Start hours of the create-flow slots, independent of the period bounds
_SLOT_OPENING_HOURS = {
    TimeSlot.MORNING: 9,
    TimeSlot.AFTERNOON: 12,
    TimeSlot.EVENING: 17,
    TimeSlot.TONIGHT: 21,
}


# (id, icon, label) of the one-tap presets on the home view
QUICK_HANGOUTS = [
    ("gym", "🏋️", "Gym"),
    ("walk", "🚶", "Walk"),
    ("coffee", "☕", "Coffee"),
    ("library", "📚", "Library"),
    ("chill", "😌", "Chill"),
    ("lunch", "🍽️", "Lunch"),
    ("movie", "🎬", "Movie"),
    ("games", "🎮", "Games"),
    ("study", "📖", "Study"),
]


def create_path(title: str | None = None, time: str | None = None) -> str:
    """Build the create-flow path with optional title/time prefill."""
    params = {}
    if title:
        params["title"] = title
    if time:
        params["time"] = time

    if not params:
        return CREATE_PATH
    return f"{CREATE_PATH}?{urlencode(params)}"


class HangoutDraft(BaseModel):
    """Form state of the create flow, validated before insert."""
    title: str
    description: Optional[str] = None
    time_slot: Optional[TimeSlot] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    visibility: Visibility = Visibility.ALL_FRIENDS
    # form-only; the hangouts table has no group size column
    max_people: int = Field(default=4, ge=2, le=20)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        """Titles are required and stripped."""
        value = value.strip()
        if not value:
            raise ValueError("Please add a title")
        return value

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if len(value) > DESCRIPTION_MAX_LENGTH:
            raise ValueError(f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters")
        return value or None

    @model_validator(mode="after")
    def validate_times(self) -> "HangoutDraft":
        """Ensure the window opens before it closes and custom slots carry a time."""
        if self.start_time and self.end_time:
            if (self.start_time.tzinfo is None) != (self.end_time.tzinfo is None):
                raise ValueError("start_time and end_time must both carry a timezone or neither")
            if self.start_time >= self.end_time:
                raise ValueError("end_time must be later than start_time")
        if self.time_slot is TimeSlot.CUSTOM and self.start_time is None:
            raise ValueError("Pick a time for a custom slot")
        return self

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC

    @classmethod
    def from_query(cls, params: Mapping[str, str], **overrides) -> "HangoutDraft":
        """
        Apply create-link prefills. Unknown time values are ignored.
        """
        values = {"title": params.get("title", "")}

        time_value = params.get("time")
        if time_value in {slot.value for slot in TimeSlot}:
            values["time_slot"] = TimeSlot(time_value)

        values.update(overrides)
        return cls(**values)

    def resolve_start(self, now: DateTime) -> DateTime | None:
        """
        Concrete start instant for the draft.

        An explicit start wins. A period slot starts at the later of the
        slot's opening hour and now, rolling over to tomorrow's opening hour
        when the period is already over today.
        """
        if self.start_time is not None:
            return pendulum.instance(self.start_time, tz=now.tzinfo)

        period = self.time_slot.period if self.time_slot else None
        if period is None:
            return None

        opening = now.set(hour=self.time_slot.opening_hour, minute=0, second=0, microsecond=0)
        if now > period_range(period, now).end:
            return opening.add(days=1)

        return max(opening, now.set(second=0, microsecond=0))

    def resolve_end(self, now: DateTime) -> DateTime | None:
        """Concrete end instant; only an explicit end is used."""
        if self.end_time is None:
            return None
        return pendulum.instance(self.end_time, tz=now.tzinfo)
