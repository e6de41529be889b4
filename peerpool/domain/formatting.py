"""
Display helpers for hangout times.
"""

from pendulum import DateTime


def _clock(dt: DateTime) -> str:
    return dt.format("h:mm A")


def format_hangout_time(start: DateTime | None, now: DateTime) -> str:
    """
    Format a hangout start relative to now.

    Examples: "Time TBD", "Today, 3:00 PM", "Tomorrow, 7:00 PM",
    "Tue, Jan 16, 7:00 PM".
    """
    if start is None:
        return "Time TBD"

    local = start.in_timezone(now.tz) if now.tz else start
    today = now.date()

    if local.date() == today:
        return f"Today, {_clock(local)}"

    if local.date() == now.add(days=1).date():
        return f"Tomorrow, {_clock(local)}"

    return f"{local.format('ddd, MMM D')}, {_clock(local)}"
