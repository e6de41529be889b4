"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AvailabilityHighlights, AvailabilityService, PeriodSummary, TimeView
from .hangout_service import HangoutService

__all__ = [
    "AvailabilityHighlights",
    "AvailabilityService",
    "HangoutService",
    "PeriodSummary",
    "TimeView",
]
