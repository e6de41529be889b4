"""
Hangout visibility: which list a hangout belongs in for a given user.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .models import Hangout, Participation, Profile, TimeRange


class HangoutBucket(str, Enum):
    MINE = "mine"
    JOINED = "joined"
    PAST = "past"
    DISCOVERABLE = "discoverable"
    EXCLUDED = "excluded"


@dataclass
class HangoutFeed:
    """
    Hangouts partitioned for one user.

    ``failures`` names the data sources that could not be loaded, so an
    empty list can be told apart from a failed fetch.
    """
    mine: List[Hangout] = field(default_factory=list)
    joined: List[Hangout] = field(default_factory=list)
    past: List[Hangout] = field(default_factory=list)
    discoverable: List[Hangout] = field(default_factory=list)
    participants: Dict[str, List[Participation]] = field(default_factory=dict)
    creators: Dict[str, Profile] = field(default_factory=dict)
    failures: Tuple[str, ...] = ()

    def attendee_count(self, hangout_id: str) -> int:
        """Accepted and maybe participants of a hangout."""
        return sum(1 for p in self.participants.get(hangout_id, ()) if p.status.is_attending)

    def bucket_of(self, hangout_id: str) -> HangoutBucket:
        for bucket in (HangoutBucket.MINE, HangoutBucket.JOINED, HangoutBucket.PAST, HangoutBucket.DISCOVERABLE):
            if any(h.id == hangout_id for h in getattr(self, bucket.value)):
                return bucket
        return HangoutBucket.EXCLUDED

    @property
    def is_empty(self) -> bool:
        return not (self.mine or self.joined or self.past or self.discoverable)


class HangoutVisibility:
    """
    Classifies hangouts into mine / joined / past / discoverable.

    Rules:
    1. Status is authoritative: planning and confirmed hangouts are active,
       completed and cancelled ones can only ever be "past", for the creator
       and for anyone with a participation row of any status
    2. The creator sees their active hangouts as "mine"
    3. Accepted or maybe participants see active hangouts as "joined"
    4. Public active hangouts by others show up as "discoverable" when the
       user has no participation row and the start lies in the time range
    """

    def __init__(self, user_id: str, time_range: TimeRange):
        self.user_id = user_id
        self.time_range = time_range

    def classify(self, hangout: Hangout, participants: Sequence[Participation] = ()) -> HangoutBucket:
        """
        Classify a single hangout for the current user.

        Args:
            hangout: The hangout row
            participants: Participation rows of this hangout (may include
                other users; rows for other hangouts are ignored)

        Returns:
            The bucket the hangout belongs in
        """
        own_rows = [
            p for p in participants
            if p.user_id == self.user_id and p.hangout_id == hangout.id
        ]
        is_creator = hangout.creator_id == self.user_id
        is_attending = any(p.status.is_attending for p in own_rows)

        if not hangout.status.is_active:
            if is_creator or own_rows:
                return HangoutBucket.PAST
            return HangoutBucket.EXCLUDED

        if is_creator:
            return HangoutBucket.MINE

        if is_attending:
            return HangoutBucket.JOINED

        if self._is_discoverable(hangout, has_participation=bool(own_rows)):
            return HangoutBucket.DISCOVERABLE

        return HangoutBucket.EXCLUDED

    def partition(
        self,
        hangouts: Iterable[Hangout],
        participants_by_hangout: Mapping[str, Sequence[Participation]] | None = None
    ) -> HangoutFeed:
        """
        Classify many hangouts at once.

        Duplicate hangout ids are classified once. Each bucket is sorted by
        start time with undated hangouts last.
        """
        participants_by_hangout = participants_by_hangout or {}
        buckets: Dict[HangoutBucket, List[Hangout]] = {bucket: [] for bucket in HangoutBucket}
        seen: set[str] = set()

        for hangout in hangouts:
            if hangout.id in seen:
                continue
            seen.add(hangout.id)

            bucket = self.classify(hangout, participants_by_hangout.get(hangout.id, ()))
            buckets[bucket].append(hangout)

        return HangoutFeed(
            mine=sort_by_start(buckets[HangoutBucket.MINE]),
            joined=sort_by_start(buckets[HangoutBucket.JOINED]),
            past=sort_by_start(buckets[HangoutBucket.PAST]),
            discoverable=sort_by_start(buckets[HangoutBucket.DISCOVERABLE]),
        )

    def _is_discoverable(self, hangout: Hangout, *, has_participation: bool) -> bool:
        if not hangout.is_public or has_participation:
            return False
        if hangout.start_time is None:
            return False
        return self.time_range.contains(hangout.start_time)


def sort_by_start(hangouts: Iterable[Hangout]) -> List[Hangout]:
    """Sort by start time ascending; hangouts without a time go last."""
    return sorted(
        hangouts,
        key=lambda h: (h.start_time is None, h.start_time.int_timestamp if h.start_time else 0)
    )
