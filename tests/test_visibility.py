"""
Tests for hangout visibility classification.
"""

import pendulum
import pytest

from peerpool.domain.models import Hangout, HangoutStatus, Participation, ParticipationStatus
from peerpool.domain.visibility import HangoutBucket, HangoutVisibility, sort_by_start
from peerpool.domain.windowing import resolve_time_range

TZ = "Europe/Berlin"
NOW = pendulum.parse("2024-11-25 10:00", tz=TZ)
TOMORROW = resolve_time_range("tomorrow", NOW)


def _hangout(id="h1", creator="alice", status=HangoutStatus.CONFIRMED, public=False, start="2024-11-26 18:00"):
    return Hangout(
        id=id,
        title=f"Hangout {id}",
        creator_id=creator,
        start_time=pendulum.parse(start, tz=TZ) if start else None,
        status=status,
        is_public=public,
    )


def _part(user, status, hangout_id="h1"):
    return Participation(hangout_id=hangout_id, user_id=user, status=ParticipationStatus(status))


class TestClassify:
    """Tests for HangoutVisibility.classify."""

    def test_creator_active_is_mine_never_discoverable(self):
        """A confirmed hangout created by U is mine for U, even when public and in range."""
        visibility = HangoutVisibility("alice", TOMORROW)

        assert visibility.classify(_hangout(public=True)) is HangoutBucket.MINE
        assert visibility.classify(_hangout(status=HangoutStatus.PLANNING)) is HangoutBucket.MINE

    @pytest.mark.parametrize("status", [HangoutStatus.COMPLETED, HangoutStatus.CANCELLED])
    def test_creator_closed_is_past(self, status):
        """Status decides between mine and past for the creator."""
        visibility = HangoutVisibility("alice", TOMORROW)

        assert visibility.classify(_hangout(status=status)) is HangoutBucket.PAST

    @pytest.mark.parametrize("status", ["accepted", "maybe"])
    def test_attending_participant_is_joined(self, status):
        """Accepted or maybe participants see active hangouts as joined."""
        visibility = HangoutVisibility("bob", TOMORROW)

        assert visibility.classify(_hangout(), [_part("bob", status)]) is HangoutBucket.JOINED

    def test_attending_participant_closed_is_past(self):
        """A completed hangout the user attended is past."""
        visibility = HangoutVisibility("bob", TOMORROW)
        hangout = _hangout(status=HangoutStatus.COMPLETED)

        assert visibility.classify(hangout, [_part("bob", "accepted")]) is HangoutBucket.PAST

    @pytest.mark.parametrize("status", ["invited", "declined"])
    def test_any_participant_sees_closed_as_past(self, status):
        """Every participation row keeps a closed hangout in past."""
        visibility = HangoutVisibility("bob", TOMORROW)
        hangout = _hangout(status=HangoutStatus.CANCELLED, public=True)

        assert visibility.classify(hangout, [_part("bob", status)]) is HangoutBucket.PAST

    def test_closed_without_participation_is_excluded(self):
        """Closed hangouts of others stay hidden from non-participants."""
        visibility = HangoutVisibility("bob", TOMORROW)
        hangout = _hangout(status=HangoutStatus.COMPLETED, public=True)

        assert visibility.classify(hangout, [_part("carol", "accepted")]) is HangoutBucket.EXCLUDED

    def test_public_in_range_is_discoverable(self):
        """Public active hangouts by others starting in the range are discoverable."""
        visibility = HangoutVisibility("bob", TOMORROW)

        assert visibility.classify(_hangout(public=True), [_part("carol", "accepted")]) is HangoutBucket.DISCOVERABLE

    def test_public_already_joined_is_not_discoverable(self):
        """A public hangout the user already joined shows under joined only."""
        visibility = HangoutVisibility("bob", TOMORROW)

        assert visibility.classify(_hangout(public=True), [_part("bob", "accepted")]) is HangoutBucket.JOINED

    @pytest.mark.parametrize("status", ["invited", "declined"])
    def test_any_participation_row_blocks_discovery(self, status):
        """Invited or declined users don't see the hangout as discoverable."""
        visibility = HangoutVisibility("bob", TOMORROW)

        assert visibility.classify(_hangout(public=True), [_part("bob", status)]) is HangoutBucket.EXCLUDED

    def test_public_out_of_range_is_excluded(self):
        """Public hangouts outside the resolved range are not discoverable."""
        visibility = HangoutVisibility("bob", TOMORROW)

        assert visibility.classify(_hangout(public=True, start="2024-11-28 18:00")) is HangoutBucket.EXCLUDED

    def test_public_without_time_is_excluded(self):
        """Hangouts with no start time are never discoverable."""
        visibility = HangoutVisibility("bob", TOMORROW)

        assert visibility.classify(_hangout(public=True, start=None)) is HangoutBucket.EXCLUDED

    def test_private_hangout_is_excluded(self):
        """Private hangouts by others are not visible to non-participants."""
        visibility = HangoutVisibility("bob", TOMORROW)

        assert visibility.classify(_hangout(public=False)) is HangoutBucket.EXCLUDED

    def test_rows_for_other_hangouts_are_ignored(self):
        """A participation row for a different hangout doesn't count."""
        visibility = HangoutVisibility("bob", TOMORROW)

        bucket = visibility.classify(_hangout(public=True), [_part("bob", "accepted", hangout_id="other")])

        assert bucket is HangoutBucket.DISCOVERABLE


class TestPartition:
    """Tests for HangoutVisibility.partition."""

    def test_partition_buckets_and_sorts(self):
        """Hangouts land in exactly one bucket each, sorted by start time."""
        visibility = HangoutVisibility("bob", TOMORROW)
        hangouts = [
            _hangout(id="late", creator="bob", start="2024-11-27 20:00"),
            _hangout(id="tbd", creator="bob", start=None),
            _hangout(id="early", creator="bob", start="2024-11-26 08:00"),
            _hangout(id="joined", creator="alice"),
            _hangout(id="public", creator="carol", public=True),
            _hangout(id="done", creator="bob", status=HangoutStatus.COMPLETED),
            _hangout(id="hidden", creator="carol"),
        ]
        participants = {"joined": [_part("bob", "maybe", hangout_id="joined")]}

        feed = visibility.partition(hangouts, participants)

        assert [h.id for h in feed.mine] == ["early", "late", "tbd"]
        assert [h.id for h in feed.joined] == ["joined"]
        assert [h.id for h in feed.discoverable] == ["public"]
        assert [h.id for h in feed.past] == ["done"]
        assert feed.bucket_of("hidden") is HangoutBucket.EXCLUDED
        assert feed.bucket_of("public") is HangoutBucket.DISCOVERABLE

    def test_partition_deduplicates(self):
        """The same hangout from two sources is classified once."""
        visibility = HangoutVisibility("bob", TOMORROW)
        hangout = _hangout(public=True)

        feed = visibility.partition([hangout, hangout])

        assert len(feed.discoverable) == 1

    def test_sort_by_start_puts_undated_last(self):
        """Undated hangouts sort after dated ones."""
        hangouts = [_hangout(id="a", start=None), _hangout(id="b", start="2024-11-26 09:00")]

        assert [h.id for h in sort_by_start(hangouts)] == ["b", "a"]
