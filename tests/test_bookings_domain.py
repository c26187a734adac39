"""Unit tests for the booking write path (domain.bookings).

The transaction and repositories are mocked so these run without Postgres;
test_concurrency.py covers the real locking behaviour.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

import psycopg2.errors
import pytest

from helpers import MockTxnContext, make_booking, make_room

from bunkhouse.domain.errors import (
    BookingNotFoundError,
    ConcurrencyExhaustedError,
    ConcurrencyTransientError,
    ConflictError,
    RoomNotFoundError,
    ValidationError,
)
from bunkhouse.domain.models import GuestInfo

TODAY = date(2026, 1, 1)
GUEST = GuestInfo(name="Ana Souza", email="ana@example.com")

MODULE = "bunkhouse.domain.bookings"


@pytest.fixture
def db(cur):
    """Patch txn() and the repository calls used by domain.bookings.

    All mocks hang off one parent so call order can be asserted.
    """
    parent = MagicMock()
    ctx = MockTxnContext(cur)
    with patch(f"{MODULE}.txn", return_value=ctx) as txn_mock, \
         patch(f"{MODULE}.today", return_value=TODAY), \
         patch(f"{MODULE}.lock_room") as lock_room, \
         patch(f"{MODULE}.get_booking") as get_booking, \
         patch(f"{MODULE}.assert_no_conflict") as assert_no_conflict, \
         patch(f"{MODULE}.insert_booking") as insert_booking, \
         patch(f"{MODULE}.update_booking_stay") as update_booking_stay, \
         patch(f"{MODULE}.soft_delete_booking") as soft_delete_booking, \
         patch(f"{MODULE}.restore_booking_row") as restore_booking_row:
        parent.attach_mock(lock_room, "lock_room")
        parent.attach_mock(get_booking, "get_booking")
        parent.attach_mock(assert_no_conflict, "assert_no_conflict")
        parent.attach_mock(insert_booking, "insert_booking")
        parent.attach_mock(update_booking_stay, "update_booking_stay")
        parent.attach_mock(soft_delete_booking, "soft_delete_booking")
        parent.attach_mock(restore_booking_row, "restore_booking_row")
        parent.txn = txn_mock
        lock_room.return_value = make_room(1)
        yield parent


REPO_CALLS = frozenset(
    {
        "lock_room",
        "get_booking",
        "assert_no_conflict",
        "insert_booking",
        "update_booking_stay",
        "soft_delete_booking",
        "restore_booking_row",
    }
)


def _call_names(parent) -> list[str]:
    return [c[0] for c in parent.mock_calls if c[0] in REPO_CALLS]


# ── create_booking ────────────────────────────────────────────────────────────


class TestCreateBooking:
    def test_happy_path_locks_checks_then_inserts(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        created = make_booking(10)
        db.insert_booking.return_value = created

        result = create_booking(
            room_id=1,
            check_in=date(2026, 1, 5),
            check_out=date(2026, 1, 8),
            guest=GUEST,
            settings=fast_settings,
        )

        assert result is created
        assert _call_names(db) == ["lock_room", "assert_no_conflict", "insert_booking"]
        db.txn.assert_called_once_with(None, lock_timeout_ms=5000)
        db.assert_no_conflict.assert_called_once_with(
            db.lock_room.call_args[0][0],
            room_id=1,
            check_in=date(2026, 1, 5),
            check_out=date(2026, 1, 8),
        )

    def test_uses_given_connection(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        conn = MagicMock()
        db.insert_booking.return_value = make_booking(10)

        create_booking(
            room_id=1,
            check_in=date(2026, 1, 5),
            check_out=date(2026, 1, 8),
            guest=GUEST,
            settings=fast_settings,
            conn=conn,
        )

        db.txn.assert_called_once_with(conn, lock_timeout_ms=5000)

    def test_inverted_dates_fail_before_any_lock(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        with pytest.raises(ValidationError) as exc_info:
            create_booking(
                room_id=1,
                check_in=date(2026, 1, 8),
                check_out=date(2026, 1, 5),
                guest=GUEST,
                settings=fast_settings,
            )

        assert "check_out" in exc_info.value.errors
        db.txn.assert_not_called()
        db.lock_room.assert_not_called()

    def test_past_check_in_rejected(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        with pytest.raises(ValidationError) as exc_info:
            create_booking(
                room_id=1,
                check_in=date(2025, 12, 31),
                check_out=date(2026, 1, 2),
                guest=GUEST,
                settings=fast_settings,
            )
        assert "check_in" in exc_info.value.errors
        db.txn.assert_not_called()

    def test_guest_fields_validated_together_with_dates(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        with pytest.raises(ValidationError) as exc_info:
            create_booking(
                room_id=1,
                check_in=date(2026, 1, 5),
                check_out=date(2026, 1, 5),
                guest=GuestInfo(name="  ", email="not-an-email"),
                settings=fast_settings,
            )

        assert set(exc_info.value.errors) == {"check_out", "guest_name", "guest_email"}

    def test_missing_room(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        db.lock_room.return_value = None

        with pytest.raises(RoomNotFoundError):
            create_booking(
                room_id=404,
                check_in=date(2026, 1, 5),
                check_out=date(2026, 1, 8),
                guest=GUEST,
                settings=fast_settings,
            )
        db.insert_booking.assert_not_called()

    def test_conflict_propagates_without_retry(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        db.assert_no_conflict.side_effect = ConflictError(1, 99, date(2026, 1, 5), date(2026, 1, 10))

        with pytest.raises(ConflictError) as exc_info:
            create_booking(
                room_id=1,
                check_in=date(2026, 1, 8),
                check_out=date(2026, 1, 12),
                guest=GUEST,
                settings=fast_settings,
            )

        assert exc_info.value.conflicting_booking_id == 99
        assert db.txn.call_count == 1
        db.insert_booking.assert_not_called()

    def test_transient_failure_retried_from_scratch(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        db.lock_room.side_effect = [
            ConcurrencyTransientError("deadlock", sqlstate="40P01"),
            make_room(1),
        ]
        db.insert_booking.return_value = make_booking(11)

        result = create_booking(
            room_id=1,
            check_in=date(2026, 1, 5),
            check_out=date(2026, 1, 8),
            guest=GUEST,
            settings=fast_settings,
        )

        assert result.id == 11
        assert db.txn.call_count == 2
        assert db.lock_room.call_count == 2
        db.insert_booking.assert_called_once()

    def test_exhausted_after_three_transient_failures(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        db.lock_room.side_effect = ConcurrencyTransientError("lock timeout", sqlstate="55P03")

        with pytest.raises(ConcurrencyExhaustedError) as exc_info:
            create_booking(
                room_id=1,
                check_in=date(2026, 1, 5),
                check_out=date(2026, 1, 8),
                guest=GUEST,
                settings=fast_settings,
            )

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, ConcurrencyTransientError)
        assert db.txn.call_count == 3
        db.insert_booking.assert_not_called()

    def test_exclusion_violation_rechecked_as_conflict(self, db, fast_settings):
        """An overlap committed outside the room lock surfaces as ConflictError."""
        from bunkhouse.domain.bookings import create_booking

        db.insert_booking.side_effect = psycopg2.errors.ExclusionViolation(
            "conflicting key value violates exclusion constraint"
        )
        db.assert_no_conflict.side_effect = [
            None,
            ConflictError(1, 42, date(2026, 1, 6), date(2026, 1, 9)),
        ]

        with pytest.raises(ConflictError) as exc_info:
            create_booking(
                room_id=1,
                check_in=date(2026, 1, 5),
                check_out=date(2026, 1, 8),
                guest=GUEST,
                settings=fast_settings,
            )

        assert exc_info.value.conflicting_booking_id == 42
        assert db.txn.call_count == 2
        db.insert_booking.assert_called_once()

    def test_created_log_carries_attempt_count(self, db, fast_settings):
        from bunkhouse.domain.bookings import create_booking

        db.lock_room.side_effect = [
            ConcurrencyTransientError("deadlock", sqlstate="40P01"),
            make_room(1),
        ]
        db.insert_booking.return_value = make_booking(11)

        with patch(f"{MODULE}.logger") as logger:
            create_booking(
                room_id=1,
                check_in=date(2026, 1, 5),
                check_out=date(2026, 1, 8),
                guest=GUEST,
                settings=fast_settings,
            )

        message = logger.info.call_args[0][0]
        fields = logger.info.call_args.kwargs["extra"]["extra_fields"]
        assert message == "booking created"
        assert fields["attempts"] == "2"
        assert fields["guest_email"] == "[REDACTED]"


# ── update_booking ────────────────────────────────────────────────────────────


class TestUpdateBooking:
    def _update(self, settings, **overrides):
        from bunkhouse.domain.bookings import update_booking

        kwargs = dict(
            booking_id=10,
            room_id=1,
            check_in=date(2026, 1, 6),
            check_out=date(2026, 1, 9),
            guest=GUEST,
            settings=settings,
        )
        kwargs.update(overrides)
        return update_booking(**kwargs)

    def test_locks_room_before_booking_and_excludes_self(self, db, fast_settings):
        db.get_booking.return_value = make_booking(10)
        db.update_booking_stay.return_value = make_booking(
            10, check_in=date(2026, 1, 6), check_out=date(2026, 1, 9)
        )

        result = self._update(fast_settings)

        assert result.check_in == date(2026, 1, 6)
        assert _call_names(db) == [
            "lock_room",
            "get_booking",
            "assert_no_conflict",
            "update_booking_stay",
        ]
        assert db.get_booking.call_args.kwargs == {"lock": True}
        assert db.assert_no_conflict.call_args.kwargs["exclude_booking_id"] == 10

    def test_move_to_other_room_locks_target_room(self, db, fast_settings):
        db.get_booking.return_value = make_booking(10, room_id=1)
        db.lock_room.return_value = make_room(2)
        db.update_booking_stay.return_value = make_booking(10, room_id=2)

        self._update(fast_settings, room_id=2)

        assert db.lock_room.call_args[0][1] == 2
        assert db.assert_no_conflict.call_args.kwargs["room_id"] == 2

    def test_missing_booking(self, db, fast_settings):
        db.get_booking.return_value = None

        with pytest.raises(BookingNotFoundError):
            self._update(fast_settings)
        db.update_booking_stay.assert_not_called()

    def test_soft_deleted_booking_is_not_found(self, db, fast_settings):
        db.get_booking.return_value = make_booking(
            10, status="cancelled", deleted_at=datetime(2026, 1, 1, tzinfo=timezone.utc)
        )

        with pytest.raises(BookingNotFoundError):
            self._update(fast_settings)

    def test_cancelled_booking_cannot_change(self, db, fast_settings):
        db.get_booking.return_value = make_booking(10, status="cancelled")

        with pytest.raises(ValidationError) as exc_info:
            self._update(fast_settings)
        assert "status" in exc_info.value.errors

    def test_conflict_with_other_booking(self, db, fast_settings):
        db.get_booking.return_value = make_booking(10)
        db.assert_no_conflict.side_effect = ConflictError(1, 20, date(2026, 1, 8), date(2026, 1, 12))

        with pytest.raises(ConflictError):
            self._update(fast_settings)
        db.update_booking_stay.assert_not_called()

    def test_missing_target_room(self, db, fast_settings):
        db.lock_room.return_value = None

        with pytest.raises(RoomNotFoundError):
            self._update(fast_settings)
        db.get_booking.assert_not_called()


# ── cancel_booking ────────────────────────────────────────────────────────────


class TestCancelBooking:
    def test_soft_deletes_active_booking(self, db, fast_settings):
        from bunkhouse.domain.bookings import cancel_booking

        db.get_booking.return_value = make_booking(10)

        result = cancel_booking(booking_id=10, actor_id=7, settings=fast_settings)

        assert result == {"status": "cancelled", "booking_id": 10}
        db.soft_delete_booking.assert_called_once()
        assert db.soft_delete_booking.call_args.kwargs == {"deleted_by": 7}
        # cancel never takes the room lock
        db.lock_room.assert_not_called()

    def test_already_cancelled_is_a_no_op(self, db, fast_settings):
        from bunkhouse.domain.bookings import cancel_booking

        db.get_booking.return_value = make_booking(
            10, status="cancelled", deleted_at=datetime(2026, 1, 1, tzinfo=timezone.utc)
        )

        result = cancel_booking(booking_id=10, actor_id=None, settings=fast_settings)

        assert result == {"status": "already_cancelled", "booking_id": 10}
        db.soft_delete_booking.assert_not_called()

    def test_missing_booking(self, db, fast_settings):
        from bunkhouse.domain.bookings import cancel_booking

        db.get_booking.return_value = None

        with pytest.raises(BookingNotFoundError):
            cancel_booking(booking_id=10, actor_id=None, settings=fast_settings)


# ── restore_booking ───────────────────────────────────────────────────────────


class TestRestoreBooking:
    def test_restores_when_free(self, db, fast_settings):
        from bunkhouse.domain.bookings import restore_booking

        deleted = make_booking(
            10, status="cancelled", deleted_at=datetime(2026, 1, 1, tzinfo=timezone.utc)
        )
        db.get_booking.side_effect = [deleted, deleted]
        db.restore_booking_row.return_value = make_booking(10)

        result = restore_booking(booking_id=10, settings=fast_settings)

        assert result.is_active
        assert _call_names(db) == [
            "get_booking",
            "lock_room",
            "get_booking",
            "assert_no_conflict",
            "restore_booking_row",
        ]
        assert db.assert_no_conflict.call_args.kwargs["exclude_booking_id"] == 10

    def test_active_booking_returned_unchanged(self, db, fast_settings):
        from bunkhouse.domain.bookings import restore_booking

        active = make_booking(10)
        db.get_booking.return_value = active

        assert restore_booking(booking_id=10, settings=fast_settings) is active
        db.restore_booking_row.assert_not_called()

    def test_conflict_when_nights_taken(self, db, fast_settings):
        from bunkhouse.domain.bookings import restore_booking

        deleted = make_booking(
            10, status="cancelled", deleted_at=datetime(2026, 1, 1, tzinfo=timezone.utc)
        )
        db.get_booking.return_value = deleted
        db.assert_no_conflict.side_effect = ConflictError(1, 30, date(2026, 1, 5), date(2026, 1, 8))

        with pytest.raises(ConflictError):
            restore_booking(booking_id=10, settings=fast_settings)
        db.restore_booking_row.assert_not_called()

    def test_booking_moved_before_row_lock_restarts_on_new_room(self, db, fast_settings):
        """Peek saw room 1, but the booking was moved to room 2 and cancelled
        before its row lock was taken: the check must never run on room 2
        while only room 1 is locked."""
        from bunkhouse.domain.bookings import restore_booking

        deleted_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        moved = make_booking(10, room_id=2, status="cancelled", deleted_at=deleted_at)
        db.get_booking.side_effect = [make_booking(10, room_id=1), moved, moved, moved]
        db.restore_booking_row.return_value = make_booking(10, room_id=2)

        result = restore_booking(booking_id=10, settings=fast_settings)

        assert result.room_id == 2
        assert db.txn.call_count == 2
        locked_rooms = [c.args[1] for c in db.lock_room.call_args_list]
        assert locked_rooms == [1, 2]
        db.assert_no_conflict.assert_called_once()
        assert db.assert_no_conflict.call_args.kwargs["room_id"] == 2
        db.restore_booking_row.assert_called_once()

    def test_missing_booking(self, db, fast_settings):
        from bunkhouse.domain.bookings import restore_booking

        db.get_booking.return_value = None

        with pytest.raises(BookingNotFoundError):
            restore_booking(booking_id=10, settings=fast_settings)
        db.lock_room.assert_not_called()


# ── prune_soft_deleted_bookings ───────────────────────────────────────────────


class TestPruneSoftDeletedBookings:
    NOW = datetime(2026, 10, 1, tzinfo=timezone.utc)

    def test_dry_run_only_lists(self, cur):
        from bunkhouse.domain.bookings import prune_soft_deleted_bookings

        with patch(f"{MODULE}.txn", return_value=MockTxnContext(cur)), \
             patch(f"{MODULE}.utc_now", return_value=self.NOW), \
             patch(f"{MODULE}.list_soft_deleted_before", return_value=[(1, 1, self.NOW), (2, 1, self.NOW)]), \
             patch(f"{MODULE}.purge_soft_deleted_before") as purge:
            result = prune_soft_deleted_bookings(older_than_days=30, dry_run=True)

        assert result["count"] == 2
        assert result["booking_ids"] == [1, 2]
        assert result["cutoff"] == datetime(2026, 9, 1, tzinfo=timezone.utc)
        purge.assert_not_called()

    def test_deletes(self, cur):
        from bunkhouse.domain.bookings import prune_soft_deleted_bookings

        with patch(f"{MODULE}.txn", return_value=MockTxnContext(cur)), \
             patch(f"{MODULE}.utc_now", return_value=self.NOW), \
             patch(f"{MODULE}.list_soft_deleted_before", return_value=[(5, 2, self.NOW)]), \
             patch(f"{MODULE}.purge_soft_deleted_before", return_value=1) as purge:
            result = prune_soft_deleted_bookings(older_than_days=30)

        assert result["count"] == 1
        assert result["dry_run"] is False
        purge.assert_called_once()

    def test_default_retention_from_env(self, cur, monkeypatch):
        from bunkhouse.domain.bookings import prune_soft_deleted_bookings

        monkeypatch.setenv("BOOKING_SOFT_DELETE_RETENTION_DAYS", "10")

        with patch(f"{MODULE}.txn", return_value=MockTxnContext(cur)), \
             patch(f"{MODULE}.utc_now", return_value=self.NOW), \
             patch(f"{MODULE}.list_soft_deleted_before", return_value=[]) as listing:
            result = prune_soft_deleted_bookings(dry_run=True)

        assert result["cutoff"] == datetime(2026, 9, 21, tzinfo=timezone.utc)
        assert listing.call_args[0][1] == datetime(2026, 9, 21, tzinfo=timezone.utc)

    def test_rejects_non_positive_retention(self):
        from bunkhouse.domain.bookings import prune_soft_deleted_bookings

        with pytest.raises(ValueError):
            prune_soft_deleted_bookings(older_than_days=0)
