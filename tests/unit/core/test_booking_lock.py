from datetime import date
from unittest.mock import MagicMock, patch

from tutorhub.core import booking_lock

BOOKING_DATE = date(2026, 10, 26)
TEACHER_ID = "01JTEACHER0000000000000000"
LOCK_KEY = f"tutorhub:lock:teacher:{TEACHER_ID}:2026-10-26"


def test_lock_key_is_per_teacher_and_day():
    assert booking_lock._lock_key(TEACHER_ID, BOOKING_DATE) == LOCK_KEY


def test_acquire_without_redis_fails_open():
    with patch.object(booking_lock, "_get_sync_redis", return_value=None):
        assert booking_lock.acquire_teacher_slot_lock(TEACHER_ID, BOOKING_DATE) is True


def test_acquire_uses_set_nx_with_ttl():
    client = MagicMock()
    client.set.return_value = True
    with patch.object(booking_lock, "_get_sync_redis", return_value=client):
        assert booking_lock.acquire_teacher_slot_lock(TEACHER_ID, BOOKING_DATE, ttl_s=12) is True

    args, kwargs = client.set.call_args
    assert args[0] == LOCK_KEY
    assert kwargs == {"nx": True, "ex": 12}


def test_acquire_reports_contention():
    client = MagicMock()
    client.set.return_value = None
    with patch.object(booking_lock, "_get_sync_redis", return_value=client):
        assert booking_lock.acquire_teacher_slot_lock(TEACHER_ID, BOOKING_DATE) is False


def test_acquire_fails_open_on_redis_error():
    client = MagicMock()
    client.set.side_effect = ConnectionError("redis down")
    with patch.object(booking_lock, "_get_sync_redis", return_value=client):
        assert booking_lock.acquire_teacher_slot_lock(TEACHER_ID, BOOKING_DATE) is True


def test_release_swallows_redis_error():
    client = MagicMock()
    client.delete.side_effect = ConnectionError("redis down")
    with patch.object(booking_lock, "_get_sync_redis", return_value=client):
        booking_lock.release_teacher_slot_lock(TEACHER_ID, BOOKING_DATE)

    client.delete.assert_called_once_with(LOCK_KEY)


def test_context_manager_releases_only_what_it_holds():
    client = MagicMock()
    client.set.return_value = True
    with patch.object(booking_lock, "_get_sync_redis", return_value=client):
        with booking_lock.teacher_slot_lock(TEACHER_ID, BOOKING_DATE) as acquired:
            assert acquired is True
        client.delete.assert_called_once_with(LOCK_KEY)

        client.reset_mock()
        client.set.return_value = False
        with booking_lock.teacher_slot_lock(TEACHER_ID, BOOKING_DATE) as acquired:
            assert acquired is False
        client.delete.assert_not_called()


def test_no_client_when_redis_url_unset():
    with patch.object(booking_lock.settings, "redis_url", None):
        assert booking_lock._get_sync_redis() is None
