import time
from datetime import datetime, timedelta, timezone

from courtside.auth import create_access_token, verify_access_token
from courtside.services.notification_service import send_notification
from courtside.shared.validators import format_window, to_naive_utc
from courtside.webhook_security import (
    compute_hmac_sha256,
    constant_time_compare,
    sign_payload,
    verify_timestamp,
)


def test_access_token_round_trip():
    payload = verify_access_token(create_access_token(42))

    assert payload["sub"] == "42"


def test_expired_token_is_rejected():
    assert verify_access_token(create_access_token(42, expires_delta=timedelta(seconds=-10))) is None


def test_hmac_signature_compare():
    signature = compute_hmac_sha256("secret", b'{"event_id": "evt_1"}')

    assert constant_time_compare(signature, compute_hmac_sha256("secret", b'{"event_id": "evt_1"}'))
    assert not constant_time_compare(signature, compute_hmac_sha256("other", b'{"event_id": "evt_1"}'))
    assert not constant_time_compare(signature, "")


def test_signature_covers_timestamp():
    body = b'{"event_id": "evt_1"}'

    assert sign_payload("secret", "1700000000", body) == compute_hmac_sha256("secret", b"1700000000." + body)
    assert sign_payload("secret", "1700000000", body) != sign_payload("secret", "1700000001", body)


def test_verify_timestamp():
    now = int(time.time())

    assert not verify_timestamp(None)
    assert verify_timestamp(str(now))
    assert not verify_timestamp(str(now - 3600))
    assert not verify_timestamp("yesterday")


def test_to_naive_utc():
    aware = datetime(2026, 5, 4, 7, 0, tzinfo=timezone(timedelta(hours=-3)))

    assert to_naive_utc(aware) == datetime(2026, 5, 4, 10, 0)
    assert to_naive_utc(datetime(2026, 5, 4, 10, 0)) == datetime(2026, 5, 4, 10, 0)
    assert to_naive_utc(None) is None


def test_format_window():
    assert format_window(datetime(2026, 5, 4, 10), datetime(2026, 5, 4, 12)) == "2026-05-04 10:00 to 2026-05-04 12:00"


def test_send_notification_failure_is_swallowed(db, student):
    # user_id is NOT NULL, so the insert fails
    assert send_notification(db, None, "system", "Hello", "World") is None

    stored = send_notification(db, student.id, "system", "Hello", "World")
    assert stored is not None
    assert stored.read is False
