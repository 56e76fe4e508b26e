import json
import time

from courtside.domain.billing import router as billing_router
from courtside.webhook_security import sign_payload

from .conftest import at, auth_headers


def _court_booking(client, user, court, start=None, end=None, **extra):
    body = {
        "court_id": court.id,
        "start": (start or at(0)).isoformat(),
        "end": (end or at(2)).isoformat(),
        **extra,
    }
    return client.post("/bookings/courts", json=body, headers=auth_headers(user))


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_requests_need_a_valid_token(client, court):
    response = client.post(
        "/bookings/availability",
        json={"resource_type": "court", "resource_id": court.id, "start": at(0).isoformat(), "end": at(1).isoformat()},
        headers={"Authorization": "Bearer not-a-token"},
    )

    assert response.status_code == 401


def test_inactive_user_is_rejected(client, make_user, court):
    user = make_user(status="inactive")

    assert _court_booking(client, user, court).status_code == 401


def test_court_booking_flow(client, court, student, other_student):
    response = _court_booking(client, student, court)

    assert response.status_code == 201
    payload = response.json()
    assert payload["reservation"]["kind"] == "court_booking"
    assert payload["reservation"]["status"] == "pending"
    assert payload["charge"]["status"] == "pending"
    assert payload["charge"]["total_amount"] == "160.00"
    assert len(payload["charge"]["installments"]) == 1
    booking_id = payload["reservation"]["id"]

    conflict = _court_booking(client, other_student, court, start=at(1), end=at(3))
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "SlotUnavailable"
    assert "2026-05-04 10:00 to 2026-05-04 12:00" in conflict.json()["detail"]

    cancel = client.post(f"/bookings/courts/{booking_id}/cancel", headers=auth_headers(student))
    assert cancel.status_code == 200
    assert cancel.json()["reservation"]["status"] == "cancelled"
    assert cancel.json()["charge_cancelled"] is True

    again = client.post(f"/bookings/courts/{booking_id}/cancel", headers=auth_headers(student))
    assert again.status_code == 409
    assert again.json() == {"error": "AlreadyCancelled", "detail": "Reservation is already cancelled"}

    assert _court_booking(client, other_student, court, start=at(1), end=at(3)).status_code == 201


def test_availability_quote(client, court, student):
    response = client.post(
        "/bookings/availability",
        json={
            "resource_type": "court",
            "resource_id": court.id,
            "start": at(0).isoformat(),
            "end": at(0, 45).isoformat(),
        },
        headers=auth_headers(student),
    )

    assert response.status_code == 200
    assert response.json() == {"available": True, "reason": None, "total_price": "80.00"}


def test_inverted_window_is_a_validation_error(client, court, student):
    response = _court_booking(client, student, court, start=at(2), end=at(1))

    assert response.status_code == 422


def test_availability_without_window_is_invalid_window(client, court, student):
    response = client.post(
        "/bookings/availability",
        json={"resource_type": "court", "resource_id": court.id},
        headers=auth_headers(student),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "InvalidWindow"


def test_too_many_installments_is_rejected(client, court, student):
    assert _court_booking(client, student, court, installments=13).status_code == 422


def test_reservation_visibility(client, court, student, other_student, admin):
    booking_id = _court_booking(client, student, court).json()["reservation"]["id"]

    assert client.get(f"/bookings/courts/{booking_id}", headers=auth_headers(student)).status_code == 200
    assert client.get(f"/bookings/courts/{booking_id}", headers=auth_headers(admin)).status_code == 200
    hidden = client.get(f"/bookings/courts/{booking_id}", headers=auth_headers(other_student))
    assert hidden.status_code == 404
    assert hidden.json()["error"] == "NotFound"
    assert client.get(f"/bookings/lockers/{booking_id}", headers=auth_headers(student)).status_code == 422


def test_status_update_is_admin_only(client, court, student, admin):
    booking_id = _court_booking(client, student, court).json()["reservation"]["id"]
    url = f"/bookings/courts/{booking_id}/status"

    assert client.patch(url, json={"status": "confirmed"}, headers=auth_headers(student)).status_code == 403

    response = client.patch(url, json={"status": "confirmed"}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    invalid = client.patch(url, json={"status": "confirmed"}, headers=auth_headers(admin))
    assert invalid.status_code == 409
    assert invalid.json()["error"] == "InvalidTransition"


def test_personal_session_and_class_enrollment(client, instructor, court, student, make_occurrence):
    session = client.post(
        "/bookings/personal-sessions",
        json={"instructor_id": instructor.id, "court_id": court.id, "start": at(0).isoformat(), "end": at(1).isoformat()},
        headers=auth_headers(student),
    )
    assert session.status_code == 201
    assert session.json()["reservation"]["instructor_id"] == instructor.id
    assert session.json()["charge"]["total_amount"] == "120.00"

    occurrence = make_occurrence(unit_price=None)
    enrollment = client.post(
        "/bookings/classes", json={"occurrence_id": occurrence.id}, headers=auth_headers(student)
    )
    assert enrollment.status_code == 201
    assert enrollment.json()["charge"] is None
    assert enrollment.json()["reservation"]["occurrence_id"] == occurrence.id


def test_full_class_is_conflict(client, make_occurrence, student, other_student):
    occurrence = make_occurrence(capacity=1)
    client.post("/bookings/classes", json={"occurrence_id": occurrence.id}, headers=auth_headers(student))

    response = client.post(
        "/bookings/classes", json={"occurrence_id": occurrence.id}, headers=auth_headers(other_student)
    )

    assert response.status_code == 409
    assert response.json()["error"] == "ClassFull"


def test_subscription_and_payment_flow(client, make_plan, student, admin):
    plan = make_plan()
    subscribed = client.post("/subscriptions", json={"plan_id": plan.id}, headers=auth_headers(student))
    assert subscribed.status_code == 201
    subscription_id = subscribed.json()["subscription"]["id"]
    charge = subscribed.json()["charge"]
    assert charge["total_amount"] == "199.90"

    conflict = client.post("/subscriptions", json={"plan_id": plan.id}, headers=auth_headers(student))
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "SubscriptionConflict"

    installment_id = charge["installments"][0]["id"]
    checkout = client.post(
        f"/charges/installments/{installment_id}/checkout", json={"provider": "pix"}, headers=auth_headers(student)
    )
    assert checkout.status_code == 201
    transaction_id = checkout.json()["external_transaction_id"]

    webhook = client.post(
        "/payments/webhook",
        json={"event_id": "evt_1", "external_transaction_id": transaction_id, "status": "approved"},
    )
    assert webhook.status_code == 200
    assert webhook.json()["status"] == "approved"

    current = client.get("/subscriptions/me", headers=auth_headers(student))
    assert current.json()["status"] == "active"

    paid = client.get(f"/charges/{charge['id']}", headers=auth_headers(student))
    assert paid.json()["status"] == "paid"
    assert paid.json()["amount_paid"] == "199.90"

    assert client.post(f"/subscriptions/{subscription_id}/renew", headers=auth_headers(student)).status_code == 403
    renewed = client.post(f"/subscriptions/{subscription_id}/renew", headers=auth_headers(admin))
    assert renewed.status_code == 200
    assert renewed.json()["charge"]["status"] == "pending"

    cancelled = client.post(f"/subscriptions/{subscription_id}/cancel", headers=auth_headers(student))
    assert cancelled.status_code == 200
    assert cancelled.json()["subscription"]["status"] == "cancelled"
    assert cancelled.json()["charge_cancelled"] is True
    assert client.get("/subscriptions/me", headers=auth_headers(student)).status_code == 404


def test_webhook_signature_enforced_when_secret_configured(client, court, student, monkeypatch):
    monkeypatch.setattr(billing_router, "PAYMENT_WEBHOOK_SECRET", "whsec_test")
    booking = _court_booking(client, student, court).json()
    installment_id = booking["charge"]["installments"][0]["id"]
    checkout = client.post(
        f"/charges/installments/{installment_id}/checkout", json={}, headers=auth_headers(student)
    ).json()
    body = json.dumps(
        {"event_id": "evt_signed", "external_transaction_id": checkout["external_transaction_id"], "status": "approved"}
    ).encode()

    unsigned = client.post("/payments/webhook", content=body, headers={"Content-Type": "application/json"})
    assert unsigned.status_code == 401

    forged = client.post(
        "/payments/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Webhook-Signature": "0" * 64},
    )
    assert forged.status_code == 401

    timestamp = str(int(time.time()))
    signature = sign_payload("whsec_test", timestamp, body)

    def post_signed(signature, timestamp):
        headers = {"Content-Type": "application/json", "X-Webhook-Signature": signature}
        if timestamp is not None:
            headers["X-Webhook-Timestamp"] = timestamp
        return client.post("/payments/webhook", content=body, headers=headers)

    assert post_signed(signature, None).status_code == 401
    # A rewritten timestamp no longer matches the signature
    assert post_signed(signature, str(int(timestamp) - 1)).status_code == 401
    assert post_signed(sign_payload("whsec_test", "1000", body), "1000").status_code == 401

    signed = post_signed(signature, timestamp)
    assert signed.status_code == 200
    assert signed.json()["status"] == "approved"


def test_malformed_webhook(client):
    response = client.post("/payments/webhook", json={"event_id": "evt_bad", "status": "teleported"})

    assert response.status_code == 422


def test_notifications_endpoints(client, court, student):
    _court_booking(client, student, court)
    _court_booking(client, student, court, start=at(5), end=at(6))

    listed = client.get("/notifications", headers=auth_headers(student)).json()
    assert listed["unread_count"] == 2
    first_id = listed["notifications"][0]["id"]

    read = client.post(f"/notifications/{first_id}/read", headers=auth_headers(student))
    assert read.json()["read"] is True
    unread = client.get("/notifications", params={"unread_only": True}, headers=auth_headers(student)).json()
    assert unread["unread_count"] == 1
    assert len(unread["notifications"]) == 1

    assert client.post("/notifications/read-all", headers=auth_headers(student)).json()["updated"] == 1
    assert client.get("/notifications", headers=auth_headers(student)).json()["unread_count"] == 0
    assert client.post("/notifications/999/read", headers=auth_headers(student)).status_code == 404
