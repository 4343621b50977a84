"""HTTP tests for /api/v1/bookings."""

import pytest

from tutorhub.models.wallet import WalletType

BASE = "/api/v1/bookings"


@pytest.fixture
def teacher_id(teacher_schedule):
    return teacher_schedule()


@pytest.fixture
def student(funded_wallet):
    return funded_wallet(WalletType.STUDENT, "10000")


def _book(client, teacher_id, student_id, monday, start="09:00", duration=60, price=None):
    payload = {
        "teacher_id": teacher_id,
        "subject_id": "01JSUBJECT0000000000000000",
        "booking_date": monday.isoformat(),
        "start_time": start,
        "duration_minutes": duration,
    }
    if price is not None:
        payload["price"] = price
    return client.post(BASE, json=payload, headers={"X-User-Id": student_id})


class TestCreateBooking:
    def test_creates_pending_paid_booking(self, client, teacher_id, student, monday):
        response = _book(client, teacher_id, student.user_id, monday, price=4000)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["student_id"] == student.user_id
        assert body["start_time"] == "09:00:00"
        assert body["end_time"] == "10:00:00"
        assert body["is_paid"] is True
        assert body["price"] == 4000.0

        wallet = client.get(f"/api/v1/wallets/student/{student.user_id}").json()
        assert wallet["balance"] == 6000.0

    def test_overlap_is_a_conflict(self, client, teacher_id, student, monday, make_id):
        _book(client, teacher_id, student.user_id, monday)

        response = _book(client, teacher_id, make_id(), monday, start="09:30")

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "BOOKING_CONFLICT"
        assert body["title"] == "Conflict"

    def test_outside_availability(self, client, teacher_id, student, monday):
        response = _book(client, teacher_id, student.user_id, monday, start="13:00")

        assert response.status_code == 422
        assert response.json()["code"] == "TEACHER_UNAVAILABLE"

    def test_unfunded_student(self, client, teacher_id, monday, make_id):
        response = _book(client, teacher_id, make_id(), monday, price=100)

        assert response.status_code == 422
        assert response.json()["code"] == "INSUFFICIENT_BALANCE"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("start_time", "9am"),
            ("booking_date", "2026-10-26T09:00:00"),
            ("duration_minutes", 10),
        ],
    )
    def test_invalid_payload(self, client, teacher_id, student, monday, field, value):
        payload = {
            "teacher_id": teacher_id,
            "subject_id": "01JSUBJECT0000000000000000",
            "booking_date": monday.isoformat(),
            "start_time": "09:00",
            "duration_minutes": 60,
        }
        payload[field] = value

        response = client.post(BASE, json=payload, headers={"X-User-Id": student.user_id})

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


class TestBookingStatus:
    def test_approve_then_complete(self, client, teacher_id, student, monday):
        booking_id = _book(client, teacher_id, student.user_id, monday, price=4000).json()["id"]
        staff = {"X-User-Id": teacher_id}

        approved = client.patch(
            f"{BASE}/{booking_id}/status", json={"status": "approved"}, headers=staff
        )
        completed = client.patch(
            f"{BASE}/{booking_id}/status", json={"status": "completed"}, headers=staff
        )

        assert approved.status_code == 200
        assert approved.json()["approved_by_id"] == teacher_id
        assert completed.status_code == 200
        assert completed.json()["completed_at"] is not None

        earnings = client.get(f"/api/v1/wallets/teacher/{teacher_id}").json()
        assert earnings["balance"] == 4000.0

    def test_invalid_transition(self, client, teacher_id, student, monday):
        booking_id = _book(client, teacher_id, student.user_id, monday).json()["id"]

        response = client.patch(
            f"{BASE}/{booking_id}/status",
            json={"status": "completed"},
            headers={"X-User-Id": teacher_id},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATUS_TRANSITION"

    def test_cancel_refunds(self, client, teacher_id, student, monday):
        booking_id = _book(client, teacher_id, student.user_id, monday, price=4000).json()["id"]

        response = client.patch(
            f"{BASE}/{booking_id}/status",
            json={"status": "cancelled", "notes": "Sick"},
            headers={"X-User-Id": student.user_id},
        )

        assert response.status_code == 200
        assert response.json()["is_paid"] is False
        wallet = client.get(f"/api/v1/wallets/student/{student.user_id}").json()
        assert wallet["balance"] == 10000.0

    def test_bulk_status_is_all_or_nothing(self, client, teacher_id, student, monday, make_id):
        first = _book(client, teacher_id, student.user_id, monday).json()["id"]
        second = _book(client, teacher_id, student.user_id, monday, start="10:00").json()["id"]
        staff = {"X-User-Id": make_id()}

        missing = client.post(
            f"{BASE}/bulk-status",
            json={"booking_ids": [first, make_id()], "status": "approved"},
            headers=staff,
        )
        assert missing.status_code == 404
        assert client.get(f"{BASE}/{first}").json()["status"] == "pending"

        response = client.post(
            f"{BASE}/bulk-status",
            json={"booking_ids": [first, second, first], "status": "approved"},
            headers=staff,
        )
        assert response.status_code == 200
        assert [b["id"] for b in response.json()] == [first, second]
        assert {b["status"] for b in response.json()} == {"approved"}


class TestBookingReads:
    def test_detail_includes_history(self, client, teacher_id, student, monday):
        booking_id = _book(client, teacher_id, student.user_id, monday).json()["id"]
        client.patch(
            f"{BASE}/{booking_id}/status",
            json={"status": "approved"},
            headers={"X-User-Id": teacher_id},
        )

        response = client.get(f"{BASE}/{booking_id}")

        assert response.status_code == 200
        history = response.json()["history"]
        assert [h["action"] for h in history][0] == "created"
        assert history[-1]["to_status"] == "approved"

    def test_unknown_booking(self, client, make_id):
        response = client.get(f"{BASE}/{make_id()}")

        assert response.status_code == 404
        assert response.json()["code"] == "BOOKING_NOT_FOUND"

    def test_list_and_stats(self, client, teacher_id, student, monday):
        _book(client, teacher_id, student.user_id, monday)
        _book(client, teacher_id, student.user_id, monday, start="10:00")

        listing = client.get(BASE, params={"teacher_id": teacher_id, "per_page": 1})
        stats = client.get(f"{BASE}/stats")

        assert listing.status_code == 200
        assert listing.json()["meta"]["total"] == 2
        assert len(listing.json()["data"]) == 1
        assert stats.json()["total"] == 2
        assert stats.json()["by_status"]["pending"] == 2

    def test_slots_for_moving_a_booking(self, client, teacher_id, student, monday):
        booking_id = _book(client, teacher_id, student.user_id, monday).json()["id"]

        response = client.get(f"{BASE}/{booking_id}/available-slots", params={"date": monday.isoformat()})

        assert response.status_code == 200
        body = response.json()
        assert body["duration_minutes"] == 60
        assert len(body["slots"]) == 5


class TestReschedule:
    def test_moves_booking(self, client, teacher_id, student, monday):
        booking_id = _book(client, teacher_id, student.user_id, monday).json()["id"]

        response = client.post(
            f"{BASE}/{booking_id}/reschedule",
            json={"new_date": monday.isoformat(), "new_start_time": "11:00"},
            headers={"X-User-Id": teacher_id},
        )

        assert response.status_code == 200
        assert response.json()["start_time"] == "11:00:00"
        assert response.json()["end_time"] == "12:00:00"

    def test_target_taken(self, client, teacher_id, student, monday, make_id):
        booking_id = _book(client, teacher_id, student.user_id, monday).json()["id"]
        _book(client, teacher_id, make_id(), monday, start="11:00")

        response = client.post(
            f"{BASE}/{booking_id}/reschedule",
            json={"new_date": monday.isoformat(), "new_start_time": "10:30"},
            headers={"X-User-Id": teacher_id},
        )

        assert response.status_code == 409
