"""HTTP tests for /api/v1/booking-modifications."""

from datetime import time, timedelta

import pytest

from tutorhub.models.wallet import WalletType

BASE = "/api/v1/booking-modifications"

MONDAY_TUESDAY = {0: (time(9, 0), time(12, 0)), 1: (time(9, 0), time(12, 0))}


@pytest.fixture
def booked(teacher_schedule, funded_wallet, make_booking):
    student = funded_wallet(WalletType.STUDENT, "10000")
    teacher_id = teacher_schedule(MONDAY_TUESDAY)
    return make_booking(teacher_id, student_id=student.user_id, price="5000")


def _reschedule(client, booking, new_date, start="10:00"):
    return client.post(
        f"{BASE}/reschedule",
        json={
            "booking_id": booking.id,
            "new_date": new_date.isoformat(),
            "new_start_time": start,
            "reason": "Exam week",
        },
        headers={"X-User-Id": booking.student_id},
    )


class TestRescheduleFlow:
    def test_request_and_approve(self, client, booked, monday):
        tuesday = monday + timedelta(days=1)

        created = _reschedule(client, booked, tuesday)
        assert created.status_code == 201
        body = created.json()
        assert body["type"] == "reschedule"
        assert body["status"] == "pending"
        assert body["original_start_time"] == "09:00:00"
        assert body["new_end_time"] == "11:00:00"

        existing = client.get(f"{BASE}/existing", params={"booking_id": booked.id}).json()
        assert existing["has_active_request"] is True
        assert existing["modification"]["id"] == body["id"]

        approved = client.post(
            f"{BASE}/{body['id']}/approve",
            json={"notes": "Fine"},
            headers={"X-User-Id": booked.teacher_id},
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "completed"
        assert approved.json()["resulting_booking_id"] == booked.id

        booking = client.get(f"/api/v1/bookings/{booked.id}").json()
        assert booking["booking_date"] == tuesday.isoformat()
        assert booking["start_time"] == "10:00:00"
        assert client.get(f"{BASE}/existing", params={"booking_id": booked.id}).json() == {
            "has_active_request": False,
            "modification": None,
        }

    def test_other_student_cannot_request(self, client, booked, monday, make_id):
        response = client.post(
            f"{BASE}/reschedule",
            json={
                "booking_id": booked.id,
                "new_date": monday.isoformat(),
                "new_start_time": "10:00",
            },
            headers={"X-User-Id": make_id()},
        )

        assert response.status_code == 403
        assert response.json()["code"] == "BOOKING_NOT_OWNED"

    def test_second_open_request(self, client, booked, monday):
        _reschedule(client, booked, monday, start="10:00")

        response = _reschedule(client, booked, monday, start="11:00")

        assert response.status_code == 409
        assert response.json()["code"] == "MODIFICATION_EXISTS"

    def test_only_responding_teacher_approves(self, client, booked, monday, make_id):
        modification_id = _reschedule(client, booked, monday).json()["id"]

        response = client.post(
            f"{BASE}/{modification_id}/approve", headers={"X-User-Id": make_id()}
        )

        assert response.status_code == 403

    def test_reject_then_cancel_is_rejected(self, client, booked, monday):
        modification_id = _reschedule(client, booked, monday).json()["id"]

        rejected = client.post(
            f"{BASE}/{modification_id}/reject",
            json={"notes": "Fully booked that week"},
            headers={"X-User-Id": booked.teacher_id},
        )
        cancelled = client.post(
            f"{BASE}/{modification_id}/cancel", headers={"X-User-Id": booked.student_id}
        )

        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"
        assert rejected.json()["teacher_notes"] == "Fully booked that week"
        assert cancelled.status_code == 409

    def test_student_cancels(self, client, booked, monday):
        modification_id = _reschedule(client, booked, monday).json()["id"]

        response = client.post(
            f"{BASE}/{modification_id}/cancel", headers={"X-User-Id": booked.student_id}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_unknown_modification(self, client, make_id):
        response = client.post(
            f"{BASE}/{make_id()}/cancel", headers={"X-User-Id": make_id()}
        )

        assert response.status_code == 404
        assert response.json()["code"] == "MODIFICATION_NOT_FOUND"


class TestRebookFlow:
    def test_cheaper_rebook_refunds_difference(
        self, client, booked, teacher_schedule, monday, make_id
    ):
        new_teacher = teacher_schedule({2: (time(14, 0), time(17, 0))})
        wednesday = monday + timedelta(days=2)

        created = client.post(
            f"{BASE}/rebook",
            json={
                "booking_id": booked.id,
                "new_teacher_id": new_teacher,
                "new_subject_id": make_id(),
                "new_date": wednesday.isoformat(),
                "new_start_time": "15:00",
                "new_price": 3500,
            },
            headers={"X-User-Id": booked.student_id},
        )
        assert created.status_code == 201
        assert created.json()["price_difference"] == -1500.0

        listed = client.get(
            BASE, params={"role": "teacher"}, headers={"X-User-Id": new_teacher}
        ).json()
        assert [m["id"] for m in listed["data"]] == [created.json()["id"]]

        approved = client.post(
            f"{BASE}/{created.json()['id']}/approve", headers={"X-User-Id": new_teacher}
        )
        assert approved.status_code == 200
        new_booking_id = approved.json()["resulting_booking_id"]
        assert new_booking_id != booked.id

        new_booking = client.get(f"/api/v1/bookings/{new_booking_id}").json()
        assert new_booking["teacher_id"] == new_teacher
        assert new_booking["rebooked_from_id"] == booked.id
        assert new_booking["is_paid"] is True
        assert client.get(f"/api/v1/bookings/{booked.id}").json()["status"] == "cancelled"

        wallet = client.get(f"/api/v1/wallets/student/{booked.student_id}").json()
        assert wallet["balance"] == 6500.0


class TestListing:
    def test_student_listing_requires_identity(self, client):
        response = client.get(BASE)

        assert response.status_code == 401

    def test_student_sees_own_requests(self, client, booked, monday):
        _reschedule(client, booked, monday)

        response = client.get(
            BASE, params={"status": "pending"}, headers={"X-User-Id": booked.student_id}
        )

        assert response.status_code == 200
        assert response.json()["meta"]["total"] == 1
