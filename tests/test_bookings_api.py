"""
HTTP tests for the bookings resource.
"""

import pytest
from datetime import datetime, timedelta

from models import BookingStatus, utcnow


def booking_payload(slot_id, **overrides):
    payload = {
        "parkingSlot": slot_id,
        "vehicleNumber": "KA01AB1234",
        "fromDate": "2024-01-10T00:00:00",
        "toDate": "2024-01-12T00:00:00",
    }
    payload.update(overrides)
    return payload


class TestCreateBooking:

    def test_new_booking_is_pending(self, client, driver, slot):
        response = client.post("/bookings", json=booking_payload(slot.id), headers=driver["headers"])
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "Pending"
        assert body["bookedBy"] == driver["id"]
        assert body["vehicleNumber"] == "KA01AB1234"
        assert body["isFinePaid"] is False
        assert body["review"] is None
        assert body["parkingSlot"]["slotNumber"] == "A-01"
        assert body["parkingSlot"]["parkingLevel"]["parkingLot"]["name"] == "Central Lot"

    def test_to_date_before_from_date_is_rejected(self, client, driver, slot):
        response = client.post(
            "/bookings",
            json=booking_payload(slot.id, fromDate="2024-01-10T00:00:00", toDate="2024-01-09T00:00:00"),
            headers=driver["headers"],
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "To date must be after from date"

    def test_missing_token(self, client, slot):
        response = client.post("/bookings", json=booking_payload(slot.id))
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    def test_unknown_token(self, client, slot):
        response = client.post("/bookings", json=booking_payload(slot.id), headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_unknown_slot(self, client, driver):
        response = client.post("/bookings", json=booking_payload(9999), headers=driver["headers"])
        assert response.status_code == 404

    def test_vehicle_number_required(self, client, driver, slot):
        payload = booking_payload(slot.id)
        del payload["vehicleNumber"]
        response = client.post("/bookings", json=payload, headers=driver["headers"])
        assert response.status_code == 422


class TestListBookings:

    def test_staff_sees_every_booking(self, client, moderator, driver, other_driver, make_booking):
        make_booking(driver)
        make_booking(other_driver)
        response = client.get("/bookings", headers=moderator["headers"])
        assert response.status_code == 200
        assert {b["bookedBy"] for b in response.json()} == {driver["id"], other_driver["id"]}

    def test_plain_user_cannot_list_all(self, client, driver):
        response = client.get("/bookings", headers=driver["headers"])
        assert response.status_code == 403

    def test_pages_of_five(self, client, admin, driver, make_booking):
        ids = [make_booking(driver, vehicle=f"V{i}") for i in range(12)]
        response = client.get("/bookings", params={"page": 1}, headers=admin["headers"])
        assert response.headers["X-Total-Pages"] == "3"
        assert [b["id"] for b in response.json()] == ids[:5]

        last = client.get("/bookings", params={"page": 3}, headers=admin["headers"])
        assert [b["id"] for b in last.json()] == ids[10:]

    def test_user_sees_own_bookings(self, client, driver, other_driver, make_booking):
        mine = make_booking(driver)
        make_booking(other_driver)
        response = client.get(f"/bookings/user/{driver['id']}", headers=driver["headers"])
        assert [b["id"] for b in response.json()] == [mine]

    def test_user_cannot_read_someone_elses_bookings(self, client, driver, other_driver):
        response = client.get(f"/bookings/user/{other_driver['id']}", headers=driver["headers"])
        assert response.status_code == 403


class TestEditBooking:

    def test_owner_edits_vehicle_and_dates(self, client, driver, make_booking):
        booking_id = make_booking(driver)
        response = client.put(
            f"/bookings/{booking_id}",
            json={"vehicleNumber": "MH12XY9999", "fromDate": "2024-02-01", "toDate": "2024-02-03"},
            headers=driver["headers"],
        )
        assert response.status_code == 200
        body = response.json()
        assert body["vehicleNumber"] == "MH12XY9999"
        assert body["fromDate"].startswith("2024-02-01")
        assert body["toDate"].startswith("2024-02-03")

    def test_edit_with_bad_range_is_rejected_and_nothing_changes(self, client, driver, make_booking):
        booking_id = make_booking(driver)
        response = client.put(
            f"/bookings/{booking_id}",
            json={"vehicleNumber": "NEW", "fromDate": "2024-01-10T00:00:00", "toDate": "2024-01-09T00:00:00"},
            headers=driver["headers"],
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "To date must be after from date"

        listed = client.get(f"/bookings/user/{driver['id']}", headers=driver["headers"]).json()
        assert listed[0]["vehicleNumber"] == "KA01AB1234"

    def test_partial_edit_is_checked_against_stored_dates(self, client, driver, make_booking):
        booking_id = make_booking(driver)
        response = client.put(
            f"/bookings/{booking_id}", json={"toDate": "2024-01-05T00:00:00"}, headers=driver["headers"]
        )
        assert response.status_code == 400

    def test_stranger_cannot_edit(self, client, driver, other_driver, make_booking):
        booking_id = make_booking(driver)
        response = client.put(f"/bookings/{booking_id}", json={"vehicleNumber": "X"}, headers=other_driver["headers"])
        assert response.status_code == 403

    def test_moderator_can_edit(self, client, moderator, driver, make_booking):
        booking_id = make_booking(driver)
        response = client.put(f"/bookings/{booking_id}", json={"vehicleNumber": "X1"}, headers=moderator["headers"])
        assert response.status_code == 200

    def test_updated_at_is_non_decreasing(self, client, driver, make_booking):
        booking_id = make_booking(driver)
        stamps = []
        for vehicle in ("A1", "A2", "A3"):
            body = client.put(
                f"/bookings/{booking_id}", json={"vehicleNumber": vehicle}, headers=driver["headers"]
            ).json()
            stamps.append(datetime.fromisoformat(body["updatedAt"]))
        assert stamps == sorted(stamps)

    def test_missing_booking(self, client, driver):
        response = client.put("/bookings/4242", json={"vehicleNumber": "X"}, headers=driver["headers"])
        assert response.status_code == 404


class TestDeleteBooking:

    def test_admin_deletes(self, client, admin, driver, make_booking):
        booking_id = make_booking(driver)
        assert client.delete(f"/bookings/{booking_id}", headers=admin["headers"]).status_code == 200
        assert client.get(f"/bookings/user/{driver['id']}", headers=driver["headers"]).json() == []

    @pytest.mark.parametrize("who", ["moderator", "driver"])
    def test_only_admin_deletes(self, client, request, driver, make_booking, who):
        booking_id = make_booking(driver)
        user = request.getfixturevalue(who)
        assert client.delete(f"/bookings/{booking_id}", headers=user["headers"]).status_code == 403


class TestStatusUpdates:

    def test_mark_completed(self, client, moderator, driver, make_booking):
        booking_id = make_booking(driver, status=BookingStatus.active)
        response = client.patch(
            f"/bookings/{booking_id}/status", json={"status": "Completed"}, headers=moderator["headers"]
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Completed"

    def test_mark_fine_paid(self, client, admin, driver, make_booking):
        booking_id = make_booking(driver, status=BookingStatus.overstayed, fine_amount=30.0, overstay_days=2)
        response = client.patch(
            f"/bookings/{booking_id}/status", json={"isFinePaid": True}, headers=admin["headers"]
        )
        body = response.json()
        assert body["isFinePaid"] is True
        assert body["status"] == "Overstayed"
        assert body["fineAmount"] == 30.0

    def test_overstay_assessment_uses_lot_rate(self, client, admin, driver, make_booking):
        to_date = utcnow() - timedelta(days=1, hours=2)
        booking_id = make_booking(driver, status=BookingStatus.active,
                                  from_date=to_date - timedelta(days=3), to_date=to_date)
        body = client.patch(
            f"/bookings/{booking_id}/status", json={"status": "Overstayed"}, headers=admin["headers"]
        ).json()
        assert body["overstayDays"] == 2
        assert body["dailyRate"] == 15.0
        assert body["fineAmount"] == 30.0
        assert body["isFinePaid"] is False

    def test_resending_overstayed_keeps_a_paid_fine(self, client, admin, driver, make_booking):
        booking_id = make_booking(driver, status=BookingStatus.overstayed,
                                  fine_amount=30.0, is_fine_paid=True, overstay_days=2)
        response = client.patch(
            f"/bookings/{booking_id}/status", json={"status": "Overstayed"}, headers=admin["headers"]
        )
        assert response.status_code == 200
        body = response.json()
        assert body["fineAmount"] == 30.0
        assert body["isFinePaid"] is True
        assert body["overstayDays"] == 2

    def test_unknown_status_is_rejected(self, client, admin, driver, make_booking):
        booking_id = make_booking(driver)
        response = client.patch(
            f"/bookings/{booking_id}/status", json={"status": "Teleported"}, headers=admin["headers"]
        )
        assert response.status_code == 422

    def test_empty_patch(self, client, admin, driver, make_booking):
        booking_id = make_booking(driver)
        response = client.patch(f"/bookings/{booking_id}/status", json={}, headers=admin["headers"])
        assert response.status_code == 400

    def test_plain_user_cannot_change_status(self, client, driver, make_booking):
        booking_id = make_booking(driver)
        response = client.patch(
            f"/bookings/{booking_id}/status", json={"status": "Completed"}, headers=driver["headers"]
        )
        assert response.status_code == 403


class TestReviews:

    def test_review_completed_booking(self, client, driver, make_booking):
        booking_id = make_booking(driver, status=BookingStatus.completed)
        response = client.post(
            f"/bookings/{booking_id}/review", json={"rating": 5, "comment": "Great spot"}, headers=driver["headers"]
        )
        assert response.status_code == 200
        assert response.json()["review"] == {"rating": 5, "comment": "Great spot"}

    def test_comment_is_optional(self, client, driver, make_booking):
        booking_id = make_booking(driver, status=BookingStatus.completed)
        response = client.post(f"/bookings/{booking_id}/review", json={"rating": 3}, headers=driver["headers"])
        assert response.json()["review"] == {"rating": 3, "comment": None}

    def test_second_review_is_rejected(self, client, driver, make_booking):
        booking_id = make_booking(driver, status=BookingStatus.completed)
        client.post(f"/bookings/{booking_id}/review", json={"rating": 4}, headers=driver["headers"])
        response = client.post(f"/bookings/{booking_id}/review", json={"rating": 1}, headers=driver["headers"])
        assert response.status_code == 409

    def test_review_needs_completed_booking(self, client, driver, make_booking):
        booking_id = make_booking(driver, status=BookingStatus.active)
        response = client.post(f"/bookings/{booking_id}/review", json={"rating": 4}, headers=driver["headers"])
        assert response.status_code == 400

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_out_of_range(self, client, driver, make_booking, rating):
        booking_id = make_booking(driver, status=BookingStatus.completed)
        response = client.post(f"/bookings/{booking_id}/review", json={"rating": rating}, headers=driver["headers"])
        assert response.status_code == 422

    def test_only_owner_reviews(self, client, driver, other_driver, make_booking):
        booking_id = make_booking(driver, status=BookingStatus.completed)
        response = client.post(f"/bookings/{booking_id}/review", json={"rating": 4}, headers=other_driver["headers"])
        assert response.status_code == 403


class TestReceipt:

    def test_owner_downloads_pdf(self, client, driver, make_booking):
        booking_id = make_booking(driver)
        response = client.get(f"/bookings/{booking_id}/receipt", headers=driver["headers"])
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert f"Parking_Receipt_{booking_id}.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_stranger_cannot_download(self, client, driver, other_driver, make_booking):
        booking_id = make_booking(driver)
        response = client.get(f"/bookings/{booking_id}/receipt", headers=other_driver["headers"])
        assert response.status_code == 403


def test_admin_statistics(client, admin, driver, make_booking):
    make_booking(driver, status=BookingStatus.overstayed, fine_amount=20.0, is_fine_paid=True)
    make_booking(driver, status=BookingStatus.overstayed, fine_amount=10.0)
    make_booking(driver, status=BookingStatus.completed, review_rating=4)
    make_booking(driver)

    response = client.get("/admin/statistics", headers=admin["headers"])
    data = response.json()["data"]
    assert data["total_bookings"] == 4
    assert data["bookings_by_status"]["Overstayed"] == 2
    assert data["bookings_by_status"]["Pending"] == 1
    assert data["fines_assessed"] == 30.0
    assert data["fines_collected"] == 20.0
    assert data["average_rating"] == 4.0


def test_statistics_admin_only(client, moderator):
    assert client.get("/admin/statistics", headers=moderator["headers"]).status_code == 403
