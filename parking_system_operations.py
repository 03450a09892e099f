# parking_system_operations.py
import io
import math
import logging
from datetime import datetime, timedelta

import qrcode

from models import (
    BookingStatus,
    Parking_Bookings,
    UserRole,
    utcnow,
    validate_date_range,
    BookingValidationError,
)

logger = logging.getLogger(__name__)

PERSISTED_STATUSES = (BookingStatus.pending, BookingStatus.confirmed, BookingStatus.cancelled)
DASHBOARD_STATUSES = (BookingStatus.active, BookingStatus.completed, BookingStatus.overstayed)

# statuses the dashboard offers "Mark Completed" for
COMPLETABLE_STATUSES = DASHBOARD_STATUSES

STAFF_ROLES = (UserRole.admin, UserRole.moderator)


def is_staff(role) -> bool:
    return role in STAFF_ROLES


def can_mark_completed(status) -> bool:
    return status in COMPLETABLE_STATUSES


def can_mark_fine_paid(status, is_fine_paid) -> bool:
    return status == BookingStatus.overstayed and not is_fine_paid


def can_review(status, has_review) -> bool:
    return status == BookingStatus.completed and not has_review


def page_count(total: int, per_page: int = 5) -> int:
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    return math.ceil(total / per_page)


def paginate(items, page: int, per_page: int = 5):
    """Items shown on a 1-based page; pages past the end are empty."""
    if page < 1:
        raise ValueError("page must be at least 1")
    last = page * per_page
    return list(items[last - per_page:last])


# Booking rules
class ParkingSystem:
    def __init__(self, default_daily_rate: float = 10.0):
        self.default_daily_rate = default_daily_rate

    def validate_booking(self, vehicle_number: str, from_date: datetime, to_date: datetime):
        if not vehicle_number or not vehicle_number.strip():
            raise BookingValidationError("Vehicle number is required")
        validate_date_range(from_date, to_date)

    # Owner/staff edit: vehicle number and date range, same date rule as on create
    def apply_edit(self, booking: Parking_Bookings, vehicle_number=None, from_date=None, to_date=None):
        new_vehicle = vehicle_number if vehicle_number is not None else booking.vehicle_number
        new_from = from_date or booking.from_date
        new_to = to_date or booking.to_date
        self.validate_booking(new_vehicle, new_from, new_to)

        booking.vehicle_number = new_vehicle
        booking.from_date = new_from
        booking.to_date = new_to
        return booking

    def resolve_daily_rate(self, booking: Parking_Bookings) -> float:
        if booking.daily_rate is not None:
            return booking.daily_rate
        slot = booking.parking_slot
        lot = slot.parking_level.parking_lot if slot and slot.parking_level else None
        if lot is not None and lot.daily_rate is not None:
            return lot.daily_rate
        return self.default_daily_rate

    def assess_overstay(self, booking: Parking_Bookings, now: datetime = None):
        now = now or utcnow()
        late = now - booking.to_date
        days = max(1, math.ceil(late / timedelta(days=1)))
        rate = self.resolve_daily_rate(booking)

        booking.overstay_days = days
        booking.daily_rate = rate
        booking.fine_amount = round(days * rate, 2)
        logger.info("Booking %s overstayed %d day(s), fine %.2f", booking.id, days, booking.fine_amount)
        return booking.fine_amount

    # Direct overwrite, no transition checks
    def set_status(self, booking: Parking_Bookings, status: BookingStatus, now: datetime = None):
        entering_overstay = status == BookingStatus.overstayed and booking.status != BookingStatus.overstayed
        booking.status = status
        # a fine is assessed once, on entry, and never over a paid one
        if entering_overstay and not booking.is_fine_paid:
            self.assess_overstay(booking, now)
        return booking

    def set_fine_paid(self, booking: Parking_Bookings, paid: bool = True):
        booking.is_fine_paid = paid
        return booking

    def attach_review(self, booking: Parking_Bookings, rating: int, comment: str = None):
        if booking.status != BookingStatus.completed:
            return False, "Only completed bookings can be reviewed"
        if booking.has_review:
            return False, "This booking has already been reviewed"
        if not 1 <= rating <= 5:
            return False, "Rating must be between 1 and 5"

        booking.review_rating = rating
        booking.review_comment = comment or None
        return True, {"rating": booking.review_rating, "comment": booking.review_comment}

    # QR with the booking reference, embedded in the receipt
    def generate_qr(self, booking_id: int, info: str = None):
        qr = qrcode.QRCode()
        data = f"Booking ID: {booking_id}"
        if info:
            data += f"\n{info}"
        qr.add_data(data)
        qr.make(fit=True)
        img = qr.make_image()
        buffer = io.BytesIO()
        img.save(buffer)
        buffer.seek(0)
        return buffer
