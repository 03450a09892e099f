"""
Request and response schemas for the HTTP API.

Field names are snake_case in Python and camelCase on the wire
(vehicleNumber, fromDate, isFinePaid, ...), matching what the dashboard
client sends and reads.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models import (
    AVATAR_OPTIONS,
    BookingStatus,
    UserRole,
    Parking_Bookings,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# --- Users ---
class UserRegister(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    contact: str = ""
    vehicle: str = ""


class UserLogin(CamelModel):
    email: str
    password: str


class UserRead(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    contact: str
    vehicle: str
    avatar: str
    role: UserRole


class UserUpdate(CamelModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    vehicle: Optional[str] = None
    avatar: Optional[str] = None

    @field_validator("avatar")
    @classmethod
    def known_avatar(cls, value):
        if value is not None and value not in AVATAR_OPTIONS:
            raise ValueError(f"avatar must be one of {', '.join(AVATAR_OPTIONS)}")
        return value


class AuthResponse(CamelModel):
    token: str
    user: UserRead


# --- Lots, levels, slots ---
class LotCreate(CamelModel):
    name: str = Field(min_length=1)
    address: str = ""
    daily_rate: Optional[float] = Field(default=None, ge=0)


class LotRead(CamelModel):
    id: int
    name: str
    address: str
    daily_rate: Optional[float] = None


class LevelCreate(CamelModel):
    name: str = Field(min_length=1)
    parking_lot_id: int


class LevelRead(CamelModel):
    id: int
    name: str
    parking_lot: Optional[LotRead] = None


class SlotCreate(CamelModel):
    slot_number: str = Field(min_length=1)
    parking_level_id: Optional[int] = None


class SlotRead(CamelModel):
    id: int
    slot_number: str
    parking_level: Optional[LevelRead] = None


# --- Bookings ---
class BookingCreate(CamelModel):
    parking_slot: int
    vehicle_number: str
    from_date: datetime
    to_date: datetime

    normalize_dates = field_validator("from_date", "to_date")(naive_utc)


class BookingUpdate(CamelModel):
    vehicle_number: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None

    normalize_dates = field_validator("from_date", "to_date")(naive_utc)


class StatusUpdate(CamelModel):
    status: Optional[BookingStatus] = None
    is_fine_paid: Optional[bool] = None


class ReviewCreate(CamelModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


class ReviewRead(CamelModel):
    rating: int
    comment: Optional[str] = None


class BookingRead(CamelModel):
    id: int
    parking_slot: Optional[SlotRead] = None
    parking_slot_id: int
    booked_by: int
    vehicle_number: str
    from_date: datetime
    to_date: datetime
    status: BookingStatus
    review: Optional[ReviewRead] = None
    is_fine_paid: bool
    fine_amount: float
    daily_rate: Optional[float] = None
    overstay_days: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_booking(cls, booking: Parking_Bookings) -> "BookingRead":
        review = None
        if booking.has_review:
            review = ReviewRead(rating=booking.review_rating, comment=booking.review_comment)
        slot = SlotRead.model_validate(booking.parking_slot) if booking.parking_slot else None
        return cls(
            id=booking.id,
            parking_slot=slot,
            parking_slot_id=booking.parking_slot_id,
            booked_by=booking.booked_by,
            vehicle_number=booking.vehicle_number,
            from_date=booking.from_date,
            to_date=booking.to_date,
            status=booking.status,
            review=review,
            is_fine_paid=booking.is_fine_paid,
            fine_amount=booking.fine_amount,
            daily_rate=booking.daily_rate,
            overstay_days=booking.overstay_days,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )
