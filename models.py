# models.py

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime, event
from typing import Optional, List
from enum import Enum
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

DATE_RANGE_MESSAGE = "To date must be after from date"
AVATAR_OPTIONS = ("yellow", "red", "sky", "black", "green")


def utcnow() -> datetime:
    # timestamps are naive UTC in plain DateTime columns (SQLite keeps no offset)
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BookingValidationError(ValueError):
    """A booking write that breaks the record's own rules."""


def validate_date_range(from_date: datetime, to_date: datetime):
    if from_date is None or to_date is None:
        raise BookingValidationError("From date and to date are required")
    if to_date <= from_date:
        raise BookingValidationError(DATE_RANGE_MESSAGE)


# Booking status
class BookingStatus(str, Enum):
    # stored by the booking flow
    pending = "Pending"
    confirmed = "Confirmed"
    cancelled = "Cancelled"
    # shown and set from the dashboard
    active = "Active"
    completed = "Completed"
    overstayed = "Overstayed"


class UserRole(str, Enum):
    admin = "admin"
    moderator = "moderator"
    user = "user"


# Users
class Users_Informations(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str = ""
    email: str = Field(index=True, unique=True)
    contact: str = ""
    vehicle: str = ""
    avatar: str = "red"
    role: UserRole = Field(default=UserRole.user)
    password_hash: str

    bookings: List["Parking_Bookings"] = Relationship(back_populates="user")
    tokens: List["Auth_Tokens"] = Relationship(back_populates="user")


class Auth_Tokens(SQLModel, table=True):
    token: str = Field(primary_key=True)
    user_id: int = Field(foreign_key="users_informations.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    user: Optional[Users_Informations] = Relationship(back_populates="tokens")


# Lot -> levels -> slots
class Parking_Lots(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    address: str = ""
    daily_rate: Optional[float] = None

    levels: List["Parking_Levels"] = Relationship(back_populates="parking_lot")


class Parking_Levels(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    parking_lot_id: int = Field(foreign_key="parking_lots.id")

    parking_lot: Optional[Parking_Lots] = Relationship(back_populates="levels")
    slots: List["Parking_Slots"] = Relationship(back_populates="parking_level")


class Parking_Slots(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    slot_number: str
    parking_level_id: Optional[int] = Field(default=None, foreign_key="parking_levels.id")

    parking_level: Optional[Parking_Levels] = Relationship(back_populates="slots")
    bookings: List["Parking_Bookings"] = Relationship(back_populates="parking_slot")


# Bookings
class Parking_Bookings(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    parking_slot_id: int = Field(foreign_key="parking_slots.id", index=True)
    booked_by: int = Field(foreign_key="users_informations.id", index=True)
    vehicle_number: str
    from_date: datetime = Field(sa_type=DateTime)
    to_date: datetime = Field(sa_type=DateTime)
    status: BookingStatus = Field(default=BookingStatus.pending)

    # overstay bookkeeping
    is_fine_paid: bool = False
    fine_amount: float = 0.0
    daily_rate: Optional[float] = None
    overstay_days: int = 0

    # review, at most one per booking
    review_rating: Optional[int] = None
    review_comment: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    parking_slot: Optional[Parking_Slots] = Relationship(back_populates="bookings")
    user: Optional[Users_Informations] = Relationship(back_populates="bookings")

    @property
    def has_review(self) -> bool:
        return self.review_rating is not None


@event.listens_for(Parking_Bookings, "before_insert")
def _check_new_booking(mapper, connection, target):
    if not target.vehicle_number or not target.vehicle_number.strip():
        raise BookingValidationError("Vehicle number is required")
    validate_date_range(target.from_date, target.to_date)


@event.listens_for(Parking_Bookings, "before_update")
def _check_booking_update(mapper, connection, target):
    validate_date_range(target.from_date, target.to_date)
    now = utcnow()
    # never move updated_at backwards, even if the clock does
    target.updated_at = now if target.updated_at is None or now > target.updated_at else target.updated_at
    logger.debug("Booking %s touched at %s", target.id, target.updated_at)
