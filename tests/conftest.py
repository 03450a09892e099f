import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from auth import hash_password, issue_token
from database import get_session
from main import app
from models import (
    BookingStatus,
    Parking_Bookings,
    Parking_Levels,
    Parking_Lots,
    Parking_Slots,
    UserRole,
    Users_Informations,
)


@pytest.fixture
def engine():
    # In-memory database shared by the test session and the app's request sessions
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(role=UserRole.user, first_name="Test"):
        counter["n"] += 1
        user = Users_Informations(
            first_name=first_name,
            last_name="User",
            email=f"{role.value}{counter['n']}@example.com",
            contact="555-0100",
            vehicle="KA01AB1234",
            role=role,
            password_hash=hash_password("secret123"),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        token = issue_token(session, user)
        return {
            "id": user.id,
            "email": user.email,
            "role": role.value,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
            "user": {
                "id": user.id,
                "firstName": user.first_name,
                "lastName": user.last_name,
                "email": user.email,
                "contact": user.contact,
                "vehicle": user.vehicle,
                "avatar": user.avatar,
                "role": role.value,
            },
        }

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.admin, "Ada")


@pytest.fixture
def moderator(make_user):
    return make_user(UserRole.moderator, "Mo")


@pytest.fixture
def driver(make_user):
    return make_user(UserRole.user, "Dee")


@pytest.fixture
def other_driver(make_user):
    return make_user(UserRole.user, "Otto")


@pytest.fixture
def slot(session):
    lot = Parking_Lots(name="Central Lot", address="1 Main Street", daily_rate=15.0)
    session.add(lot)
    session.commit()
    level = Parking_Levels(name="Level 1", parking_lot_id=lot.id)
    session.add(level)
    session.commit()
    slot = Parking_Slots(slot_number="A-01", parking_level_id=level.id)
    session.add(slot)
    session.commit()
    session.refresh(slot)
    return slot


@pytest.fixture
def make_booking(session, slot):
    def _make(owner, status=BookingStatus.pending, vehicle="KA01AB1234",
              from_date=datetime(2024, 1, 10), to_date=datetime(2024, 1, 12), **extra):
        booking = Parking_Bookings(
            parking_slot_id=slot.id,
            booked_by=owner["id"],
            vehicle_number=vehicle,
            from_date=from_date,
            to_date=to_date,
            status=status,
            **extra,
        )
        session.add(booking)
        session.commit()
        session.refresh(booking)
        return booking.id

    return _make
