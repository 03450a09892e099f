#main.py
from fastapi import FastAPI, Depends, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from typing import List, Optional
import logging

from config import settings
from models import *
from database import create_db_and_tables, get_session, engine
from auth import (
    get_current_user,
    require_roles,
    hash_password,
    verify_password,
    issue_token,
    ensure_admin,
    bearer_scheme,
)
from schemas import (
    AuthResponse,
    BookingCreate,
    BookingRead,
    BookingUpdate,
    LevelCreate,
    LevelRead,
    LotCreate,
    LotRead,
    ReviewCreate,
    SlotCreate,
    SlotRead,
    StatusUpdate,
    UserLogin,
    UserRead,
    UserRegister,
    UserUpdate,
)
from parking_system_operations import ParkingSystem, is_staff, page_count, paginate
from receipts import render_receipt_pdf, receipt_filename

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Parking Booking Management System")

# --- CORS so the dashboard can call the API from another origin ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

parking_system = ParkingSystem(default_daily_rate=settings.DEFAULT_DAILY_RATE)

staff_only = require_roles(UserRole.admin, UserRole.moderator)
admin_only = require_roles(UserRole.admin)


@app.on_event("startup")
def on_startup():
    create_db_and_tables()
    if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
        with Session(engine) as session:
            ensure_admin(session, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)


@app.exception_handler(BookingValidationError)
def booking_validation_handler(request: Request, exc: BookingValidationError):
    logger.warning("Rejected booking write on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def get_booking_or_404(session: Session, booking_id: int) -> Parking_Bookings:
    booking = session.get(Parking_Bookings, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def ensure_owner_or_staff(user: Users_Informations, booking: Parking_Bookings):
    if booking.booked_by != user.id and not is_staff(user.role):
        raise HTTPException(status_code=403, detail="Unauthorized Access")


def save_booking(session: Session, booking: Parking_Bookings) -> BookingRead:
    session.add(booking)
    try:
        session.commit()
    except BookingValidationError:
        session.rollback()
        raise
    session.refresh(booking)
    return BookingRead.from_booking(booking)


@app.get("/")
def read_root():
    return {"message": "Parking Booking API"}


# 1. Register
@app.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: UserRegister, session: Session = Depends(get_session)):
    existing = session.exec(
        select(Users_Informations).where(Users_Informations.email == payload.email)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Email already registered")

    user = Users_Informations(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        contact=payload.contact,
        vehicle=payload.vehicle,
        password_hash=hash_password(payload.password),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Registered user %s", user.id)

    token = issue_token(session, user)
    return AuthResponse(token=token, user=UserRead.model_validate(user))


# 2. Login
@app.post("/auth/login", response_model=AuthResponse)
def login(payload: UserLogin, session: Session = Depends(get_session)):
    user = session.exec(
        select(Users_Informations).where(Users_Informations.email == payload.email)
    ).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = issue_token(session, user)
    return AuthResponse(token=token, user=UserRead.model_validate(user))


# 3. Logout
@app.post("/auth/logout")
def logout(
    credentials=Depends(bearer_scheme),
    user: Users_Informations = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    token = session.get(Auth_Tokens, credentials.credentials)
    if token:
        session.delete(token)
        session.commit()
    return {"message": "Logged out successfully"}


# 4. Profile
@app.get("/user/{user_id}", response_model=UserRead)
def get_user(user_id: int, user: Users_Informations = Depends(get_current_user), session: Session = Depends(get_session)):
    if user.id != user_id and not is_staff(user.role):
        raise HTTPException(status_code=403, detail="Unauthorized Access")
    target = session.get(Users_Informations, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    return UserRead.model_validate(target)


@app.put("/user/{user_id}", response_model=UserRead)
def update_user_info(
    user_id: int,
    payload: UserUpdate,
    user: Users_Informations = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if user.id != user_id and user.role != UserRole.admin:
        raise HTTPException(status_code=403, detail="Unauthorized Access")
    target = session.get(Users_Informations, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes and changes["email"] != target.email:
        taken = session.exec(
            select(Users_Informations).where(Users_Informations.email == changes["email"])
        ).first()
        if taken:
            raise HTTPException(status_code=409, detail="Email already registered")

    for field, value in changes.items():
        setattr(target, field, value)

    session.add(target)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    session.refresh(target)
    logger.info("User %s updated fields %s", target.id, sorted(changes))
    return UserRead.model_validate(target)


# 5. Lots, levels and slots (admin)
@app.post("/parking/lots", response_model=LotRead, status_code=201)
def create_lot(payload: LotCreate, user=Depends(admin_only), session: Session = Depends(get_session)):
    lot = Parking_Lots(name=payload.name, address=payload.address, daily_rate=payload.daily_rate)
    session.add(lot)
    session.commit()
    session.refresh(lot)
    return LotRead.model_validate(lot)


@app.post("/parking/levels", response_model=LevelRead, status_code=201)
def create_level(payload: LevelCreate, user=Depends(admin_only), session: Session = Depends(get_session)):
    if not session.get(Parking_Lots, payload.parking_lot_id):
        raise HTTPException(status_code=404, detail="Parking lot not found")
    level = Parking_Levels(name=payload.name, parking_lot_id=payload.parking_lot_id)
    session.add(level)
    session.commit()
    session.refresh(level)
    return LevelRead.model_validate(level)


@app.post("/parking/slots", response_model=SlotRead, status_code=201)
def create_slot(payload: SlotCreate, user=Depends(admin_only), session: Session = Depends(get_session)):
    if payload.parking_level_id is not None and not session.get(Parking_Levels, payload.parking_level_id):
        raise HTTPException(status_code=404, detail="Parking level not found")
    slot = Parking_Slots(slot_number=payload.slot_number, parking_level_id=payload.parking_level_id)
    session.add(slot)
    session.commit()
    session.refresh(slot)
    return SlotRead.model_validate(slot)


@app.get("/parking/slots", response_model=List[SlotRead])
def list_slots(user=Depends(get_current_user), session: Session = Depends(get_session)):
    return [SlotRead.model_validate(s) for s in session.exec(select(Parking_Slots)).all()]


# 6. Book a slot
@app.post("/bookings", response_model=BookingRead, status_code=201)
def create_booking(
    payload: BookingCreate,
    user: Users_Informations = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not session.get(Parking_Slots, payload.parking_slot):
        raise HTTPException(status_code=404, detail="Parking slot not found")
    parking_system.validate_booking(payload.vehicle_number, payload.from_date, payload.to_date)

    booking = Parking_Bookings(
        parking_slot_id=payload.parking_slot,
        booked_by=user.id,
        vehicle_number=payload.vehicle_number,
        from_date=payload.from_date,
        to_date=payload.to_date,
        status=BookingStatus.pending,
    )
    result = save_booking(session, booking)
    logger.info("Booking %s created by user %s for slot %s", result.id, user.id, payload.parking_slot)
    return result


# 7. All bookings (admin/moderator)
@app.get("/bookings", response_model=List[BookingRead])
def list_bookings(
    response: Response,
    page: Optional[int] = Query(None, ge=1),
    user=Depends(staff_only),
    session: Session = Depends(get_session),
):
    bookings = session.exec(select(Parking_Bookings).order_by(Parking_Bookings.id)).all()
    if page is not None:
        response.headers["X-Total-Pages"] = str(page_count(len(bookings), settings.PAGE_SIZE))
        bookings = paginate(bookings, page, settings.PAGE_SIZE)
    return [BookingRead.from_booking(b) for b in bookings]


# 8. Bookings of one user
@app.get("/bookings/user/{user_id}", response_model=List[BookingRead])
def get_user_bookings(
    user_id: int,
    user: Users_Informations = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if user.id != user_id and not is_staff(user.role):
        raise HTTPException(status_code=403, detail="Unauthorized Access")
    bookings = session.exec(
        select(Parking_Bookings).where(Parking_Bookings.booked_by == user_id).order_by(Parking_Bookings.id)
    ).all()
    return [BookingRead.from_booking(b) for b in bookings]


# 9. Edit a booking (vehicle number, dates)
@app.put("/bookings/{booking_id}", response_model=BookingRead)
def update_booking(
    booking_id: int,
    payload: BookingUpdate,
    user: Users_Informations = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    booking = get_booking_or_404(session, booking_id)
    ensure_owner_or_staff(user, booking)

    parking_system.apply_edit(
        booking,
        vehicle_number=payload.vehicle_number,
        from_date=payload.from_date,
        to_date=payload.to_date,
    )
    result = save_booking(session, booking)
    logger.info("Booking %s edited by user %s", booking_id, user.id)
    return result


# 10. Delete a booking (admin)
@app.delete("/bookings/{booking_id}")
def delete_booking(booking_id: int, user=Depends(admin_only), session: Session = Depends(get_session)):
    booking = get_booking_or_404(session, booking_id)
    session.delete(booking)
    session.commit()
    logger.info("Booking %s deleted by admin %s", booking_id, user.id)
    return {"message": "Booking deleted"}


# 11. Status / fine payment (admin/moderator)
@app.patch("/bookings/{booking_id}/status", response_model=BookingRead)
def update_booking_status(
    booking_id: int,
    payload: StatusUpdate,
    user=Depends(staff_only),
    session: Session = Depends(get_session),
):
    if payload.status is None and payload.is_fine_paid is None:
        raise HTTPException(status_code=400, detail="No changes provided")

    booking = get_booking_or_404(session, booking_id)
    if payload.status is not None:
        parking_system.set_status(booking, payload.status)
    if payload.is_fine_paid is not None:
        parking_system.set_fine_paid(booking, payload.is_fine_paid)

    result = save_booking(session, booking)
    logger.info(
        "Booking %s status=%s isFinePaid=%s set by user %s",
        booking_id, booking.status.value, booking.is_fine_paid, user.id,
    )
    return result


# 12. Review a completed booking
@app.post("/bookings/{booking_id}/review", response_model=BookingRead)
def review_booking(
    booking_id: int,
    payload: ReviewCreate,
    user: Users_Informations = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    booking = get_booking_or_404(session, booking_id)
    if booking.booked_by != user.id:
        raise HTTPException(status_code=403, detail="Only the person who booked can review it")
    if booking.has_review:
        raise HTTPException(status_code=409, detail="This booking has already been reviewed")

    success, result = parking_system.attach_review(booking, payload.rating, payload.comment)
    if not success:
        raise HTTPException(status_code=400, detail=result)

    logger.info("Booking %s reviewed with rating %d", booking_id, payload.rating)
    return save_booking(session, booking)


# 13. PDF receipt
@app.get("/bookings/{booking_id}/receipt")
def download_receipt(
    booking_id: int,
    user: Users_Informations = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    booking = get_booking_or_404(session, booking_id)
    ensure_owner_or_staff(user, booking)

    record = BookingRead.from_booking(booking).model_dump(by_alias=True)
    pdf = render_receipt_pdf(record, parking_system=parking_system)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{receipt_filename(record)}"'},
    )


# 14. Admin statistics
@app.get("/admin/statistics")
def admin_statistics(user=Depends(admin_only), session: Session = Depends(get_session)):
    bookings = session.exec(select(Parking_Bookings)).all()

    by_status = {status.value: 0 for status in BookingStatus}
    for b in bookings:
        by_status[b.status.value] += 1

    overstayed = [b for b in bookings if b.fine_amount]
    ratings = [b.review_rating for b in bookings if b.review_rating is not None]

    return {
        "status": "success",
        "data": {
            "total_bookings": len(bookings),
            "bookings_by_status": by_status,
            "fines_assessed": round(sum(b.fine_amount for b in overstayed), 2),
            "fines_collected": round(sum(b.fine_amount for b in overstayed if b.is_fine_paid), 2),
            "average_rating": round(sum(ratings) / len(ratings), 2) if ratings else None,
        },
    }
