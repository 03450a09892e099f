# dashboard_client.py
"""
Client side of the booking dashboard and the profile editor.

The token and signed-in user travel in an explicit ``ClientSession`` that is
handed to every view, instead of being read from some global store. Every
user action is one request; the local booking list is only changed after the
server accepted the change.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

import requests

from config import settings
from parking_system_operations import (
    can_mark_completed,
    can_mark_fine_paid,
    can_review,
    is_staff,
    page_count,
    paginate,
)
from models import AVATAR_OPTIONS, BookingStatus, DATE_RANGE_MESSAGE
from receipts import render_receipt_pdf, receipt_filename
from schemas import naive_utc

logger = logging.getLogger(__name__)

AUTH_REQUIRED = "Authentication required"
DEFAULT_AVATAR = "red"


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationRequired(ApiError):
    """Raised before any request is made when there is no token."""


def extract_error_message(response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback

    for key in ("message", "detail", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, list) and value:
            # FastAPI validation errors
            return "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in value)
    return fallback


@dataclass
class ClientSession:
    token: Optional[str] = None
    user: Dict = field(default_factory=dict)

    @property
    def user_id(self):
        return self.user.get("id")

    @property
    def role(self) -> str:
        return self.user.get("role") or "guest"

    @property
    def is_staff(self) -> bool:
        return is_staff(self.role)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def clear(self):
        self.token = None
        self.user = {}

    def save(self, path: str = None):
        path = path or settings.PARKING_SESSION_FILE
        # the file holds a bearer token: owner read/write only
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        os.chmod(path, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump({"token": self.token, "user": self.user}, fh)

    @classmethod
    def load(cls, path: str = None) -> "ClientSession":
        path = path or settings.PARKING_SESSION_FILE
        if not os.path.exists(path):
            return cls()
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", path, e)
            return cls()
        return cls(token=data.get("token"), user=data.get("user") or {})


class ParkingApi:
    """Thin wrapper over an HTTP session; anything with ``request()`` like requests.Session works."""

    def __init__(self, base_url: str = None, http=None):
        self.base_url = (settings.PARKING_API_URL if base_url is None else base_url).rstrip("/")
        self.http = http or requests.Session()

    def request(self, method: str, path: str, token: Optional[str] = None, auth: bool = True,
                fallback: str = "Request failed", auth_message: str = AUTH_REQUIRED, **kwargs):
        headers = kwargs.pop("headers", {})
        if auth:
            if not token:
                raise AuthenticationRequired(auth_message)
            headers["Authorization"] = f"Bearer {token}"

        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, headers=headers, **kwargs)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise ApiError(fallback)

        if response.status_code >= 400:
            message = extract_error_message(response, fallback)
            logger.error("%s %s -> %s: %s", method, url, response.status_code, message)
            raise ApiError(message, response.status_code)
        return response

    def login(self, email: str, password: str) -> ClientSession:
        response = self.request(
            "POST", "/auth/login", auth=False, fallback="Login failed",
            json={"email": email, "password": password},
        )
        body = response.json()
        return ClientSession(token=body["token"], user=body["user"])

    def logout(self, session: ClientSession):
        if session.token:
            try:
                self.request("POST", "/auth/logout", token=session.token, fallback="Logout failed")
            finally:
                session.clear()


def _as_date(value):
    """Parse a form or API date into naive UTC, the form the server stores."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    return naive_utc(parsed)


def _wire_date(value) -> str:
    return _as_date(value).isoformat()


class BookingDashboard:
    """Booking management view: list, paging, per-row actions and mutations."""

    def __init__(self, api: ParkingApi, session: ClientSession, per_page: int = None):
        self.api = api
        self.session = session
        self.per_page = per_page or settings.PAGE_SIZE

        self.bookings: List[Dict] = []
        self.current_page = 1
        self.error = ""
        self.edit_error = ""
        self.review_error = ""

    # --- loading and paging ---
    def fetch_bookings(self) -> List[Dict]:
        if not self.session.token or self.session.user_id is None:
            return self.bookings

        path = "/bookings" if self.session.is_staff else f"/bookings/user/{self.session.user_id}"
        try:
            response = self.api.request("GET", path, token=self.session.token)
            data = response.json()
            self.bookings = data if isinstance(data, list) else []
            self.error = ""
        except ApiError:
            self.error = "Error fetching bookings."
            self.bookings = []
        self.current_page = 1
        return self.bookings

    @property
    def total_pages(self) -> int:
        return page_count(len(self.bookings), self.per_page)

    @property
    def shows_pagination(self) -> bool:
        return len(self.bookings) > self.per_page

    def current_items(self) -> List[Dict]:
        return paginate(self.bookings, self.current_page, self.per_page)

    def go_to(self, page: int) -> bool:
        if page < 1 or page > max(self.total_pages, 1):
            return False
        self.current_page = page
        return True

    def next_page(self) -> bool:
        return self.go_to(self.current_page + 1)

    def previous_page(self) -> bool:
        return self.go_to(self.current_page - 1)

    # --- what each row offers ---
    def visible_actions(self, booking: Dict) -> Dict[str, bool]:
        """Action name -> enabled, in display order."""
        actions = {}
        status = booking.get("status")
        if self.session.is_staff:
            if can_mark_completed(status):
                actions["mark_completed"] = status != BookingStatus.completed
            if can_mark_fine_paid(status, booking.get("isFinePaid")):
                actions["mark_fine_paid"] = True
            actions["edit"] = True
        if self.session.is_admin:
            actions["delete"] = True
        if can_review(status, bool(booking.get("review"))):
            actions["review"] = True
        actions["download"] = True
        return actions

    def find(self, booking_id) -> Optional[Dict]:
        return next((b for b in self.bookings if b.get("id") == booking_id), None)

    def _replace(self, updated: Dict):
        self.bookings = [updated if b.get("id") == updated.get("id") else b for b in self.bookings]

    # --- mutations ---
    def _patch_status(self, booking_id, body: Dict, fallback: str) -> bool:
        try:
            response = self.api.request(
                "PATCH", f"/bookings/{booking_id}/status",
                token=self.session.token, fallback=fallback, json=body,
            )
        except ApiError as e:
            self.error = e.message
            return False
        self._replace(response.json())
        self.error = ""
        return True

    def mark_completed(self, booking_id) -> bool:
        return self._patch_status(booking_id, {"status": BookingStatus.completed.value}, "Failed to update status")

    def mark_fine_paid(self, booking_id) -> bool:
        return self._patch_status(booking_id, {"isFinePaid": True}, "Failed to update fine payment")

    def update_booking(self, booking_id, vehicle_number: str, from_date, to_date) -> bool:
        self.edit_error = ""
        if self.find(booking_id) is None:
            return False
        try:
            if _as_date(to_date) <= _as_date(from_date):
                self.edit_error = DATE_RANGE_MESSAGE
                return False
        except ValueError:
            self.edit_error = "Dates must be in YYYY-MM-DD format"
            return False

        body = {
            "vehicleNumber": vehicle_number,
            "fromDate": _wire_date(from_date),
            "toDate": _wire_date(to_date),
        }
        try:
            response = self.api.request(
                "PUT", f"/bookings/{booking_id}",
                token=self.session.token, fallback="Failed to update booking", json=body,
            )
        except ApiError as e:
            self.edit_error = e.message
            return False
        self._replace(response.json())
        return True

    def delete_booking(self, booking_id) -> bool:
        try:
            self.api.request(
                "DELETE", f"/bookings/{booking_id}",
                token=self.session.token, fallback="Failed to delete booking",
            )
        except ApiError as e:
            self.error = e.message
            return False
        self.bookings = [b for b in self.bookings if b.get("id") != booking_id]
        if not self.go_to(self.current_page):
            self.current_page = max(self.total_pages, 1)
        self.error = ""
        return True

    def submit_review(self, booking_id, rating: int, comment: str = "") -> bool:
        self.review_error = ""
        if not rating:
            self.review_error = "Please provide a rating"
            return False
        try:
            response = self.api.request(
                "POST", f"/bookings/{booking_id}/review",
                token=self.session.token, fallback="Failed to submit review",
                json={"rating": rating, "comment": comment},
            )
        except ApiError as e:
            self.review_error = e.message
            return False
        self._replace(response.json())
        return True

    def download_receipt(self, booking_id, directory: str = ".", generated_on: date = None) -> Optional[str]:
        """Render the receipt for a listed booking into ``directory``; returns the file path."""
        booking = self.find(booking_id)
        if not booking:
            return None
        path = os.path.join(directory, receipt_filename(booking))
        with open(path, "wb") as fh:
            fh.write(render_receipt_pdf(booking, generated_on=generated_on))
        return path


class ProfileEditor:
    FIELDS = ("firstName", "lastName", "contact", "email", "vehicle", "avatar")

    def __init__(self, api: ParkingApi, session: ClientSession):
        self.api = api
        self.session = session
        self.is_editing = False
        self.error = ""
        self.details = {name: session.user.get(name) or "" for name in self.FIELDS}
        self.details["avatar"] = self.details["avatar"] or DEFAULT_AVATAR

    def start_editing(self):
        self.is_editing = True

    def set_field(self, name: str, value: str):
        if name not in self.FIELDS:
            raise ValueError(f"Unknown profile field: {name}")
        if name == "avatar":
            self.select_avatar(value)
            return
        self.details[name] = value

    def select_avatar(self, avatar: str):
        if avatar not in AVATAR_OPTIONS:
            raise ValueError(f"Avatar must be one of {', '.join(AVATAR_OPTIONS)}")
        self.details["avatar"] = avatar

    def save(self) -> bool:
        self.error = ""
        try:
            response = self.api.request(
                "PUT", f"/user/{self.session.user_id}",
                token=self.session.token,
                fallback="Failed to update user details.",
                auth_message="No token found. Please log in.",
                json=self.details,
            )
        except ApiError as e:
            self.error = e.message
            return False

        self.session.user = {**self.session.user, **response.json()}
        self.is_editing = False
        logger.info("Profile updated for user %s", self.session.user_id)
        return True
