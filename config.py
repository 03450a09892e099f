# config.py
"""Configuration settings for the parking booking service and its dashboard client."""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Values read once from the environment with local-friendly defaults."""

    # Database
    DATABASE_URL = os.environ.get("DATABASE_URL") or "sqlite:///parking.db"
    SQL_ECHO = os.environ.get("SQL_ECHO", "false").lower() == "true"

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Bookings
    PAGE_SIZE = int(os.environ.get("PAGE_SIZE", "5"))
    DEFAULT_DAILY_RATE = float(os.environ.get("DEFAULT_DAILY_RATE", "10.0"))

    # Admin account created at startup when both are set
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD")

    # Receipts
    SUPPORT_EMAIL = os.environ.get("SUPPORT_EMAIL", "support@parking.com")

    # Dashboard client
    PARKING_API_URL = os.environ.get("PARKING_API_URL", "http://localhost:8000")
    PARKING_SESSION_FILE = os.environ.get(
        "PARKING_SESSION_FILE",
        os.path.join(os.path.expanduser("~"), ".parking_dashboard.json"),
    )


settings = Settings()
