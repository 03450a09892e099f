# database.py
from sqlmodel import SQLModel, create_engine, Session
import logging

from config import settings
import models  # noqa: F401  registers the tables on SQLModel.metadata

logger = logging.getLogger(__name__)

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # FastAPI may hand a request to a different thread than the one that opened the connection
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO, connect_args=connect_args)


def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)
    logger.info("Database tables ready")


def get_session():
    with Session(engine) as session:
        yield session
