"""Core configuration, database session and shared error types."""

from app.core.config import get_settings, settings
from app.core.database import SessionLocal, get_db
from app.core.errors import AppError

__all__ = ["AppError", "SessionLocal", "get_db", "get_settings", "settings"]
