"""Configuration helpers for the Flask application."""

import logging
import os
from typing import Any, Dict

from dotenv import load_dotenv

DEFAULT_JWT_SECRET = "devsecret"


def load_environment() -> None:
    """Load environment variables from a .env file when available."""
    load_dotenv()


def is_production() -> bool:
    return os.environ.get("APP_ENV", "development").lower() == "production"


def env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def configure_logging() -> None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_auth_settings() -> Dict[str, Any]:
    """Return JWT configuration derived from environment variables."""
    secret = os.environ.get("JWT_SECRET") or DEFAULT_JWT_SECRET
    if is_production() and secret == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set in production")
    try:
        expires_days = int(os.environ.get("JWT_EXPIRES_DAYS", "7"))
    except ValueError:
        raise RuntimeError("JWT_EXPIRES_DAYS must be an integer")
    return {
        "secret": secret,
        "algorithm": "HS256",
        "expires_days": expires_days,
    }
