"""Core utilities for the GoMint server."""

from .config import configure_logging, env_flag, get_auth_settings, is_production, load_environment
from .database import ensure_indexes, get_database, get_mongo_client, safe_create_index
from .security import decode_token, hash_password, issue_token, login_required, verify_password
from .utils import (
    clean_string,
    compact,
    find_or_404,
    isoformat,
    parse_datetime,
    parse_number,
    parse_object_id,
    serialize_document,
    validate_email,
    validate_object_id,
)

__all__ = [
    "configure_logging",
    "env_flag",
    "get_auth_settings",
    "is_production",
    "load_environment",
    "ensure_indexes",
    "get_database",
    "get_mongo_client",
    "safe_create_index",
    "decode_token",
    "hash_password",
    "issue_token",
    "login_required",
    "verify_password",
    "clean_string",
    "compact",
    "find_or_404",
    "isoformat",
    "parse_datetime",
    "parse_number",
    "parse_object_id",
    "serialize_document",
    "validate_email",
    "validate_object_id",
]
