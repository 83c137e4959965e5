"""Parsing and serialization helpers shared by the route modules."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from werkzeug.exceptions import BadRequest, NotFound

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_object_id(value: Any, message: str = "Resource not found") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise NotFound(message)


def parse_object_id(value: Any, field: str) -> ObjectId:
    """Like validate_object_id but for ids arriving in a request body."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value.strip()):
        return ObjectId(value.strip())
    raise BadRequest(f"{field} must be a valid id")


def find_or_404(collection, object_id: ObjectId, message: str) -> Dict[str, Any]:
    doc = collection.find_one({"_id": object_id})
    if doc is None:
        raise NotFound(message)
    return doc


def isoformat(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat() + "Z"
    return None


def serialize_document(value: Any) -> Any:
    """Convert a Mongo document into JSON-safe data, renaming ``_id`` to ``id``."""
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for key, item in value.items():
            out["id" if key == "_id" else key] = serialize_document(item)
        return out
    if isinstance(value, (list, tuple)):
        return [serialize_document(item) for item in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return isoformat(value)
    return value


def clean_string(value: Any, field: str, required: bool = False, lower: bool = False,
                 upper: bool = False) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise BadRequest(f"{field} is required")
        return None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise BadRequest(f"{field} must be a string")
    text = str(value).strip()
    if lower:
        text = text.lower()
    if upper:
        text = text.upper()
    return text


def parse_number(value: Any, field: str, required: bool = False, minimum: Optional[float] = None,
                 maximum: Optional[float] = None) -> Optional[float]:
    if value is None or value == "":
        if required:
            raise BadRequest(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise BadRequest(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{field} must be a number")
    if minimum is not None and number < minimum:
        raise BadRequest(f"{field} must be at least {minimum:g}")
    if maximum is not None and number > maximum:
        raise BadRequest(f"{field} must be at most {maximum:g}")
    return number


def parse_datetime(value: Any, field: str, required: bool = False) -> Optional[datetime]:
    if value is None or value == "":
        if required:
            raise BadRequest(f"{field} is required")
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise BadRequest(f"{field} must be an ISO-8601 date")
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise BadRequest(f"{field} must be an ISO-8601 date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def validate_email(value: Optional[str], field: str = "email") -> Optional[str]:
    if value is not None and not EMAIL_PATTERN.match(value):
        raise BadRequest(f"{field} must be a valid email address")
    return value


def compact(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset fields so sparse unique indexes ignore them."""
    return {key: value for key, value in doc.items() if value is not None}

