"""
Utility functions for the application.
"""
from typing import Any, Dict, Iterable, List, Optional, Union
from datetime import date, datetime, timezone


COMPANION_SEPARATOR = ";"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the form stored in the database)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def serialize_date(obj: Any) -> str:
    """Serialize date objects to ISO format strings."""
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")


def split_companions(value: Union[str, Iterable[str], None]) -> List[str]:
    """Split a semicolon-delimited companion string into trimmed names."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(COMPANION_SEPARATOR)
    else:
        parts = list(value)
    return [part.strip() for part in parts if part and part.strip()]


def join_companions(names: Optional[Iterable[str]]) -> str:
    """Join companion names back into the semicolon-delimited wire form."""
    if not names:
        return ""
    return f"{COMPANION_SEPARATOR} ".join(name.strip() for name in names if name and name.strip())


def format_error(message: str, details: Any = None) -> Dict[str, Any]:
    """Format error response."""
    response = {"error": message}
    if details:
        response["fields"] = details
    return response
