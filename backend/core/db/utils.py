"""
Shared database utilities.

Common functions used across database modules for:
- Identifier and timestamp handling
- JSON field parsing
- Query building
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union
import json
import uuid


def new_id() -> str:
    """Generate a new record ID."""
    return str(uuid.uuid4())


def now() -> str:
    """
    Get current UTC timestamp as ISO string.

    Returns:
        ISO formatted timestamp string
    """
    return datetime.utcnow().isoformat()


def to_iso_date(value: Union[str, date, datetime, None]) -> Optional[str]:
    """
    Normalize a date-ish value to a YYYY-MM-DD string.

    Accepts date/datetime objects and ISO strings (a time part is dropped).
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(str(value)[:10]).isoformat()


def parse_iso_date(value: str) -> date:
    """Parse a stored YYYY-MM-DD (or longer ISO) string into a date."""
    return date.fromisoformat(str(value)[:10])


def parse_json_field(value: Optional[str], default: Any = None) -> Any:
    """
    Safely parse a JSON field from the database.

    Args:
        value: JSON string from database, may be None
        default: Default value if parsing fails or value is None

    Returns:
        Parsed JSON value or default
    """
    if not value:
        return default if default is not None else {}
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return default if default is not None else {}


def to_json(value: Any) -> str:
    """Convert a value to JSON string for database storage."""
    return json.dumps(value)


def build_update(updates: Dict[str, Any], allowed_columns: set) -> Tuple[str, List[Any]]:
    """
    Build the SET clause of an UPDATE from a dict of column -> value.

    Raises:
        ValueError: if a column is not whitelisted
    """
    invalid_cols = set(updates.keys()) - allowed_columns - {'updated_at'}
    if invalid_cols:
        raise ValueError(f"Invalid column names: {invalid_cols}")

    set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
    values = [v.value if hasattr(v, "value") else v for v in updates.values()]
    return set_clause, values

