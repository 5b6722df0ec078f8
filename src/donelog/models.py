"""
Log entry model and ISO-8601 helpers

A LogEntry is one row of the "logs" table. The dataclass uses snake_case
attributes; to_dict()/from_dict() translate to the camelCase column names
used on the wire and in the local JSON files.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional, Dict, Any


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Accepts a trailing 'Z' as well as numeric offsets. Naive values are
    taken as UTC.

    Args:
        value: ISO-8601 timestamp string

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the value is empty or not a valid ISO-8601 timestamp

    Examples:
        >>> parse_timestamp("2024-05-01T09:30:00Z").isoformat()
        '2024-05-01T09:30:00+00:00'
        >>> parse_timestamp("2024-05-01T11:30:00+02:00").hour
        9
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"Invalid timestamp: {value!r}") from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Render a datetime as a UTC ISO-8601 string with millisecond precision.

    Examples:
        >>> format_timestamp(datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc))
        '2024-05-01T09:30:00.000Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return format_timestamp(datetime.now(timezone.utc))


@dataclass
class LogEntry:
    """
    One note in the done log.

    Attributes:
        id: Stable identifier, assigned once at creation
        content: Free text
        timestamp: Business time (ISO-8601), editable by the user
        modified_at: System time of the last mutation (ISO-8601); orders
                     conflicting copies of the same id
        is_deleted: Soft-delete flag
    """
    id: str
    content: str
    timestamp: str
    modified_at: Optional[str] = None
    is_deleted: bool = False

    def effective_modified(self) -> datetime:
        """Ordering instant: modified_at, falling back to timestamp."""
        return parse_timestamp(self.modified_at or self.timestamp)

    def signature(self) -> str:
        """
        Content signature used to detect independently created duplicates.

        Two entries share a signature when their timestamps denote the same
        instant and their contents are equal after trimming whitespace.
        """
        instant = format_timestamp(parse_timestamp(self.timestamp))
        return f"{instant}|{(self.content or '').strip()}"

    def mark_deleted(self, now: Optional[str] = None) -> "LogEntry":
        """Return a soft-deleted copy stamped with now."""
        return replace(self, is_deleted=True, modified_at=now or utc_now())

    def mark_restored(self, now: Optional[str] = None) -> "LogEntry":
        """Return a restored copy stamped with now."""
        return replace(self, is_deleted=False, modified_at=now or utc_now())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a row using the remote column names"""
        return {
            "id": self.id,
            "content": self.content,
            "timestamp": self.timestamp,
            "modifiedAt": self.modified_at,
            "isDeleted": self.is_deleted,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        """
        Create a LogEntry from a row.

        Missing or null modifiedAt/isDeleted/content are tolerated.

        Raises:
            ValueError: If id or timestamp is missing
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a row object, got {type(data).__name__}")

        entry_id = data.get("id")
        timestamp = data.get("timestamp")
        if entry_id is None or entry_id == "":
            raise ValueError("Row is missing 'id'")
        if not timestamp:
            raise ValueError(f"Row {entry_id} is missing 'timestamp'")

        return cls(
            id=str(entry_id),
            content=data.get("content") or "",
            timestamp=timestamp,
            modified_at=data.get("modifiedAt") or None,
            is_deleted=bool(data.get("isDeleted") or False),
        )
