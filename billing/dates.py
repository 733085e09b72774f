"""
Date helpers shared by the wire models.

All timestamps inside the domain are timezone-aware UTC datetimes.
"""

from datetime import UTC, datetime


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    """Current wall-clock time in UTC."""
    return datetime.now(UTC)


def _from_epoch_millis(raw: object, millis: float) -> datetime:
    try:
        return datetime.fromtimestamp(millis / 1000, UTC)
    except (OverflowError, OSError, ValueError):
        raise ValueError(f"Invalid timestamp: {raw!r}") from None


def parse_date(raw: object) -> datetime | None:
    """
    Parse a wire timestamp.

    Accepts ISO-8601 strings, epoch milliseconds (int, float or digit string,
    the format used by the Play Developer API) and datetime instances.

    Returns:
        Aware UTC datetime, or None when ``raw`` is None

    Raises:
        ValueError: If ``raw`` is not a recognizable timestamp
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    # bool is an int subclass but never a timestamp
    if isinstance(raw, bool):
        raise ValueError(f"Invalid timestamp: {raw!r}")
    if isinstance(raw, (int, float)):
        return _from_epoch_millis(raw, raw)
    if isinstance(raw, str):
        text = raw.strip()
        if text.isdecimal():
            return _from_epoch_millis(raw, int(text))
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            raise ValueError(f"Invalid timestamp: {raw!r}") from None
    raise ValueError(f"Invalid timestamp: {raw!r}")


def format_date(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with a ``Z`` suffix."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def normalize_timestamps(instance: object, *names: str) -> None:
    """Store the named datetime attributes of a frozen dataclass as UTC."""
    for name in names:
        value = getattr(instance, name)
        if value is not None:
            object.__setattr__(instance, name, ensure_utc(value))
