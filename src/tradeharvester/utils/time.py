from datetime import datetime, timezone

DATE_FORMAT = "%Y-%m-%d"


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Converts a Unix timestamp in milliseconds to an aware UTC datetime.

    Raises:
        ValueError: If the timestamp is outside the platform's datetime range.
    """
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        err_msg = f"Millisecond timestamp '{timestamp_ms}' is out of range."
        raise ValueError(err_msg) from e


def ms_to_utc_date(timestamp_ms: int) -> str:
    """Returns the UTC calendar day of a millisecond timestamp as YYYY-MM-DD.

    Example: 1700000000000 -> "2023-11-14"
    """
    return ms_to_datetime(timestamp_ms).strftime(DATE_FORMAT)


def ms_to_rfc3339(timestamp_ms: int) -> str:
    """Formats a millisecond timestamp as RFC3339 with a 'Z' suffix."""
    dt_obj = ms_to_datetime(timestamp_ms)
    return dt_obj.isoformat(timespec="milliseconds").replace("+00:00", "Z")
