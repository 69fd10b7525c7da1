"""Time helpers.

Some providers hand datetimes back without tzinfo; everything stored by the
marketplace is UTC, so naive values are read as UTC before comparing.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
