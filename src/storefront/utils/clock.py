from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (as returned by SQL providers) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def newest_first(records, attr="created_at"):
    """Sort records by a datetime attribute, most recent first."""
    return sorted(records, key=lambda r: as_utc(getattr(r, attr)) or EPOCH, reverse=True)
