"""
Utilidades de fechas para la API de Square.

Square espera y devuelve timestamps RFC 3339; internamente todo se maneja en UTC.
"""

from datetime import UTC, datetime


def ensure_utc_datetime(dt: datetime | None) -> datetime | None:
    """
    Asegura que un datetime tenga timezone UTC.

    Args:
        dt: Datetime que puede ser naive o aware

    Returns:
        Datetime en UTC, o None si input es None
    """
    if dt is None:
        return None

    # Naive se interpreta como UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def to_rfc3339(dt: datetime) -> str:
    """
    Formatea un datetime como RFC 3339 en UTC con sufijo 'Z'.

    Examples:
        >>> to_rfc3339(datetime(2019, 1, 3, 5, 7, 51, tzinfo=UTC))
        '2019-01-03T05:07:51.000Z'
    """
    utc_dt = ensure_utc_datetime(dt)
    return utc_dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
