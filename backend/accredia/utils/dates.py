"""
Date helpers for accreditation deadlines.

Deadlines are stored as aware datetimes. Values without offset coming
from admin forms are interpreted in the event timezone (America/Santiago
by default).
"""

import logging
from datetime import datetime, date, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TIMEZONE = 'America/Santiago'

DIAS = ['lunes', 'martes', 'miércoles', 'jueves', 'viernes', 'sábado', 'domingo']
MESES = ['enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio', 'julio', 'agosto',
         'septiembre', 'octubre', 'noviembre', 'diciembre']


def event_timezone() -> ZoneInfo:
    name = DEFAULT_EVENT_TIMEZONE
    if has_app_context():
        name = current_app.config.get('EVENT_TIMEZONE', DEFAULT_EVENT_TIMEZONE)
    return ZoneInfo(name)


def now_in_event_tz() -> datetime:
    return datetime.now(event_timezone())


def ensure_aware(value: datetime) -> datetime:
    """
    Attach a timezone to naive datetimes.

    Naive values read back from the database are UTC (SQLite drops the offset).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_deadline(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO datetime string into an aware datetime.

    Strings without offset are interpreted in the event timezone.
    Returns None for empty or unparseable values.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=event_timezone())
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    except ValueError:
        logger.debug(f"Unparseable deadline: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=event_timezone())
    return parsed


def is_deadline_past(deadline: Union[str, datetime, None]) -> bool:
    """
    True when the accreditation deadline has passed.

    Empty or invalid deadlines never block submissions.
    """
    if isinstance(deadline, datetime):
        parsed = ensure_aware(deadline)
    else:
        parsed = parse_deadline(deadline)
    if parsed is None:
        return False
    return datetime.now(timezone.utc) > parsed


def local_to_event_iso(local_value: str) -> Optional[str]:
    """
    Convert a "YYYY-MM-DDTHH:MM" form value into ISO 8601 with the event zone offset.

    Example:
        >>> local_to_event_iso('2025-03-15T18:00')
        '2025-03-15T18:00:00-03:00'
    """
    parsed = parse_deadline(local_value)
    return parsed.isoformat() if parsed else None


def parse_date(value: Union[str, date, None]) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def format_fecha_es(value: Union[str, date, None]) -> str:
    """
    Long Spanish date used in emails.

    Example:
        >>> format_fecha_es('2025-03-15')
        'sábado, 15 de marzo de 2025'
    """
    parsed = parse_date(value)
    if parsed is None:
        return str(value or '')
    return f"{DIAS[parsed.weekday()]}, {parsed.day} de {MESES[parsed.month - 1]} de {parsed.year}"
