"""
EventDayService - jornadas of multi-day events and per-day check-in stats.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func, case

from accredia.extensions import db
from accredia.models import EventDay, RegistrationDay, parse_uuid
from accredia.services.errors import NotFoundError, ValidationFailed
from accredia.utils.dates import parse_date, now_in_event_tz

logger = logging.getLogger(__name__)


def _day_values(data: Dict[str, Any], default_orden: int) -> Dict[str, Any]:
    fecha = parse_date(data.get('fecha'))
    label = (data.get('label') or '').strip()
    if not fecha or not label:
        raise ValidationFailed('fecha y label son requeridos')
    return {
        'fecha': fecha,
        'label': label,
        'orden': data.get('orden') or default_orden,
        'is_active': data.get('is_active', True),
    }


class EventDayService:

    @staticmethod
    def list_days(event_id) -> List[EventDay]:
        return (EventDay.query.filter_by(event_id=parse_uuid(event_id))
                .order_by(EventDay.orden, EventDay.fecha).all())

    @staticmethod
    def get_current_day(event_id, today: Optional[date] = None) -> Optional[EventDay]:
        """Active jornada dated today (event timezone)."""
        today = today or now_in_event_tz().date()
        return EventDay.query.filter_by(event_id=parse_uuid(event_id), fecha=today, is_active=True).first()

    @staticmethod
    def create_day(event_id, data: Dict[str, Any]) -> EventDay:
        day = EventDay(event_id=parse_uuid(event_id), **_day_values(data, 1))
        db.session.add(day)
        db.session.commit()
        return day

    @staticmethod
    def bulk_create_days(event_id, days: List[Dict[str, Any]], commit: bool = True) -> List[EventDay]:
        eid = parse_uuid(event_id)
        created = [EventDay(event_id=eid, **_day_values(data, i + 1)) for i, data in enumerate(days or [])]
        db.session.add_all(created)
        if commit:
            db.session.commit()
        return created

    @staticmethod
    def update_day(event_id, day_id, data: Dict[str, Any]) -> EventDay:
        day = EventDay.find_for_event(parse_uuid(event_id), parse_uuid(day_id))
        if not day:
            raise NotFoundError('Jornada no encontrada')

        if 'fecha' in data:
            fecha = parse_date(data['fecha'])
            if not fecha:
                raise ValidationFailed('fecha inválida')
            day.fecha = fecha
        for field in ('label', 'orden', 'is_active'):
            if field in data:
                setattr(day, field, data[field])
        db.session.commit()
        return day

    @staticmethod
    def delete_day(event_id, day_id) -> None:
        day = EventDay.find_for_event(parse_uuid(event_id), parse_uuid(day_id))
        if not day:
            raise NotFoundError('Jornada no encontrada')
        RegistrationDay.query.filter_by(event_day_id=day.id).delete(synchronize_session=False)
        db.session.delete(day)
        db.session.commit()

    @staticmethod
    def sync_days(event_id, days: List[Dict[str, Any]]) -> List[EventDay]:
        """Replace every jornada of the event with the given list."""
        eid = parse_uuid(event_id)
        existing_ids = [day.id for day in EventDay.query.filter_by(event_id=eid)]
        if existing_ids:
            RegistrationDay.query.filter(RegistrationDay.event_day_id.in_(existing_ids)) \
                .delete(synchronize_session=False)
            EventDay.query.filter(EventDay.id.in_(existing_ids)).delete(synchronize_session=False)
        created = EventDayService.bulk_create_days(eid, days, commit=False)
        db.session.commit()
        logger.info(f"Event days synced: event={eid} days={len(created)}")
        return created

    @staticmethod
    def enroll(registration_id, event_id, event_day_ids: Optional[List[str]] = None) -> List[RegistrationDay]:
        """
        Enroll a registration in jornadas (flushes, does not commit).

        Without event_day_ids every active day of the event is used.
        """
        days = [day for day in EventDayService.list_days(event_id) if day.is_active]
        if event_day_ids is not None:
            wanted = {parse_uuid(day_id) for day_id in event_day_ids}
            days = [day for day in days if day.id in wanted]

        rows = [RegistrationDay(registration_id=registration_id, event_day_id=day.id) for day in days]
        db.session.add_all(rows)
        db.session.flush()
        return rows

    @staticmethod
    def get_registration_days(registration_id) -> List[RegistrationDay]:
        return RegistrationDay.query.filter_by(registration_id=parse_uuid(registration_id)).all()

    @staticmethod
    def get_checkin_stats_by_day(event_id) -> List[Dict[str, Any]]:
        """Per jornada: enrolled registrations and how many checked in."""
        days = EventDayService.list_days(event_id)
        if not days:
            return []

        counts = {
            day_id: (total, checked)
            for day_id, total, checked in db.session.query(
                RegistrationDay.event_day_id,
                func.count(RegistrationDay.id),
                func.sum(case((RegistrationDay.checked_in.is_(True), 1), else_=0)),
            ).filter(RegistrationDay.event_day_id.in_([day.id for day in days]))
            .group_by(RegistrationDay.event_day_id).all()
        }

        stats = []
        for day in days:
            total, checked = counts.get(day.id, (0, 0))
            stats.append({
                'event_day_id': str(day.id),
                'label': day.label,
                'fecha': day.fecha.isoformat(),
                'total': total or 0,
                'checked_in': int(checked or 0),
            })
        return stats
