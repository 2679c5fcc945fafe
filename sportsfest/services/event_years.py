"""Event year lifecycle management service."""
from __future__ import annotations

from datetime import date
from typing import Any

from flask import current_app
from sqlalchemy.exc import IntegrityError

from sportsfest.extensions import db
from sportsfest.models import EventYear
from sportsfest.services.audit import log_admin_action

MIN_EVENT_YEAR = 2023
MAX_EVENT_YEAR = 2030


def validate_event_year_data(data: dict[str, Any], existing: EventYear | None = None) -> str | None:
    """Return the first rule an event year payload breaks, or None."""
    year = data.get('year', existing.year if existing else None)
    if year is None:
        return "Year is required"
    if not MIN_EVENT_YEAR <= int(year) <= MAX_EVENT_YEAR:
        return f"Year must be between {MIN_EVENT_YEAR} and {MAX_EVENT_YEAR}"

    duplicate = EventYear.query.filter(EventYear.year == int(year), EventYear.is_deleted.is_(False))
    if existing is not None:
        duplicate = duplicate.filter(EventYear.id != existing.id)
    if duplicate.first():
        return f"An event year for {year} already exists"

    def _value(key: str) -> date | None:
        if key in data:
            return data[key]
        return getattr(existing, key) if existing else None

    start = _value('event_start_date')
    end = _value('event_end_date')
    if start is None or end is None:
        return "Event start and end dates are required"
    if end <= start:
        return "Event end date must be after the start date"

    reg_open = _value('registration_open_date')
    reg_close = _value('registration_close_date')
    if reg_open and reg_close and reg_close <= reg_open:
        return "Registration close date must be after registration open date"
    if reg_close and reg_close >= start:
        return "Registration must close before the event starts"

    return None


class EventYearService:
    """Service for event year operations."""

    @staticmethod
    def get_active() -> EventYear | None:
        return (
            EventYear.query
            .filter_by(is_active=True, is_deleted=False)
            .order_by(EventYear.year.desc())
            .first()
        )

    @staticmethod
    def list_event_years(include_deleted: bool = False) -> list[EventYear]:
        query = EventYear.query
        if not include_deleted:
            query = query.filter_by(is_deleted=False)
        return query.order_by(EventYear.year.desc()).all()

    @staticmethod
    def _deactivate_others(event_year_id: str | None) -> None:
        query = EventYear.query.filter(EventYear.is_active.is_(True))
        if event_year_id:
            query = query.filter(EventYear.id != event_year_id)
        for other in query.all():
            other.is_active = False

    @staticmethod
    def create_event_year(data: dict[str, Any], user: Any = None) -> tuple[EventYear | None, str | None]:
        """Create an event year; making it active deactivates every other year."""
        try:
            error = validate_event_year_data(data)
            if error:
                return None, error

            event_year = EventYear(
                year=int(data['year']),
                name=data.get('name') or f"SportsFest {data['year']}",
                event_start_date=data['event_start_date'],
                event_end_date=data['event_end_date'],
                registration_open_date=data.get('registration_open_date'),
                registration_close_date=data.get('registration_close_date'),
                location=data.get('location'),
                description=data.get('description'),
                is_active=bool(data.get('is_active')),
            )
            if event_year.is_active:
                EventYearService._deactivate_others(None)

            db.session.add(event_year)
            db.session.commit()

            if user:
                log_admin_action(user, 'event_year_created', 'event_year', event_year.id,
                                 metadata={'year': event_year.year})
            return event_year, None

        except IntegrityError:
            db.session.rollback()
            return None, f"An event year for {data.get('year')} already exists"
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to create event year: {e}")
            return None, "Failed to create event year"

    @staticmethod
    def update_event_year(event_year_id: str, data: dict[str, Any], user: Any = None) -> tuple[EventYear | None, str | None]:
        try:
            event_year = db.session.get(EventYear, event_year_id)
            if not event_year or event_year.is_deleted:
                return None, "Event year not found"

            error = validate_event_year_data(data, existing=event_year)
            if error:
                return None, error

            for key in ('year', 'name', 'event_start_date', 'event_end_date', 'registration_open_date',
                        'registration_close_date', 'location', 'description'):
                if key in data:
                    setattr(event_year, key, data[key])

            if data.get('is_active'):
                EventYearService._deactivate_others(event_year.id)
                event_year.is_active = True
            elif 'is_active' in data:
                event_year.is_active = False

            db.session.commit()

            if user:
                log_admin_action(user, 'event_year_updated', 'event_year', event_year.id)
            return event_year, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to update event year: {e}")
            return None, "Failed to update event year"

    @staticmethod
    def set_active(event_year_id: str, user: Any = None) -> tuple[EventYear | None, str | None]:
        """Make one event year the active one."""
        return EventYearService.update_event_year(event_year_id, {'is_active': True}, user)

    @staticmethod
    def soft_delete(event_year_id: str, user: Any = None) -> tuple[bool, str | None]:
        try:
            event_year = db.session.get(EventYear, event_year_id)
            if not event_year or event_year.is_deleted:
                return False, "Event year not found"

            event_year.is_deleted = True
            event_year.is_active = False
            db.session.commit()

            if user:
                log_admin_action(user, 'event_year_deleted', 'event_year', event_year.id)
            return True, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to delete event year: {e}")
            return False, "Failed to delete event year"


def serialize_event_year(event_year: EventYear) -> dict:
    return {
        'id': event_year.id,
        'year': event_year.year,
        'name': event_year.name,
        'event_start_date': event_year.event_start_date.isoformat() if event_year.event_start_date else None,
        'event_end_date': event_year.event_end_date.isoformat() if event_year.event_end_date else None,
        'registration_open_date': event_year.registration_open_date.isoformat() if event_year.registration_open_date else None,
        'registration_close_date': event_year.registration_close_date.isoformat() if event_year.registration_close_date else None,
        'location': event_year.location,
        'is_active': event_year.is_active,
    }


__all__ = ['EventYearService', 'validate_event_year_data', 'serialize_event_year']
