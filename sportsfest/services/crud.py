"""Shared create/update/delete plumbing for admin-managed records."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Type, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError

from sportsfest.extensions import db
from sportsfest.services.audit import log_admin_action

Model = TypeVar("Model", bound=db.Model)

PROTECTED_FIELDS = frozenset({'id', 'created_at', 'updated_at', 'org_id'})
SECRET_FIELDS = frozenset({'password', 'password_hash', 'password_reset_token', 'secret', 'token'})


class CRUDService:
    """Base for services whose writes are audited as ``<table>_created`` etc.

    Subclasses hook in through ``_validate_create``, ``_validate_update``
    and ``_validate_delete``, each returning an error message or None.
    Records with an ``org_id`` column are read through the current tenant;
    platform records such as coupons are not.
    """

    def __init__(self, model: Type[Model]):
        self.model = model
        self.model_name = model.__tablename__
        self.label = self.model_name.replace('_', ' ').capitalize()
        self.tenant_scoped = hasattr(model, 'org_id')

    def query(self):
        if self.tenant_scoped:
            from sportsfest.blueprints.common.tenant import org_query
            return org_query(self.model)
        return self.model.query

    def get_by_id(self, object_id: str) -> Model | None:
        return self.query().filter_by(id=object_id).first()

    def list_all(self, order_by: Any = None, **filters) -> list[Model]:
        query = self.query().filter_by(**filters)
        if order_by is not None:
            query = query.order_by(order_by)
        return query.all()

    def create(self, data: dict[str, Any], user: Any = None) -> tuple[Model | None, str | None]:
        try:
            error = self._validate_create(data)
            if error:
                return None, error

            instance = self.model(**data)
            db.session.add(instance)
            db.session.flush()
            self._audit(user, 'created', instance.id, data)

            db.session.commit()
            return instance, None

        except IntegrityError as e:
            db.session.rollback()
            return None, self._handle_integrity_error(e)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to create {self.model_name}: {e}")
            return None, f"Failed to create {self.label.lower()}"

    def update(self, object_id: str, data: dict[str, Any], user: Any = None) -> tuple[bool, str | None]:
        """Apply ``data`` to a record; ids, timestamps and tenant never change."""
        try:
            instance = self.get_by_id(object_id)
            if instance is None:
                return False, f"{self.label} not found"

            error = self._validate_update(instance, data)
            if error:
                return False, error

            changes = {key: value for key, value in data.items()
                       if key not in PROTECTED_FIELDS and hasattr(instance, key)}
            for key, value in changes.items():
                setattr(instance, key, value)
            self._audit(user, 'updated', object_id, changes)

            db.session.commit()
            return True, None

        except IntegrityError as e:
            db.session.rollback()
            return False, self._handle_integrity_error(e)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to update {self.model_name}: {e}")
            return False, f"Failed to update {self.label.lower()}"

    def delete(self, object_id: str, user: Any = None) -> tuple[bool, str | None]:
        try:
            instance = self.get_by_id(object_id)
            if instance is None:
                return False, f"{self.label} not found"

            error = self._validate_delete(instance)
            if error:
                return False, error

            self._audit(user, 'deleted', object_id)
            db.session.delete(instance)
            db.session.commit()
            return True, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to delete {self.model_name}: {e}")
            return False, f"Failed to delete {self.label.lower()}"

    def _validate_create(self, data: dict[str, Any]) -> str | None:
        return None

    def _validate_update(self, instance: Model, data: dict[str, Any]) -> str | None:
        return None

    def _validate_delete(self, instance: Model) -> str | None:
        return None

    def _handle_integrity_error(self, error: IntegrityError) -> str:
        message = str(error).lower()
        if 'unique' in message:
            return f"A {self.label.lower()} with these values already exists"
        if 'foreign' in message:
            return "Referenced record does not exist"
        return "Database constraint violation"

    def _audit(self, user: Any, verb: str, object_id: str, data: dict[str, Any] | None = None) -> None:
        if user is None:
            return
        metadata = {'data': audit_safe(data)} if data else None
        log_admin_action(user, f"{self.model_name}_{verb}", self.model_name, object_id,
                         metadata=metadata, commit=False)


def audit_safe(data: dict[str, Any]) -> dict[str, Any]:
    """Drop secrets and turn money, dates and enums into JSON values."""
    return {key: _json_value(value) for key, value in data.items() if key not in SECRET_FIELDS}


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_json_value(v) for v in value]
    return value


__all__ = ['CRUDService', 'audit_safe']
