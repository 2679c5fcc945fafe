"""Audit trail for sign-ins and super admin changes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app, has_request_context, request

from sportsfest.extensions import db
from sportsfest.models import AuditLog

if TYPE_CHECKING:
    from sportsfest.models import User


def _record(entry: AuditLog, commit: bool) -> None:
    if has_request_context():
        entry.meta = {**(entry.meta or {}), 'ip_address': request.remote_addr}

    if not commit:
        db.session.add(entry)
        return

    try:
        db.session.add(entry)
        db.session.commit()
    except Exception as e:
        # An audit failure never fails the request
        db.session.rollback()
        current_app.logger.error(f"Failed to write audit entry {entry.action}: {e}")


def log_security_event(
    user: User,
    action: str,
    details: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Record a sign-in related event (login, logout, password_setup) for ``user``."""
    meta = dict(metadata or {})
    if details:
        meta['details'] = details
    _record(
        AuditLog(org_id=user.org_id, user_id=user.id, action=action,
                 entity_type='user', entity_id=user.id, meta=meta),
        commit=True,
    )


def log_admin_action(
    user: User,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    org_id: str | None = None,
    commit: bool = True,
) -> None:
    """
    Record an administrative change.

    Args:
        user: Acting user
        action: e.g. "coupon_created", "sponsorship_updated"
        entity_type: Table of the affected record
        entity_id: ID of the affected record
        metadata: Extra JSON stored with the entry
        org_id: Organization concerned; defaults to the user's
        commit: False adds the entry to the caller's transaction
    """
    _record(
        AuditLog(org_id=org_id or user.org_id, user_id=user.id, action=action,
                 entity_type=entity_type, entity_id=entity_id, meta=dict(metadata or {})),
        commit=commit,
    )


__all__ = ["log_security_event", "log_admin_action"]
