"""Security package for SportsFest."""

from __future__ import annotations

from functools import wraps
from typing import Iterable

from flask import abort, current_app, g, session
from flask_login import current_user

from sportsfest.models import UserRole


def _normalize_roles(roles: Iterable[UserRole | str]) -> set[str]:
    normalized: set[str] = set()
    for role in roles:
        if isinstance(role, UserRole):
            normalized.add(role.value)
        else:
            normalized.add(str(role))
    return normalized


def is_super_admin(user) -> bool:
    return bool(getattr(user, "is_authenticated", False) and getattr(user, "is_super_admin", False))


def roles_required(*roles: UserRole | str):
    """Ensure the current user belongs to the tenant and has one of the roles.

    Super admins pass for every organization.
    """

    required = _normalize_roles(roles)

    def decorator(view_func):
        @wraps(view_func)
        def wrapped(*args, **kwargs):
            org = getattr(g, "org", None)
            if org is None:
                abort(404)

            if not current_user.is_authenticated:
                abort(401)

            if is_super_admin(current_user):
                return view_func(*args, **kwargs)

            if getattr(current_user, "org_id", None) != org.id:
                # Developer-friendly fallback: align tenant to the user's organization when allowed
                allow_fallback = current_app.config.get('ALLOW_ORG_FALLBACK', current_app.debug)
                if allow_fallback and getattr(current_user, 'organization', None):
                    g.org = current_user.organization
                    session['org_slug'] = current_user.organization.slug
                else:
                    abort(403)

            user_role = (
                current_user.role.value
                if isinstance(current_user.role, UserRole)
                else str(current_user.role)
            )
            if required and user_role not in required:
                abort(403)

            return view_func(*args, **kwargs)

        return wrapped

    return decorator


def super_admin_required(view_func):
    """Restrict a view to platform super admins.

    The tenant write guard is lifted for the request since super admins
    manage records across organizations.
    """

    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            abort(401)
        if not is_super_admin(current_user):
            abort(403)
        g.tenant_bypass = True
        return view_func(*args, **kwargs)

    return wrapped


__all__ = ["roles_required", "super_admin_required", "is_super_admin"]
