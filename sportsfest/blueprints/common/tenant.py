"""Per-request organization (tenant) resolution and scoping helpers."""

from __future__ import annotations

from functools import wraps
from typing import Iterator, Type, TypeVar

from flask import abort, current_app, g, has_request_context, request, session
from sqlalchemy.orm import Query

from sportsfest.extensions import db
from sportsfest.models import Organization

Model = TypeVar("Model", bound=db.Model)

LOCAL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0"}


def init_tenant(app) -> None:
    """Resolve the tenant before every request."""

    @app.before_request
    def _load_tenant() -> None:
        resolve_tenant()


def resolve_tenant() -> Organization | None:
    """Load ``g.org`` for the current request.

    Slugs are tried in order: the X-Org-Slug header, the subdomain, the
    ``?org=`` query parameter, DEFAULT_ORG_SLUG, then the slug remembered in
    the session. Failing those, the oldest organization is used when the app
    runs in debug mode or when it is the only one.
    """
    organization = None
    slug = next((candidate for candidate in _candidate_slugs() if candidate), None)
    if slug:
        organization = Organization.query.filter_by(slug=slug).first()

    if organization is None:
        organization = _fallback_org()
        slug = organization.slug if organization else slug

    if organization is not None:
        session["org_slug"] = organization.slug

    g.org = organization
    g.org_slug = slug
    return organization


def _candidate_slugs() -> Iterator[str | None]:
    yield _header_slug()
    yield _subdomain_slug()
    yield request.args.get("org")
    yield current_app.config.get("DEFAULT_ORG_SLUG")
    yield session.get("org_slug")


def _header_slug() -> str | None:
    slug = request.headers.get("X-Org-Slug", "").strip().lower()
    return slug or None


def _subdomain_slug() -> str | None:
    host = request.host.split(":", 1)[0].lower()
    if not host or host in LOCAL_HOSTS:
        return None

    base_domain = current_app.config.get("TENANT_BASE_DOMAIN")
    if base_domain and host.endswith(base_domain):
        prefix = host[: -len(base_domain)].rstrip(".")
        return prefix.split(".")[0] if prefix else None

    labels = host.split(".")
    return labels[0] if len(labels) >= 3 else None


def _fallback_org() -> Organization | None:
    oldest_two = Organization.query.order_by(Organization.created_at.asc()).limit(2).all()
    if not oldest_two:
        return None
    if current_app.debug or len(oldest_two) == 1:
        return oldest_two[0]
    return None


def get_current_org() -> Organization | None:
    if not has_request_context():
        return None
    return getattr(g, "org", None)


def tenant_required(view):
    """404 unless the request resolved to an organization."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        if getattr(g, "org", None) is None:
            abort(404)
        return view(*args, **kwargs)

    return wrapped


def org_query(model: Type[Model]) -> Query:
    org = getattr(g, "org", None)
    if org is None:
        raise RuntimeError("Tenant context has not been resolved")
    return model.query.filter_by(org_id=org.id)


def get_object_or_404(model: Type[Model], object_id: str) -> Model:
    return org_query(model).filter_by(id=object_id).first_or_404()


@db.event.listens_for(db.session, "before_flush")
def _guard_tenant_writes(session, flush_context, instances) -> None:
    """Stamp new rows with the request's organization and refuse cross-tenant writes.

    Skipped outside requests and when a super admin route set ``g.tenant_bypass``.
    """
    if not has_request_context() or getattr(g, "tenant_bypass", False):
        return

    org = getattr(g, "org", None)
    if org is None:
        return

    for obj in session.new:
        if not hasattr(obj, "org_id"):
            continue
        if obj.org_id is None:
            obj.org_id = org.id
        elif obj.org_id != org.id:
            raise PermissionError("Cross-organization insert blocked")

    for obj in session.dirty:
        if getattr(obj, "org_id", None) not in (None, org.id):
            raise PermissionError("Cross-organization update blocked")


__all__ = [
    "init_tenant",
    "resolve_tenant",
    "get_current_org",
    "tenant_required",
    "org_query",
    "get_object_or_404",
]
