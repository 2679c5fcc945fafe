"""Organization management service."""

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy.exc import IntegrityError

from sportsfest.extensions import db
from sportsfest.models import Organization, User, UserRole

RESERVED_SLUGS = {
    'admin', 'api', 'auth', 'teams', 'static', 'assets',
    'login', 'logout', 'register', 'signup', 'www', 'mail',
    'system', 'root', 'staging', 'prod',
}


def slugify(text: str) -> str:
    """Convert text to a URL-safe slug."""
    text = text.lower()
    text = re.sub(r'[^a-z0-9\s-]', '', text)
    text = re.sub(r'[\s-]+', '-', text)
    return text.strip('-')


def validate_slug(slug: str) -> tuple[bool, str | None]:
    """
    Validate organization slug.

    Returns:
        (is_valid, error_message)
    """
    if not slug:
        return False, "Slug cannot be empty"

    if len(slug) < 3:
        return False, "Slug must be at least 3 characters long"

    if len(slug) > 63:
        return False, "Slug must be 63 characters or less"

    if not re.match(r'^[a-z0-9-]+$', slug):
        return False, "Slug can only contain lowercase letters, numbers, and hyphens"

    if slug.startswith('-') or slug.endswith('-'):
        return False, "Slug cannot start or end with a hyphen"

    if slug in RESERVED_SLUGS:
        return False, f"'{slug}' is a reserved slug and cannot be used"

    if Organization.query.filter_by(slug=slug).first():
        return False, "This slug is already taken"

    return True, None


def create_organization(
    name: str,
    slug: str | None = None,
    owner_email: str | None = None,
    owner_password: str | None = None,
    owner_name: str | None = None,
    contact_email: str | None = None,
) -> tuple[Organization | None, str | None]:
    """
    Create a new organization, optionally with an owner user.

    Returns:
        (organization, error_message)
    """
    try:
        if not slug:
            slug = slugify(name)

        is_valid, error = validate_slug(slug)
        if not is_valid:
            return None, error

        org = Organization(
            name=name,
            slug=slug,
            contact_email=(contact_email or owner_email or '').strip().lower() or None,
        )
        db.session.add(org)
        db.session.flush()

        if owner_email and owner_password:
            owner = User(
                org_id=org.id,
                name=owner_name,
                email=owner_email.strip().lower(),
                role=UserRole.OWNER,
                active=True,
            )
            owner.set_password(owner_password)
            db.session.add(owner)

        db.session.commit()
        return org, None

    except IntegrityError as e:
        db.session.rollback()
        if 'slug' in str(e):
            return None, "This slug is already taken"
        if 'email' in str(e):
            return None, "An account with this email already exists in this organization"
        return None, "Failed to create organization due to a database error"

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create organization: {e}")
        return None, "An unexpected error occurred"


__all__ = [
    'slugify',
    'validate_slug',
    'create_organization',
]
