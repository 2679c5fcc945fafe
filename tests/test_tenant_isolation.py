from datetime import date

import pytest
from flask import g, session
from werkzeug.exceptions import NotFound

from sportsfest.blueprints.common.tenant import (
    get_object_or_404,
    org_query,
    resolve_tenant,
    tenant_required,
)
from sportsfest.extensions import db
from sportsfest.models import CompanyTeam, EventYear, Organization


@pytest.fixture()
def tenant_app(app):
    def _team_detail(team_id):
        team = get_object_or_404(CompanyTeam, team_id)
        return {"id": team.id, "org_id": team.org_id}

    app.add_url_rule("/scoped/teams/<team_id>", "team_detail", tenant_required(_team_detail))
    return app


def _create_org(name: str, slug: str) -> Organization:
    org = Organization(name=name, slug=slug)
    db.session.add(org)
    db.session.commit()
    return org


def _create_event_year() -> str:
    event_year = EventYear(
        year=2027,
        name="SportsFest 2027",
        event_start_date=date(2027, 8, 15),
        event_end_date=date(2027, 8, 16),
        is_active=True,
    )
    db.session.add(event_year)
    db.session.commit()
    return event_year.id


def _create_team(app, org_slug: str, event_year_id: str) -> str:
    with app.test_request_context("/", headers={"X-Org-Slug": org_slug}):
        app.preprocess_request()
        team = CompanyTeam(event_year_id=event_year_id, team_number=1, name="Team 1")
        db.session.add(team)
        db.session.commit()
        return team.id


def test_resolve_tenant_via_header(app):
    with app.app_context():
        org = _create_org("Org One", "org-one")
        _create_org("Org Two", "org-two")
        org_id = org.id

    with app.test_request_context("/", headers={"X-Org-Slug": "ORG-ONE"}):
        app.preprocess_request()
        assert g.org is not None
        assert g.org.id == org_id


def test_resolve_tenant_via_subdomain(app):
    with app.app_context():
        _create_org("Wildcats", "wildcats")
        _create_org("Org Two", "org-two")

    with app.test_request_context("/", base_url="https://wildcats.example.com"):
        app.preprocess_request()
        assert g.org is not None
        assert g.org.slug == "wildcats"


def test_resolve_tenant_via_query_param_and_session(app):
    with app.app_context():
        _create_org("Org One", "org-one")
        _create_org("Org Two", "org-two")

    with app.test_request_context("/?org=org-two"):
        app.preprocess_request()
        assert g.org.slug == "org-two"

    with app.test_request_context("/"):
        app.preprocess_request()
        assert g.org is None

        session["org_slug"] = "org-one"
        assert resolve_tenant().slug == "org-one"


def test_single_org_is_used_as_fallback(app):
    with app.app_context():
        _create_org("Only Org", "only-org")

    with app.test_request_context("/"):
        app.preprocess_request()
        assert g.org.slug == "only-org"


def test_org_query_scopes_results(app):
    with app.app_context():
        org1 = _create_org("Org One", "org1")
        _create_org("Org Two", "org2")
        org1_id = org1.id
        event_year_id = _create_event_year()

    team_id = _create_team(app, "org1", event_year_id)

    with app.app_context():
        assert db.session.get(CompanyTeam, team_id).org_id == org1_id

    with app.test_request_context("/", headers={"X-Org-Slug": "org2"}):
        app.preprocess_request()
        assert org_query(CompanyTeam).filter_by(id=team_id).first() is None
        with pytest.raises(NotFound):
            get_object_or_404(CompanyTeam, team_id)

        team = db.session.get(CompanyTeam, team_id)
        team.name = "Hacked"
        with pytest.raises(PermissionError):
            db.session.commit()
        db.session.rollback()


def test_cross_org_insert_is_blocked(app):
    with app.app_context():
        _create_org("Org One", "org1")
        org2_id = _create_org("Org Two", "org2").id
        event_year_id = _create_event_year()

    with app.test_request_context("/", headers={"X-Org-Slug": "org1"}):
        app.preprocess_request()
        db.session.add(CompanyTeam(org_id=org2_id, event_year_id=event_year_id, team_number=1, name="Intruder"))
        with pytest.raises(PermissionError):
            db.session.commit()
        db.session.rollback()

    with app.test_request_context("/", headers={"X-Org-Slug": "org1"}):
        app.preprocess_request()
        g.tenant_bypass = True
        db.session.add(CompanyTeam(org_id=org2_id, event_year_id=event_year_id, team_number=1, name="Allowed"))
        db.session.commit()

    with app.app_context():
        assert CompanyTeam.query.filter_by(org_id=org2_id).count() == 1


def test_org_query_requires_tenant(app):
    with app.test_request_context("/"):
        with pytest.raises(RuntimeError):
            org_query(CompanyTeam)


def test_cross_org_route_returns_404(tenant_app, client):
    with tenant_app.app_context():
        _create_org("Org One", "org1")
        _create_org("Org Two", "org2")
        event_year_id = _create_event_year()

    team_id = _create_team(tenant_app, "org1", event_year_id)

    resp = client.get(f"/scoped/teams/{team_id}", headers={"X-Org-Slug": "org1"})
    assert resp.status_code == 200

    resp = client.get(f"/scoped/teams/{team_id}", headers={"X-Org-Slug": "org2"})
    assert resp.status_code == 404

    resp = client.get(f"/scoped/teams/{team_id}")
    assert resp.status_code == 404
