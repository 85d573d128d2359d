# backend/tests/test_team_members_api.py
from __future__ import annotations

from datetime import datetime

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from conftest import user_principal
from teamhub.core.security import Principal
from teamhub.models import Invite, Member, UserActivity
from teamhub.services.invites import InviteService


def _seed_invite(db, email: str, team_id: int = 1) -> None:
    db.add(
        Invite(
            invited_email=email,
            team_id=team_id,
            team_name="Acme",
            invited_roles=[{"id": 2, "name": "collaborator"}],
        )
    )
    db.commit()


# ----------------------------
# GET /api/teams/{id}/members
# ----------------------------

def test_members_listing_returns_members_and_invites(client: TestClient, db_session, seed):
    _seed_invite(db_session, "pending@x.com")

    r = client.get("/api/teams/1/members")
    assert r.status_code == 200, r.text
    data = r.json()

    emails = [m["profiles"]["email"] for m in data["members"]]
    # soft-deleted carl is excluded; other team's eve too
    assert emails == ["owner@acme.io", "bob@acme.io"]

    owner = data["members"][0]
    assert owner["user_id"] == "u-owner"
    assert owner["admin"] is True
    assert owner["profiles"]["name"] == "Olivia Owner"
    assert owner["profiles"]["metadata"] == {"plan": "pro"}
    assert owner["roles"] == [{"id": 1, "name": "owner"}]
    # not requested: no lastActivity key at all
    assert "lastActivity" not in owner

    bob = data["members"][1]
    # role owned by another team is filtered out
    assert bob["roles"] == [{"id": 2, "name": "collaborator"}]

    assert len(data["invites"]) == 1
    assert data["invites"][0]["email"] == "pending@x.com"
    assert data["invites"][0]["roles"] == [{"id": 2, "name": "collaborator"}]


def test_members_listing_without_activity_never_runs_aggregation(client: TestClient, seed, monkeypatch):
    def _boom(*args, **kwargs):
        raise AssertionError("activity aggregation must not run")

    monkeypatch.setattr("teamhub.services.members.latest_activity_by_user", _boom)

    assert client.get("/api/teams/1/members").status_code == 200
    assert client.get("/api/teams/1/members", params={"withActivity": "false"}).status_code == 200


def test_members_listing_with_activity_merges_latest_timestamp(client: TestClient, db_session, seed):
    db_session.add_all(
        [
            UserActivity(user_id="u-owner", resource="team", key="id", value="1",
                         created_at=datetime(2026, 1, 1, 10, 0, 0)),
            UserActivity(user_id="u-owner", resource="team", key="id", value="1",
                         created_at=datetime(2026, 3, 5, 9, 30, 0)),
            # other team: must not leak into team 1
            UserActivity(user_id="u-bob", resource="team", key="id", value="2",
                         created_at=datetime(2026, 4, 1, 0, 0, 0)),
        ]
    )
    db_session.commit()

    r = client.get("/api/teams/1/members", params={"withActivity": "true"})
    assert r.status_code == 200, r.text
    by_user = {m["user_id"]: m for m in r.json()["members"]}

    assert by_user["u-owner"]["lastActivity"].startswith("2026-03-05T09:30:00")
    assert by_user["u-bob"]["lastActivity"] is None


def test_members_listing_forbidden_for_non_member(client: TestClient, current, seed):
    current.principal = user_principal(seed.eve)

    r = client.get("/api/teams/1/members")
    assert r.status_code == 403
    body = r.json()
    assert body["code"] == "FORBIDDEN"
    assert body["detail"]["message"] == "No access to team 1"
    assert r.headers.get("X-Request-ID")


def test_members_listing_allows_service_principal_with_team_claim(client: TestClient, current, seed):
    current.principal = Principal(auth_type="service", subject="reporting", team_ids={1})
    assert client.get("/api/teams/1/members").status_code == 200

    current.principal = Principal(auth_type="service", subject="reporting", team_ids={2})
    assert client.get("/api/teams/1/members").status_code == 403


# ----------------------------
# POST /api/teams/{id}/invite
# ----------------------------

def test_invite_endpoint_creates_invite_and_sends_email(client: TestClient, db_session, sender, seed):
    r = client.post(
        "/api/teams/1/invite",
        json={"invitees": [{"email": "a@x.com", "roles": []}]},
    )
    assert r.status_code == 200, r.text
    assert r.json() == {"message": "Invite created. Users can log in at https://deco.chat"}

    rows = db_session.query(Invite).filter(Invite.team_id == 1).all()
    assert [(i.invited_email, i.invited_roles) for i in rows] == [
        ("a@x.com", [{"id": 2, "name": "collaborator"}])
    ]
    assert [c["to_email"] for c in sender.calls] == ["a@x.com"]


def test_invite_endpoint_accepts_string_role_ids(client: TestClient, db_session, seed):
    r = client.post(
        "/api/teams/1/invite",
        json={"invitees": [{"email": "a@x.com", "roles": [{"id": "3", "name": "admin"}]}]},
    )
    assert r.status_code == 200, r.text
    inv = db_session.query(Invite).one()
    assert inv.invited_roles == [{"id": 3, "name": "admin"}]


def test_invite_endpoint_self_host_sends_nothing(client: TestClient, current, sender, seed):
    current.invite_service = InviteService(self_host_mode=True, send_email=sender)

    r = client.post(
        "/api/teams/1/invite",
        json={"invitees": [{"email": "a@x.com", "roles": []}, {"email": "b@x.com", "roles": []}]},
    )
    assert r.status_code == 200, r.text
    assert sender.calls == []


def test_invite_endpoint_already_invited_message(client: TestClient, db_session, sender, seed):
    _seed_invite(db_session, "a@x.com")

    r = client.post(
        "/api/teams/1/invite",
        json={"invitees": [{"email": "a@x.com", "roles": []}]},
    )
    assert r.status_code == 200
    assert r.json() == {"message": "All users already invited or members"}
    assert sender.calls == []


def test_invite_endpoint_bad_team_id_is_400(client: TestClient, seed):
    r = client.post("/api/teams/acme/invite", json={"invitees": []})
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "USER_INPUT_ERROR"
    assert body["message"] == "Invalid inputs"


def test_invite_endpoint_missing_invitees_is_400(client: TestClient, seed):
    r = client.post("/api/teams/1/invite", json={})
    assert r.status_code == 400
    assert r.json()["code"] == "USER_INPUT_ERROR"


def test_invite_endpoint_invalid_email_is_validation_error(client: TestClient, seed):
    r = client.post(
        "/api/teams/1/invite",
        json={"invitees": [{"email": "not-an-email", "roles": []}]},
    )
    assert r.status_code == 422
    body = r.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert isinstance(body["errors"], list) and body["errors"]


def test_invite_endpoint_forbidden_for_outsider(client: TestClient, current, db_session, seed):
    current.principal = user_principal(seed.eve)

    r = client.post("/api/teams/1/invite", json={"invitees": [{"email": "a@x.com", "roles": []}]})
    assert r.status_code == 403
    assert db_session.query(Invite).count() == 0


# ----------------------------
# Partial failures
# ----------------------------

def _fail_queries_on(db, monkeypatch, entity) -> None:
    """Make db.query(<entity>, ...) raise like a dropped connection."""
    real_query = db.query

    def _query(*entities, **kwargs):
        if entities and entities[0] is entity:
            raise OperationalError("SELECT ...", {}, Exception("connection lost"))
        return real_query(*entities, **kwargs)

    monkeypatch.setattr(db, "query", _query)


def test_failed_invite_query_yields_empty_invites(client: TestClient, db_session, seed, monkeypatch):
    _seed_invite(db_session, "pending@x.com")
    _fail_queries_on(db_session, monkeypatch, Invite)

    r = client.get("/api/teams/1/members")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["invites"] == []
    assert [m["user_id"] for m in data["members"]] == ["u-owner", "u-bob"]


def test_failed_activity_query_yields_null_last_activity(client: TestClient, db_session, seed, monkeypatch):
    db_session.add(
        UserActivity(user_id="u-owner", resource="team", key="id", value="1",
                     created_at=datetime(2026, 3, 5, 9, 30, 0))
    )
    db_session.commit()
    _fail_queries_on(db_session, monkeypatch, UserActivity.user_id)

    r = client.get("/api/teams/1/members", params={"withActivity": "true"})
    assert r.status_code == 200, r.text
    members = r.json()["members"]
    assert len(members) == 2
    assert all(m["lastActivity"] is None for m in members)


def test_failed_member_query_is_500(client: TestClient, db_session, seed, monkeypatch):
    _fail_queries_on(db_session, monkeypatch, Member)

    r = client.get("/api/teams/1/members")
    assert r.status_code == 500
    body = r.json()
    assert body["code"] == "INTERNAL_ERROR"
    assert r.headers.get("X-Request-ID")
