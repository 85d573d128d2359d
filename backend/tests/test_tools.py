# backend/tests/test_tools.py
from __future__ import annotations

from fastapi.testclient import TestClient

from teamhub.models import Invite


def test_tool_listing_includes_team_tools(client: TestClient):
    r = client.get("/api/tools")
    assert r.status_code == 200
    tools = {t["name"]: t for t in r.json()["tools"]}

    assert "TEAM_MEMBERS_GET" in tools
    assert "TEAM_MEMBERS_INVITE" in tools
    assert tools["TEAM_MEMBERS_GET"]["group"] == "Team & User Management"
    assert "teamId" in tools["TEAM_MEMBERS_INVITE"]["inputSchema"]["properties"]


def test_team_members_get_tool(client: TestClient, seed):
    r = client.post("/api/tools/TEAM_MEMBERS_GET", json={"teamId": 1})
    assert r.status_code == 200, r.text
    data = r.json()
    assert {m["user_id"] for m in data["members"]} == {"u-owner", "u-bob"}
    assert data["invites"] == []


def test_team_members_invite_tool(client: TestClient, db_session, sender, seed):
    r = client.post(
        "/api/tools/TEAM_MEMBERS_INVITE",
        json={"teamId": "1", "invitees": [{"email": "a@x.com", "roles": [{"id": 3, "name": "admin"}]}]},
    )
    assert r.status_code == 200, r.text
    assert r.json()["message"].startswith("Invite created.")

    inv = db_session.query(Invite).one()
    assert inv.invited_roles == [{"id": 3, "name": "admin"}]
    assert sender.calls[0]["roles"] == ["admin"]


def test_tool_input_is_validated(client: TestClient, seed):
    r = client.post("/api/tools/TEAM_MEMBERS_GET", json={"teamId": "not-a-number"})
    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_unknown_tool_is_404(client: TestClient, seed):
    r = client.post("/api/tools/TEAM_DELETE_EVERYTHING", json={})
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


def test_team_members_get_tool_adds_activity_only_when_requested(client: TestClient, seed):
    r = client.post("/api/tools/TEAM_MEMBERS_GET", json={"teamId": 1})
    assert all("lastActivity" not in m for m in r.json()["members"])

    r = client.post("/api/tools/TEAM_MEMBERS_GET", json={"teamId": 1, "withActivity": True})
    assert r.status_code == 200, r.text
    assert all(m["lastActivity"] is None for m in r.json()["members"])


def test_boolean_team_id_is_rejected(client: TestClient, db_session, sender, seed):
    r = client.post(
        "/api/tools/TEAM_MEMBERS_INVITE",
        json={"teamId": True, "invitees": [{"email": "z@x.com", "roles": []}]},
    )
    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"
    assert db_session.query(Invite).count() == 0
    assert sender.calls == []

    r = client.post("/api/tools/TEAM_MEMBERS_GET", json={"teamId": True})
    assert r.status_code == 422
