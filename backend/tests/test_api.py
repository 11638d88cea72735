"""
API tests: routing, identity header, error mapping and conditional requests
"""
from datetime import datetime, timedelta

import pytest

from models import Event

ORGANIZER = "organizer-1"


def auth(user_id=ORGANIZER):
    return {"X-User-Id": user_id}


@pytest.fixture
def event(api_db):
    now = datetime.utcnow()
    event = Event(name="Tech Summit", organizer_id=ORGANIZER, status="PUBLISHED",
                  start_date=now + timedelta(days=6), end_date=now + timedelta(days=7))
    api_db.add(event)
    api_db.commit()
    return event


@pytest.fixture
def workspace_id(client, event):
    response = client.post("/api/workspace/provision", json={"event_id": event.id}, headers=auth())
    assert response.status_code == 201
    return response.json()["id"]


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_missing_identity_header_is_401(client, workspace_id):
    response = client.get(f"/api/workspace/{workspace_id}")
    assert response.status_code == 401


def test_provision_returns_active_workspace(client, event, workspace_id):
    response = client.get(f"/api/workspace/{workspace_id}", headers=auth())

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "ACTIVE"
    assert body["event_id"] == event.id
    assert len(body["channels"]) == 3


def test_domain_errors_map_to_status_codes(client, event, workspace_id):
    assert client.get("/api/workspace/missing", headers=auth()).status_code == 404
    assert client.get(f"/api/workspace/{workspace_id}", headers=auth("stranger")).status_code == 403
    conflict = client.post("/api/workspace/provision", json={"event_id": event.id}, headers=auth())
    assert conflict.status_code == 409
    # Event is still running
    assert client.post(f"/api/workspace/{workspace_id}/dissolve", headers=auth()).status_code == 400


def test_request_schema_errors_are_422(client, workspace_id):
    response = client.post(f"/api/task/{workspace_id}", json={"title": ""}, headers=auth())
    assert response.status_code == 422


def test_task_list_supports_etag(client, workspace_id):
    payload = {"title": "Book venue", "description": "Call venues", "category": "LOGISTICS"}
    assert client.post(f"/api/task/{workspace_id}", json=payload, headers=auth()).status_code == 201

    first = client.get(f"/api/task/workspace/{workspace_id}", headers=auth())
    etag = first.headers["ETag"]
    assert [t["title"] for t in first.json()] == ["Book venue"]

    cached = client.get(f"/api/task/workspace/{workspace_id}", headers={**auth(), "If-None-Match": etag})
    assert cached.status_code == 304

    client.post(f"/api/task/{workspace_id}", json={**payload, "title": "Hire caterer"}, headers=auth())
    changed = client.get(f"/api/task/workspace/{workspace_id}", headers={**auth(), "If-None-Match": etag})
    assert changed.status_code == 200
    assert changed.headers["ETag"] != etag


def test_bulk_task_routes(client, workspace_id):
    payload = {"description": "x", "category": "SETUP"}
    ids = [client.post(f"/api/task/{workspace_id}", json={**payload, "title": f"Task {i}"},
                       headers=auth()).json()["id"] for i in range(2)]

    updated = client.post(f"/api/task/workspace/{workspace_id}/bulk-status",
                          json={"task_ids": ids, "status": "IN_PROGRESS"}, headers=auth())
    assert updated.json()["updated"] == 2

    missing = client.post(f"/api/task/workspace/{workspace_id}/bulk-delete",
                          json={"task_ids": ids + ["nope"]}, headers=auth())
    assert missing.status_code == 404
    assert len(client.get(f"/api/task/workspace/{workspace_id}", headers=auth()).json()) == 2


def test_team_invite_and_listing(client, workspace_id):
    invited = client.post(f"/api/team/{workspace_id}/invite",
                          json={"user_id": "volunteer-1", "role": "GENERAL_VOLUNTEER"}, headers=auth())
    assert invited.status_code == 201

    members = client.get(f"/api/team/{workspace_id}/members", headers=auth("volunteer-1")).json()
    assert {m["user_id"] for m in members} == {ORGANIZER, "volunteer-1"}


def test_export_downloads_workbook(client, workspace_id):
    response = client.post(f"/api/workspace/{workspace_id}/export", headers=auth())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    assert "Tech_Summit_Workspace_report_" in response.headers["content-disposition"]
    assert response.content[:2] == b"PK"


def test_marketplace_commission(client):
    response = client.get("/api/marketplace/config/commission", params={"category": "venue", "amount": 20000})
    assert response.json()["fee"] == 400


def test_marketplace_update_needs_identity(client):
    assert client.put("/api/marketplace/config", json={"platform_fee_rate": 0.06}).status_code == 401
    invalid = client.put("/api/marketplace/config", json={"platform_fee_rate": 2}, headers=auth())
    assert invalid.status_code in (400, 422)


def test_lifecycle_hooks_need_no_identity(client, event):
    created = client.post(f"/api/lifecycle/events/{event.id}/created")
    assert created.status_code == 201

    cancelled = client.post(f"/api/lifecycle/events/{event.id}/status",
                            json={"new_status": "CANCELLED", "old_status": "PUBLISHED"})
    assert cancelled.json()["action"] == "dissolved"

    status = client.get(f"/api/lifecycle/events/{event.id}").json()
    assert status["has_workspace"] is True
    assert status["workspace_status"] == "DISSOLVED"
    assert status["can_dissolve"] is False


def test_security_audit_log_route(client, workspace_id):
    response = client.get(f"/api/security/{workspace_id}/audit-logs", headers=auth())

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert client.get(f"/api/security/{workspace_id}/audit-logs",
                      headers=auth("stranger")).status_code == 403


def test_websocket_ping_and_subscribe(client):
    with client.websocket_connect("/api/ws") as ws:
        assert ws.receive_json()["type"] == "connection"

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"type": "subscribe", "workspace_id": "ws-1"})
        assert ws.receive_json() == {"type": "subscribed", "workspace_id": "ws-1"}


@pytest.mark.parametrize("module_name,prefix,path", [
    ("meta", "/api", "/roles"),
    ("workspace", "/api/workspace", "/{ws}"),
    ("team", "/api/team", "/{ws}/members"),
    ("tasks", "/api/task", "/workspace/{ws}"),
    ("communication", "/api/communication", "/missing/channels"),
    ("templates", "/api/templates", "/"),
    ("marketplace", "/api/marketplace", "/config/verification/venue"),
    ("security", "/api/security", "/{ws}/audit-stats"),
    ("lifecycle", "/api/lifecycle", "/scheduler"),
])
def test_mounted_prefix_returns_sub_router_response(client, workspace_id, module_name, prefix, path):
    """The app adds nothing to what each feature router answers"""
    import importlib

    from fastapi import FastAPI
    from fastapi.testclient import TestClient

    from main import app

    standalone = FastAPI()
    standalone.include_router(importlib.import_module(f"api.{module_name}").router, prefix=prefix)
    standalone.dependency_overrides = dict(app.dependency_overrides)

    path = path.format(ws=workspace_id)
    mounted = client.get(prefix + path, headers=auth())
    direct = TestClient(standalone).get(prefix + path, headers=auth())

    assert mounted.status_code == direct.status_code
    assert mounted.json() == direct.json()


def test_channels_and_broadcast_routes(client, workspace_id):
    created = client.post(f"/api/communication/{workspace_id}/channels",
                          json={"name": "vendors"}, headers=auth())
    assert created.status_code == 201
    duplicate = client.post(f"/api/communication/{workspace_id}/channels",
                            json={"name": "vendors"}, headers=auth())
    assert duplicate.status_code == 409

    sent = client.post(f"/api/communication/{workspace_id}/broadcast",
                       json={"content": "Doors open at 9"}, headers=auth())
    assert sent.status_code in (200, 201)
    found = client.get(f"/api/communication/{workspace_id}/search", params={"q": "doors"}, headers=auth())
    assert len(found.json()["messages"]) == 1


def test_task_template_routes(client, workspace_id):
    task = client.post(f"/api/task/{workspace_id}", headers=auth(),
                       json={"title": "Print badges", "description": "Order 300", "category": "REGISTRATION",
                             "priority": "HIGH", "tags": ["print"]}).json()

    assert client.post(f"/api/task/{task['id']}/template", json={"name": " "}, headers=auth()).status_code == 400
    created = client.post(f"/api/task/{task['id']}/template", json={"name": "Badge run"}, headers=auth())
    assert created.status_code == 201
    template_id = created.json()["id"]

    listed = client.get(f"/api/task/workspace/{workspace_id}/templates", headers=auth()).json()
    assert [t["name"] for t in listed] == ["Badge run"]

    copy = client.post(f"/api/task/templates/{template_id}/tasks", json={}, headers=auth())
    assert copy.status_code == 201
    assert (copy.json()["title"], copy.json()["priority"], copy.json()["tags"]) == ("Print badges", "HIGH", ["print"])
    assert len(client.get(f"/api/task/workspace/{workspace_id}", headers=auth()).json()) == 2
    listed = client.get(f"/api/task/workspace/{workspace_id}/templates", headers=auth()).json()
    assert listed[0]["usage_count"] == 1


def test_specialist_routes(client, workspace_id):
    base = f"/api/marketplace/workspace/{workspace_id}"
    rig = client.post(f"/api/task/{workspace_id}", headers=auth(),
                      json={"title": "Rig projector", "description": "Main hall", "category": "TECHNICAL"}).json()
    client.post(f"/api/task/{workspace_id}", headers=auth(),
                json={"title": "Print flyers", "description": "A5", "category": "MARKETING"})

    ranked = client.post(f"{base}/recommendations", headers=auth(), json={"candidates": [
        {"id": "mkt", "title": "Campaigns", "category": "MARKETING", "verified": True},
        {"id": "food", "title": "Buffet", "category": "CATERING"},
    ]})
    assert [(r["service"]["id"], r["score"]) for r in ranked.json()] == [("mkt", 45)]

    integrated = client.post(f"{base}/specialists", headers=auth(), json={
        "specialist_user_id": "vendor-7", "business_name": "Sound & Light Co",
        "service_category": "TECHNICAL_SUPPORT", "access_level": "TASK_SPECIFIC",
    })
    assert integrated.status_code == 201
    assert integrated.json()["task_scope"] == [rig["id"]]
    assert client.post(f"{base}/specialists", headers=auth("vendor-7"), json={
        "specialist_user_id": "vendor-8", "business_name": "Other", "service_category": "MARKETING",
    }).status_code == 403

    visible = client.get(f"/api/task/workspace/{workspace_id}", headers=auth("vendor-7")).json()
    assert [t["id"] for t in visible] == [rig["id"]]

    channels = client.post(f"{base}/specialists/channels", headers=auth())
    assert [c["name"] for c in channels.json()] == ["vendor-sound-light-co"]
    access = client.get(f"{base}/team-access", headers=auth()).json()
    assert [p["user_id"] for p in access["professionals"]] == ["vendor-7"]
    assert client.get(f"{base}/team-gaps", headers=auth()).json()["team_size"] == 2
