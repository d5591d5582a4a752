# tests/test_api.py
# 端到端：真实 app + 临时 SQLite（conftest 里设置的 DATABASE_URL）+ 内存键值存储
import json

import pytest
from fastapi.testclient import TestClient

from authcore.core.models import Role
from authcore.infra.db import SessionLocal
from authcore.main import app
from scripts import migrate, seed


@pytest.fixture(scope="module")
def client():
    migrate.run()
    seed.run()
    with TestClient(app) as c:
        yield c


def _login(client, username, password, ticket=None):
    body = {"username": username, "password": password}
    if ticket:
        body["captchaToken"] = ticket
    return client.post("/api/v1/auth/login", json=body)


def _auth(client, username, password):
    r = _login(client, username, password)
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['data']['token']}"}


def _new_captcha(client):
    r = client.get("/api/v1/captcha/generate")
    assert r.status_code == 200
    data = r.json()["data"]
    raw = app.state.store.peek(f"captcha:slide:{data['captchaId']}")
    return data, json.loads(raw)["x"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200 and r.json() == {"ok": True}


def test_login_me_logout_cycle(client):
    r = _login(client, "admin", "admin")
    assert r.status_code == 200
    body = r.json()
    assert body["code"] == 200
    data = body["data"]
    assert data["tokenType"] == "Bearer"
    assert data["username"] == "admin" and data["role"] == "ADMIN"
    headers = {"Authorization": f"Bearer {data['token']}"}

    me = client.get("/api/v1/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["data"]["userId"] == data["userId"]
    assert "x-request-id" in me.headers

    assert client.post("/api/v1/auth/logout", headers=headers).json()["code"] == 200
    gone = client.get("/api/v1/auth/me", headers=headers)
    assert gone.status_code == 401
    assert gone.json()["error"] == "UNAUTHENTICATED"
    # 重复登出照样成功
    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200


def test_bad_credentials_share_one_message(client):
    a = _login(client, "admin", "wrong")
    b = _login(client, "nobody", "admin")
    assert a.status_code == b.status_code == 401
    assert a.json()["message"] == b.json()["message"]
    assert a.json()["error"] == "AUTH_FAILED"


def test_blank_username_is_validation_error(client):
    r = _login(client, "", "admin")
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"


def test_captcha_flow_and_ticket_login(client):
    data, x = _new_captcha(client)
    assert set(data) == {"captchaId", "backgroundImage", "sliderImage", "sliderY"}
    assert data["backgroundImage"].startswith("data:image/png;base64,")

    miss = client.post("/api/v1/captcha/verify", json={"captchaId": data["captchaId"], "sliderX": x + 40})
    assert miss.status_code == 400
    assert miss.json()["message"] == "mismatch"
    again = client.post("/api/v1/captcha/verify", json={"captchaId": data["captchaId"], "sliderX": x})
    assert again.status_code == 400
    assert again.json()["message"] == "expired"

    data, x = _new_captcha(client)
    hit = client.post("/api/v1/captcha/verify", json={"captchaId": data["captchaId"], "sliderX": x - 3})
    assert hit.status_code == 200
    ticket = hit.json()["data"]["token"]
    assert hit.json()["data"]["success"] is True

    assert _login(client, "demo", "demo", ticket).status_code == 200
    reuse = _login(client, "demo", "demo", ticket)
    assert reuse.status_code == 400
    assert reuse.json()["error"] == "TICKET_INVALID"


def test_verify_body_validation_uses_envelope(client):
    r = client.post("/api/v1/captcha/verify", json={"captchaId": "abc"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["data"] is None


def test_permission_reads_require_login(client):
    assert client.get("/api/v1/permissions").status_code == 401
    assert client.get("/api/v1/permissions/tree").status_code == 401
    assert client.get("/api/v1/permissions", headers={"Authorization": "Bearer bogus"}).status_code == 401


def test_permission_tree_and_lookup(client):
    headers = _auth(client, "demo", "demo")
    tree = client.get("/api/v1/permissions/tree", headers=headers).json()["data"]
    codes = [n["code"] for n in tree]
    assert codes.index("SYSTEM") < codes.index("DB")
    system = next(n for n in tree if n["code"] == "SYSTEM")
    assert [c["code"] for c in system["children"]] == ["SYSTEM:USER", "SYSTEM:ROLE", "SYSTEM:PERMISSION"]

    found = client.get("/api/v1/permissions/code/SYSTEM:USER", headers=headers).json()["data"]
    assert found["parentId"] == system["id"]
    assert client.get(f"/api/v1/permissions/{found['id']}", headers=headers).json()["data"]["code"] == "SYSTEM:USER"
    assert client.get("/api/v1/permissions/code/NOPE", headers=headers).status_code == 404
    assert client.get("/api/v1/permissions/check-code", params={"code": "SYSTEM"},
                      headers=headers).json()["data"] is False

    apis = client.get("/api/v1/permissions", params={"type": "API"}, headers=headers).json()["data"]
    assert [p["code"] for p in apis] == ["API:PERMISSION:WRITE"]


def test_writes_are_admin_only(client):
    demo = _auth(client, "demo", "demo")
    r = client.post("/api/v1/permissions", json={"code": "REPORT", "name": "Reports", "type": "MENU"},
                    headers=demo)
    assert r.status_code == 403
    assert r.json()["error"] == "FORBIDDEN"
    assert client.delete("/api/v1/permissions/1", headers=demo).status_code == 403


def test_admin_create_update_delete(client):
    admin = _auth(client, "admin", "admin")
    r = client.post("/api/v1/permissions",
                    json={"code": "REPORT", "name": "Reports", "type": "MENU", "sortOrder": 9},
                    headers=admin)
    assert r.status_code == 200, r.text
    created = r.json()["data"]
    assert created["type"] == "MENU" and created["sortOrder"] == 9 and created["enabled"] is True

    dup = client.post("/api/v1/permissions", json={"code": "REPORT", "name": "Again", "type": "API"},
                      headers=admin)
    assert dup.status_code == 409
    assert dup.json()["error"] == "CODE_CONFLICT"

    bad = client.post("/api/v1/permissions", json={"code": "report", "name": "Lower", "type": "MENU"},
                      headers=admin)
    assert bad.status_code == 400

    upd = client.put(f"/api/v1/permissions/{created['id']}",
                     json={"name": "Reporting", "code": "IGNORED"}, headers=admin)
    assert upd.json()["data"]["name"] == "Reporting"
    assert upd.json()["data"]["code"] == "REPORT"

    off = client.patch(f"/api/v1/permissions/{created['id']}/enabled", params={"enabled": "false"},
                       headers=admin)
    assert off.status_code == 200
    enabled = client.get("/api/v1/permissions/enabled", headers=admin).json()["data"]
    assert "REPORT" not in {p["code"] for p in enabled}

    assert client.delete(f"/api/v1/permissions/{created['id']}", headers=admin).status_code == 200
    assert client.get(f"/api/v1/permissions/{created['id']}", headers=admin).status_code == 404
    assert client.delete(f"/api/v1/permissions/{created['id']}", headers=admin).status_code == 404
    # 已删除的 code 仍不可复用
    assert client.get("/api/v1/permissions/check-code", params={"code": "REPORT"},
                      headers=admin).json()["data"] is False


def test_batch_delete(client):
    admin = _auth(client, "admin", "admin")
    ids = []
    for code in ("TMP:A", "TMP:B"):
        r = client.post("/api/v1/permissions", json={"code": code, "name": code, "type": "BUTTON"},
                        headers=admin)
        ids.append(r.json()["data"]["id"])
    r = client.request("DELETE", "/api/v1/permissions/batch", json=ids + [999999], headers=admin)
    assert r.status_code == 200
    assert r.json()["data"] == {"deleted": 2}
    empty = client.request("DELETE", "/api/v1/permissions/batch", json=[], headers=admin)
    assert empty.status_code == 400


def test_role_assignment(client):
    with SessionLocal() as db:
        role = Role(code="AUDIT", name="Auditors")
        db.add(role); db.commit(); db.refresh(role)
        role_id = role.id

    admin = _auth(client, "admin", "admin")
    db_id = client.get("/api/v1/permissions/code/DB", headers=admin).json()["data"]["id"]
    conn_id = client.get("/api/v1/permissions/code/DB:CONNECTION", headers=admin).json()["data"]["id"]

    r = client.post(f"/api/v1/role-permissions/{role_id}", json=[db_id, conn_id, db_id], headers=admin)
    assert r.status_code == 200
    ids = client.get(f"/api/v1/role-permissions/{role_id}/ids", headers=admin).json()["data"]
    assert sorted(ids) == sorted([db_id, conn_id])

    r = client.post(f"/api/v1/role-permissions/{role_id}", json=[conn_id], headers=admin)
    perms = client.get(f"/api/v1/role-permissions/{role_id}", headers=admin).json()["data"]
    assert [p["code"] for p in perms] == ["DB:CONNECTION"]

    missing = client.post(f"/api/v1/role-permissions/{role_id}", json=[conn_id, 999999], headers=admin)
    assert missing.status_code == 404
    assert client.get(f"/api/v1/role-permissions/{role_id}/ids", headers=admin).json()["data"] == [conn_id]

    demo = _auth(client, "demo", "demo")
    assert client.post(f"/api/v1/role-permissions/{role_id}", json=[], headers=demo).status_code == 403


def test_my_permissions_follow_role(client):
    demo = _auth(client, "demo", "demo")
    tree = client.get("/api/v1/auth/permissions", headers=demo).json()["data"]
    assert {n["code"] for n in tree} == {"SYSTEM", "DB"}
    system = next(n for n in tree if n["code"] == "SYSTEM")
    assert {c["code"] for c in system["children"]} == {"SYSTEM:USER", "SYSTEM:ROLE"}

    admin = _auth(client, "admin", "admin")
    admin_tree = client.get("/api/v1/auth/permissions", headers=admin).json()["data"]
    admin_system = next(n for n in admin_tree if n["code"] == "SYSTEM")
    assert "SYSTEM:PERMISSION" in {c["code"] for c in admin_system["children"]}
