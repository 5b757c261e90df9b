import time

import jwt

from app.models.user import ROLE_MANAGER


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.get_json()
    assert body["status"] == "OK"
    assert body["db"] == "ok"


def test_register_then_login(client):
    r = client.post("/api/register", json={"username": "newbie", "password": "hunter22", "email": "New@Example.com"})
    assert r.status_code == 201
    assert r.get_json()["user"]["role"] == "employee"
    assert r.get_json()["user"]["email"] == "new@example.com"

    r = client.post("/api/login", json={"username": "newbie", "password": "hunter22"})
    assert r.status_code == 200
    token = r.get_json()["token"]

    r = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.get_json()["user"]["username"] == "newbie"


def test_register_validation(client):
    r = client.post("/api/register", json={"username": "ab", "password": "hunter22"})
    assert r.status_code == 400
    assert r.get_json()["field"] == "username"

    r = client.post("/api/register", json={"username": "abc", "password": "12345"})
    assert r.status_code == 400
    assert r.get_json()["message"] == "Password must be at least 6 characters"

    r = client.post("/api/register", json={"username": "abc", "password": "123456", "email": "nope"})
    assert r.status_code == 400
    assert r.get_json()["message"] == "Invalid email format"


def test_register_as_manager_is_refused(client):
    r = client.post("/api/register", json={"username": "sneaky", "password": "hunter22", "role": "manager"})
    assert r.status_code == 403


def test_duplicate_username_conflicts(client, employee):
    r = client.post("/api/register", json={"username": "clerk", "password": "hunter22"})
    assert r.status_code == 409
    assert r.get_json()["message"] == "Username already exists"


def test_login_with_wrong_password(client, employee):
    r = client.post("/api/login", json={"username": "clerk", "password": "wrong-one"})
    assert r.status_code == 401
    assert r.get_json()["message"] == "Invalid credentials"


def test_invalid_and_expired_tokens(client, app, employee):
    r = client.get("/api/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.get_json()["message"] == "Invalid or expired token"

    now = int(time.time())
    stale = jwt.encode(
        {"sub": str(employee["id"]), "iat": now - 100, "exp": now - 10, "type": "access"},
        app.config["SECRET_KEY"],
        algorithm="HS256",
    )
    r = client.get("/api/profile", headers={"Authorization": f"Bearer {stale}"})
    assert r.status_code == 401


def test_employee_cannot_change_own_role(client, employee_headers):
    r = client.put("/api/profile", json={"role": ROLE_MANAGER}, headers=employee_headers)
    assert r.status_code == 403
    assert r.get_json()["message"] == "You are not authorized to update the role"


def test_profile_email_update(client, employee_headers, manager):
    r = client.put("/api/profile", json={"email": "clerk2@example.com"}, headers=employee_headers)
    assert r.status_code == 200
    assert r.get_json()["user"]["email"] == "clerk2@example.com"

    r = client.put("/api/profile", json={"email": "boss@example.com"}, headers=employee_headers)
    assert r.status_code == 409


def test_change_password(client, employee, employee_headers):
    r = client.put(
        "/api/change-password",
        json={"current_password": "wrong", "new_password": "brandnew1"},
        headers=employee_headers,
    )
    assert r.status_code == 400

    r = client.put(
        "/api/change-password",
        json={"currentPassword": employee["password"], "newPassword": "brandnew1"},
        headers=employee_headers,
    )
    assert r.status_code == 200

    r = client.post("/api/login", json={"username": "clerk", "password": "brandnew1"})
    assert r.status_code == 200


def test_unknown_route_is_json(client):
    r = client.get("/api/nothing-here")
    assert r.status_code == 404
    assert r.get_json()["ok"] is False
