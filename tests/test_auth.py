"""Tests for registration, login and token handling."""
import time

import jwt

from sweetshop.security import create_access_token, decode_access_token, hash_password, verify_password


def test_register_returns_token_and_regular_user(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "New@Example.com", "password": "secret123", "name": "Newbie"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["is_admin"] is False
    assert "password" not in data["user"]
    assert "password_hash" not in data["user"]

    claims = decode_access_token(data["token"])
    assert claims.email == "new@example.com"
    assert claims.is_admin is False


def test_register_ignores_admin_flag_in_payload(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "sneaky@example.com", "password": "secret123", "name": "Sneaky", "is_admin": True},
    )

    assert response.status_code == 201
    assert response.json()["user"]["is_admin"] is False


def test_register_duplicate_email_conflicts(client):
    payload = {"email": "dup@example.com", "password": "secret123", "name": "Dup"}
    assert client.post("/api/auth/register", json=payload).status_code == 201

    response = client.post("/api/auth/register", json=payload)

    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


def test_register_validation_errors_list_fields(client):
    response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "x"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "validation_failed"
    fields = {d["field"] for d in body["details"]}
    assert {"email", "password", "name"} <= fields


def test_login_success(client, regular_user):
    response = client.post("/api/auth/login", json={"email": "user@example.com", "password": "userpass"})

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["id"] == str(regular_user.id)
    assert decode_access_token(data["token"]).user_id == str(regular_user.id)


def test_login_wrong_password_and_unknown_email_look_the_same(client, regular_user):
    wrong = client.post("/api/auth/login", json={"email": "user@example.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["message"] == unknown.json()["message"]


def test_password_is_stored_hashed(regular_user):
    assert regular_user.password_hash != "userpass"
    assert verify_password("userpass", regular_user.password_hash)
    assert not verify_password("other", regular_user.password_hash)


def test_hashes_are_salted():
    assert hash_password("same") != hash_password("same")


def test_admin_flag_round_trips_through_token():
    token = create_access_token("5b1e7a3c-0000-4000-8000-000000000001", "a@example.com", "A", True)

    claims = decode_access_token(token)

    assert claims.is_admin is True
    assert claims.user_id == "5b1e7a3c-0000-4000-8000-000000000001"


def test_tampered_token_is_rejected(client):
    token = create_access_token("5b1e7a3c-0000-4000-8000-000000000001", "a@example.com", "A", False)
    payload = jwt.decode(token, options={"verify_signature": False})
    payload["is_admin"] = True
    forged = jwt.encode(payload, "attacker-secret", algorithm="HS256")

    response = client.get("/api/sweets", headers={"Authorization": f"Bearer {forged}"})

    assert response.status_code == 401


def test_expired_token_is_rejected(client, regular_user):
    token = create_access_token(str(regular_user.id), regular_user.email, regular_user.name, False, expires_delta=-10)

    response = client.get("/api/sweets", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Token has expired"
    assert response.headers["www-authenticate"] == "Bearer"


def test_token_expiry_matches_configuration():
    token = create_access_token("5b1e7a3c-0000-4000-8000-000000000001", "a@example.com", "A", False)
    payload = jwt.decode(token, options={"verify_signature": False})

    assert payload["exp"] - payload["iat"] == 60 * 60 * 24
    assert payload["exp"] > time.time()
