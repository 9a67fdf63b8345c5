"""Tests for the configured administrator bootstrap."""
from sweetshop.models.user import User
from sweetshop.services.auth_service import AuthService


def test_ensure_admin_creates_admin_once(db_session):
    service = AuthService(db_session)

    created = service.ensure_admin("Boss@Example.com", "bosspass", "Boss")
    again = service.ensure_admin("boss@example.com", "other", "Boss")

    assert created.is_admin is True
    assert created.email == "boss@example.com"
    assert again is None
    assert db_session.query(User).filter(User.email == "boss@example.com").count() == 1


def test_bootstrapped_admin_can_log_in_and_manage_stock(client, db_session):
    AuthService(db_session).ensure_admin("boss@example.com", "bosspass", "Boss")

    login = client.post("/api/auth/login", json={"email": "boss@example.com", "password": "bosspass"})
    headers = {"Authorization": f"Bearer {login.json()['token']}"}
    response = client.post(
        "/api/sweets",
        json={"name": "Truffle", "category": "Chocolate", "price": "1.75", "quantity": 3},
        headers=headers,
    )

    assert login.json()["user"]["is_admin"] is True
    assert response.status_code == 201
