from datetime import timedelta

from app.core.security import create_access_token


def _register(client, email="test@test.com", password="123456"):
    return client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "full_name": "Test User"},
    )


def test_register_user(client):
    response = _register(client)
    assert response.status_code == 201
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "test@test.com"


def test_register_duplicate_email(client):
    _register(client)
    response = _register(client, email="TEST@test.com")
    assert response.status_code == 409


def test_login_and_me(client):
    _register(client)

    response = client.post("/api/auth/login", json={"email": "test@test.com", "password": "123456"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["full_name"] == "Test User"


def test_login_invalid_credentials(client):
    _register(client)
    response = client.post("/api/auth/login", json={"email": "test@test.com", "password": "wrongpass"})
    assert response.status_code == 401


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401


def test_expired_token_is_rejected(client, user):
    token = create_access_token(data={"sub": user.id}, expires_delta=timedelta(minutes=-1))
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_inactive_user_is_rejected(client, db, user, auth_headers):
    user.is_active = False
    db.commit()
    assert client.get("/api/auth/me", headers=auth_headers).status_code == 401
