from portal.core.config import get_settings


def test_register_login_and_me(client):
    register_payload = {
        "name": "Admin User",
        "email": "Admin@Example.com",
        "password": "password123",
        "role": "admin",
        "department": "Administration",
    }

    register_response = client.post("/api/auth/register", json=register_payload)
    assert register_response.status_code == 201
    data = register_response.json()
    assert data["email"] == "admin@example.com"
    assert data["role"] == "admin"
    assert "hashed_password" not in data

    login_response = client.post(
        "/api/auth/login",
        json={"email": "admin@example.com", "password": "password123", "role": "admin"},
    )
    assert login_response.status_code == 200
    login_data = login_response.json()
    assert login_data["token_type"] == "bearer"
    assert login_data["user"]["email"] == "admin@example.com"

    me_response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {login_data['access_token']}"})
    assert me_response.status_code == 200
    assert me_response.json()["name"] == "Admin User"


def test_register_defaults_to_teacher_and_rejects_duplicates(client):
    payload = {"name": "Teacher", "email": "teacher@example.com", "password": "password123", "department": "CSE"}

    first = client.post("/api/auth/register", json=payload)
    assert first.status_code == 201
    assert first.json()["role"] == "teacher"

    duplicate = client.post("/api/auth/register", json=payload)
    assert duplicate.status_code == 409
    body = duplicate.json()
    assert body["success"] is False
    assert body["message"] == "Email already registered"


def test_login_rejects_bad_password_and_role_mismatch(client):
    client.post(
        "/api/auth/register",
        json={"name": "Teacher", "email": "t@example.com", "password": "password123", "role": "teacher"},
    )

    wrong_password = client.post("/api/auth/login", json={"email": "t@example.com", "password": "wrongpass1"})
    assert wrong_password.status_code == 401

    wrong_role = client.post(
        "/api/auth/login",
        json={"email": "t@example.com", "password": "password123", "role": "admin"},
    )
    assert wrong_role.status_code == 403


def test_me_requires_a_valid_token(client):
    assert client.get("/api/auth/me").status_code in {401, 403}
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_change_password(client):
    client.post(
        "/api/auth/register",
        json={"name": "Teacher", "email": "pw@example.com", "password": "password123"},
    )
    token = client.post("/api/auth/login", json={"email": "pw@example.com", "password": "password123"}).json()[
        "access_token"
    ]
    headers = {"Authorization": f"Bearer {token}"}

    wrong = client.post(
        "/api/auth/change-password",
        json={"current_password": "nottheone1", "new_password": "newpassword1"},
        headers=headers,
    )
    assert wrong.status_code == 400

    same = client.post(
        "/api/auth/change-password",
        json={"current_password": "password123", "new_password": "password123"},
        headers=headers,
    )
    assert same.status_code == 400

    changed = client.post(
        "/api/auth/change-password",
        json={"current_password": "password123", "new_password": "newpassword1"},
        headers=headers,
    )
    assert changed.status_code == 200
    relogin = client.post("/api/auth/login", json={"email": "pw@example.com", "password": "newpassword1"})
    assert relogin.status_code == 200


def test_login_is_rate_limited(client):
    settings = get_settings()
    payload = {"email": "nobody@example.com", "password": "password123"}
    statuses = [
        client.post("/api/auth/login", json=payload).status_code
        for _ in range(settings.auth_rate_limit_login_max_requests + 1)
    ]

    assert statuses[:-1] == [401] * settings.auth_rate_limit_login_max_requests
    assert statuses[-1] == 429


def test_hod_registration_requires_department(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Hod", "email": "hod@example.com", "password": "password123", "role": "hod"},
    )

    assert response.status_code == 422
    assert response.json()["success"] is False
