def register_user(client, payload):
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201
    return response.json()


def login_user(client, email, password, role):
    response = client.post(
        "/api/auth/login",
        json={"email": email, "password": password, "role": role},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def create_account(client, name, email, role, department="CSE"):
    user = register_user(
        client,
        {"name": name, "email": email, "password": "password123", "role": role, "department": department},
    )
    return user, login_user(client, email, "password123", role)


def test_teacher_directory_and_admin_update(client):
    admin, admin_token = create_account(client, "Admin", "admin@example.com", "admin", "Administration")
    teacher, teacher_token = create_account(client, "Teacher", "teacher@example.com", "teacher", "CSE")
    create_account(client, "Hod Ece", "hod-ece@example.com", "hod", "ECE")

    listed = client.get("/api/teachers", headers=auth(teacher_token))
    assert listed.status_code == 200
    emails = [item["email"] for item in listed.json()["teachers"]]
    assert "admin@example.com" not in emails
    assert set(emails) == {"teacher@example.com", "hod-ece@example.com"}

    cse_only = client.get("/api/teachers", params={"department": "CSE"}, headers=auth(teacher_token))
    assert [item["id"] for item in cse_only.json()["teachers"]] == [teacher["id"]]

    forbidden = client.put(f"/api/teachers/{teacher['id']}", json={"designation": "Lead"}, headers=auth(teacher_token))
    assert forbidden.status_code == 403

    updated = client.put(
        f"/api/teachers/{teacher['id']}",
        json={"designation": "Assistant Professor", "department": "IT", "is_active": False},
        headers=auth(admin_token),
    )
    assert updated.status_code == 200
    assert updated.json()["designation"] == "Assistant Professor"
    assert updated.json()["department"] == "IT"
    assert updated.json()["is_active"] is False

    inactive_login = client.post(
        "/api/auth/login",
        json={"email": "teacher@example.com", "password": "password123"},
    )
    assert inactive_login.status_code == 403

    self_demote = client.put(f"/api/teachers/{admin['id']}", json={"role": "teacher"}, headers=auth(admin_token))
    assert self_demote.status_code == 400

    missing = client.get("/api/teachers/does-not-exist", headers=auth(admin_token))
    assert missing.status_code == 404
    assert missing.json()["details"] == {"resource_type": "Teacher", "resource_id": "does-not-exist"}


def test_students_roster(client):
    _, hod_token = create_account(client, "Hod", "hod@example.com", "hod", "CSE")
    _, teacher_token = create_account(client, "Teacher", "teacher@example.com", "teacher", "CSE")

    created = client.post(
        "/api/students",
        json={"name": "Ravi", "roll_no": "SE-01", "class_year": "SE", "division": "b"},
        headers=auth(hod_token),
    )
    assert created.status_code == 201, created.text
    student = created.json()
    assert student["division"] == "B"
    assert student["department"] == "CSE"

    duplicate = client.post(
        "/api/students",
        json={"name": "Other", "roll_no": "SE-01", "class_year": "SE"},
        headers=auth(hod_token),
    )
    assert duplicate.status_code == 409

    other_department = client.post(
        "/api/students",
        json={"name": "Meera", "roll_no": "EC-01", "class_year": "SE", "department": "ECE"},
        headers=auth(hod_token),
    )
    assert other_department.status_code == 403

    by_teacher = client.post(
        "/api/students",
        json={"name": "Nope", "roll_no": "SE-02", "class_year": "SE"},
        headers=auth(teacher_token),
    )
    assert by_teacher.status_code == 403

    filtered = client.get("/api/students", params={"class_year": "SE", "division": "b"}, headers=auth(teacher_token))
    assert [item["roll_no"] for item in filtered.json()] == ["SE-01"]

    renamed = client.put(f"/api/students/{student['id']}", json={"name": "Ravi K"}, headers=auth(hod_token))
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Ravi K"

    deleted = client.delete(f"/api/students/{student['id']}", headers=auth(hod_token))
    assert deleted.status_code == 200
    assert client.get(f"/api/students/{student['id']}", headers=auth(hod_token)).status_code == 404


def test_subjects_catalogue(client):
    _, admin_token = create_account(client, "Admin", "admin@example.com", "admin", "Administration")
    _, teacher_token = create_account(client, "Teacher", "teacher@example.com", "teacher", "CSE")

    created = client.post(
        "/api/subjects",
        json={"code": " cs201 ", "name": "Data Structures", "semester": 3, "syllabus": "Lists, trees, graphs"},
        headers=auth(admin_token),
    )
    assert created.status_code == 201
    subject = created.json()
    assert subject["code"] == "CS201"
    assert subject["credits"] == 3

    duplicate = client.post(
        "/api/subjects",
        json={"code": "CS201", "name": "Duplicate"},
        headers=auth(admin_token),
    )
    assert duplicate.status_code == 409

    listed = client.get("/api/subjects", params={"semester": 3}, headers=auth(teacher_token))
    assert [item["code"] for item in listed.json()] == ["CS201"]

    updated = client.put(f"/api/subjects/{subject['id']}", json={"credits": 4}, headers=auth(admin_token))
    assert updated.json()["credits"] == 4

    assert client.delete(f"/api/subjects/{subject['id']}", headers=auth(teacher_token)).status_code == 403
    assert client.delete(f"/api/subjects/{subject['id']}", headers=auth(admin_token)).status_code == 200


def test_hod_delegates_and_revokes_authority(client):
    _, hod_token = create_account(client, "Hod", "hod@example.com", "hod", "CSE")
    deputy, deputy_token = create_account(client, "Deputy", "deputy@example.com", "teacher", "CSE")
    backup, _ = create_account(client, "Backup", "backup@example.com", "teacher", "CSE")
    outsider, _ = create_account(client, "Outsider", "outsider@example.com", "teacher", "ECE")

    assert client.post(
        "/api/teachers/delegate",
        json={"target_teacher_id": deputy["id"]},
        headers=auth(deputy_token),
    ).status_code == 403

    cross = client.post("/api/teachers/delegate", json={"target_teacher_id": outsider["id"]}, headers=auth(hod_token))
    assert cross.status_code == 400
    missing = client.post("/api/teachers/delegate", json={"target_teacher_id": "nobody"}, headers=auth(hod_token))
    assert missing.status_code == 404

    delegated = client.post("/api/teachers/delegate", json={"target_teacher_id": deputy["id"]}, headers=auth(hod_token))
    assert delegated.status_code == 200
    assert delegated.json()["message"] == "Authority delegated"
    assert delegated.json()["acting_hod"]["is_acting_hod"] is True
    inbox = client.get("/api/notifications", headers=auth(deputy_token)).json()
    assert inbox[0]["title"] == "Authority Delegated"

    # Acting HODs hold review rights but cannot pass them on.
    onward = client.post("/api/teachers/delegate", json={"target_teacher_id": backup["id"]}, headers=auth(deputy_token))
    assert onward.status_code == 403

    switched = client.post("/api/teachers/delegate", json={"target_teacher_id": backup["id"]}, headers=auth(hod_token))
    assert switched.status_code == 200
    acting = {
        item["id"]
        for item in client.get("/api/teachers", params={"department": "CSE"}, headers=auth(hod_token)).json()["teachers"]
        if item["is_acting_hod"]
    }
    assert acting == {backup["id"]}

    revoked = client.post("/api/teachers/delegate", json={}, headers=auth(hod_token))
    assert revoked.status_code == 200
    assert revoked.json() == {"success": True, "message": "Authority revoked", "acting_hod": None}
    assert client.get(f"/api/teachers/{backup['id']}", headers=auth(hod_token)).json()["is_acting_hod"] is False
