MONDAY = "2024-01-01"


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


def create_account(client, name, email, role, department):
    user = register_user(
        client,
        {"name": name, "email": email, "password": "password123", "role": role, "department": department},
    )
    return user, login_user(client, email, "password123", role)


def create_lecture(client, token, teacher_id, subject, day, time_slot, class_year="SE", division="A"):
    response = client.post(
        "/api/lectures",
        json={
            "subject": subject,
            "class_year": class_year,
            "division": division,
            "day_of_week": day,
            "time_slot": time_slot,
            "scheduled_teacher_id": teacher_id,
        },
        headers=auth(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["lecture"]


def setup_department(client):
    admin, admin_token = create_account(client, "Admin", "admin@example.com", "admin", "Administration")
    hod, hod_token = create_account(client, "Hod Cse", "hod@example.com", "hod", "CSE")
    teacher, teacher_token = create_account(client, "Asha Teacher", "asha@example.com", "teacher", "CSE")
    monday = create_lecture(client, hod_token, teacher["id"], "DBMS", "Monday", "09:00 - 10:00")
    wednesday = create_lecture(client, hod_token, teacher["id"], "OS", "Wednesday", "11:00 - 12:00")
    return {
        "admin": (admin, admin_token),
        "hod": (hod, hod_token),
        "teacher": (teacher, teacher_token),
        "lectures": (monday, wednesday),
    }


def test_leave_types_catalogue(client):
    _, token = create_account(client, "Teacher", "types@example.com", "teacher", "CSE")

    response = client.get("/api/leaves/types", headers=auth(token))

    assert response.status_code == 200
    catalogue = {item["id"]: item for item in response.json()["leaveTypes"]}
    assert catalogue["casual"] == {"id": "casual", "name": "Casual Leave", "max_days": 12, "default_days": 1}
    assert catalogue["unpaid"]["max_days"] == 365
    assert len(catalogue) == 6


def test_submit_fills_affected_lectures_and_approval_moves_request_to_calendar(client):
    ctx = setup_department(client)
    _, hod_token = ctx["hod"]
    teacher, teacher_token = ctx["teacher"]
    monday, wednesday = ctx["lectures"]

    submit = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": "2024-01-14", "reason": "Medical", "notes": "Surgery"},
        headers=auth(teacher_token),
    )
    assert submit.status_code == 201, submit.text
    body = submit.json()
    assert body["success"] is True
    leave_id = body["leave_id"]
    request = body["request"]
    assert request["status"] == "pending"
    assert request["total_days"] == 14
    assert request["is_hod_request"] is False
    assert request["teacher_name"] == "Asha Teacher"
    assert sorted(request["affected_lectures"]) == sorted([monday["id"], wednesday["id"]])

    pending = client.get("/api/leaves/pending", headers=auth(hod_token))
    assert pending.status_code == 200
    assert [item["id"] for item in pending.json()["requests"]] == [leave_id]

    hod_notifications = client.get("/api/notifications", headers=auth(hod_token)).json()
    assert hod_notifications[0]["title"] == "New Leave Request"
    assert hod_notifications[0]["notification_type"] == "leave_request"
    assert hod_notifications[0]["priority"] == "high"

    review = client.put(
        f"/api/leaves/{leave_id}/review",
        json={"status": "approved", "comments": "Get well soon"},
        headers=auth(hod_token),
    )
    assert review.status_code == 200, review.text
    reviewed = review.json()["request"]
    assert reviewed["status"] == "approved"
    assert reviewed["review_comments"] == "Get well soon"
    assert reviewed["reviewer_name"] == "Hod Cse"
    assert reviewed["reviewed_at"] is not None

    assert client.get("/api/leaves/pending", headers=auth(hod_token)).json()["requests"] == []
    calendar = client.get("/api/leaves/calendar", headers=auth(hod_token)).json()
    assert [item["id"] for item in calendar["leaves"]] == [leave_id]

    teacher_notifications = client.get("/api/notifications", headers=auth(teacher_token)).json()
    assert teacher_notifications[0]["title"] == "Leave Request Approved"
    assert "Get well soon" in teacher_notifications[0]["message"]

    mine = client.get("/api/leaves/mine", headers=auth(teacher_token)).json()
    assert [item["id"] for item in mine["requests"]] == [leave_id]
    assert mine["requests"][0]["teacher_id"] == teacher["id"]


def test_second_review_is_a_conflict_and_keeps_state(client):
    ctx = setup_department(client)
    _, hod_token = ctx["hod"]
    _, teacher_token = ctx["teacher"]
    leave_id = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": MONDAY, "reason": "Personal"},
        headers=auth(teacher_token),
    ).json()["leave_id"]

    first = client.put(f"/api/leaves/{leave_id}/review", json={"status": "rejected"}, headers=auth(hod_token))
    assert first.status_code == 200

    second = client.put(f"/api/leaves/{leave_id}/review", json={"status": "approved"}, headers=auth(hod_token))
    assert second.status_code == 409
    body = second.json()
    assert body["success"] is False
    assert body["details"] == {"current_status": "rejected", "requested_status": "approved"}

    current = client.get(f"/api/leaves/{leave_id}", headers=auth(hod_token)).json()
    assert current["status"] == "rejected"


def test_review_requires_a_decision(client):
    ctx = setup_department(client)
    _, hod_token = ctx["hod"]
    _, teacher_token = ctx["teacher"]
    leave_id = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": MONDAY, "reason": "Personal"},
        headers=auth(teacher_token),
    ).json()["leave_id"]

    response = client.put(f"/api/leaves/{leave_id}/review", json={"status": "pending"}, headers=auth(hod_token))

    assert response.status_code == 422
    assert response.json()["success"] is False


def test_review_permissions(client):
    ctx = setup_department(client)
    _, teacher_token = ctx["teacher"]
    _, other_hod_token = create_account(client, "Hod Ece", "hod-ece@example.com", "hod", "ECE")
    leave_id = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": MONDAY, "reason": "Official"},
        headers=auth(teacher_token),
    ).json()["leave_id"]

    by_teacher = client.put(f"/api/leaves/{leave_id}/review", json={"status": "approved"}, headers=auth(teacher_token))
    assert by_teacher.status_code == 403

    by_other_department = client.put(
        f"/api/leaves/{leave_id}/review",
        json={"status": "approved"},
        headers=auth(other_hod_token),
    )
    assert by_other_department.status_code == 403

    assert client.get("/api/leaves/pending", headers=auth(other_hod_token)).json()["requests"] == []


def test_hod_request_goes_to_admins(client):
    ctx = setup_department(client)
    _, admin_token = ctx["admin"]
    hod, hod_token = ctx["hod"]

    submit = client.post(
        "/api/leaves",
        json={
            "start_date": MONDAY,
            "end_date": "2024-01-02",
            "reason": "Official",
            "delegate_responsibilities": "Prof. Rao handles approvals",
        },
        headers=auth(hod_token),
    )
    assert submit.status_code == 201
    request = submit.json()["request"]
    assert request["is_hod_request"] is True
    assert request["delegate_responsibilities"] == "Prof. Rao handles approvals"

    assert client.get("/api/leaves/pending", headers=auth(hod_token)).json()["requests"] == []
    admin_pending = client.get("/api/leaves/pending", headers=auth(admin_token)).json()["requests"]
    assert [item["teacher_id"] for item in admin_pending] == [hod["id"]]

    self_review = client.put(
        f"/api/leaves/{request['id']}/review",
        json={"status": "approved"},
        headers=auth(hod_token),
    )
    assert self_review.status_code == 403

    admin_notifications = client.get("/api/notifications", headers=auth(admin_token)).json()
    assert admin_notifications[0]["action_url"] == "/admin/leave-management"

    approved = client.put(
        f"/api/leaves/{request['id']}/review",
        json={"status": "approved"},
        headers=auth(admin_token),
    )
    assert approved.status_code == 200


def test_submit_validation(client):
    ctx = setup_department(client)
    _, teacher_token = ctx["teacher"]
    _, hod_token = ctx["hod"]
    teacher, _ = ctx["teacher"]
    other, _ = create_account(client, "Other Teacher", "other@example.com", "teacher", "CSE")
    foreign = create_lecture(client, hod_token, other["id"], "Maths", "Monday", "12:00 - 13:00")

    inverted = client.post(
        "/api/leaves",
        json={"start_date": "2024-01-10", "end_date": MONDAY, "reason": "Personal"},
        headers=auth(teacher_token),
    )
    assert inverted.status_code == 400

    missing_end = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "reason": "Personal"},
        headers=auth(teacher_token),
    )
    assert missing_end.status_code == 422

    too_long = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": "2024-03-01", "reason": "Personal"},
        headers=auth(teacher_token),
    )
    assert too_long.status_code == 400
    assert too_long.json()["details"]["max_days"] == 30

    invalid_selection = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": MONDAY, "reason": "Personal", "affected_lectures": [foreign["id"]]},
        headers=auth(teacher_token),
    )
    assert invalid_selection.status_code == 400
    assert invalid_selection.json()["details"]["invalid_lecture_ids"] == [foreign["id"]]

    on_behalf = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": MONDAY, "reason": "Personal", "teacher_id": other["id"]},
        headers=auth(teacher_token),
    )
    assert on_behalf.status_code == 403

    monday, _ = ctx["lectures"]
    explicit = client.post(
        "/api/leaves",
        json={
            "start_date": MONDAY,
            "end_date": MONDAY,
            "reason": "Emergency",
            "affected_lectures": [monday["id"], monday["id"]],
        },
        headers=auth(teacher_token),
    )
    assert explicit.status_code == 201
    assert explicit.json()["request"]["affected_lectures"] == [monday["id"]]
    assert explicit.json()["request"]["teacher_id"] == teacher["id"]


def test_admin_list_filters_by_status(client):
    ctx = setup_department(client)
    _, admin_token = ctx["admin"]
    _, teacher_token = ctx["teacher"]
    client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": MONDAY, "reason": "Personal"},
        headers=auth(teacher_token),
    )

    pending = client.get("/api/leaves", params={"status": "pending"}, headers=auth(admin_token))
    approved = client.get("/api/leaves", params={"status": "approved"}, headers=auth(admin_token))

    assert len(pending.json()["requests"]) == 1
    assert approved.json()["requests"] == []
    assert client.get("/api/leaves", headers=auth(teacher_token)).status_code == 403


def test_admin_request_goes_to_other_admins(client):
    _, admin_token = create_account(client, "Admin", "admin@example.com", "admin", "Administration")
    _, other_admin_token = create_account(client, "Second Admin", "admin2@example.com", "admin", "Administration")
    _, office_hod_token = create_account(client, "Office Hod", "office-hod@example.com", "hod", "Administration")

    submit = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": MONDAY, "reason": "Personal"},
        headers=auth(admin_token),
    )
    assert submit.status_code == 201

    received = client.get("/api/notifications", headers=auth(other_admin_token)).json()
    assert [(item["title"], item["action_url"]) for item in received] == [
        ("New Leave Request", "/admin/leave-management")
    ]
    assert client.get("/api/notifications", headers=auth(office_hod_token)).json() == []
    assert client.get("/api/notifications", headers=auth(admin_token)).json() == []


def test_acting_hod_receives_and_reviews_department_requests(client):
    ctx = setup_department(client)
    _, hod_token = ctx["hod"]
    _, teacher_token = ctx["teacher"]
    deputy, deputy_token = create_account(client, "Deputy", "deputy@example.com", "teacher", "CSE")

    assert client.get("/api/leaves/pending", headers=auth(deputy_token)).status_code == 403
    delegated = client.post(
        "/api/teachers/delegate",
        json={"target_teacher_id": deputy["id"]},
        headers=auth(hod_token),
    )
    assert delegated.status_code == 200, delegated.text

    submit = client.post(
        "/api/leaves",
        json={"start_date": MONDAY, "end_date": MONDAY, "reason": "Medical"},
        headers=auth(teacher_token),
    )
    leave_id = submit.json()["leave_id"]

    titles = [item["title"] for item in client.get("/api/notifications", headers=auth(deputy_token)).json()]
    assert titles.count("New Leave Request") == 1
    pending = client.get("/api/leaves/pending", headers=auth(deputy_token)).json()["requests"]
    assert [item["id"] for item in pending] == [leave_id]

    reviewed = client.put(f"/api/leaves/{leave_id}/review", json={"status": "approved"}, headers=auth(deputy_token))
    assert reviewed.status_code == 200
    assert reviewed.json()["request"]["reviewed_by_id"] == deputy["id"]

    client.post("/api/teachers/delegate", json={"target_teacher_id": None}, headers=auth(hod_token))
    assert client.get("/api/leaves/pending", headers=auth(deputy_token)).status_code == 403
