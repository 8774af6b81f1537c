from datetime import date

from portal.models.lecture import DayOfWeek, Lecture
from portal.models.user import User, UserRole
from portal.services.substitutes import available_substitutes


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


def create_lecture(client, token, teacher_id, subject, day, time_slot, class_year="SE"):
    response = client.post(
        "/api/lectures",
        json={
            "subject": subject,
            "class_year": class_year,
            "day_of_week": day,
            "time_slot": time_slot,
            "scheduled_teacher_id": teacher_id,
        },
        headers=auth(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["lecture"]


def approved_leave(client):
    hod, hod_token = create_account(client, "Hod", "hod@example.com", "hod")
    absent, absent_token = create_account(client, "Absent Teacher", "absent@example.com", "teacher")
    busy, _ = create_account(client, "Busy Teacher", "busy@example.com", "teacher")
    free, free_token = create_account(client, "Free Teacher", "free@example.com", "teacher")

    lecture = create_lecture(client, hod_token, absent["id"], "DBMS", "Monday", "09:00 - 10:00")
    create_lecture(client, hod_token, busy["id"], "Networks", "Monday", "09:30 - 10:30", class_year="TE")

    leave_id = client.post(
        "/api/leaves",
        json={"start_date": "2024-01-01", "end_date": "2024-01-09", "reason": "Medical"},
        headers=auth(absent_token),
    ).json()["leave_id"]
    review = client.put(f"/api/leaves/{leave_id}/review", json={"status": "approved"}, headers=auth(hod_token))
    assert review.status_code == 200
    return {
        "hod": (hod, hod_token),
        "absent": (absent, absent_token),
        "busy": busy,
        "free": (free, free_token),
        "lecture": lecture,
        "leave_id": leave_id,
    }


def test_teacher_schedule_for_a_date(client):
    ctx = approved_leave(client)
    absent, absent_token = ctx["absent"]

    response = client.get("/api/leaves/teacher/schedule", params={"date": "2024-01-08"}, headers=auth(absent_token))

    assert response.status_code == 200
    body = response.json()
    assert body["day_of_week"] == "Monday"
    assert [item["id"] for item in body["lectures"]] == [ctx["lecture"]["id"]]
    assert body["lectures"][0]["specific_date"] == "2024-01-08"

    tuesday = client.get("/api/leaves/teacher/schedule", params={"date": "2024-01-09"}, headers=auth(absent_token))
    assert tuesday.json()["lectures"] == []


def test_substitute_assignment_flow(client):
    ctx = approved_leave(client)
    _, hod_token = ctx["hod"]
    free, free_token = ctx["free"]
    lecture = ctx["lecture"]

    needing = client.get("/api/leaves/lectures/needing-substitutes", headers=auth(hod_token))
    assert needing.status_code == 200
    occurrences = [(item["id"], item["specific_date"]) for item in needing.json()["lectures"]]
    assert occurrences == [(lecture["id"], "2024-01-01"), (lecture["id"], "2024-01-08")]
    assert needing.json()["lectures"][0]["original_teacher_name"] == "Absent Teacher"

    available = client.get(
        "/api/leaves/teachers/available",
        params={"lecture_id": lecture["id"], "date": "2024-01-01"},
        headers=auth(hod_token),
    )
    assert available.status_code == 200
    available_ids = {item["id"] for item in available.json()["available"]}
    assert free["id"] in available_ids
    assert ctx["busy"]["id"] not in available_ids
    assert ctx["absent"][0]["id"] not in available_ids

    assign_payload = {
        "leave_request_id": ctx["leave_id"],
        "lecture_id": lecture["id"],
        "lecture_date": "2024-01-01",
        "substitute_teacher_id": free["id"],
        "notes": "Chapter 4",
    }
    assigned = client.post("/api/leaves/substitute/assign", json=assign_payload, headers=auth(hod_token))
    assert assigned.status_code == 201, assigned.text
    assert assigned.json()["assignment"]["status"] == "assigned"

    duplicate = client.post("/api/leaves/substitute/assign", json=assign_payload, headers=auth(hod_token))
    assert duplicate.status_code == 409

    remaining = client.get("/api/leaves/lectures/needing-substitutes", headers=auth(hod_token)).json()["lectures"]
    assert [item["specific_date"] for item in remaining] == ["2024-01-08"]

    notifications = client.get("/api/notifications", headers=auth(free_token)).json()
    assert notifications[0]["notification_type"] == "substitution"

    report = client.get(
        "/api/leaves/substitute/report",
        params={"start_date": "2024-01-01", "end_date": "2024-01-31"},
        headers=auth(hod_token),
    )
    assert report.status_code == 200
    summary = report.json()["summary"]
    assert summary[0]["substitute_teacher_id"] == free["id"]
    assert summary[0]["lecture_count"] == 1
    assert summary[0]["subjects"] == ["DBMS"]
    detail = report.json()["details"][0]
    assert detail["original_teacher_name"] == "Absent Teacher"
    assert detail["lecture_date"] == "2024-01-01"


def test_assignment_rejects_wrong_dates_and_busy_teachers(client):
    ctx = approved_leave(client)
    _, hod_token = ctx["hod"]
    lecture = ctx["lecture"]

    wrong_weekday = client.post(
        "/api/leaves/substitute/assign",
        json={
            "leave_request_id": ctx["leave_id"],
            "lecture_id": lecture["id"],
            "lecture_date": "2024-01-02",
            "substitute_teacher_id": ctx["free"][0]["id"],
        },
        headers=auth(hod_token),
    )
    assert wrong_weekday.status_code == 400

    outside_leave = client.post(
        "/api/leaves/substitute/assign",
        json={
            "leave_request_id": ctx["leave_id"],
            "lecture_id": lecture["id"],
            "lecture_date": "2024-01-15",
            "substitute_teacher_id": ctx["free"][0]["id"],
        },
        headers=auth(hod_token),
    )
    assert outside_leave.status_code == 400

    busy = client.post(
        "/api/leaves/substitute/assign",
        json={
            "leave_request_id": ctx["leave_id"],
            "lecture_id": lecture["id"],
            "lecture_date": "2024-01-01",
            "substitute_teacher_id": ctx["busy"]["id"],
        },
        headers=auth(hod_token),
    )
    assert busy.status_code == 409

    not_held = client.get(
        "/api/leaves/teachers/available",
        params={"lecture_id": lecture["id"], "date": "2024-01-02"},
        headers=auth(hod_token),
    )
    assert not_held.status_code == 400


def test_substitute_endpoints_need_reviewer_role(client):
    ctx = approved_leave(client)
    _, free_token = ctx["free"]

    assert client.get("/api/leaves/lectures/needing-substitutes", headers=auth(free_token)).status_code == 403


def test_daily_load_limit_excludes_fully_booked_teachers(db_session_factory):
    db = db_session_factory()
    try:
        absent = User(name="Absent", email="a@example.com", hashed_password="x", role=UserRole.teacher, department="CSE")
        loaded = User(name="Loaded", email="l@example.com", hashed_password="x", role=UserRole.teacher, department="CSE")
        light = User(name="Light", email="li@example.com", hashed_password="x", role=UserRole.teacher, department="CSE")
        other = User(name="Other", email="o@example.com", hashed_password="x", role=UserRole.teacher, department="ECE")
        db.add_all([absent, loaded, light, other])
        db.flush()

        target = Lecture(
            subject="DBMS",
            class_year="SE",
            day_of_week=DayOfWeek.Monday,
            time_slot="15:00 - 16:00",
            start_time="15:00",
            end_time="16:00",
            department="CSE",
            scheduled_teacher_id=absent.id,
        )
        db.add(target)
        for hour in range(8, 12):
            db.add(
                Lecture(
                    subject=f"Load {hour}",
                    class_year="FE",
                    day_of_week=DayOfWeek.Monday,
                    time_slot=f"{hour:02d}:00 - {hour + 1:02d}:00",
                    start_time=f"{hour:02d}:00",
                    end_time=f"{hour + 1:02d}:00",
                    department="CSE",
                    scheduled_teacher_id=loaded.id,
                )
            )
        db.add(
            Lecture(
                subject="Single",
                class_year="TE",
                day_of_week=DayOfWeek.Monday,
                time_slot="08:00 - 09:00",
                start_time="08:00",
                end_time="09:00",
                department="CSE",
                scheduled_teacher_id=light.id,
            )
        )
        db.commit()

        candidates = available_substitutes(db, lecture=target, day=date(2024, 1, 1), max_daily_load=4)
        assert [(item.teacher.name, item.daily_load) for item in candidates] == [("Light", 1)]

        everyone = available_substitutes(
            db,
            lecture=target,
            day=date(2024, 1, 1),
            max_daily_load=4,
            ignore_department=True,
        )
        assert [item.teacher.name for item in everyone] == ["Other", "Light"]
    finally:
        db.close()


def test_ignore_department_widens_available_teachers(client):
    ctx = approved_leave(client)
    _, hod_token = ctx["hod"]
    outsider, _ = create_account(client, "Outsider", "outsider@example.com", "teacher", department="ECE")
    params = {"lecture_id": ctx["lecture"]["id"], "date": "2024-01-01"}

    scoped = client.get("/api/leaves/teachers/available", params=params, headers=auth(hod_token))
    widened = client.get(
        "/api/leaves/teachers/available",
        params={**params, "ignore_department": "true"},
        headers=auth(hod_token),
    )

    scoped_ids = {item["id"] for item in scoped.json()["available"]}
    widened_ids = {item["id"] for item in widened.json()["available"]}
    assert outsider["id"] not in scoped_ids
    assert outsider["id"] in widened_ids
    assert scoped_ids <= widened_ids
    assert ctx["busy"]["id"] not in widened_ids


def test_teacher_requests_cover_for_a_single_lecture(client):
    _, hod_token = create_account(client, "Hod", "hod@example.com", "hod")
    teacher, teacher_token = create_account(client, "Teacher", "teacher@example.com", "teacher")
    payload = {
        "lecture_date": "2024-01-03",
        "time_slot": "11:00-12:00",
        "subject": "Compilers",
        "class_year": "TE",
        "reason": "Personal",
        "notes": "Exam duty",
    }

    created = client.post("/api/leaves/substitute/request", json=payload, headers=auth(teacher_token))

    assert created.status_code == 201, created.text
    body = created.json()
    assert body["message"] == "Substitute request submitted successfully"
    lecture = client.get(f"/api/lectures/{body['lecture_id']}", headers=auth(hod_token)).json()["lecture"]
    assert lecture["day_of_week"] == "Wednesday"
    assert lecture["time_slot"] == "11:00 - 12:00"
    assert lecture["scheduled_teacher_id"] == teacher["id"]

    leave = client.get(f"/api/leaves/{body['request_id']}", headers=auth(teacher_token)).json()
    assert leave["status"] == "approved"
    assert leave["start_date"] == leave["end_date"] == "2024-01-03"
    assert leave["affected_lectures"] == [body["lecture_id"]]
    assert leave["notes"].startswith("Ad-hoc substitute request: Compilers for TE")

    needing = client.get("/api/leaves/lectures/needing-substitutes", headers=auth(hod_token)).json()["lectures"]
    assert [(item["id"], item["specific_date"]) for item in needing] == [(body["lecture_id"], "2024-01-03")]
    inbox = client.get("/api/notifications", headers=auth(hod_token)).json()
    assert inbox[0]["notification_type"] == "substitution"
    assert inbox[0]["title"] == "Substitute Needed"

    repeated = client.post("/api/leaves/substitute/request", json=payload, headers=auth(teacher_token))
    assert repeated.status_code == 409

    next_week = client.post(
        "/api/leaves/substitute/request",
        json={**payload, "lecture_date": "2024-01-10", "time_slot": "11:00 - 12:00"},
        headers=auth(teacher_token),
    )
    assert next_week.status_code == 201
    assert next_week.json()["lecture_id"] == body["lecture_id"]


def test_cover_request_validation(client):
    create_account(client, "Hod", "hod@example.com", "hod")
    teacher, _ = create_account(client, "Teacher", "teacher@example.com", "teacher")
    _, other_token = create_account(client, "Other", "other@example.com", "teacher")
    payload = {"lecture_date": "2024-01-03", "time_slot": "morning", "subject": "Compilers", "class_year": "TE"}

    bad_slot = client.post("/api/leaves/substitute/request", json=payload, headers=auth(other_token))
    assert bad_slot.status_code == 400
    assert bad_slot.json()["details"] == {"time_slot": "morning"}

    missing_subject = client.post(
        "/api/leaves/substitute/request",
        json={"lecture_date": "2024-01-03", "time_slot": "11:00-12:00", "class_year": "TE"},
        headers=auth(other_token),
    )
    assert missing_subject.status_code == 422

    for_someone_else = client.post(
        "/api/leaves/substitute/request",
        json={**payload, "time_slot": "11:00-12:00", "teacher_id": teacher["id"]},
        headers=auth(other_token),
    )
    assert for_someone_else.status_code == 403
