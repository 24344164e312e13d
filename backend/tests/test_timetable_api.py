from datetime import date, timedelta


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


def register_student(client, admin_token, payload):
    response = client.post("/api/auth/student/register", json=payload, headers=auth(admin_token))
    assert response.status_code == 201
    return response.json()


def setup_accounts(client, admin_secret):
    admin_payload = {
        "name": "Admin User",
        "email": "admin@example.com",
        "password": "password123",
        "role": "admin",
        "department": "Administration",
        "admin_secret_key": admin_secret,
    }
    student_payload = {
        "name": "Student User",
        "email": "student@example.com",
        "password": "password123",
        "department": "CSE",
        "roll_no": "CS-042",
    }
    register_user(client, admin_payload)
    admin_token = login_user(client, admin_payload["email"], admin_payload["password"], "admin")
    student = register_student(client, admin_token, student_payload)
    student_token = login_user(client, student_payload["email"], student_payload["password"], "student")
    return student, student_token, admin_token


def class_payload(**overrides):
    payload = {
        "weekIndex": 0,
        "day": "Monday",
        "subject": "Operating Systems",
        "professor": "Dr. Iyer",
        "startTime": "09:00",
        "endTime": "10:00",
        "room": "A-12",
        "type": "Lecture",
        "date": (date.today() + timedelta(days=1)).isoformat(),
    }
    payload.update(overrides)
    return payload


def test_student_timetable_lifecycle(client, admin_secret):
    student, student_token, admin_token = setup_accounts(client, admin_secret)

    missing = client.get("/api/timetable", headers=auth(student_token))
    assert missing.status_code == 404
    assert missing.json()["message"] == "Timetable not found"

    created = client.post("/api/timetable/class", json=class_payload(), headers=auth(student_token))
    assert created.status_code == 201
    body = created.json()
    assert body["user"] == student["id"]
    assert len(body["schedule"]) == 1
    monday = body["schedule"][0]["Monday"]
    assert len(monday) == 1
    assert monday[0]["status"] == "scheduled"
    class_id = monday[0]["id"]

    conflict = client.post(
        "/api/timetable/class",
        json=class_payload(startTime="09:30", endTime="10:30"),
        headers=auth(student_token),
    )
    assert conflict.status_code == 409
    assert conflict.json()["details"]["conflictingClassId"] == class_id

    edited = client.put(
        "/api/timetable/class",
        json={**class_payload(room="B-7"), "id": class_id},
        headers=auth(student_token),
    )
    assert edited.status_code == 200
    assert edited.json()["schedule"][0]["Monday"][0]["room"] == "B-7"
    assert edited.json()["schedule"][0]["Monday"][0]["id"] == class_id

    status_update = client.put(
        "/api/timetable/class/status",
        json={"weekIndex": 0, "day": "Monday", "id": class_id, "status": "cancelled", "userId": student["id"]},
        headers=auth(admin_token),
    )
    assert status_update.status_code == 200
    assert status_update.json()["schedule"][0]["Monday"][0]["status"] == "cancelled"

    admin_view = client.get(f"/api/timetable/users/{student['id']}", headers=auth(admin_token))
    assert admin_view.status_code == 200
    assert admin_view.json()["schedule"][0]["Monday"][0]["status"] == "cancelled"

    fetched = client.get("/api/timetable", headers=auth(student_token))
    assert fetched.status_code == 200
    assert fetched.json()["schedule"][0]["Monday"][0]["status"] == "cancelled"

    deleted = client.request(
        "DELETE",
        "/api/timetable/class",
        json={"weekIndex": 0, "day": "Monday", "id": class_id},
        headers=auth(student_token),
    )
    assert deleted.status_code == 200
    assert deleted.json()["schedule"][0]["Monday"] == []

    noop = client.request(
        "DELETE",
        "/api/timetable/class",
        json={"weekIndex": 0, "day": "Monday", "id": class_id},
        headers=auth(student_token),
    )
    assert noop.status_code == 200
    assert noop.json()["version"] == deleted.json()["version"]


def test_timetable_role_guards(client, admin_secret):
    student, student_token, admin_token = setup_accounts(client, admin_secret)

    assert client.post("/api/timetable/class", json=class_payload(), headers=auth(admin_token)).status_code == 403
    assert client.get("/api/timetable", headers=auth(admin_token)).status_code == 403
    assert client.get("/api/timetable").status_code in {401, 403}

    client.post("/api/timetable/class", json=class_payload(), headers=auth(student_token))
    response = client.put(
        "/api/timetable/class/status",
        json={"weekIndex": 0, "day": "Monday", "id": "x", "status": "cancelled", "userId": student["id"]},
        headers=auth(student_token),
    )
    assert response.status_code == 403
    assert client.get(f"/api/timetable/users/{student['id']}", headers=auth(student_token)).status_code == 403


def test_status_update_defaults_to_admins_own_timetable(client, admin_secret):
    _, student_token, admin_token = setup_accounts(client, admin_secret)
    created = client.post("/api/timetable/class", json=class_payload(), headers=auth(student_token))
    class_id = created.json()["schedule"][0]["Monday"][0]["id"]

    response = client.put(
        "/api/timetable/class/status",
        json={"weekIndex": 0, "day": "Monday", "id": class_id, "status": "cancelled"},
        headers=auth(admin_token),
    )
    assert response.status_code == 404


def test_timetable_input_errors(client, admin_secret):
    _, student_token, _ = setup_accounts(client, admin_secret)
    yesterday = (date.today() - timedelta(days=1)).isoformat()

    past = client.post("/api/timetable/class", json=class_payload(date=yesterday), headers=auth(student_token))
    assert past.status_code == 400
    assert past.json()["details"]["field"] == "date"

    bad_time = client.post("/api/timetable/class", json=class_payload(startTime="25:00"), headers=auth(student_token))
    assert bad_time.status_code == 400
    assert bad_time.json()["message"] == "Invalid time format. Use HH:mm"

    bad_day = client.post("/api/timetable/class", json=class_payload(day="Holiday"), headers=auth(student_token))
    assert bad_day.status_code == 400

    payload = class_payload()
    del payload["room"]
    missing_field = client.post("/api/timetable/class", json=payload, headers=auth(student_token))
    assert missing_field.status_code == 422

    unpadded = client.post(
        "/api/timetable/class",
        json=class_payload(startTime="9:00", endTime="9:50", weekIndex=5),
        headers=auth(student_token),
    )
    assert unpadded.status_code == 201
    schedule = unpadded.json()["schedule"]
    assert len(schedule) == 6
    assert schedule[5]["Monday"][0]["startTime"] == "09:00"

    unknown_edit = client.put(
        "/api/timetable/class",
        json={**class_payload(weekIndex=5, startTime="11:00", endTime="12:00"), "id": "missing"},
        headers=auth(student_token),
    )
    assert unknown_edit.status_code == 404


def test_timetable_changes_are_audited(client, admin_secret):
    student, student_token, admin_token = setup_accounts(client, admin_secret)
    client.post("/api/timetable/class", json=class_payload(), headers=auth(student_token))

    logs = client.get(
        "/api/activity/logs",
        params={"action": "timetable.class.add"},
        headers=auth(admin_token),
    )
    assert logs.status_code == 200
    entries = logs.json()
    assert len(entries) == 1
    assert entries[0]["user_id"] == student["id"]
    assert entries[0]["actor_role"] == "student"
    assert entries[0]["entity_type"] == "class_session"
    assert entries[0]["details"]["day"] == "Monday"

    assert client.get("/api/activity/logs", headers=auth(student_token)).status_code == 403


def test_week_index_must_be_a_real_integer(client, admin_secret):
    _, student_token, _ = setup_accounts(client, admin_secret)

    as_string = client.post("/api/timetable/class", json=class_payload(weekIndex="3"), headers=auth(student_token))
    assert as_string.status_code == 422
    assert as_string.json()["details"]["errors"][0]["loc"] == ["body", "weekIndex"]

    as_bool = client.post("/api/timetable/class", json=class_payload(weekIndex=True), headers=auth(student_token))
    assert as_bool.status_code == 422

    delete_with_string = client.request(
        "DELETE",
        "/api/timetable/class",
        json={"weekIndex": "0", "day": "Monday", "id": "c1"},
        headers=auth(student_token),
    )
    assert delete_with_string.status_code == 422

    assert client.get("/api/timetable", headers=auth(student_token)).status_code == 404


def test_week_index_is_bounded(client, admin_secret):
    _, student_token, _ = setup_accounts(client, admin_secret)

    oversized = client.post(
        "/api/timetable/class",
        json=class_payload(weekIndex=200_000),
        headers=auth(student_token),
    )
    assert oversized.status_code == 400
    assert oversized.json()["details"] == {"field": "weekIndex", "max_weeks": 104}

    last = client.post("/api/timetable/class", json=class_payload(weekIndex=103), headers=auth(student_token))
    assert last.status_code == 201
    assert len(last.json()["schedule"]) == 104


def test_validation_errors_use_the_app_error_shape(client, admin_secret):
    _, student_token, _ = setup_accounts(client, admin_secret)
    payload = class_payload()
    del payload["room"]

    response = client.post("/api/timetable/class", json=payload, headers=auth(student_token))
    assert response.status_code == 422
    body = response.json()
    assert body["message"] == "Request validation failed"
    assert "detail" not in body
    assert [error["loc"] for error in body["details"]["errors"]] == [["body", "room"]]
