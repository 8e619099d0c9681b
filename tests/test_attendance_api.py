from datetime import datetime


def attendance_rows(client, event_id):
    response = client.get("/attendance", params={"eventId": event_id})
    assert response.status_code == 200
    return response.json()


def test_single_record_defaults_to_am_in(client, seeded):
    response = client.post("/attendance", json={
        "student_id": seeded["ana"], "event_id": seeded["event_id"],
    })

    assert response.status_code == 201
    assert response.json() == {"message": "Attendance recorded", "recorded": 1}

    rows = attendance_rows(client, seeded["event_id"])
    assert len(rows) == 1
    assert (rows[0]["session"], rows[0]["type"]) == ("AM", "IN")
    assert rows[0]["time_recorded"] == "2026-03-14T08:10:00"
    assert rows[0]["first_name"] == "Ana"
    assert rows[0]["event_name"] == "Foundation Day"


def test_list_and_wrapped_payloads(client, seeded):
    event_id = seeded["event_id"]

    as_list = client.post("/attendance", json=[
        {"student_id": seeded["ana"], "event_id": event_id, "session": "pm", "type": "out"},
        {"student_id": seeded["ben"], "event_id": event_id},
    ])
    wrapped = client.post("/attendance", json={"records": [
        {"student_id": seeded["ben"], "event_id": event_id, "session": "PM", "type": "IN"},
    ]})

    assert as_list.json()["recorded"] == 2
    assert wrapped.json()["recorded"] == 1
    slots = sorted((r["student_id"], r["session"], r["type"]) for r in attendance_rows(client, event_id))
    assert slots == sorted([
        (seeded["ana"], "PM", "OUT"),
        (seeded["ben"], "AM", "IN"),
        (seeded["ben"], "PM", "IN"),
    ])


def test_repeated_record_updates_time_only(client, seeded, clock):
    record = {"student_id": seeded["ana"], "event_id": seeded["event_id"], "session": "AM", "type": "IN"}
    client.post("/attendance", json=record)

    clock.now = datetime(2026, 3, 14, 8, 20)
    response = client.post("/attendance", json=record)

    assert response.status_code == 201
    rows = attendance_rows(client, seeded["event_id"])
    assert len(rows) == 1
    assert rows[0]["time_recorded"] == "2026-03-14T08:20:00"
    assert rows[0]["recorded_at"] == "2026-03-14T08:10:00"


def test_records_without_event_are_skipped(client, seeded):
    response = client.post("/attendance", json={"student_id": seeded["ana"]})

    assert response.status_code == 201
    assert response.json()["recorded"] == 0
    assert attendance_rows(client, seeded["event_id"]) == []


def test_invalid_batch_writes_nothing(client, seeded):
    response = client.post("/attendance", json=[
        {"student_id": seeded["ana"], "event_id": seeded["event_id"]},
        {"event_id": seeded["event_id"], "session": "AM"},
    ])

    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid attendance record 1")
    assert attendance_rows(client, seeded["event_id"]) == []


def test_empty_batch_is_rejected(client, seeded):
    response = client.post("/attendance", json=[])

    assert response.status_code == 400
    assert response.json()["message"] == "No attendance records provided"


def test_unknown_student_is_rejected(client, seeded):
    response = client.post("/attendance", json={"student_id": 9999, "event_id": seeded["event_id"]})

    assert response.status_code == 400
    assert response.json()["message"] == "Unknown student or event"


def test_listing_without_event_adds_status(client, seeded):
    event_id = seeded["event_id"]
    client.post("/attendance", json=[
        {"student_id": seeded["ana"], "event_id": event_id, "type": "IN"},
        {"student_id": seeded["ana"], "event_id": event_id, "type": "OUT"},
    ])

    rows = client.get("/attendance").json()

    assert {(r["type"], r["status"]) for r in rows} == {("IN", "PRESENT"), ("OUT", "CHECKED_OUT")}


def test_fine_manager_can_read_but_not_record(client, seeded, login):
    login("fine_manager")

    assert client.get("/attendance").status_code == 200
    denied = client.post("/attendance", json={"student_id": seeded["ana"], "event_id": seeded["event_id"]})
    assert denied.status_code == 403


def test_summary_prorates_fines(client, seeded):
    event_id = seeded["event_id"]
    client.post("/attendance", json=[
        {"student_id": seeded["ana"], "event_id": event_id, "session": "AM", "type": "IN"},
        {"student_id": seeded["ben"], "event_id": event_id, "session": "AM", "type": "IN"},
        {"student_id": seeded["ben"], "event_id": event_id, "session": "PM", "type": "OUT"},
    ])

    response = client.get("/attendance/summary", params={"eventId": event_id})

    assert response.status_code == 200
    summaries = {s["student_id"]: s for s in response.json()}
    ana = summaries[seeded["ana"]]
    assert ana["sessions"]["AM"] == {"in": "08:10", "out": None}
    assert ana["sessions_attended"] == 1
    assert ana["status_text"] == "PARTIAL"
    assert ana["fine"] == 75
    assert ana["fine_display"] == "75.00"

    ben = summaries[seeded["ben"]]
    assert ben["sessions_attended"] == 2
    assert ben["status_text"] == "PRESENT"
    assert ben["fine_display"] == "50.00"


def test_summary_filters(client, seeded):
    event_id = seeded["event_id"]
    client.post("/attendance", json=[
        {"student_id": seeded["ana"], "event_id": event_id},
        {"student_id": seeded["ben"], "event_id": event_id},
        {"student_id": seeded["ben"], "event_id": event_id, "session": "PM"},
    ])

    def ids(**params):
        response = client.get("/attendance/summary", params=params)
        assert response.status_code == 200
        return sorted(s["student_id"] for s in response.json())

    assert ids(search="reyes") == [seeded["ben"]]
    assert ids(status="partial") == [seeded["ana"]]
    assert ids(courseId=seeded["course_id"]) == sorted([seeded["ana"], seeded["ben"]])
    assert ids(eventId=event_id + 1) == []
    assert client.get("/attendance/summary", params={"status": "late"}).status_code == 400
