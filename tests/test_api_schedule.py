from rosterboard.models import AuditLog, EmployeeSchedule


def save(api_client, items, employee_id=1, day="2025-01-10"):
    response = api_client.post("/api/schedule", json={"employeeId": employee_id, "date": day, "items": items})
    assert response.status_code == 200, response.text
    return response.json()


def test_save_and_read_back_bucket(api_client):
    result = save(
        api_client,
        [
            {"type": "status", "id": 1},
            {"type": "client", "clientId": 5, "scheduleTypeId": None},
            {"type": "status", "id": 3, "withEmployeeId": 7},
        ],
    )

    assert result["markers"] == ["status-1", "client-5", "with_7_status-3"]

    response = api_client.get("/api/schedule", params={"startDate": "2025-01-01", "endDate": "2025-01-31"})
    assert response.json() == {"1": {"2025-01-10": ["status-1", "client-5", "with_7_status-3"]}}


def test_save_is_a_full_replace(api_client, seeded_db):
    save(api_client, [{"type": "status", "id": 1}, {"type": "client", "clientId": 6}])
    result = save(api_client, [{"type": "client", "clientId": 6}])

    assert result["markers"] == ["client-6"]
    assert result["deleted"] == 1
    assert seeded_db.query(EmployeeSchedule).count() == 1


def test_empty_items_clear_the_day(api_client):
    save(api_client, [{"type": "status", "id": 1}])
    save(api_client, [])

    assert api_client.get("/api/schedule").json() == {}


def test_state_survives_bare_to_typed_swap(api_client):
    save(api_client, [{"type": "client", "clientId": 5}])
    response = api_client.post(
        "/api/schedule-state",
        json={"employeeId": 1, "date": "2025-01-10", "statusId": "client-5", "stateName": "completed"},
    )
    assert response.status_code == 200

    save(
        api_client,
        [
            {"type": "client-with-type", "clientId": 5, "scheduleTypeId": 2},
            {"type": "client-with-type", "clientId": 5, "scheduleTypeId": 3},
        ],
    )

    states = api_client.get("/api/schedule-states", params={"employeeId": 1}).json()["states"]
    assert sorted(s["status_id"] for s in states) == ["client-5_type-2", "client-5_type-3"]
    assert {s["state_name"] for s in states} == {"completed"}


def test_duplicate_items_are_stored_once(api_client):
    result = save(api_client, [{"type": "status", "id": 1}, {"type": "status", "id": "1"}])

    assert result["markers"] == ["status-1"]


def test_unknown_employee_is_404(api_client):
    response = api_client.post("/api/schedule", json={"employeeId": 99, "date": "2025-01-10", "items": []})

    assert response.status_code == 404


def test_invalid_items_are_rejected(api_client):
    response = api_client.post(
        "/api/schedule",
        json={"employeeId": 1, "date": "2025-01-10", "items": [{"type": "client-with-type", "clientId": 5}]},
    )
    assert response.status_code == 400

    response = api_client.post(
        "/api/schedule",
        json={"employeeId": 1, "date": "2025-01-10", "items": [{"type": "vacation"}]},
    )
    assert response.status_code == 422


def test_range_needs_both_ends(api_client):
    assert api_client.get("/api/schedule", params={"startDate": "2025-01-01"}).status_code == 400


def test_saves_are_audited(api_client, seeded_db):
    save(api_client, [{"type": "status", "id": 1}])
    save(api_client, [{"type": "status", "id": 2}])

    logs = seeded_db.query(AuditLog).order_by(AuditLog.id).all()
    assert [log.action for log in logs] == ["CREATE", "UPDATE"]
    assert logs[1].before == {"markers": ["status-1"]}
    assert logs[1].after == {"markers": ["status-2"]}
    assert logs[1].user_email == "planner@example.com"
    assert logs[1].record_id == "1:2025-01-10"


def test_catalog_endpoints(api_client):
    employees = api_client.get("/api/employees").json()["data"]
    assert [e["name"] for e in employees] == ["Alice", "Bob", "Grace"]

    assert api_client.get("/api/employees/7").json()["name"] == "Grace"
    assert api_client.get("/api/employees/99").status_code == 404
    assert api_client.get("/api/clients/5").json()["name"] == "Acme"
    assert api_client.get("/api/schedule-types/2").json()["type_name"] == "Installation"

    labels = [s["label"] for s in api_client.get("/api/statuses").json()["data"]]
    assert labels == ["Office", "Sick Leave", "With ..."]

    combined = api_client.get("/api/combined-options").json()
    assert [o["type"] for o in combined["data"]] == ["status"] * 3 + ["client"] * 2


def test_health(api_client):
    assert api_client.get("/api/health").json() == {"status": "healthy"}
