import inspect

from smart_timetable.api.routes import generator


def generate_payload(**overrides):
    payload = {
        "program": "B.Ed",
        "semester": 1,
        "optimizationLevel": "low",
        "maxGenerations": 3,
        "randomSeed": 11,
    }
    payload.update(overrides)
    return payload


def entry_payload(entry_id, **overrides):
    payload = {
        "id": entry_id,
        "courseId": "c1",
        "facultyId": "f1",
        "roomId": "r1",
        "day": "Monday",
        "timeSlot": "09:00 - 10:00",
        "startTime": "09:00",
        "endTime": "10:00",
    }
    payload.update(overrides)
    return payload


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_generate_persist_and_fetch(client):
    response = client.post("/api/timetables/generate", json=generate_payload(persist=True))
    assert response.status_code == 200
    body = response.json()
    assert len(body["schedule"]) == 3
    assert body["schedule"][0]["courseId"] in {"c1", "c2"}
    assert 0 <= body["qualityScore"] <= 100
    assert body["optimization"]["generations"] == 3

    listing = client.get("/api/timetables", params={"program": "B.Ed"})
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [body["id"]]

    fetched = client.get(f"/api/timetables/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["schedule"] == body["schedule"]


def test_generate_without_persist_stores_nothing(client):
    response = client.post("/api/timetables/generate", json=generate_payload())
    assert response.status_code == 200
    assert client.get("/api/timetables").json() == []


def test_generate_unknown_program_is_404(client):
    response = client.post("/api/timetables/generate", json=generate_payload(program="M.Ed"))
    assert response.status_code == 404
    assert response.json() == {
        "message": "No courses found for M.Ed Semester 1",
        "details": {"program": "M.Ed", "semester": 1},
    }


def test_generate_rejects_invalid_request(client):
    response = client.post("/api/timetables/generate", json=generate_payload(semester=0))
    assert response.status_code == 422


def test_unknown_timetable_is_404(client):
    response = client.get("/api/timetables/missing-id")
    assert response.status_code == 404
    assert response.json()["message"] == "Timetable with id missing-id not found"


def test_programs_and_system_stats(client):
    programs = client.get("/api/timetables/programs")
    assert programs.status_code == 200
    assert programs.json() == {"B.Ed": [1, 2]}

    stats = client.get("/api/system/stats")
    assert stats.status_code == 200
    body = stats.json()
    assert body["courses"] == 3
    assert body["systemCapacity"]["maxSimultaneousClasses"] == 2


def test_detect_conflicts_endpoint(client):
    response = client.post(
        "/api/conflicts/detect",
        json={
            "schedule": [
                entry_payload("e1"),
                entry_payload("e2", courseId="c2", roomId="r2"),
            ]
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["summary"]["total"] == 1
    conflict = body["conflicts"][0]
    assert conflict["type"] == "faculty_double_booking"
    assert conflict["severity"] == 5
    assert conflict["facultyId"] == "f1"


def test_resolve_conflicts_endpoint(client):
    response = client.post(
        "/api/conflicts/resolve",
        json={
            "schedule": [
                entry_payload("e1"),
                entry_payload("e2", courseId="c2", facultyId="f2"),
            ],
            "maxIterations": 10,
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["remainingConflicts"] == []
    assert body["resolvedConflicts"][0]["conflict"]["type"] == "room_double_booking"


def test_optimize_endpoint_reports_optimal(client):
    response = client.post("/api/timetables/optimize", json={"schedule": [entry_payload("e1")]})
    assert response.status_code == 200
    assert response.json()["status"] == "optimal"


def test_oversized_request_is_rejected(client):
    response = client.post(
        "/api/conflicts/detect",
        content=b"{}",
        headers={"content-type": "application/json", "content-length": "999999999"},
    )
    assert response.status_code == 413


def test_generate_route_runs_in_threadpool():
    # Plain def routes are dispatched to FastAPI's threadpool, off the event loop.
    assert not inspect.iscoroutinefunction(generator.generate_timetable)
