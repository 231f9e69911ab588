# Test the series route of the API

import pytest
import sys
import os
from fastapi.testclient import TestClient

# Add parent directories to path to import app modules
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))
import unit_test_utils
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..', 'app'))
from app import app
from routers import series

HEADERS = {"X-Creator-Id": "uid-1", "X-Creator-Handle": "alice"}


@pytest.fixture
def series_store():
    """Serve every request in a test from one fresh memory store."""
    series_store = unit_test_utils.new_series_store()
    app.dependency_overrides[series.get_series_store] = lambda: series_store
    yield series_store
    app.dependency_overrides.clear()

def series_body(**recurrence):
    return {
        "name": "Team",
        "recurrence": recurrence or {"type": "daily", "interval": 2, "end_type": "afterOccurrences", "occurrences_count": 5},
        "event": {"title": "Standup", "description": "Daily sync", "participants": ["uid-2"]},
        "first_start": "2024-01-01T09:00:00",
        "first_end": "2024-01-01T09:30:00",
    }

def test_series_lifecycle(series_store):
    """Test create, read, list and delete for an event series."""
    client = TestClient(app)

    # Create a new series to work with
    response = client.post("/series/", json=series_body(), headers=HEADERS)
    assert response.status_code == 200
    created = response.json()
    series_id = created["series_id"]
    assert created["occurrence_ids"] == [f"{series_id}-{index:04d}" for index in range(5)]
    assert created["truncated"] is False

    # Verify the series definition can be fetched
    response = client.get(f"/series/{series_id}")
    assert response.status_code == 200
    fetched = response.json()
    assert fetched["name"] == "Team"
    assert fetched["creator_handle"] == "alice"
    assert fetched["recurrence"]["occurrences_count"] == 5
    assert fetched["base_event_data"]["participants"] == ["uid-1", "uid-2"]

    # List the occurrences in order
    response = client.get(f"/series/{series_id}/occurrences")
    assert response.status_code == 200
    occurrences = response.json()
    assert [o["selected_date"] for o in occurrences] == [
        "2024-01-01", "2024-01-03", "2024-01-05", "2024-01-07", "2024-01-09",
    ]
    assert all(o["title"] == "Team: Standup" for o in occurrences)
    assert all(o["is_series"] for o in occurrences)
    assert occurrences[0]["start"].startswith("2024-01-01T09:00:00")

    # Delete the series and everything in it
    response = client.delete(f"/series/{series_id}")
    assert response.status_code == 200
    assert "5 occurrences" in response.json()["message"]
    assert client.get(f"/series/{series_id}").status_code == 404
    assert client.get(f"/series/{series_id}/occurrences").json() == []

def test_create_series_with_form_style_days(series_store):
    client = TestClient(app)
    body = series_body(type="monthly", days_of_month="1, 15", end_type="onDate", end_date="2024-02-15")
    response = client.post("/series/", json=body, headers=HEADERS)
    assert response.status_code == 200
    occurrences = client.get(f"/series/{response.json()['series_id']}/occurrences").json()
    assert [o["selected_date"] for o in occurrences] == ["2024-01-01", "2024-01-15", "2024-02-01", "2024-02-15"]

def test_create_series_invalid_rule(series_store):
    client = TestClient(app)
    response = client.post("/series/", json=series_body(type="daily", interval=0), headers=HEADERS)
    assert response.status_code == 400
    assert "Interval" in response.json()["detail"]

    body = series_body(type="weekly", days_of_week=[1], days_of_month=[1])
    assert client.post("/series/", json=body, headers=HEADERS).status_code == 400
    assert series_store.store.get("event_series") is None

def test_create_series_malformed_body(series_store):
    client = TestClient(app)
    assert client.post("/series/", json=series_body(type="hourly"), headers=HEADERS).status_code == 422
    assert client.post("/series/", json=series_body(), headers={"X-Creator-Id": "uid-1"}).status_code == 422

def test_create_series_truncated(series_store):
    client = TestClient(app)
    response = client.post("/series/", json=series_body(type="daily"), headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["truncated"] is True
    assert len(response.json()["occurrence_ids"]) == 730

def test_create_series_store_failure():
    failing = unit_test_utils.FailingStore(lambda path: True)
    app.dependency_overrides[series.get_series_store] = lambda: unit_test_utils.new_series_store(failing)
    try:
        client = TestClient(app)
        response = client.post("/series/", json=series_body(), headers=HEADERS)
        assert response.status_code == 500
    finally:
        app.dependency_overrides.clear()

def test_preview_series(series_store):
    client = TestClient(app)
    body = series_body(type="weekly", days_of_week=[1, 3], end_type="afterOccurrences", occurrences_count=4)
    del body["name"], body["event"]
    response = client.post("/series/preview", json=body)
    assert response.status_code == 200
    assert [w["selected_date"] for w in response.json()] == ["2024-01-01", "2024-01-03", "2024-01-08", "2024-01-10"]
    assert series_store.store.get("events") is None

    body["recurrence"]["interval"] = 0
    assert client.post("/series/preview", json=body).status_code == 400

def test_materialize_series(series_store):
    client = TestClient(app)
    created = client.post("/series/", json=series_body(), headers=HEADERS).json()
    response = client.post(f"/series/{created['series_id']}/materialize")
    assert response.status_code == 200
    assert response.json()["occurrence_ids"] == created["occurrence_ids"]
    assert len(series_store.store.get("events")) == 5
    assert client.post("/series/missing/materialize").status_code == 404

def test_delete_missing_series(series_store):
    client = TestClient(app)
    assert client.delete("/series/missing").status_code == 404

def test_delete_series_partial_failure():
    failing = unit_test_utils.FailingStore(lambda path: False)
    series_store = unit_test_utils.new_series_store(failing)
    app.dependency_overrides[series.get_series_store] = lambda: series_store
    try:
        client = TestClient(app)
        created = client.post("/series/", json=series_body(), headers=HEADERS).json()
        broken = created["occurrence_ids"][1]
        failing.fails_on = lambda path: path == f"events/{broken}"
        response = client.delete(f"/series/{created['series_id']}")
        assert response.status_code == 500
        assert broken in response.json()["detail"]

        # Retrying once the store recovers removes what was left
        failing.fails_on = lambda path: False
        response = client.delete(f"/series/{created['series_id']}")
        assert response.status_code == 200
        assert "1 occurrences" in response.json()["message"]
        assert client.get(f"/series/{created['series_id']}/occurrences").json() == []
        assert client.delete(f"/series/{created['series_id']}").status_code == 404
    finally:
        app.dependency_overrides.clear()

def test_delete_occurrences_left_without_series_record(series_store):
    client = TestClient(app)
    created = client.post("/series/", json=series_body(), headers=HEADERS).json()
    series_store.store.remove(f"event_series/{created['series_id']}")

    response = client.delete(f"/series/{created['series_id']}")
    assert response.status_code == 200
    assert client.get(f"/series/{created['series_id']}/occurrences").json() == []

def test_create_series_handle_unusable_as_key(series_store):
    client = TestClient(app)
    headers = {"X-Creator-Id": "uid-1", "X-Creator-Handle": "john.doe"}
    response = client.post("/series/", json=series_body(), headers=headers)
    assert response.status_code == 400
    assert series_store.store.get("event_series") is None
    assert series_store.store.get("events") is None
