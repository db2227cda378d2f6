from datetime import date, datetime

import models

MON_WED_FRI = {"pattern": "weekly", "interval": 1, "daysOfWeek": [1, 3, 5], "endType": "never"}


def create_event(client, **fields):
    payload = {
        "title": "Site meeting",
        "start_time": "2024-01-01T09:00:00",
        "end_time": "2024-01-01T10:00:00",
        **fields,
    }
    response = client.post("/api/events/", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def get_occurrences(client, start, end, **params):
    response = client.get("/api/events/occurrences", params={"start": start, "end": end, **params})
    assert response.status_code == 200, response.text
    return response.json()


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def test_create_and_get_event(client):
    event = create_event(client, location="Lot 12", recurrence=MON_WED_FRI)
    assert event["recurrence"]["daysOfWeek"] == [1, 3, 5]

    response = client.get(f"/api/events/{event['id']}")
    assert response.status_code == 200
    assert response.json()["location"] == "Lot 12"

    assert len(client.get("/api/events/").json()) == 1


def test_update_event(client):
    event_id = create_event(client)["id"]

    response = client.patch(f"/api/events/{event_id}", json={"title": "Framing review"})
    assert response.status_code == 200
    assert response.json()["title"] == "Framing review"
    assert response.json()["start_time"] == "2024-01-01T09:00:00"


def test_delete_event(client):
    event_id = create_event(client)["id"]

    assert client.delete(f"/api/events/{event_id}").status_code == 200
    assert client.get(f"/api/events/{event_id}").status_code == 404
    assert client.delete(f"/api/events/{event_id}").status_code == 404


def test_end_before_start_is_rejected(client):
    response = client.post("/api/events/", json={
        "title": "Backwards",
        "start_time": "2024-01-01T10:00:00",
        "end_time": "2024-01-01T09:00:00",
    })
    assert response.status_code == 400

    event_id = create_event(client)["id"]
    response = client.patch(f"/api/events/{event_id}", json={"end_time": "2023-12-31T09:00:00"})
    assert response.status_code == 400


def test_invalid_recurrence_is_rejected(client):
    response = client.post("/api/events/", json={
        "title": "Bad rule",
        "start_time": "2024-01-01T09:00:00",
        "end_time": "2024-01-01T10:00:00",
        "recurrence": {"pattern": "weekly", "daysOfWeek": [7], "endType": "never"},
    })
    assert response.status_code == 400
    assert "Days of week" in response.json()["detail"]


# ---------------------------------------------------------------------------
# Calendar occurrences
# ---------------------------------------------------------------------------

def test_weekly_event_expands_in_window(client):
    event_id = create_event(client, recurrence=MON_WED_FRI)["id"]

    occurrences = get_occurrences(client, "2024-01-01T00:00:00", "2024-01-15T23:59:59")
    assert [o["start_time"][:10] for o in occurrences] == [
        "2024-01-01", "2024-01-03", "2024-01-05", "2024-01-08",
        "2024-01-10", "2024-01-12", "2024-01-15",
    ]

    first = occurrences[0]
    assert first["id"] == f"{event_id}_2024-01-01T09:00:00"
    assert first["parent_event_id"] == event_id
    assert first["is_recurring_instance"] is True
    assert first["end_time"] == "2024-01-01T10:00:00"
    assert first["title"] == "Site meeting"


def test_exceptions_are_skipped(client):
    create_event(client, recurrence={**MON_WED_FRI, "exceptions": ["2024-01-05"]})

    occurrences = get_occurrences(client, "2024-01-01T00:00:00", "2024-01-15T23:59:59")
    assert len(occurrences) == 6
    assert "2024-01-05" not in [o["start_time"][:10] for o in occurrences]


def test_single_events_are_mixed_in_order(client):
    create_event(client, recurrence={"pattern": "daily", "endType": "after", "occurrences": 3})
    single = create_event(client, title="Inspection",
                          start_time="2024-01-02T08:00:00", end_time="2024-01-02T08:30:00")
    create_event(client, title="Out of range",
                 start_time="2024-03-01T08:00:00", end_time="2024-03-01T08:30:00")

    occurrences = get_occurrences(client, "2024-01-01T00:00:00", "2024-01-31T23:59:59")
    assert [o["title"] for o in occurrences] == ["Site meeting", "Inspection", "Site meeting", "Site meeting"]

    inspection = occurrences[1]
    assert inspection["id"] == str(single["id"])
    assert inspection["is_recurring_instance"] is False
    assert inspection["parent_event_id"] is None


def test_corrupt_rule_does_not_break_calendar(client, db_session):
    create_event(client, title="Healthy", recurrence=MON_WED_FRI)
    broken = models.Event(
        title="Broken",
        start_time=datetime(2024, 1, 1, 9, 0),
        end_time=datetime(2024, 1, 1, 10, 0),
        recurrence='{"pattern": "weekly", "daysOfWeek": "oops"',
    )
    db_session.add(broken)
    db_session.commit()

    occurrences = get_occurrences(client, "2024-01-01T00:00:00", "2024-01-15T23:59:59")
    assert len(occurrences) == 7
    assert {o["title"] for o in occurrences} == {"Healthy"}


def test_occurrences_filter_by_project(client):
    create_event(client, project_id=1, recurrence=MON_WED_FRI)
    create_event(client, project_id=2, recurrence=MON_WED_FRI)

    occurrences = get_occurrences(client, "2024-01-01T00:00:00", "2024-01-07T23:59:59", project_id=2)
    assert len(occurrences) == 3
    assert {o["project_id"] for o in occurrences} == {2}


def test_inverted_window_is_rejected(client):
    response = client.get("/api/events/occurrences",
                          params={"start": "2024-02-01T00:00:00", "end": "2024-01-01T00:00:00"})
    assert response.status_code == 400


def test_default_window(client):
    assert client.get("/api/events/occurrences").status_code == 200


# ---------------------------------------------------------------------------
# Recurrence editor helpers
# ---------------------------------------------------------------------------

def test_validate_endpoint(client):
    response = client.post("/api/recurrence/validate", json={"pattern": "daily", "endType": "until"})
    assert response.status_code == 200
    assert response.json() == {"valid": False, "error": "End date is required when ending on a date"}

    response = client.post("/api/recurrence/validate", json={"pattern": "daily", "endType": "never"})
    assert response.json()["valid"] is True


def test_describe_endpoint(client):
    response = client.post("/api/recurrence/describe", json={
        "recurrence": {"pattern": "weekly", "daysOfWeek": [1, 3, 5], "endType": "after", "occurrences": 5},
    })
    assert response.status_code == 200
    assert response.json() == {
        "description": "Weekly on Mon, Wed, Fri", "end_condition": "5 times", "next_occurrence": None,
    }

    response = client.post("/api/recurrence/describe", json={})
    assert response.json() == {"description": "No repeat", "end_condition": "", "next_occurrence": None}


def test_preview_endpoint(client):
    response = client.post("/api/recurrence/preview", json={
        "recurrence": {"pattern": "daily", "endType": "after", "occurrences": 5},
        "start": "2024-01-01T09:00:00",
        "end": "2024-01-01T10:00:00",
        "window_start": "2024-01-01T00:00:00",
        "window_end": "2024-01-31T23:59:59",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["description"] == "Daily"
    assert [o["id"] for o in body["occurrences"]] == [
        f"preview_2024-01-0{d}T09:00:00" for d in range(1, 6)
    ]
    assert body["occurrences"][0]["end"] == "2024-01-01T10:00:00"


def test_preview_respects_iteration_cap(client):
    response = client.post("/api/recurrence/preview", json={
        "recurrence": {"pattern": "daily", "endType": "never"},
        "start": "2024-01-01T09:00:00",
        "window_start": "2024-01-01T00:00:00",
        "window_end": "2030-01-01T00:00:00",
        "max_iterations": 10,
    })
    assert response.status_code == 200
    assert len(response.json()["occurrences"]) == 10


def test_preview_rejects_invalid_rule(client):
    response = client.post("/api/recurrence/preview", json={
        "recurrence": {"pattern": "monthly", "interval": 0, "endType": "never"},
        "start": "2024-01-01T09:00:00",
        "window_start": "2024-01-01T00:00:00",
        "window_end": "2024-01-31T00:00:00",
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Interval must be a positive whole number"


def test_describe_with_due_date(client):
    today = date.today()
    response = client.post("/api/recurrence/describe", json={
        "recurrence": {"pattern": "daily", "endType": "never"},
        "due_date": today.isoformat(),
    })
    assert response.json()["next_occurrence"] == "Tomorrow"

    response = client.post("/api/recurrence/describe", json={
        "recurrence": {"pattern": "daily", "endType": "until", "endDate": today.isoformat()},
        "due_date": today.isoformat(),
    })
    assert response.json()["next_occurrence"] == "Does not repeat"


# ---------------------------------------------------------------------------
# Out-of-range and legacy rules
# ---------------------------------------------------------------------------

HUGE_DAILY = {"pattern": "daily", "interval": 5000000, "endType": "never"}


def test_huge_interval_is_rejected_on_save(client):
    response = client.post("/api/events/", json={
        "title": "Too sparse",
        "start_time": "2024-01-01T09:00:00",
        "end_time": "2024-01-01T10:00:00",
        "recurrence": HUGE_DAILY,
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Interval must be at most 999"


def test_stored_huge_interval_does_not_break_calendar(client, db_session):
    create_event(client, title="Healthy", recurrence=MON_WED_FRI)
    db_session.add(models.Event(
        title="Sparse",
        start_time=datetime(2024, 1, 1, 9, 0),
        end_time=datetime(2024, 1, 1, 10, 0),
        recurrence='{"pattern": "daily", "interval": 5000000, "endType": "never"}',
    ))
    db_session.commit()

    occurrences = get_occurrences(client, "2024-01-01T00:00:00", "2024-01-15T23:59:59")
    assert [o["title"] for o in occurrences].count("Healthy") == 7
    assert [o["start_time"] for o in occurrences if o["title"] == "Sparse"] == ["2024-01-01T09:00:00"]


def test_legacy_scalar_rule_lists_as_non_recurring(client, db_session):
    create_event(client, title="Healthy", recurrence=MON_WED_FRI)
    db_session.add(models.Event(
        title="Legacy",
        start_time=datetime(2024, 1, 2, 9, 0),
        end_time=datetime(2024, 1, 2, 10, 0),
        recurrence='"daily"',
    ))
    db_session.commit()

    response = client.get("/api/events/")
    assert response.status_code == 200
    rules = {e["title"]: e["recurrence"] for e in response.json()}
    assert rules["Legacy"] is None
    assert rules["Healthy"]["daysOfWeek"] == [1, 3, 5]


def test_preview_rejects_huge_interval(client):
    response = client.post("/api/recurrence/preview", json={
        "recurrence": HUGE_DAILY,
        "start": "2024-01-01T09:00:00",
        "window_start": "2024-01-01T00:00:00",
        "window_end": "2024-01-31T00:00:00",
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Interval must be at most 999"


def test_preview_runs_to_end_of_calendar(client):
    response = client.post("/api/recurrence/preview", json={
        "recurrence": {"pattern": "yearly", "interval": 999, "endType": "never"},
        "start": "2024-01-01T09:00:00",
        "window_start": "2024-01-01T00:00:00",
        "window_end": "9999-12-31T23:59:59",
    })
    assert response.status_code == 200
    starts = [o["start"] for o in response.json()["occurrences"]]
    assert len(starts) == 8
    assert starts[-1] == "9017-01-01T09:00:00"


def test_preview_window_in_other_offset(client):
    response = client.post("/api/recurrence/preview", json={
        "recurrence": {"pattern": "daily", "endType": "never"},
        "start": "2024-01-01T09:00:00-12:00",
        "window_start": "2024-01-11T00:30:00+14:00",
        "window_end": "2024-01-12T00:30:00+14:00",
    })
    assert response.status_code == 200
    assert [o["start"] for o in response.json()["occurrences"]] == ["2024-01-10T09:00:00-12:00"]
