"""
Projects API: CRUD, validation, reorder, summary and the weekly overview.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from services.periods import local_today, week_window


def this_week_start() -> datetime:
    now = datetime.now(timezone.utc)
    return week_window(local_today(now))[0]


def log_time(client, project_id, start, minutes):
    resp = client.post("/api/time/entries", json={
        "project_id": project_id,
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(minutes=minutes)).isoformat(),
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestProjectCrud:
    def test_create_defaults(self, auth_client):
        resp = auth_client.post("/api/projects", json={"name": "Garden"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "on-track"
        assert body["hours_per_week"] is None
        assert body["display_order"] == 0
        assert body["created_at"] and body["updated_at"]

    def test_display_order_appends(self, auth_client):
        first = auth_client.post("/api/projects", json={"name": "A"}).json()
        second = auth_client.post("/api/projects", json={"name": "B"}).json()
        assert second["display_order"] == first["display_order"] + 1

    @pytest.mark.parametrize("payload", [
        {"name": ""},
        {"name": "x", "color": "blue"},
        {"name": "x", "hours_per_week": -1},
        {"name": "x", "hours_per_week": 169},
        {"name": "x", "status": "paused"},
    ])
    def test_validation(self, auth_client, payload):
        assert auth_client.post("/api/projects", json=payload).status_code == 422

    def test_patch_only_touches_sent_fields(self, auth_client, project):
        resp = auth_client.patch(f"/api/projects/{project['id']}", json={"status": "blocked", "next_action": "email advisor"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "blocked"
        assert body["next_action"] == "email advisor"
        assert body["hours_per_week"] == 15
        assert body["name"] == "Thesis"

    def test_patch_can_clear_target(self, auth_client, project):
        resp = auth_client.patch(f"/api/projects/{project['id']}", json={"hours_per_week": None})
        assert resp.json()["hours_per_week"] is None

    def test_list_hides_archived_by_default(self, auth_client, project):
        archived = auth_client.post("/api/projects", json={"name": "Old", "status": "archived"}).json()

        ids = [p["id"] for p in auth_client.get("/api/projects").json()]
        assert project["id"] in ids and archived["id"] not in ids

        ids = [p["id"] for p in auth_client.get("/api/projects", params={"include_archived": True}).json()]
        assert archived["id"] in ids

        only = auth_client.get("/api/projects", params={"status": "archived"}).json()
        assert [p["id"] for p in only] == [archived["id"]]

    def test_get_unknown_is_404(self, auth_client):
        resp = auth_client.get(f"/api/projects/{uuid4()}")
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "NOT_FOUND"

    def test_delete_cascades_to_tasks_and_entries(self, auth_client, project):
        task = auth_client.post("/api/tasks", json={"title": "Outline", "project_id": project["id"]}).json()
        log_time(auth_client, project["id"], datetime(2026, 1, 5, 9, tzinfo=timezone.utc), 30)

        assert auth_client.delete(f"/api/projects/{project['id']}").status_code == 204
        assert auth_client.get(f"/api/tasks/{task['id']}").status_code == 404
        assert auth_client.get("/api/time/entries").json() == []


class TestReorder:
    def test_reorder_sets_positions(self, auth_client):
        a, b, c = (auth_client.post("/api/projects", json={"name": n}).json() for n in "ABC")
        resp = auth_client.post("/api/projects/reorder", json={"ids": [c["id"], a["id"]]})
        assert resp.status_code == 200

        listed = auth_client.get("/api/projects").json()
        assert [p["name"] for p in listed] == ["C", "A", "B"]
        assert [p["display_order"] for p in listed] == [0, 1, 2]

    def test_reorder_rejects_duplicates(self, auth_client, project):
        resp = auth_client.post("/api/projects/reorder", json={"ids": [project["id"], project["id"]]})
        assert resp.status_code == 422

    def test_reorder_unknown_id_is_404(self, auth_client, project):
        resp = auth_client.post("/api/projects/reorder", json={"ids": [project["id"], str(uuid4())]})
        assert resp.status_code == 404


class TestWeeklyNumbers:
    def test_overview_shows_hours_against_target(self, auth_client, project):
        week_start = this_week_start()
        log_time(auth_client, project["id"], week_start + timedelta(hours=1), 300)          # 5h
        log_time(auth_client, project["id"], week_start + timedelta(days=1, hours=1), 450)  # 7.5h
        # Last week's work does not count
        log_time(auth_client, project["id"], week_start - timedelta(days=2), 600)

        resp = auth_client.get("/api/dashboard/overview")
        assert resp.status_code == 200
        overview = resp.json()
        row = next(p for p in overview["projects"] if p["project_id"] == project["id"])

        assert row["hours_this_week"] == 12.5
        assert row["target"] == 15
        assert row["target_met"] is False
        assert overview["total_hours_this_week"] == 12.5
        assert overview["total_target_hours"] == 15
        # The stored status is never rewritten by the hint
        assert row["status"] == "on-track"

    def test_summary(self, auth_client, project):
        week_start = this_week_start()
        log_time(auth_client, project["id"], week_start + timedelta(hours=2), 90)
        auth_client.post("/api/tasks", json={"title": "a", "project_id": project["id"], "completed": True})
        auth_client.post("/api/tasks", json={"title": "b", "project_id": project["id"]})

        resp = auth_client.get(f"/api/projects/{project['id']}/summary")
        assert resp.status_code == 200
        summary = resp.json()
        assert summary["project"]["id"] == project["id"]
        assert summary["hours_this_week"] == 1.5
        assert summary["target"] == 15
        assert summary["task_count"] == 2
        assert summary["completed_task_count"] == 1
        assert summary["open_task_count"] == 1

    def test_no_target_means_unknown(self, auth_client):
        p = auth_client.post("/api/projects", json={"name": "Reading"}).json()
        row = next(r for r in auth_client.get("/api/dashboard/overview").json()["projects"] if r["project_id"] == p["id"])
        assert row["target"] is None
        assert row["progress_pct"] is None
        assert row["target_met"] is None
        assert row["suggested_status"] is None
