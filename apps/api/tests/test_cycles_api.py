"""
Cycles API: planning periods with prioritized projects.
"""
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from services.periods import local_today


def today() -> date:
    return local_today(datetime.now(timezone.utc))


def create_cycle(client, **fields):
    payload = {
        "name": "Sprint",
        "start_date": (today() - timedelta(days=2)).isoformat(),
        "end_date": (today() + timedelta(days=4)).isoformat(),
        **fields,
    }
    resp = client.post("/api/cycles", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCycleCrud:
    def test_create_and_get(self, auth_client, project):
        cycle = create_cycle(auth_client, goals="Draft chapter 3", priority_project_ids=[project["id"], project["id"]])
        assert cycle["period"] == "week"
        # Repeats collapse, order is kept
        assert cycle["priority_project_ids"] == [project["id"]]

        fetched = auth_client.get(f"/api/cycles/{cycle['id']}").json()
        assert fetched["goals"] == "Draft chapter 3"

    def test_end_before_start_is_422(self, auth_client):
        resp = auth_client.post("/api/cycles", json={
            "name": "Backwards", "start_date": "2026-10-10", "end_date": "2026-10-09",
        })
        assert resp.status_code == 422

    def test_patch_end_before_start_is_422(self, auth_client):
        cycle = create_cycle(auth_client)
        resp = auth_client.patch(f"/api/cycles/{cycle['id']}", json={"end_date": "2000-01-01"})
        assert resp.status_code == 422

    def test_unknown_period_is_422(self, auth_client):
        resp = auth_client.post("/api/cycles", json={
            "name": "x", "period": "fortnight", "start_date": "2026-10-10", "end_date": "2026-10-11",
        })
        assert resp.status_code == 422

    def test_unknown_priority_project_is_404(self, auth_client):
        resp = auth_client.post("/api/cycles", json={
            "name": "x", "start_date": "2026-10-10", "end_date": "2026-10-11",
            "priority_project_ids": [str(uuid4())],
        })
        assert resp.status_code == 404

    def test_patch_priorities_and_delete(self, auth_client, project):
        other = auth_client.post("/api/projects", json={"name": "Side"}).json()
        cycle = create_cycle(auth_client)

        resp = auth_client.patch(f"/api/cycles/{cycle['id']}", json={"priority_project_ids": [other["id"], project["id"]]})
        assert resp.status_code == 200
        assert resp.json()["priority_project_ids"] == [other["id"], project["id"]]

        assert auth_client.delete(f"/api/cycles/{cycle['id']}").status_code == 204
        assert auth_client.get(f"/api/cycles/{cycle['id']}").status_code == 404

    def test_deleted_project_leaves_priorities(self, auth_client, project):
        other = auth_client.post("/api/projects", json={"name": "Side"}).json()
        cycle = create_cycle(auth_client, priority_project_ids=[project["id"], other["id"]])

        assert auth_client.delete(f"/api/projects/{project['id']}").status_code == 204
        fetched = auth_client.get(f"/api/cycles/{cycle['id']}").json()
        assert fetched["priority_project_ids"] == [other["id"]]

    def test_list_newest_first(self, auth_client):
        create_cycle(auth_client, name="old", start_date="2026-01-01", end_date="2026-01-07")
        create_cycle(auth_client, name="new", start_date="2026-02-01", end_date="2026-02-07")
        assert [c["name"] for c in auth_client.get("/api/cycles").json()] == ["new", "old"]


class TestCurrentCycle:
    def test_no_current_cycle_is_404(self, auth_client):
        create_cycle(auth_client, start_date="2000-01-01", end_date="2000-01-07")
        assert auth_client.get("/api/cycles/current").status_code == 404

    def test_most_recent_start_wins(self, auth_client):
        create_cycle(auth_client, name="month", period="custom",
                     start_date=(today() - timedelta(days=20)).isoformat(),
                     end_date=(today() + timedelta(days=10)).isoformat())
        create_cycle(auth_client, name="today", period="day",
                     start_date=today().isoformat(), end_date=today().isoformat())

        resp = auth_client.get("/api/cycles/current")
        assert resp.status_code == 200
        assert resp.json()["name"] == "today"
