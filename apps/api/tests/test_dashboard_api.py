"""
Dashboard API: today and week views.
"""
from datetime import datetime, timedelta, timezone

from services.periods import day_window, local_today, week_window


def today_start() -> datetime:
    return day_window(local_today(datetime.now(timezone.utc)))[0]


class TestToday:
    def test_today_view(self, auth_client, project):
        start = today_start()
        auth_client.post("/api/time/entries", json={
            "project_id": project["id"],
            "start_time": (start + timedelta(hours=1)).isoformat(),
            "end_time": (start + timedelta(hours=1, minutes=45)).isoformat(),
        })
        # Yesterday's entry is outside the window
        auth_client.post("/api/time/entries", json={
            "project_id": project["id"],
            "start_time": (start - timedelta(hours=3)).isoformat(),
            "end_time": (start - timedelta(hours=2)).isoformat(),
        })
        auth_client.post("/api/calendar/events", json={
            "title": "Standup",
            "start_time": (start + timedelta(hours=9)).isoformat(),
            "end_time": (start + timedelta(hours=9, minutes=15)).isoformat(),
        })
        auth_client.post("/api/tasks", json={"title": "due today", "due_date": (start + timedelta(hours=12)).isoformat()})

        resp = auth_client.get("/api/dashboard/today")
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["date"] == local_today(datetime.now(timezone.utc)).isoformat()
        assert body["minutes_tracked_today"] == 45
        assert [e["title"] for e in body["events"]] == ["Standup"]
        assert [t["title"] for t in body["tasks"]["due"]] == ["due today"]
        assert body["running_entry"] is None

    def test_running_entry_is_reported(self, auth_client, project):
        entry = auth_client.post("/api/time/start", json={"project_id": project["id"]}).json()
        body = auth_client.get("/api/dashboard/today").json()
        assert body["running_entry"]["id"] == entry["id"]


class TestWeek:
    def test_seven_days_with_per_project_minutes(self, auth_client, project):
        week_start, week_end = week_window(local_today(datetime.now(timezone.utc)))
        side = auth_client.post("/api/projects", json={"name": "Side"}).json()

        for project_id, day, minutes in ((project["id"], 0, 60), (side["id"], 0, 30), (project["id"], 2, 90)):
            start = week_start + timedelta(days=day, hours=8)
            auth_client.post("/api/time/entries", json={
                "project_id": project_id,
                "start_time": start.isoformat(),
                "end_time": (start + timedelta(minutes=minutes)).isoformat(),
            })
        # Entry crossing midnight is split across both days
        late = week_start + timedelta(days=3, hours=23)
        auth_client.post("/api/time/entries", json={
            "project_id": project["id"],
            "start_time": late.isoformat(),
            "end_time": (late + timedelta(hours=2)).isoformat(),
        })

        resp = auth_client.get("/api/dashboard/week")
        assert resp.status_code == 200, resp.text
        body = resp.json()
        days = body["days"]

        assert len(days) == 7
        assert days[0]["minutes_tracked"] == 90
        assert days[0]["minutes_by_project"] == {project["id"]: 60, side["id"]: 30}
        assert days[1]["minutes_tracked"] == 0
        assert days[2]["minutes_tracked"] == 90
        assert days[3]["minutes_tracked"] == 60
        assert days[4]["minutes_tracked"] == 60
        assert body["total_minutes"] == 300
        assert week_end - week_start == timedelta(days=7)
