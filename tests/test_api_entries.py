"""
Tests for the entry, timer and reference API routes.
"""

import uuid
from datetime import UTC, datetime, timedelta

import pytest


def iso(value: datetime) -> str:
    return value.isoformat()


@pytest.fixture
def now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


@pytest.fixture
def created(api_client, auth_headers, now):
    """A two-hour entry starting just after midnight UTC today."""
    day_start = now.replace(hour=0, minute=1, second=0)
    response = api_client.post(
        "/entries",
        json={
            "description": "API work",
            "started_at": iso(day_start),
            "stopped_at": iso(day_start + timedelta(hours=2)),
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()


class TestIdentityHeaders:
    """Tests for caller identity resolution."""

    def test_missing_user_header(self, api_client):
        response = api_client.get("/timer")

        assert response.status_code == 401

    def test_malformed_user_header(self, api_client):
        response = api_client.get("/timer", headers={"X-User-Id": "nope"})

        assert response.status_code == 400

    def test_unknown_user(self, api_client, sample_user):
        response = api_client.get("/timer", headers={"X-User-Id": str(uuid.uuid4())})

        assert response.status_code == 401


class TestEntriesApi:
    """Tests for /entries."""

    def test_create_and_get(self, api_client, auth_headers, created):
        assert created["total_duration_seconds"] == 7200
        assert created["segments"][0]["type"] == "manual"

        response = api_client.get(f"/entries/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["description"] == "API work"

    def test_create_inverted_interval(self, api_client, auth_headers, now):
        response = api_client.post(
            "/entries",
            json={"started_at": iso(now), "stopped_at": iso(now - timedelta(hours=1))},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_list_groups_by_day(self, api_client, auth_headers, created, now):
        today = now.date().isoformat()

        response = api_client.get(
            "/entries", params={"from": today, "to": today}, headers=auth_headers
        )

        assert response.status_code == 200
        groups = response.json()
        assert len(groups) == 1
        assert groups[0]["date"] == today
        assert groups[0]["total_seconds"] == 7200
        assert groups[0]["entries"][0]["id"] == created["id"]

    def test_list_default_range(self, api_client, auth_headers, created):
        response = api_client.get("/entries", headers=auth_headers)

        assert response.status_code == 200
        ids = [e["id"] for g in response.json() for e in g["entries"]]
        assert created["id"] in ids

    def test_list_inverted_range(self, api_client, auth_headers):
        response = api_client.get(
            "/entries",
            params={"from": "2026-03-12", "to": "2026-03-11"},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_patch_is_sparse(self, api_client, auth_headers, created, sample_project):
        entry_url = f"/entries/{created['id']}"
        api_client.patch(
            entry_url, json={"project_id": str(sample_project.id)}, headers=auth_headers
        )

        response = api_client.patch(
            entry_url, json={"description": "Renamed"}, headers=auth_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["description"] == "Renamed"
        assert body["project_id"] == str(sample_project.id)

    def test_other_users_entry_forbidden(self, api_client, created, other_user):
        response = api_client.get(
            f"/entries/{created['id']}", headers={"X-User-Id": str(other_user.id)}
        )

        assert response.status_code == 403

    def test_missing_entry_not_found(self, api_client, auth_headers):
        response = api_client.get(f"/entries/{uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == 404

    def test_delete_and_restore(self, api_client, auth_headers, created):
        entry_url = f"/entries/{created['id']}"

        assert api_client.delete(entry_url, headers=auth_headers).status_code == 204
        assert api_client.get(entry_url, headers=auth_headers).status_code == 404
        deleted = api_client.get(
            entry_url, params={"include_deleted": True}, headers=auth_headers
        )
        assert deleted.json()["is_active"] is False

        restored = api_client.post(f"{entry_url}/restore", headers=auth_headers)
        assert restored.status_code == 200
        assert restored.json()["is_active"] is True

        again = api_client.post(f"{entry_url}/restore", headers=auth_headers)
        assert again.status_code == 404

    def test_adjust(self, api_client, auth_headers, created):
        response = api_client.post(
            f"/entries/{created['id']}/adjust",
            json={"duration_seconds": -1800, "note": "Lunch"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["total_duration_seconds"] == 5400

    def test_adjust_requires_note(self, api_client, auth_headers, created):
        response = api_client.post(
            f"/entries/{created['id']}/adjust",
            json={"duration_seconds": 600, "note": " "},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_split(self, api_client, auth_headers, created):
        response = api_client.post(
            f"/entries/{created['id']}/split",
            json={"duration_seconds": 1800},
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["total_duration_seconds"] == 1800
        source = api_client.get(f"/entries/{created['id']}", headers=auth_headers)
        assert source.json()["total_duration_seconds"] == 5400
        residue = source.json()["segments"][-1]
        assert residue["link"]["kind"] == "split"
        assert residue["link"]["target_entry_id"] == response.json()["id"]

    def test_split_too_large(self, api_client, auth_headers, created):
        response = api_client.post(
            f"/entries/{created['id']}/split",
            json={"duration_seconds": 7200},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_move_block(self, api_client, auth_headers, created):
        segment_id = created["segments"][0]["id"]

        response = api_client.post(
            f"/entries/{created['id']}/move-block",
            json={"segment_id": segment_id},
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["description"] == "API work (1)"
        assert response.json()["total_duration_seconds"] == 7200

    def test_audit_trail(self, api_client, auth_headers, created):
        api_client.post(
            f"/entries/{created['id']}/adjust",
            json={"duration_seconds": 60, "note": "Rounding"},
            headers=auth_headers,
        )

        response = api_client.get(
            f"/entries/{created['id']}/audit", headers=auth_headers
        )

        assert response.status_code == 200
        assert [e["action"] for e in response.json()] == [
            "adjustment_added",
            "created",
        ]
        assert response.json()[0]["actor_name"] == "Ada Lovelace"

    def test_impersonation_records_actor(
        self, api_client, sample_user, other_user, now
    ):
        headers = {"X-User-Id": str(sample_user.id), "X-Actor-Id": str(other_user.id)}
        created = api_client.post(
            "/entries",
            json={
                "started_at": iso(now - timedelta(hours=1)),
                "stopped_at": iso(now),
            },
            headers=headers,
        ).json()

        events = api_client.get(
            f"/entries/{created['id']}/audit",
            headers={"X-User-Id": str(sample_user.id)},
        ).json()

        assert created["user_id"] == str(sample_user.id)
        assert events[0]["actor_id"] == str(other_user.id)
        assert events[0]["actor_name"] == "Grace Hopper"


class TestTimerApi:
    """Tests for /timer."""

    def test_start_stop(self, api_client, auth_headers):
        started = api_client.post(
            "/timer/start", json={"description": "Focus"}, headers=auth_headers
        )
        assert started.status_code == 200
        assert started.json()["running"] is True

        current = api_client.get("/timer", headers=auth_headers)
        assert current.json()["entry"]["id"] == started.json()["entry"]["id"]

        stopped = api_client.post("/timer/stop", headers=auth_headers)
        assert stopped.status_code == 200
        assert stopped.json()["running"] is False

    def test_start_without_body(self, api_client, auth_headers):
        response = api_client.post("/timer/start", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["entry"]["description"] == ""

    def test_stop_without_timer(self, api_client, auth_headers):
        response = api_client.post("/timer/stop", headers=auth_headers)

        assert response.status_code == 404

    def test_resume(self, api_client, auth_headers, created):
        response = api_client.post(
            f"/timer/resume/{created['id']}", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["running"] is True
        assert len(response.json()["entry"]["segments"]) == 2


class TestReferenceApi:
    """Tests for /projects, /labels and /stats."""

    def test_projects(self, api_client, auth_headers, sample_project):
        response = api_client.get("/projects", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == [
            {
                "id": str(sample_project.id),
                "name": "Website Redesign",
                "color": "#FF8800",
                "client_name": "Acme Corp",
            }
        ]

    def test_labels(self, api_client, auth_headers, sample_labels):
        response = api_client.get("/labels", headers=auth_headers)

        assert [label["name"] for label in response.json()] == ["billable", "meeting"]

    def test_stats(self, api_client, auth_headers, created):
        response = api_client.get("/stats", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["today_seconds"] == 7200
        assert response.json()["week_seconds"] >= 7200


class TestRootEndpoints:
    """Tests for / and /health."""

    def test_root(self, api_client):
        response = api_client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health(self, api_client):
        response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] in {"healthy", "unhealthy"}
