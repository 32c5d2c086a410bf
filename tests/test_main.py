"""Tests for the schedule view HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from clinic_slots.main import create_app
from clinic_slots.store import InMemoryStore


@pytest.fixture
def tokens() -> list:
    return []


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def client(service, tokens, store):
    """Test client whose views all talk to the mocked backend."""

    def factory(token):
        tokens.append(token)
        return service

    with TestClient(create_app(service_factory=factory, store=store)) as test_client:
        yield test_client


@pytest.fixture
def session_id(client) -> str:
    response = client.post("/doctors/7/schedule/sessions")
    assert response.status_code == 200
    return response.json()["session_id"]


class TestSessions:
    def test_open_session_loads_schedule(self, client, tokens):
        """Opening a view loads the schedule with the caller's token."""
        response = client.post(
            "/doctors/7/schedule/sessions", headers={"Authorization": "Bearer abc123"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ws_url"].endswith(f"/sessions/{data['session_id']}/events")
        view = data["view"]
        assert view["doctor_id"] == 7
        assert view["phase"] == "ready"
        assert view["is_loading"] is False
        assert [d["date"] for d in view["days"]] == ["Friday, March 15, 2024", "Saturday, March 16, 2024"]
        assert view["days"][0]["time_windows"][0]["time"] == "09:00 - 10:00"
        assert len(view["buffer"]["rows"]) == 1
        assert tokens == ["abc123"]

    def test_open_session_with_failed_load(self, client, service):
        """A failed first fetch still opens an empty view."""
        service.list_slots.return_value = {"isSuccess": False}

        response = client.post("/doctors/7/schedule/sessions")

        view = response.json()["view"]
        assert view["days"] == []
        assert view["load_error"]

    def test_reload_after_failed_load(self, client, service, backend_schedules):
        """Reload is the manual retry after a failed fetch."""
        service.list_slots.return_value = {"isSuccess": False}
        session_id = client.post("/doctors/7/schedule/sessions").json()["session_id"]
        service.list_slots.return_value = {"isSuccess": True, "schedules": backend_schedules}

        data = client.post(f"/sessions/{session_id}/reload").json()

        assert data["ok"] is True
        assert len(data["view"]["days"]) == 2
        assert data["view"]["load_error"] is None

    def test_failed_reload_keeps_days(self, client, session_id, service):
        """A reload that fails keeps the days already shown."""
        service.list_slots.return_value = {"isSuccess": False}

        data = client.post(f"/sessions/{session_id}/reload").json()

        assert data["ok"] is False
        assert [d["key"] for d in data["view"]["days"]] == ["2024-03-15", "2024-03-16"]
        assert data["view"]["load_error"]
        assert data["view"]["phase"] == "ready"

    def test_unknown_session_is_404(self, client):
        """Unknown view ids are not found."""
        assert client.get("/sessions/missing").status_code == 404

    def test_close_session(self, client, session_id, store):
        """Deleting a view closes its controller."""
        controller = store.get_session(session_id).controller

        assert client.delete(f"/sessions/{session_id}").status_code == 204

        assert controller.closed
        assert client.get(f"/sessions/{session_id}").status_code == 404


class TestEditing:
    def test_edit_day_and_submit(self, client, session_id, service):
        """Edit, change a row and submit through the routes."""
        view = client.post(f"/sessions/{session_id}/days/0/edit").json()
        assert view["phase"] == "editing"
        assert view["buffer"]["editing"] == "2024-03-15"

        client.delete(f"/sessions/{session_id}/buffer/rows/1")
        client.patch(f"/sessions/{session_id}/buffer/rows/0", json={"capacity": "10", "end_time": "10:30"})
        response = client.post(f"/sessions/{session_id}/submit")

        data = response.json()
        assert data["ok"] is True
        day = data["view"]["days"][0]
        assert day["time_windows"] == [
            {"id": 1, "time": "09:00 - 10:30", "start_time": "09:00", "end_time": "10:30", "capacity": 10, "active": True}
        ]
        assert data["view"]["phase"] == "ready"
        service.update_slots.assert_awaited_once()

    def test_add_day_with_display_date(self, client, session_id):
        """The buffer date accepts the long display form."""
        client.put(f"/sessions/{session_id}/buffer/date", json={"date": "Monday, March 18, 2024"})
        client.patch(
            f"/sessions/{session_id}/buffer/rows/0",
            json={"start_time": "08:00", "end_time": "09:00", "capacity": "2"},
        )

        data = client.post(f"/sessions/{session_id}/submit").json()

        assert data["ok"] is True
        assert [d["key"] for d in data["view"]["days"]] == ["2024-03-15", "2024-03-16", "2024-03-18"]

    def test_remove_last_row_is_refused(self, client, session_id):
        """The only row cannot be removed."""
        data = client.delete(f"/sessions/{session_id}/buffer/rows/0").json()

        assert data["ok"] is False
        assert len(data["view"]["buffer"]["rows"]) == 1

    def test_add_row(self, client, session_id):
        """Adding a row returns 201 with the new row."""
        response = client.post(f"/sessions/{session_id}/buffer/rows")

        assert response.status_code == 201
        assert len(response.json()["buffer"]["rows"]) == 2

    def test_bad_time_is_422_and_row_unchanged(self, client, session_id):
        """A malformed time leaves the row untouched."""
        before = client.get(f"/sessions/{session_id}").json()["buffer"]["rows"][0]

        response = client.patch(
            f"/sessions/{session_id}/buffer/rows/0", json={"start_time": "07:00", "end_time": "late"}
        )

        assert response.status_code == 422
        assert client.get(f"/sessions/{session_id}").json()["buffer"]["rows"][0] == before

    def test_bad_date_is_422(self, client, session_id):
        """Unparseable dates are rejected."""
        response = client.put(f"/sessions/{session_id}/buffer/date", json={"date": "whenever"})

        assert response.status_code == 422

    def test_missing_row_is_404(self, client, session_id):
        """Unknown row indices are not found."""
        response = client.patch(f"/sessions/{session_id}/buffer/rows/4", json={"capacity": "1"})

        assert response.status_code == 404

    def test_reset_buffer(self, client, session_id):
        """Reset drops the edit and returns to the add form."""
        client.post(f"/sessions/{session_id}/days/1/edit")

        view = client.post(f"/sessions/{session_id}/buffer/reset").json()

        assert view["phase"] == "ready"
        assert view["buffer"]["editing"] is None

    def test_invalid_submit_reports_notification(self, client, session_id, service):
        """Invalid rows become an error notification, not a save."""
        data = client.post(f"/sessions/{session_id}/submit").json()

        assert data["ok"] is False
        service.update_slots.assert_not_awaited()
        notifications = client.get(f"/sessions/{session_id}/notifications").json()
        assert notifications[-1]["level"] == "error"


class TestToggle:
    def test_toggle_window(self, client, session_id):
        """Toggling flips the window and notifies success."""
        data = client.post(f"/sessions/{session_id}/days/0/windows/1/toggle").json()

        assert data["ok"] is True
        assert data["view"]["days"][0]["time_windows"][1]["active"] is True
        notifications = client.get(f"/sessions/{session_id}/notifications").json()
        assert notifications[-1]["message"] == "Slots updated successfully"

    def test_toggle_missing_window_is_404(self, client, session_id):
        """Unknown windows are not found."""
        assert client.post(f"/sessions/{session_id}/days/0/windows/9/toggle").status_code == 404

    def test_failed_toggle_keeps_view(self, client, session_id, service):
        """A rejected toggle keeps the previous flag."""
        service.update_slots.return_value = {"status": "nope"}

        data = client.post(f"/sessions/{session_id}/days/0/windows/1/toggle").json()

        assert data["ok"] is False
        assert data["view"]["days"][0]["time_windows"][1]["active"] is False


class TestEvents:
    def test_websocket_receives_notifications(self, client, session_id):
        """Notifications are pushed to connected websockets."""
        with client.websocket_connect(f"/sessions/{session_id}/events") as websocket:
            assert websocket.receive_json()["type"] == "status"

            client.post(f"/sessions/{session_id}/days/0/edit")
            message = websocket.receive_json()
            assert message["type"] == "notification"
            assert message["payload"]["level"] == "info"
            assert message["payload"]["message"] == "Now editing slots for Friday, March 15, 2024"

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json()["type"] == "pong"


def test_health(client):
    """The health endpoint answers ok."""
    assert client.get("/health").json() == {"status": "ok"}
