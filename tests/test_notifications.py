"""Tests for app.notifications: persistence, post-commit push and the WebSocket channel."""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from starlette.websockets import WebSocketDisconnect

from app import notifications
from app.errors import NotFoundError
from app.models import Notification
from app.notifications import ConnectionRegistry, find_all_for_user, mark_all_read, mark_read, notify, unread_count
from app.proposals import propose_alternative_date
from app.scheduling import accept_directly
from app.security import create_access_token


# ── Connection registry ────────────────────────────────────────────────

class TestConnectionRegistry:
    def test_push_reaches_every_handle(self):
        registry = ConnectionRegistry()
        first, second = AsyncMock(), AsyncMock()
        registry.connect(7, first)
        registry.connect(7, second)

        delivered = asyncio.run(registry.push(7, {"type": "new", "message": "hi"}))

        assert delivered == 2
        first.send_json.assert_awaited_once_with({"type": "new", "message": "hi"})

    def test_failed_handle_is_dropped(self):
        registry = ConnectionRegistry()
        good, dead = AsyncMock(), AsyncMock()
        dead.send_json.side_effect = RuntimeError("socket closed")
        registry.connect(7, good)
        registry.connect(7, dead)

        delivered = asyncio.run(registry.push(7, {"type": "new"}))

        assert delivered == 1
        assert registry.connection_count(7) == 1

    def test_push_to_unknown_user(self):
        assert asyncio.run(ConnectionRegistry().push(99, {"type": "new"})) == 0

    def test_disconnect_removes_user(self):
        registry = ConnectionRegistry()
        handle = AsyncMock()
        registry.connect(3, handle)
        registry.disconnect(3, handle)
        assert registry.connection_count() == 0

    def test_dispatch_without_loop_is_noop(self):
        assert ConnectionRegistry().dispatch(1, {"type": "new"}) is None


# ── notify() and the commit hook ───────────────────────────────────────

class TestNotify:
    def test_rows_persisted_per_user(self, db, client_user, technician):
        notify(db, [client_user.id, technician.id, None], "updated", "Something changed")
        db.commit()

        assert unread_count(db, client_user.id) == 1
        assert unread_count(db, technician.id) == 1

    def test_push_dispatched_after_commit(self, db, pending_request, technician, client_user):
        with patch.object(notifications.registry, "dispatch") as mock_dispatch:
            accept_directly(db, pending_request.id, technician.id)

        mock_dispatch.assert_called_once()
        user_id, payload = mock_dispatch.call_args.args
        assert user_id == client_user.id
        assert payload["type"] == "accepted"
        assert payload["serviceRequest"]["id"] == pending_request.id
        assert payload["serviceRequest"]["status"] == "scheduled"

    def test_removed_event_hides_other_counter_offers(self, db, pending_request, technician,
                                                      second_technician, tomorrow_at):
        propose_alternative_date(db, pending_request.id, second_technician.id, tomorrow_at(15))

        with patch.object(notifications.registry, "dispatch") as mock_dispatch:
            accept_directly(db, pending_request.id, technician.id)

        sent = {call.args[0]: call.args[1] for call in mock_dispatch.call_args_list}
        assert sent[second_technician.id]["type"] == "removed"
        for payload in sent.values():
            assert "proposals" not in payload["serviceRequest"]

    def test_rollback_discards_push_and_row(self, db, client_user):
        db.query(Notification).count()  # open a transaction
        with patch.object(notifications.registry, "dispatch") as mock_dispatch:
            notify(db, [client_user.id], "updated", "Never sent")
            db.rollback()
            db.commit()

        mock_dispatch.assert_not_called()
        assert db.query(Notification).count() == 0


# ── Inbox ──────────────────────────────────────────────────────────────

class TestInbox:
    def test_newest_first_and_read_flags(self, db, client_user):
        notify(db, [client_user.id], "updated", "first")
        db.commit()
        notify(db, [client_user.id], "updated", "second")
        db.commit()

        messages = [n.message for n in find_all_for_user(db, client_user.id)]
        assert messages == ["second", "first"]

        newest = find_all_for_user(db, client_user.id)[0]
        assert mark_read(db, newest.id, client_user.id).read is True
        assert unread_count(db, client_user.id) == 1
        assert [n.message for n in find_all_for_user(db, client_user.id, unread_only=True)] == ["first"]

        assert mark_all_read(db, client_user.id) == 1
        assert unread_count(db, client_user.id) == 0

    def test_cannot_mark_someone_elses(self, db, client_user, other_client):
        row = notify(db, [client_user.id], "updated", "private")[0]
        db.commit()

        with pytest.raises(NotFoundError):
            mark_read(db, row.id, other_client.id)


class TestNotificationRoutes:
    def test_list_and_read(self, client, db, client_user, auth_headers):
        row = notify(db, [client_user.id], "updated", "hello")[0]
        db.commit()
        headers = auth_headers(client_user)

        resp = client.get("/notifications", headers=headers)
        assert resp.status_code == 200
        assert [n["message"] for n in resp.json()] == ["hello"]

        assert client.get("/notifications/unread-count", headers=headers).json() == {"count": 1}
        resp = client.post(f"/notifications/{row.id}/read", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["read"] is True
        assert client.post("/notifications/read-all", headers=headers).json() == {"updated": 0}

    def test_requires_token(self, client):
        assert client.get("/notifications").status_code == 401


# ── WebSocket ──────────────────────────────────────────────────────────

class TestWebSocket:
    def test_rejects_bad_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws?token=not-a-jwt"):
                pass

    def test_ping_pong(self, client, client_user):
        token = create_access_token(client_user)
        with client.websocket_connect(f"/ws?token={token}") as ws:
            assert ws.receive_json() == {"type": "connected", "userId": client_user.id}
            ws.send_text("ping")
            assert ws.receive_json() == {"type": "pong"}

    def test_accept_pushes_to_client(self, client, pending_request, client_user, technician, auth_headers):
        token = create_access_token(client_user)
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()  # connected

            resp = client.post(f"/service-requests/{pending_request.id}/accept", headers=auth_headers(technician))
            assert resp.status_code == 200

            event = ws.receive_json()

        assert event["type"] == "accepted"
        assert event["serviceRequest"]["id"] == pending_request.id
        assert event["serviceRequest"]["technician_id"] == technician.id
        assert "proposal" not in event
