"""End-to-end tests over the FastAPI app using TestClient."""

from fastapi.testclient import TestClient

from chatrelay.main import app


def _join(ws, username, room=None):
    payload = {"action": "join", "username": username}
    if room is not None:
        payload["room"] = room
    ws.send_json(payload)
    return [ws.receive_json() for _ in range(3)]


def test_join_chat_and_leave(app_state) -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as alice:
            events = _join(alice, "alice")
            assert [e["type"] for e in events] == ["members-update", "joined-ack", "history-snapshot"]
            assert events[2] == {"type": "history-snapshot", "room": "general", "messages": []}

            with client.websocket_connect("/ws") as bob:
                _join(bob, "bob")
                joined = alice.receive_json()
                assert joined["type"] == "user-joined"
                assert joined["username"] == "bob"
                members = alice.receive_json()
                assert [m["username"] for m in members["members"]] == ["alice", "bob"]

                bob.send_json({"action": "message", "text": "hello alice"})
                for ws in (alice, bob):
                    event = ws.receive_json()
                    assert event["type"] == "message-event"
                    assert event["username"] == "bob"
                    assert event["text"] == "hello alice"

                bob.send_json({"action": "typing", "active": True})
                assert alice.receive_json() == {"type": "typing-event", "username": "bob", "active": True}

            left = alice.receive_json()
            assert left["type"] == "user-left"
            assert left["username"] == "bob"
            assert [m["username"] for m in alice.receive_json()["members"]] == ["alice"]

    assert len(app_state.registry) == 0
    assert app_state.router.connection_count() == 0


def test_duplicate_username_gets_error_and_stays_connected(app_state) -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
            _join(first, "alice", "lobby")

            second.send_json({"action": "join", "username": "alice", "room": "lobby"})
            error = second.receive_json()
            assert error == {
                "type": "error",
                "kind": "ConflictError",
                "message": "Username already taken in this room",
            }

            events = _join(second, "alice2", "lobby")
            assert events[1]["type"] == "joined-ack"


def test_rejoin_is_a_state_error(app_state) -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            _join(ws, "alice")
            ws.send_json({"action": "join", "username": "alice", "room": "other"})
            assert ws.receive_json()["kind"] == "StateError"


def test_malformed_frames_become_error_events(app_state) -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_text("this is not json")
            assert ws.receive_json() == {"type": "error", "kind": "ValidationError", "message": "Invalid JSON"}

            ws.send_json({"action": "dance"})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["kind"] == "ValidationError"

            ws.send_json({"action": "typing", "active": "sometimes"})
            assert ws.receive_json()["kind"] == "ValidationError"

            ws.send_json({"action": "join", "username": "   "})
            assert ws.receive_json() == {
                "type": "error",
                "kind": "ValidationError",
                "message": "Username is required",
            }

            # connection still usable
            assert _join(ws, "alice")[1]["type"] == "joined-ack"


def test_actions_before_join_are_ignored(app_state) -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"action": "message", "text": "too early"})
            ws.send_json({"action": "typing", "active": True})
            ws.send_json({"action": "change-room", "room": "elsewhere"})
            events = _join(ws, "alice")
            assert events[0]["type"] == "members-update"
            assert events[2]["messages"] == []


def test_private_message_and_change_room(app_state) -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
            _join(alice, "alice", "a")
            _join(bob, "bob", "b")

            alice.send_json({"action": "private", "target_username": "bob", "text": "psst"})
            received = bob.receive_json()
            assert received["type"] == "private-event"
            assert received["from_username"] == "alice"
            ack = alice.receive_json()
            assert ack["type"] == "private-ack"
            assert ack["to_username"] == "bob"

            alice.send_json({"action": "private", "target_username": "nobody", "text": "hi"})
            assert alice.receive_json()["kind"] == "NotFoundError"

            alice.send_json({"action": "change-room", "room": "b"})
            assert bob.receive_json()["type"] == "user-joined"
            assert bob.receive_json()["type"] == "members-update"
            moved = [alice.receive_json() for _ in range(3)]
            assert [e["type"] for e in moved] == ["members-update", "joined-ack", "history-snapshot"]
            assert moved[1]["room"] == "b"

    assert app_state.directory.all_rooms() == []


def test_http_views(app_state) -> None:
    with TestClient(app) as client:
        assert client.get("/").json()["endpoints"]["websocket"] == "/ws"

        with client.websocket_connect("/ws") as ws:
            _join(ws, "alice", "news")
            ws.send_json({"action": "message", "text": "extra extra"})
            assert ws.receive_json()["type"] == "message-event"

            health = client.get("/health").json()
            assert health["status"] == "OK"
            assert health["connections"] == 1
            assert health["rooms"] == 1

            stats = client.get("/api/stats").json()
            assert stats["total_users"] == 1
            assert stats["rooms"] == [{"name": "news", "user_count": 1}]
            assert stats["messages_sent"] == 1

            users = client.get("/api/users").json()
            assert [u["username"] for u in users] == ["alice"]

            messages = client.get("/api/messages/news").json()
            assert [m["text"] for m in messages] == ["extra extra"]

        assert client.get("/api/messages/unknown").json() == []


def test_binary_frame_gets_error_and_connection_stays_open(app_state) -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\x00\x01")
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["kind"] == "ValidationError"

            assert _join(ws, "alice")[1]["type"] == "joined-ack"
