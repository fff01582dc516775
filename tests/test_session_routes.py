import pytest

pytest.importorskip("httpx", reason="httpx requis pour les tests client FastAPI")

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.main import create_app


@pytest.fixture
def client(registry):
    app = create_app(registry=registry)
    with TestClient(app) as c:
        yield c


def _create(client):
    response = client.post("/api/sessions")
    assert response.status_code == 201
    return response.json()


def _join(client, code, name="Avery"):
    response = client.post(f"/api/sessions/{code}/join", json={"name": name})
    assert response.status_code == 201
    return response.json()["playerId"]


# ---------------------------------------------------------------------------
# REST
# ---------------------------------------------------------------------------
def test_create_and_join(client):
    created = _create(client)
    assert len(created["code"]) == 5
    assert created["hostSecret"]

    joined = client.post(f"/api/sessions/{created['code'].lower()}/join", json={"name": "  Avery "})
    assert joined.status_code == 201
    body = joined.json()
    assert body["code"] == created["code"]
    assert body["name"] == "Avery"
    assert body["playerId"]


def test_join_errors(client):
    code = _create(client)["code"]

    missing = client.post("/api/sessions/00000/join", json={"name": "Avery"})
    assert missing.status_code == 404
    assert missing.json() == {"error": "Session not found"}

    blank = client.post(f"/api/sessions/{code}/join", json={"name": "   "})
    assert blank.status_code == 400
    assert blank.json() == {"error": "Name is required"}

    bad_json = client.post(
        f"/api/sessions/{code}/join",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert bad_json.status_code == 400
    assert bad_json.json() == {"error": "Invalid JSON body"}


def test_bulk_roles_and_alive(client):
    created = _create(client)
    code, secret = created["code"], created["hostSecret"]
    pid = _join(client, code)

    roles = client.post(f"/api/sessions/{code}/roles", json={"hostSecret": secret, "roles": ["Werewolf"]})
    assert roles.status_code == 200
    assert roles.json() == {"assigned": 1}

    alive = client.post(f"/api/sessions/{code}/players/{pid}", json={"hostSecret": secret, "alive": False})
    assert alive.status_code == 200
    assert alive.json() == {"ok": True}


def test_explicit_assignments_and_single_role(client):
    created = _create(client)
    code, secret = created["code"], created["hostSecret"]
    pid = _join(client, code)

    explicit = client.post(
        f"/api/sessions/{code}/roles",
        json={"hostSecret": secret, "assignments": [{"playerId": pid, "role": "Seer"}, {"playerId": "ghost"}]},
    )
    assert explicit.status_code == 200
    assert explicit.json() == {"ok": True, "updated": 1}

    single = client.post(f"/api/sessions/{code}/players/{pid}/role", json={"hostSecret": secret, "role": None})
    assert single.status_code == 200
    assert single.json() == {"ok": True}

    neither = client.post(f"/api/sessions/{code}/roles", json={"hostSecret": secret})
    assert neither.status_code == 400


def test_host_calls_reject_bad_secret_and_unknown_code_alike(client):
    created = _create(client)
    code = created["code"]
    pid = _join(client, code)

    wrong = client.post(f"/api/sessions/{code}/players/{pid}", json={"hostSecret": "nope", "alive": False})
    unknown = client.post(f"/api/sessions/00000/players/{pid}", json={"hostSecret": "nope", "alive": False})
    assert wrong.status_code == 403
    assert wrong.json() == {"error": "Invalid host secret"}
    assert unknown.status_code == 403
    assert unknown.json() == wrong.json()

    roles = client.post(f"/api/sessions/{code}/roles", json={"roles": ["Werewolf"]})
    assert roles.status_code == 403


def test_alive_validation_and_unknown_player(client):
    created = _create(client)
    code, secret = created["code"], created["hostSecret"]
    pid = _join(client, code)

    no_flag = client.post(f"/api/sessions/{code}/players/{pid}", json={"hostSecret": secret})
    assert no_flag.status_code == 400
    assert no_flag.json() == {"error": "alive flag is required"}

    not_bool = client.post(f"/api/sessions/{code}/players/{pid}", json={"hostSecret": secret, "alive": "false"})
    assert not_bool.status_code == 400

    ghost = client.post(f"/api/sessions/{code}/players/ghost", json={"hostSecret": secret, "alive": False})
    assert ghost.status_code == 404
    assert ghost.json() == {"error": "Player not found"}


# ---------------------------------------------------------------------------
# SSE
# ---------------------------------------------------------------------------
def test_player_stream_for_unknown_player_is_terminal(client):
    code = _create(client)["code"]
    response = client.get(f"/api/sessions/{code}/stream", params={"playerId": "ghost"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert 'event: player_state\ndata: {"id":"ghost","missing":true}\n\n' in response.text


def test_stream_rejections(client):
    code = _create(client)["code"]
    assert client.get(f"/api/sessions/{code}/stream").status_code == 400
    assert client.get("/api/sessions/00000/stream", params={"playerId": "x"}).status_code == 404
    forbidden = client.get(f"/api/sessions/{code}/host-stream", params={"hostSecret": "nope"})
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "Invalid host secret"}


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------
def test_host_socket_receives_live_updates(client):
    created = _create(client)
    code, secret = created["code"], created["hostSecret"]

    with client.websocket_connect(f"/ws/sessions/{code}/host?hostSecret={secret}") as ws:
        first = ws.receive_json()
        assert first == {"type": "session_update", "payload": {"code": code, "players": []}}

        pid = _join(client, code)
        joined = ws.receive_json()
        assert joined["payload"]["players"] == [{"id": pid, "name": "Avery", "role": None, "alive": True}]

        client.post(f"/api/sessions/{code}/roles", json={"hostSecret": secret, "roles": ["Werewolf"]})
        client.post(f"/api/sessions/{code}/players/{pid}", json={"hostSecret": secret, "alive": False})
        ws.receive_json()
        final = ws.receive_json()
        assert final["payload"]["players"] == [{"id": pid, "name": "Avery", "role": "Werewolf", "alive": False}]

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_socket_ignores_binary_and_non_json_frames(client):
    created = _create(client)
    code, secret = created["code"], created["hostSecret"]

    with client.websocket_connect(f"/ws/sessions/{code}/host?hostSecret={secret}") as ws:
        ws.receive_json()
        ws.send_bytes(b"\x00\x01")
        ws.send_text("not json")
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_socket_disconnect_releases_subscriptions(client):
    created = _create(client)
    code, secret = created["code"], created["hostSecret"]
    pid = _join(client, code)

    with client.websocket_connect(f"/ws/sessions/{code}/host?hostSecret={secret}") as host:
        host.receive_json()
        with client.websocket_connect(f"/ws/sessions/{code}/player/{pid}") as player:
            player.receive_json()
            player.receive_json()
            assert client.get("/health").json()["subscribers"] == {"host": 1, "players": 1}

    assert client.get("/health").json()["subscribers"] == {"host": 0, "players": 0}


def test_host_socket_rejects_bad_secret(client):
    code = _create(client)["code"]
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/sessions/{code}/host?hostSecret=nope"):
            pass
    assert exc.value.code == 4403


def test_player_socket_worked_example(client):
    created = _create(client)
    code, secret = created["code"], created["hostSecret"]
    pid = _join(client, code)

    with client.websocket_connect(f"/ws/sessions/{code}/player/{pid}") as ws:
        state = ws.receive_json()
        assert state == {"type": "player_state", "payload": {"id": pid, "name": "Avery", "role": None, "alive": True}}
        roster = ws.receive_json()
        assert roster["type"] == "roster_update"

        other = _join(client, code, "Blake")
        roster = ws.receive_json()
        assert [p["id"] for p in roster["payload"]["players"]] == [pid, other]
        assert all("role" not in p for p in roster["payload"]["players"])

        client.post(
            f"/api/sessions/{code}/roles",
            json={"hostSecret": secret, "assignments": [{"playerId": other, "role": "Seer"}, {"playerId": pid, "role": "Werewolf"}]},
        )
        mine = ws.receive_json()
        assert mine["payload"] == {"id": pid, "name": "Avery", "role": "Werewolf", "alive": True}

        client.post(f"/api/sessions/{code}/players/{pid}", json={"hostSecret": secret, "alive": False})
        mine = ws.receive_json()
        assert mine["payload"] == {"id": pid, "name": "Avery", "role": "Werewolf", "alive": False}
        roster = ws.receive_json()
        assert roster["type"] == "roster_update"


def test_player_socket_unknown_player_gets_missing_then_close(client):
    code = _create(client)["code"]
    with client.websocket_connect(f"/ws/sessions/{code}/player/ghost") as ws:
        assert ws.receive_json() == {"type": "player_state", "payload": {"id": "ghost", "missing": True}}
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


def test_player_socket_unknown_session(client):
    _create(client)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/sessions/00000/player/ghost"):
            pass
    assert exc.value.code == 4404


# ---------------------------------------------------------------------------
# Santé
# ---------------------------------------------------------------------------
def test_health_counts(client):
    code = _create(client)["code"]
    _join(client, code)
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["sessions"] == 1
    assert body["players"] == 1
    assert body["subscribers"] == {"host": 0, "players": 0}
