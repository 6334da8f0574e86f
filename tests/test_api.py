import pytest
from fastapi.testclient import TestClient

from slotboard.main import create_app

from tests.conftest import submission


@pytest.fixture
def client(database_url):
    with TestClient(create_app(database_url=database_url, heartbeat_sec=0)) as client:
        yield client


def start(client, name: str = "Morning") -> dict:
    response = client.post("/api/slots/start", json={"slotName": name})
    assert response.status_code == 200
    return response.json()["data"]


def test_submission_without_active_slot_is_rejected(client):
    response = client.post("/api/player", json=submission("a@x.com", 50, 30))

    assert response.status_code == 409
    body = response.json()
    assert body["status"] == "error"
    assert body["error"] == "NoActiveSessionError"


def test_second_start_conflicts(client):
    slot = start(client)
    assert slot["status"] == "active"

    response = client.post("/api/slots/start", json={"slotName": "Other"})
    assert response.status_code == 409
    assert response.json()["error"] == "ConflictError"


def test_start_requires_slot_name(client):
    response = client.post("/api/slots/start", json={})

    assert response.status_code == 400
    assert response.json()["field"] == "slotName"


def test_submit_then_read_rankings(client):
    slot = start(client)
    client.post("/api/player", json=submission("a@x.com", 50, 30))
    response = client.post("/api/player", json=submission("b@x.com", 70, 30))
    assert response.json() == {"status": "success", "message": "Player added", "updated": True}

    response = client.post("/api/player", json=submission("a@x.com", 20, 10))
    assert response.json()["message"] == "Existing score is better"

    rankings = client.get("/api/rankings/HQ").json()
    assert rankings["slotId"] == slot["slotId"]
    assert [(p["email"], p["rank"]) for p in rankings["players"]] == [("b@x.com", 1), ("a@x.com", 2)]

    assert client.get("/api/rankings/Annex").json()["players"] == []


def test_invalid_submission_names_the_field(client):
    start(client)
    body = submission("a@x.com", 50, 30)
    body["timetaken"] = -1

    response = client.post("/api/player", json=body)

    assert response.status_code == 400
    assert response.json()["field"] == "timetaken"


def test_stop_slot_reports_winners(client):
    slot = start(client)
    for email, score in [("a@x.com", 10), ("b@x.com", 30), ("c@x.com", 20), ("d@x.com", 5)]:
        client.post("/api/player", json=submission(email, score, 100))

    response = client.post(f"/api/slots/{slot['slotId']}/stop")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["slot"]["status"] == "completed"
    assert [w["email"] for w in data["winners"]] == ["b@x.com", "c@x.com", "a@x.com"]

    status = client.get("/api/status").json()
    assert status["active"] is False
    assert status["lastSlotInfo"]["slotId"] == slot["slotId"]

    players = client.get(f"/api/slots/{slot['slotId']}/players").json()["players"]
    assert len(players) == 4


def test_stop_errors(client):
    response = client.post("/api/slots/0190a4c2-7d3e-7000-8000-000000000000/stop")
    assert response.status_code == 404

    response = client.post("/api/slots/stop", json={"slotId": "not-a-uuid"})
    assert response.status_code == 400

    slot = start(client)
    client.post("/api/slots/stop", json={"slotName": "Morning"})
    response = client.post(f"/api/slots/{slot['slotId']}/stop")
    assert response.status_code == 409
    assert response.json()["error"] == "StateError"


def test_slot_listing(client):
    assert client.get("/api/slots").json() == {"status": "success", "slots": []}
    assert client.get("/api/slots/active").json() is None

    slot = start(client)

    assert [s["slotId"] for s in client.get("/api/slots").json()["slots"]] == [slot["slotId"]]
    assert client.get("/api/slots/active").json()["name"] == "Morning"


def test_top_players_across_slots(client):
    first = start(client, "first")
    client.post("/api/player", json=submission("a@x.com", 10, 100))
    client.post(f"/api/slots/{first['slotId']}/stop")
    start(client, "second")
    client.post("/api/player", json=submission("a@x.com", 40, 100, location="Annex"))
    client.post("/api/player", json=submission("b@x.com", 20, 100))

    players = client.get("/api/players/top", params={"limit": 5}).json()["players"]

    assert [(p["email"], p["score"]) for p in players] == [("a@x.com", 40), ("b@x.com", 20)]
    assert client.get("/api/players/top", params={"limit": 0}).status_code == 422


def test_check_email(client):
    assert client.post("/api/check-email", json={"email": "a@x.com"}).json()["hasPlayed"] is False

    start(client)
    client.post("/api/player", json=submission("a@x.com", 50, 30))
    body = client.post("/api/check-email", json={"email": "A@x.com"}).json()

    assert body["hasPlayed"] is True
    assert body["activeSlot"]["name"] == "Morning"
    assert body["playerData"]["score"] == 50
    assert client.post("/api/check-email", json={}).status_code == 400


def test_live_subscription(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_json({"type": "setLocation", "location": "HQ"})
        rankings = websocket.receive_json()
        assert rankings == {"type": "rankings", "location": "HQ", "players": [], "slotId": None}
        status = websocket.receive_json()
        assert status["type"] == "gameStatus"
        assert status["status"]["message"] == "Waiting for game session to start..."

        slot = start(client)
        assert websocket.receive_json()["type"] == "gameStatus"
        rankings = websocket.receive_json()
        assert rankings["type"] == "rankings"
        assert rankings["slotId"] == slot["slotId"]

        client.post("/api/player", json=submission("a@x.com", 50, 30))
        update = websocket.receive_json()
        assert update["type"] == "playerUpdate"
        assert update["player"]["rank"] == 1
        rankings = websocket.receive_json()
        assert [p["email"] for p in rankings["players"]] == ["a@x.com"]


def test_live_rejects_bad_messages(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_json({"type": "dance"})
        assert websocket.receive_json() == {"type": "error", "message": "Unknown message type: dance"}

        websocket.send_json({"type": "getRankings"})
        assert websocket.receive_json()["type"] == "error"

        websocket.send_text("not json")
        assert websocket.receive_json() == {"type": "error", "message": "Malformed message"}

        websocket.send_json({"type": "getRankings", "location": "HQ"})
        assert websocket.receive_json()["type"] == "rankings"
