"""Tests for the Flask server."""

import os
import subprocess
import sys

import pytest

from server.server import PLAYER_HEADER
from shared.errors import StorageError


def as_player(player):
    return {PLAYER_HEADER: player}


def start(client, player="alice", difficulty=1):
    response = client.post("/api/games", json={"difficulty": difficulty}, headers=as_player(player))
    assert response.status_code == 201
    return response.get_json()["game_id"]


def move(client, game_id, index1, index2, is_match, player="alice"):
    return client.post(
        f"/api/games/{game_id}/moves",
        json={"cardIndex1": index1, "cardIndex2": index2, "isMatch": is_match},
        headers=as_player(player),
    )


class TestIndex:

    def test_index_lists_endpoints(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert b"/api/memory/save" in response.data


class TestSummaryEndpoints:

    def test_save(self, client, summary_payload):
        response = client.post("/api/memory/save", json=summary_payload)
        assert response.status_code == 201
        body = response.get_json()
        assert body["message"] == "Game data saved successfully"
        assert body["id"] == 1

    @pytest.mark.parametrize("field", ["userID", "gameDate", "difficulty", "completed", "timeTaken"])
    def test_save_missing_field(self, client, summary_payload, field):
        del summary_payload[field]
        response = client.post("/api/memory/save", json=summary_payload)
        assert response.status_code == 400
        assert response.get_json()["error"] == "MissingRequiredField"

    def test_save_without_body(self, client):
        response = client.post("/api/memory/save", data="not json")
        assert response.status_code == 400

    @pytest.mark.parametrize("game_date", ["inf", "nan", 1e20])
    def test_unusable_game_date_is_rejected_and_history_still_reads(self, client, summary_payload,
                                                                    game_date):
        summary_payload["gameDate"] = game_date
        response = client.post("/api/memory/save", json=summary_payload)
        assert response.status_code == 400
        assert response.get_json()["error"] == "InvalidFieldValue"

        for url in ("/api/memory/history", "/api/memory/history/alice"):
            history = client.get(url)
            assert history.status_code == 200
            assert history.get_json()["count"] == 0

    def test_player_history(self, client, summary_payload):
        client.post("/api/memory/save", json=summary_payload)
        summary_payload["gameDate"] = "2024-05-02T12:00:00Z"
        summary_payload["completed"] = 0
        client.post("/api/memory/save", json=summary_payload)

        body = client.get("/api/memory/history/alice").get_json()
        assert body["success"] is True
        assert body["count"] == 2
        assert body["data"][0]["gameDate"].startswith("2024-05-02")
        assert body["stats"]["completed_games"] == 1
        assert body["stats"]["success_rate"] == 50

    def test_unknown_player_history_is_empty(self, client):
        response = client.get("/api/memory/history/nobody")
        assert response.status_code == 200
        assert response.get_json()["data"] == []

    def test_global_history_with_filter(self, client, summary_payload):
        client.post("/api/memory/save", json=summary_payload)
        summary_payload.update(userID="bob", difficulty="Hard")
        client.post("/api/memory/save", json=summary_payload)

        assert client.get("/api/memory/history").get_json()["count"] == 2
        hard = client.get("/api/memory/history?difficulty=Hard").get_json()
        assert [r["userID"] for r in hard["data"]] == ["bob"]

    def test_unknown_difficulty_filter(self, client):
        response = client.get("/api/memory/history?difficulty=Medium")
        assert response.status_code == 400
        assert response.get_json()["error"] == "InvalidDifficulty"


class TestGameEndpoints:

    def test_start_game(self, client):
        response = client.post("/api/games", json={"difficulty": 2}, headers=as_player("alice"))
        assert response.status_code == 201
        game = response.get_json()
        assert game["game_id"] == 1
        assert game["grid_size"] == 6
        assert game["total_pairs"] == 18
        assert game["is_active"] is True

    def test_start_requires_player(self, client):
        response = client.post("/api/games", json={"difficulty": 1})
        assert response.status_code == 400
        assert response.get_json()["error"] == "MissingRequiredField"

    def test_start_invalid_difficulty(self, client):
        response = client.post("/api/games", json={"difficulty": 7}, headers=as_player("alice"))
        assert response.status_code == 400
        assert response.get_json()["error"] == "InvalidDifficulty"

    def test_move_and_queries(self, client):
        game_id = start(client)
        response = move(client, game_id, 0, 1, True)
        assert response.status_code == 201
        body = response.get_json()
        assert body["move"]["is_match"] is True
        assert body["game"]["found_pairs"] == 1

        moves = client.get(f"/api/games/{game_id}/moves").get_json()
        assert moves["count"] == 1
        assert client.get(f"/api/games/{game_id}/active").get_json() == {"active": True}
        assert client.get(f"/api/games/{game_id}/duration").get_json()["duration"] > 0
        assert client.get("/api/games/count").get_json() == {"count": 1}
        assert client.get("/api/players/alice/games").get_json() == {"games": [game_id]}

    @pytest.mark.parametrize("args,status,error", [
        ((0, 0, True), 400, "DuplicateCardIndex"),
        ((0, 16, True), 400, "CardIndexOutOfBounds"),
        ((0, 1, True, "bob"), 403, "NotGameOwner"),
    ])
    def test_move_errors(self, client, args, status, error):
        game_id = start(client)
        response = move(client, game_id, *args)
        assert response.status_code == status
        assert response.get_json()["error"] == error

    def test_move_on_unknown_game(self, client):
        response = move(client, 999, 0, 1, True)
        assert response.status_code == 404
        assert response.get_json()["error"] == "GameNotFound"

    @pytest.mark.parametrize("payload,error", [
        ({"cardIndex2": 1, "isMatch": True}, "MissingRequiredField"),
        ({"cardIndex1": "0", "cardIndex2": 1, "isMatch": True}, "InvalidFieldValue"),
        ({"cardIndex1": 0, "cardIndex2": 1}, "MissingRequiredField"),
        ({"cardIndex1": 0, "cardIndex2": 1, "isMatch": "yes"}, "InvalidFieldValue"),
    ])
    def test_malformed_move(self, client, payload, error):
        game_id = start(client)
        response = client.post(f"/api/games/{game_id}/moves", json=payload, headers=as_player("alice"))
        assert response.status_code == 400
        assert response.get_json()["error"] == error

    def test_completion_stores_a_record(self, client):
        game_id = start(client)
        move(client, game_id, 0, 2, False)
        for i in range(8):
            response = move(client, game_id, i * 2, i * 2 + 1, True)
        assert response.get_json()["game"]["is_completed"] is True

        again = move(client, game_id, 0, 1, True)
        assert again.status_code == 409
        assert again.get_json()["error"] == "GameNotActive"

        history = client.get("/api/memory/history/alice").get_json()
        assert history["count"] == 1
        record = history["data"][0]
        assert (record["completed"], record["failed"], record["difficulty"]) == (8, 1, "Easy")

    def test_store_failure_does_not_fail_the_completing_move(self, app, client, monkeypatch):
        def disk_full(record):
            raise StorageError("disk full")

        monkeypatch.setattr(app.extensions["memory_database"], "save_game_data", disk_full)
        game_id = start(client)
        for i in range(8):
            response = move(client, game_id, i * 2, i * 2 + 1, True)
        assert response.status_code == 201
        assert response.get_json()["game"]["is_completed"] is True

        game = client.get(f"/api/games/{game_id}").get_json()
        assert game["is_completed"] is True
        assert game["is_active"] is False
        assert client.get(f"/api/games/{game_id}/moves").get_json()["count"] == 8

    def test_abandon(self, client):
        game_id = start(client)
        forbidden = client.post(f"/api/games/{game_id}/abandon", headers=as_player("bob"))
        assert forbidden.status_code == 403

        response = client.post(f"/api/games/{game_id}/abandon", headers=as_player("alice"))
        assert response.status_code == 200
        assert response.get_json()["is_active"] is False

        again = client.post(f"/api/games/{game_id}/abandon", headers=as_player("alice"))
        assert again.status_code == 409
        assert client.get("/api/memory/history/alice").get_json()["count"] == 1

    def test_unknown_game(self, client):
        assert client.get("/api/games/999").status_code == 404
        assert client.get("/api/games/999/moves").status_code == 404
        assert client.get("/api/games/999/active").get_json() == {"active": False}

    def test_auto_save_can_be_disabled(self, tmp_path, clock):
        from server.server import create_app
        app = create_app(db_path=str(tmp_path / "quiet.db"), clock=clock, auto_save_summaries=False)
        client = app.test_client()
        game_id = start(client)
        client.post(f"/api/games/{game_id}/abandon", headers=as_player("alice"))
        assert client.get("/api/memory/history/alice").get_json()["count"] == 0


class TestLaunch:

    def test_server_script_finds_project_modules(self, tmp_path):
        """The server file loads when run from outside the project root."""
        script = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                              "server", "server.py")
        env = {k: v for k, v in os.environ.items() if k != "PYTHONPATH"}
        env["MEMORY_DB_PATH"] = str(tmp_path / "launch.db")
        code = (
            "import runpy; "
            f"module = runpy.run_path({script!r}, run_name='memory_server'); "
            "app = module['create_app'](); "
            "print(app.test_client().get('/api/games/count').get_json()['count'])"
        )
        result = subprocess.run([sys.executable, "-c", code], cwd=str(tmp_path), env=env,
                                capture_output=True, text=True, timeout=60)
        assert result.returncode == 0, result.stderr
        assert result.stdout.strip().splitlines()[-1] == "0"
