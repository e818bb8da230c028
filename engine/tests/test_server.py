"""
Tests for the game server endpoints.
"""

import tempfile
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi.testclient import TestClient

from server import main, persistence
from server.main import app
from chainreaction.core.notation import state_to_dict, text_to_board
from chainreaction.core.state import GameState, Player


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        persistence.init_db(db_path)
        yield db_path


@pytest.fixture
def client(temp_db, monkeypatch):
    """Create a test client with temporary database."""
    monkeypatch.setattr(persistence, 'DEFAULT_DB_PATH', temp_db)

    with TestClient(app) as client:
        yield client


def create_game(client, **kwargs):
    response = client.post("/games", json=kwargs)
    assert response.status_code == 200
    return response.json()["game_id"]


def state_json(text, to_move="red"):
    state = GameState(board=text_to_board(text), current_player=Player.parse(to_move))
    return state_to_dict(state)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": main.VERSION}


class TestCreateGame:
    def test_default_game(self, client):
        game_id = create_game(client)
        data = client.get(f"/games/{game_id}").json()
        assert data["status"] == "playing"
        assert data["mode"] == "human_vs_ai"
        assert data["ai_player"] == "blue"
        assert data["move_count"] == 0
        assert data["state"]["rows"] == 9
        assert data["state"]["cols"] == 6
        assert data["state"]["current_player"] == "red"
        assert len(data["legal_moves"]) == 54

    def test_custom_size(self, client):
        game_id = create_game(client, rows=4, cols=5)
        data = client.get(f"/games/{game_id}").json()
        assert len(data["state"]["board"]) == 4
        assert len(data["state"]["board"][0]) == 5

    def test_persisted_on_create(self, client, temp_db):
        game_id = create_game(client, ai_depth=1)
        stored = persistence.load_game(game_id, db_path=temp_db)
        assert stored["ai_depth"] == 1

    def test_unknown_mode(self, client):
        response = client.post("/games", json={"mode": "hotseat"})
        assert response.status_code == 400

    def test_bad_ai_player(self, client):
        response = client.post("/games", json={"ai_player": "blank"})
        assert response.status_code == 400

    def test_zero_ai_depth_rejected(self, client):
        response = client.post("/games", json={"rows": 3, "cols": 3, "ai_depth": 0})
        assert response.status_code == 422

    def test_board_too_small(self, client):
        response = client.post("/games", json={"rows": 1})
        assert response.status_code == 422

    def test_unknown_game(self, client):
        assert client.get("/games/missing").status_code == 404
        assert client.post("/games/missing/move", json={"row": 0, "col": 0}).status_code == 404


class TestHumanVsAI:
    def test_human_move(self, client):
        game_id = create_game(client, ai_depth=1)
        response = client.post(f"/games/{game_id}/move", json={"row": 0, "col": 0})
        assert response.status_code == 200
        data = response.json()
        assert data["state"]["board"][0][0] == {"orb_count": 1, "player": "red"}
        assert data["state"]["current_player"] == "blue"
        assert data["move_count"] == 1

    def test_move_on_ai_turn(self, client):
        game_id = create_game(client)
        client.post(f"/games/{game_id}/move", json={"row": 0, "col": 0})
        response = client.post(f"/games/{game_id}/move", json={"row": 1, "col": 1})
        assert response.status_code == 400
        assert response.json()["detail"] == "Not your turn"

    def test_invalid_move(self, client):
        game_id = create_game(client)
        response = client.post(f"/games/{game_id}/move", json={"row": 20, "col": 0})
        assert response.status_code == 400

    def test_ai_reply(self, client, temp_db):
        game_id = create_game(client, rows=4, cols=4, ai_depth=1)
        client.post(f"/games/{game_id}/move", json={"row": 0, "col": 0})

        response = client.post(f"/games/{game_id}/ai", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["move"]["player"] == "blue"
        assert data["notation"] == f"{data['move']['row']},{data['move']['col']}"
        assert data["nodes"] > 1
        assert data["top_moves"]
        assert data["game_state"]["state"]["current_player"] == "red"
        assert data["game_state"]["move_count"] == 2

        stored = persistence.load_game(game_id, db_path=temp_db)
        assert [m["player"] for m in stored["moves"]] == ["red", "blue"]

    def test_ai_not_its_turn(self, client):
        game_id = create_game(client)
        response = client.post(f"/games/{game_id}/ai", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == "Not AI's turn"

    def test_legal_moves_endpoint(self, client):
        game_id = create_game(client, rows=3, cols=3)
        client.post(f"/games/{game_id}/move", json={"row": 1, "col": 1})
        moves = client.get(f"/games/{game_id}/legal-moves").json()["moves"]
        assert len(moves) == 8
        assert all(m["player"] == "blue" for m in moves)
        assert {"row": 1, "col": 1, "player": "blue"} not in moves

    def test_finished_game(self, client):
        game_id = create_game(client, rows=2, cols=2)
        main.games[game_id].state = GameState(
            board=text_to_board("2R 0\n0 0"), current_player=Player.RED, winner=Player.RED
        )
        response = client.post(f"/games/{game_id}/move", json={"row": 1, "col": 1})
        assert response.status_code == 409
        data = client.get(f"/games/{game_id}").json()
        assert data["status"] == "finished"
        assert data["legal_moves"] == []


class TestAIVsAI:
    def test_alternating_ai_moves(self, client):
        game_id = create_game(client, rows=3, cols=3, mode="ai_vs_ai", ai_depth=1)
        first = client.post(f"/games/{game_id}/ai", json={}).json()
        second = client.post(f"/games/{game_id}/ai", json={"seed": 1}).json()
        assert first["move"]["player"] == "red"
        assert second["move"]["player"] == "blue"
        assert second["game_state"]["move_count"] == 2

    def test_depth_zero_rejected(self, client):
        game_id = create_game(client, rows=3, cols=3, mode="ai_vs_ai")
        response = client.post(f"/games/{game_id}/ai", json={"depth": 0})
        assert response.status_code == 422
        assert client.get(f"/games/{game_id}").json()["move_count"] == 0

    def test_human_move_rejected(self, client):
        game_id = create_game(client, mode="ai_vs_ai")
        response = client.post(f"/games/{game_id}/move", json={"row": 0, "col": 0})
        assert response.status_code == 400

    def test_forced_win_reported(self, client):
        game_id = create_game(client, rows=3, cols=3, mode="ai_vs_ai", ai_depth=1)
        main.games[game_id].state = GameState(board=text_to_board("0 0 0\n0 0 0\n0 1B 1R"))
        data = client.post(f"/games/{game_id}/ai", json={}).json()
        assert data["notation"] == "2,2"
        assert data["score"] is None
        assert data["forced_result"] == "win"
        assert data["game_state"]["status"] == "finished"
        assert data["game_state"]["state"]["winner"] == "red"


class TestRestart:
    def test_games_reloaded(self, temp_db, monkeypatch):
        monkeypatch.setattr(persistence, 'DEFAULT_DB_PATH', temp_db)
        with TestClient(app) as client:
            game_id = create_game(client, rows=3, cols=3)
            client.post(f"/games/{game_id}/move", json={"row": 0, "col": 0})
        assert game_id not in main.games

        with TestClient(app) as client:
            data = client.get(f"/games/{game_id}").json()
        assert data["move_count"] == 1
        assert data["state"]["board"][0][0] == {"orb_count": 1, "player": "red"}
        assert data["state"]["current_player"] == "blue"


class TestStateless:
    def test_apply(self, client):
        response = client.post("/api/apply", json={
            "state": state_json("1R 0 0\n0 0 0\n0 0 1B"),
            "move": {"row": 0, "col": 0},
        })
        assert response.status_code == 200
        data = response.json()
        assert data["board"][0][0] == {"orb_count": 0, "player": "blank"}
        assert data["board"][0][1] == {"orb_count": 1, "player": "red"}
        assert data["board"][1][0] == {"orb_count": 1, "player": "red"}
        assert data["current_player"] == "blue"

    def test_apply_invalid_move(self, client):
        response = client.post("/api/apply", json={
            "state": state_json("1R 0\n0 1B"),
            "move": {"row": 1, "col": 1},
        })
        assert response.status_code == 400

    def test_apply_wrong_player(self, client):
        response = client.post("/api/apply", json={
            "state": state_json("1R 0\n0 1B"),
            "move": {"row": 0, "col": 1, "player": "purple"},
        })
        assert response.status_code == 400

    def test_malformed_state(self, client):
        state = state_json("1R 0\n0 1B")
        state["board"][0][1] = {"orb_count": 0, "player": "red"}
        response = client.post("/api/apply", json={"state": state, "move": {"row": 0, "col": 0}})
        assert response.status_code == 400

    def test_finished_state(self, client):
        state = state_json("2R 0\n0 0")
        state["winner"] = "red"
        response = client.post("/api/apply", json={"state": state, "move": {"row": 0, "col": 0}})
        assert response.status_code == 400

    def test_blue_reply(self, client):
        response = client.post("/api/move", json={
            "state": state_json("1R 0 0\n0 0 0\n0 0 0", to_move="blue"),
            "depth": 1,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["current_player"] == "red"
        owners = [cell["player"] for row in data["board"] for cell in row]
        assert owners.count("blue") == 1

    def test_blue_reply_on_red_turn(self, client):
        response = client.post("/api/move", json={"state": state_json("0 0\n0 0"), "depth": 1})
        assert response.status_code == 400

    def test_aimove_either_side(self, client):
        response = client.post("/api/aimove", json={
            "state": state_json("0 0 0\n0 0 0\n0 1B 1R"),
            "depth": 1,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["winner"] == "red"
        assert data["current_player"] == "blue"

    def test_posted_winner_recomputed(self, client):
        """A decided board cannot be revived by posting winner=blank."""
        state = state_json("2R 0\n0 0", to_move="blue")
        assert state["winner"] == "blank"
        response = client.post("/api/apply", json={"state": state, "move": {"row": 1, "col": 1}})
        assert response.status_code == 400
        response = client.post("/api/move", json={"state": state, "depth": 1})
        assert response.status_code == 400

    def test_huge_orb_count(self, client):
        state = state_json("1R 0\n0 1B")
        state["board"][0][0]["orb_count"] = 100000
        response = client.post("/api/apply", json={"state": state, "move": {"row": 0, "col": 1}})
        assert response.status_code == 422

    def test_oversized_board(self, client):
        state = state_json("0 0\n0 0")
        state["rows"] = 500
        response = client.post("/api/apply", json={"state": state, "move": {"row": 0, "col": 0}})
        assert response.status_code == 422

    def test_stateless_depth_zero_rejected(self, client):
        response = client.post("/api/aimove", json={"state": state_json("0 0\n0 0"), "depth": 0})
        assert response.status_code == 422

    def test_depth_limit(self, client):
        response = client.post("/api/aimove", json={"state": state_json("0 0\n0 0"), "depth": 9})
        assert response.status_code == 422


class TestSettings:
    def test_default_depth(self):
        assert main.read_ai_depth(None) == 3
        assert main.read_ai_depth("  ") == 3
        assert main.read_ai_depth("4") == 4

    def test_depth_clamped(self):
        assert main.read_ai_depth("0") == 1
        assert main.read_ai_depth("-2") == 1
        assert main.read_ai_depth("40") == main.MAX_AI_DEPTH

    def test_depth_not_a_number(self):
        with pytest.raises(ValueError):
            main.read_ai_depth("deep")

    def test_module_default_in_range(self):
        assert 1 <= main.DEFAULT_AI_DEPTH <= main.MAX_AI_DEPTH
