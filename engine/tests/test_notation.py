"""Tests for text and dict encodings."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from chainreaction.core.explosion import apply_move
from chainreaction.core.notation import (
    AI1_HEADER, AI2_HEADER, AI_HEADER, HUMAN_HEADER, NotationError,
    board_to_text, cell_to_token, current_player_from_header, header_for_player,
    read_game_state, state_from_dict, state_to_dict, state_to_text,
    text_to_board, text_to_state, token_to_cell, write_game_state
)
from chainreaction.core.state import Board, GameState, Move, Player

BOARD = "1R 0 2B\n0 3R 0\n1B 0 0"


class TestCellTokens:
    def test_encode(self):
        assert cell_to_token(0, Player.BLANK) == "0"
        assert cell_to_token(3, Player.RED) == "3R"
        assert cell_to_token(1, Player.BLUE) == "1B"

    def test_decode(self):
        assert token_to_cell("0") == (0, Player.BLANK)
        assert token_to_cell("2R") == (2, Player.RED)
        assert token_to_cell("12B") == (12, Player.BLUE)

    @pytest.mark.parametrize("token", ["R", "3X", "0R", "-1B", "3r", "3RB"])
    def test_bad_tokens(self, token):
        with pytest.raises(NotationError):
            token_to_cell(token)


class TestBoardText:
    def test_encode(self):
        board = text_to_board(BOARD)
        assert board_to_text(board) == BOARD

    def test_empty_board(self):
        assert board_to_text(Board.empty(2, 3)) == "0 0 0\n0 0 0"

    def test_ignores_blank_lines(self):
        board = text_to_board("\n1R 0\n\n0 1B\n")
        assert board.shape == (2, 2)

    def test_ragged_rows(self):
        with pytest.raises(NotationError):
            text_to_board("0 0 0\n0 0")

    def test_empty_text(self):
        with pytest.raises(NotationError):
            text_to_board("   ")

    def test_notation_error_is_value_error(self):
        with pytest.raises(ValueError):
            text_to_board("x")


class TestHeaders:
    def test_human_game(self):
        assert current_player_from_header(HUMAN_HEADER) is Player.BLUE
        assert current_player_from_header(AI_HEADER) is Player.RED
        assert current_player_from_header("anything") is Player.RED

    def test_ai_vs_ai_game(self):
        assert current_player_from_header(AI1_HEADER, ai_vs_ai=True) is Player.BLUE
        assert current_player_from_header(AI2_HEADER, ai_vs_ai=True) is Player.RED
        # Human header means nothing special in AI-vs-AI mode
        assert current_player_from_header(HUMAN_HEADER, ai_vs_ai=True) is Player.RED

    @pytest.mark.parametrize("ai_vs_ai", [False, True])
    @pytest.mark.parametrize("player", [Player.RED, Player.BLUE])
    def test_header_reads_back(self, player, ai_vs_ai):
        header = header_for_player(player, ai_vs_ai)
        assert current_player_from_header(header, ai_vs_ai) is player


class TestStateText:
    def test_encode(self):
        state = GameState(board=text_to_board(BOARD), current_player=Player.BLUE)
        assert state_to_text(state, HUMAN_HEADER) == f"{HUMAN_HEADER}\n{BOARD}"

    def test_decode(self):
        header, state = text_to_state(f"{HUMAN_HEADER}\n{BOARD}\n")
        assert header == HUMAN_HEADER
        assert state.current_player is Player.BLUE
        assert state.board == text_to_board(BOARD)
        assert state.winner is Player.BLANK

    def test_winner_recomputed(self):
        _, state = text_to_state(f"{AI_HEADER}\n2R 0\n0 1R")
        assert state.winner is Player.RED
        assert state.is_terminal()

    def test_missing_board(self):
        with pytest.raises(NotationError):
            text_to_state(HUMAN_HEADER)

    def test_file_round_trip(self, tmp_path):
        state = GameState.new_game()
        state = apply_move(state, Move(0, 0, Player.RED))
        state = apply_move(state, Move(4, 3, Player.BLUE))
        path = tmp_path / "game.txt"

        header = header_for_player(state.current_player, ai_vs_ai=True)
        write_game_state(path, header, state)
        assert path.read_text().splitlines()[0] == AI2_HEADER

        loaded_header, loaded = read_game_state(path, ai_vs_ai=True)
        assert loaded_header == header
        assert loaded == state


class TestStateDict:
    def test_shape(self):
        state = GameState(board=text_to_board(BOARD), current_player=Player.BLUE)
        data = state_to_dict(state)
        assert data["rows"] == 3
        assert data["cols"] == 3
        assert data["current_player"] == "blue"
        assert data["winner"] == "blank"
        assert data["board"][0][0] == {"orb_count": 1, "player": "red"}
        assert data["board"][0][1] == {"orb_count": 0, "player": "blank"}

    def test_round_trip(self):
        state = GameState(board=text_to_board(BOARD), current_player=Player.BLUE)
        assert state_from_dict(state_to_dict(state)) == state

    def test_defaults(self):
        data = state_to_dict(GameState.new_game(2, 2))
        del data["current_player"], data["winner"], data["rows"], data["cols"]
        state = state_from_dict(data)
        assert state.current_player is Player.RED
        assert state.winner is Player.BLANK

    def test_dimension_mismatch(self):
        data = state_to_dict(GameState.new_game(3, 3))
        data["rows"] = 4
        with pytest.raises(NotationError):
            state_from_dict(data)

    def test_blank_to_move(self):
        data = state_to_dict(GameState.new_game(3, 3))
        data["current_player"] = "blank"
        with pytest.raises(NotationError):
            state_from_dict(data)

    def test_missing_board(self):
        with pytest.raises(NotationError):
            state_from_dict({"rows": 3})

    def test_inconsistent_cell(self):
        data = state_to_dict(GameState.new_game(3, 3))
        data["board"][1][1] = {"orb_count": 0, "player": "red"}
        with pytest.raises(NotationError):
            state_from_dict(data)

    def test_dict_winner_recomputed(self):
        data = state_to_dict(GameState(board=text_to_board("2R 0\n0 0"), current_player=Player.BLUE))
        assert data["winner"] == "blank"
        state = state_from_dict(data)
        assert state.winner is Player.RED
        assert state.is_terminal()

    def test_posted_winner_ignored(self):
        data = state_to_dict(GameState.new_game(3, 3))
        data["winner"] = "blue"
        assert state_from_dict(data).winner is Player.BLANK

    def test_orb_count_too_large(self):
        data = state_to_dict(GameState.new_game(3, 3))
        data["board"][0][0] = {"orb_count": 100000, "player": "red"}
        with pytest.raises(NotationError):
            state_from_dict(data)

    def test_unknown_player(self):
        data = state_to_dict(GameState.new_game(3, 3))
        data["board"][1][1] = {"orb_count": 1, "player": "green"}
        with pytest.raises(NotationError):
            state_from_dict(data)
