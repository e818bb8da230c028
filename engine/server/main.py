"""
FastAPI server for the Chain Reaction engine.

Provides REST APIs for game management and AI play. Stored games live in
memory and are persisted to SQLite after every change; the /api endpoints are
stateless and take the full position in the request body.
"""

from __future__ import annotations
import logging
import math
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from chainreaction.core.explosion import apply_move
from chainreaction.core.geometry import DEFAULT_COLS, DEFAULT_ROWS
from chainreaction.core.moves import InvalidMove, get_legal_moves, move_to_notation
from chainreaction.core.notation import NotationError, state_from_dict, state_to_dict
from chainreaction.core.state import GameState, Move, Player
from chainreaction.ai.minimax import Minimax, MinimaxConfig, SearchResult

from . import persistence

VERSION = "0.1.0"
MAX_AI_DEPTH = 5
MAX_BOARD_SIZE = 20
MAX_CELL_ORBS = 999


def read_ai_depth(raw: Optional[str], default: int = 3) -> int:
    """Parse an AI depth setting, clamped to 1..MAX_AI_DEPTH."""
    if raw is None or not raw.strip():
        return default
    try:
        depth = int(raw)
    except ValueError:
        raise ValueError(f"CHAINREACTION_AI_DEPTH must be an integer, got {raw!r}") from None
    clamped = min(max(depth, 1), MAX_AI_DEPTH)
    if clamped != depth:
        logging.warning(f"CHAINREACTION_AI_DEPTH={depth} out of range, using {clamped}")
    return clamped


DEFAULT_AI_DEPTH = read_ai_depth(os.environ.get("CHAINREACTION_AI_DEPTH"))


# --- Pydantic Models ---

class CellModel(BaseModel):
    orb_count: int = Field(ge=0, le=MAX_CELL_ORBS)
    player: str = "blank"


class StateModel(BaseModel):
    rows: int = Field(ge=2, le=MAX_BOARD_SIZE)
    cols: int = Field(ge=2, le=MAX_BOARD_SIZE)
    board: list[list[CellModel]]
    current_player: str = "red"
    winner: str = "blank"


class MoveModel(BaseModel):
    row: int
    col: int
    player: Optional[str] = None


class CreateGameRequest(BaseModel):
    rows: int = Field(DEFAULT_ROWS, ge=2, le=MAX_BOARD_SIZE)
    cols: int = Field(DEFAULT_COLS, ge=2, le=MAX_BOARD_SIZE)
    mode: str = persistence.HUMAN_VS_AI
    ai_player: str = "blue"
    ai_depth: int = Field(DEFAULT_AI_DEPTH, ge=1, le=MAX_AI_DEPTH)


class CreateGameResponse(BaseModel):
    game_id: str


class GameStateResponse(BaseModel):
    game_id: str
    mode: str
    ai_player: str
    status: str
    state: StateModel
    legal_moves: list[MoveModel]
    move_count: int


class MakeMoveRequest(BaseModel):
    row: int
    col: int


class AIMoveRequest(BaseModel):
    depth: Optional[int] = Field(None, ge=1, le=MAX_AI_DEPTH)
    seed: Optional[int] = None


class ScoredMove(BaseModel):
    move: MoveModel
    notation: str
    score: Optional[float]


class AIMoveResponse(BaseModel):
    move: MoveModel
    notation: str
    score: Optional[float]  # None when the line is a forced win/loss
    forced_result: Optional[str] = None  # "win" / "loss" for the AI
    nodes: int
    cutoffs: int
    used_fallback: bool
    time_ms: int
    top_moves: list[ScoredMove]
    game_state: GameStateResponse


class ApplyMoveRequest(BaseModel):
    state: StateModel
    move: MoveModel


class StatelessAIRequest(BaseModel):
    state: StateModel
    depth: Optional[int] = Field(None, ge=1, le=MAX_AI_DEPTH)
    seed: Optional[int] = None


class LegalMovesResponse(BaseModel):
    moves: list[MoveModel]


class HealthResponse(BaseModel):
    status: str
    version: str


# --- Conversions ---

def move_to_model(move: Move) -> MoveModel:
    return MoveModel(row=move.row, col=move.col, player=move.player.label)


def state_to_model(state: GameState) -> StateModel:
    return StateModel(**state_to_dict(state))


def model_to_state(model: StateModel) -> GameState:
    try:
        return state_from_dict(model.model_dump())
    except NotationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid state: {e}")


def parse_player(value: str, field_name: str) -> Player:
    try:
        player = Player.parse(value)
    except ValueError:
        player = Player.BLANK
    if player is Player.BLANK:
        raise HTTPException(status_code=400, detail=f"{field_name} must be 'red' or 'blue'")
    return player


def json_score(score: float) -> tuple[Optional[float], Optional[str]]:
    """Split a search score into a JSON-safe number and a forced result."""
    if math.isinf(score):
        return None, "win" if score > 0 else "loss"
    return score, None


# --- Game Storage ---

class Game:
    """Represents an active game session."""

    def __init__(
        self,
        game_id: str,
        state: Optional[GameState] = None,
        mode: str = persistence.HUMAN_VS_AI,
        ai_player: Player = Player.BLUE,
        ai_depth: int = DEFAULT_AI_DEPTH,
        move_count: int = 0
    ):
        self.game_id = game_id
        self.state = state or GameState.new_game()
        self.mode = mode
        self.ai_player = ai_player
        self.ai_depth = ai_depth
        self.move_count = move_count

    def to_response(self) -> GameStateResponse:
        """Convert to API response."""
        status = "finished" if self.state.is_terminal() else "playing"
        legal = [] if self.state.is_terminal() else get_legal_moves(
            self.state.board, self.state.current_player
        )
        return GameStateResponse(
            game_id=self.game_id,
            mode=self.mode,
            ai_player=self.ai_player.label,
            status=status,
            state=state_to_model(self.state),
            legal_moves=[move_to_model(m) for m in legal],
            move_count=self.move_count,
        )

    def play(self, move: Move) -> None:
        """Apply move and persist the new position."""
        self.state = apply_move(self.state, move)
        self.move_count += 1
        persistence.save_game(
            self.game_id, self.state, self.mode, self.ai_player.label, self.ai_depth
        )
        persistence.append_move(self.game_id, move)


# Global game storage
games: dict[str, Game] = {}


def get_game_or_404(game_id: str) -> Game:
    if game_id not in games:
        raise HTTPException(status_code=404, detail="Game not found")
    return games[game_id]


def run_search(state: GameState, depth: int, seed: Optional[int]) -> SearchResult:
    """Search for the side to move and log how long it took."""
    search = Minimax(config=MinimaxConfig(depth=depth, seed=seed))
    start_time = time.time()
    result = search.search(state)
    logging.info(
        f"AI ({state.current_player.label}) depth {depth}: "
        f"{move_to_notation(result.move) if result.move else 'no move'} "
        f"in {time.time() - start_time:.2f}s ({result.nodes} nodes)"
    )
    return result


# --- App Setup ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    """App lifespan handler."""
    persistence.init_db()
    persistence.cleanup_old_games(max_age_days=7)

    for game_data in persistence.load_all_games():
        game = Game(
            game_id=game_data["game_id"],
            state=game_data["state"],
            mode=game_data["mode"],
            ai_player=Player.parse(game_data["ai_player"]),
            ai_depth=game_data["ai_depth"],
            move_count=len(game_data["moves"]),
        )
        games[game.game_id] = game

    logging.info(f"Loaded {len(games)} games from database")

    yield

    games.clear()


app = FastAPI(
    title="Chain Reaction Engine",
    description="Game engine API for the Chain Reaction board game",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- REST Endpoints ---

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="ok", version=VERSION)


@app.post("/games", response_model=CreateGameResponse)
async def create_game(request: CreateGameRequest = None):
    """Create a new game."""
    if request is None:
        request = CreateGameRequest()

    if request.mode not in (persistence.HUMAN_VS_AI, persistence.AI_VS_AI):
        raise HTTPException(status_code=400, detail=f"Unknown mode: {request.mode}")
    ai_player = parse_player(request.ai_player, "ai_player")

    game_id = str(uuid.uuid4())[:8]
    game = Game(
        game_id=game_id,
        state=GameState.new_game(request.rows, request.cols),
        mode=request.mode,
        ai_player=ai_player,
        ai_depth=request.ai_depth,
    )
    games[game_id] = game

    persistence.save_game(
        game_id, game.state, game.mode, ai_player.label, game.ai_depth
    )
    logging.info(f"Created game {game_id} ({request.rows}x{request.cols}, {request.mode})")

    return CreateGameResponse(game_id=game_id)


@app.get("/games/{game_id}", response_model=GameStateResponse)
async def get_game(game_id: str):
    """Get current game state."""
    return get_game_or_404(game_id).to_response()


@app.get("/games/{game_id}/legal-moves", response_model=LegalMovesResponse)
async def get_legal_moves_endpoint(game_id: str):
    """Get all legal moves for the side to move."""
    game = get_game_or_404(game_id)
    if game.state.is_terminal():
        return LegalMovesResponse(moves=[])
    moves = get_legal_moves(game.state.board, game.state.current_player)
    return LegalMovesResponse(moves=[move_to_model(m) for m in moves])


@app.post("/games/{game_id}/move", response_model=GameStateResponse)
async def make_move(game_id: str, request: MakeMoveRequest):
    """Make a human move for the side to move."""
    game = get_game_or_404(game_id)

    if game.state.is_terminal():
        raise HTTPException(status_code=409, detail="Game already finished")
    if game.mode == persistence.AI_VS_AI or game.state.current_player == game.ai_player:
        raise HTTPException(status_code=400, detail="Not your turn")

    move = Move(request.row, request.col, game.state.current_player)
    try:
        game.play(move)
    except InvalidMove as e:
        raise HTTPException(status_code=400, detail=str(e))

    return game.to_response()


@app.post("/games/{game_id}/ai", response_model=AIMoveResponse)
async def get_ai_move(game_id: str, request: AIMoveRequest = None):
    """Get AI to calculate and play a move."""
    if request is None:
        request = AIMoveRequest()

    game = get_game_or_404(game_id)

    if game.state.is_terminal():
        raise HTTPException(status_code=409, detail="Game already finished")
    if game.mode == persistence.HUMAN_VS_AI and game.state.current_player != game.ai_player:
        raise HTTPException(status_code=400, detail="Not AI's turn")

    depth = game.ai_depth if request.depth is None else request.depth
    result = run_search(game.state, depth, request.seed)
    if result.move is None:
        raise HTTPException(status_code=400, detail="No valid moves")

    game.play(result.move)
    return build_ai_response(result, game.to_response())


def build_ai_response(result: SearchResult, game_state: GameStateResponse) -> AIMoveResponse:
    score, forced = json_score(result.score)
    top_moves = []
    for m, s in result.scored_moves:
        top_moves.append(ScoredMove(
            move=move_to_model(m), notation=move_to_notation(m), score=json_score(s)[0]
        ))
    top_moves.sort(key=lambda t: -math.inf if t.score is None else t.score, reverse=True)
    return AIMoveResponse(
        move=move_to_model(result.move),
        notation=move_to_notation(result.move),
        score=score,
        forced_result=forced,
        nodes=result.nodes,
        cutoffs=result.cutoffs,
        used_fallback=result.used_fallback,
        time_ms=result.elapsed_ms,
        top_moves=top_moves[:5],
        game_state=game_state,
    )


# --- Stateless Endpoints ---

@app.post("/api/apply", response_model=StateModel)
async def api_apply(request: ApplyMoveRequest):
    """Apply a move to a posted state and return the new state."""
    state = model_to_state(request.state)
    if state.is_terminal():
        raise HTTPException(status_code=400, detail="Game already ended")

    player = state.current_player
    if request.move.player is not None:
        player = parse_player(request.move.player, "move.player")
    try:
        new_state = apply_move(state, Move(request.move.row, request.move.col, player))
    except InvalidMove as e:
        raise HTTPException(status_code=400, detail=str(e))
    return state_to_model(new_state)


def _stateless_ai(request: StatelessAIRequest, required_player: Optional[Player]) -> StateModel:
    state = model_to_state(request.state)
    if required_player is not None and state.current_player != required_player:
        raise HTTPException(status_code=400, detail="Not AI's turn")
    if state.is_terminal():
        raise HTTPException(status_code=400, detail="Game already ended")

    depth = DEFAULT_AI_DEPTH if request.depth is None else request.depth
    result = run_search(state, depth, request.seed)
    if result.move is None:
        raise HTTPException(status_code=400, detail="No valid moves")
    return state_to_model(apply_move(state, result.move))


@app.post("/api/move", response_model=StateModel)
async def api_move(request: StatelessAIRequest):
    """Blue AI replies to a human (red) move."""
    return _stateless_ai(request, Player.BLUE)


@app.post("/api/aimove", response_model=StateModel)
async def api_aimove(request: StatelessAIRequest):
    """AI plays for whichever side is to move (AI vs AI)."""
    return _stateless_ai(request, None)


# --- Entry Point ---

def run_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the server."""
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
