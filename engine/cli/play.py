#!/usr/bin/env python3
"""
Terminal-based Chain Reaction game client.

Play against the AI or watch AI vs AI games.
"""

from __future__ import annotations
import argparse
import logging
import random
import sys
import time
from pathlib import Path
from typing import Optional

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from chainreaction.core.explosion import apply_move
from chainreaction.core.moves import InvalidMove, get_legal_moves, move_to_notation, notation_to_move
from chainreaction.core.notation import header_for_player, read_game_state, write_game_state
from chainreaction.core.state import GameState, Move, Player
from chainreaction.core.winner import orb_totals
from chainreaction.ai.evaluator import HeuristicEvaluator
from chainreaction.ai.minimax import Minimax, MinimaxConfig

# ANSI color codes
RED = '\033[91m'
BLUE = '\033[94m'
DIM = '\033[2m'
UNDERLINE = '\033[4m'
RESET = '\033[0m'

COLORS = {Player.RED: RED, Player.BLUE: BLUE}


def print_board(state: GameState, last_move: Optional[Move] = None) -> None:
    """Print the board.

    Cells show orb count and colour (3R, 1B); '.' is empty. A cell one orb
    from exploding is marked with '*'; the last move is underlined.
    """
    board = state.board
    print()
    print("     " + " ".join(f" {c:<3}" for c in range(board.cols)))
    print("    +" + "-" * (board.cols * 5) + "+")
    for row in range(board.rows):
        line = f" {row:>2} |"
        for col in range(board.cols):
            owner = board.owner(row, col)
            if owner is Player.BLANK:
                token = f"{DIM} .  {RESET}"
            else:
                count = board.orb_count(row, col)
                mark = "*" if count >= board.critical_mass(row, col) - 1 else " "
                text = f"{count}{owner.letter}{mark}"
                style = COLORS[owner]
                if last_move is not None and last_move.position == (row, col):
                    style += UNDERLINE
                token = f"{style}{text:<4}{RESET}"
            line += " " + token
        print(line + " |")
    print("    +" + "-" * (board.cols * 5) + "+")
    red, blue = orb_totals(board)
    print(f"  {RED}red{RESET} orbs: {red}   {BLUE}blue{RESET} orbs: {blue}   *=one orb from exploding")
    print()


def parse_user_move(state: GameState, input_str: str):
    """Parse user input into a move or a command string."""
    input_str = input_str.strip().lower()

    if input_str in ['q', 'quit', 'exit']:
        return 'quit'
    if input_str in ['h', 'help', '?']:
        return 'help'
    if input_str in ['m', 'moves']:
        return 'show_moves'
    if input_str in ['e', 'eval']:
        return 'eval'

    try:
        return notation_to_move(input_str, state.current_player)
    except ValueError:
        print(f"Invalid format: {input_str}. Use 'row,col' like '3,2'")
        return None


def show_legal_moves(state: GameState) -> None:
    """Display all legal moves."""
    moves = get_legal_moves(state.board, state.current_player)
    if not moves:
        print("No legal moves!")
        return
    print("Legal moves:", " ".join(move_to_notation(m) for m in moves))


def show_evaluation(state: GameState, player: Player) -> None:
    """Print the heuristic signals for player."""
    b = HeuristicEvaluator().breakdown(state, player)
    print(f"Evaluation for {player.label}: {b.score:.1f}")
    print(f"  orbs={b.orb} critical={b.critical} control={b.control} "
          f"chain={b.chain} (phase x{b.phase}) safety={b.safety}")


def ai_turn(search: Minimax, state: GameState) -> tuple[GameState, Optional[Move]]:
    """Let the AI move for the side to move and print its analysis."""
    result = search.search(state)
    if result.move is None:
        return state, None

    print("AI analysis:")
    for m in search.analyze(result, top_k=3):
        print(f"  {m['notation']}: {m['score']:.1f}")
    note = " (random fallback)" if result.used_fallback else ""
    print(f"  {result.nodes} nodes, {result.cutoffs} cutoffs, {result.elapsed_ms}ms{note}")
    return apply_move(state, result.move), result.move


def save(path: Optional[str], state: GameState, ai_vs_ai: bool) -> None:
    if path:
        write_game_state(path, header_for_player(state.current_player, ai_vs_ai), state)


def play_human_vs_ai(
    state: GameState,
    human_player: Player = Player.RED,
    depth: int = 3,
    seed: Optional[int] = None,
    save_path: Optional[str] = None
) -> None:
    """Play a game: human vs AI."""
    search = Minimax(config=MinimaxConfig(depth=depth), rng=random.Random(seed))
    last_move = None

    print("\n=== Chain Reaction ===")
    print(f"You are {COLORS[human_player]}{human_player.label}{RESET}")
    print("Commands: move (e.g., '3,2'), 'm' for moves, 'e' evaluation, 'q' quit")
    print("Goal: wipe out every enemy orb!")

    while not state.is_terminal():
        print_board(state, last_move)
        player = state.current_player

        if not get_legal_moves(state.board, player):
            print(f"{player.label} has no legal moves.")
            break

        if player == human_player:
            print(f"Your turn ({player.label})")

            while True:
                try:
                    user_input = input("> ").strip()
                except EOFError:
                    return

                result = parse_user_move(state, user_input)

                if result == 'quit':
                    print("Thanks for playing!")
                    return
                elif result == 'help':
                    print("Enter moves like '3,2' (row, column) to add an orb")
                    print("'m' to see legal moves, 'e' for evaluation, 'q' to quit")
                elif result == 'show_moves':
                    show_legal_moves(state)
                elif result == 'eval':
                    show_evaluation(state, human_player)
                elif result is not None:
                    try:
                        state = apply_move(state, result)
                    except InvalidMove as e:
                        print(e)
                        continue
                    last_move = result
                    print(f"You played: {move_to_notation(result)}")
                    break
        else:
            print(f"AI thinking (depth {depth})...")
            state, last_move = ai_turn(search, state)
            if last_move is None:
                print("AI has no move.")
                break
            print(f"AI plays: {move_to_notation(last_move)}")

        save(save_path, state, ai_vs_ai=False)

    print_board(state, last_move)
    if state.winner is Player.BLANK:
        print("Game stopped.")
    elif state.winner == human_player:
        print("Congratulations! You win!")
    else:
        print("AI wins. Better luck next time!")


def watch_ai_vs_ai(
    state: GameState,
    depth: int = 3,
    seed: Optional[int] = None,
    delay: float = 1.0,
    save_path: Optional[str] = None
) -> None:
    """Watch AI play against itself."""
    search = Minimax(config=MinimaxConfig(depth=depth), rng=random.Random(seed))

    print("\n=== AI vs AI ===")
    print(f"Search depth: {depth}")

    move_count = 0
    last_move = None
    while not state.is_terminal():
        print_board(state, last_move)
        player = state.current_player
        print(f"Move {move_count + 1}, {COLORS[player]}{player.label}{RESET}")

        state, last_move = ai_turn(search, state)
        if last_move is None:
            print(f"{player.label} has no move.")
            break
        print(f"Plays: {move_to_notation(last_move)}\n")
        save(save_path, state, ai_vs_ai=True)

        move_count += 1
        time.sleep(delay)

    print_board(state, last_move)
    print(f"Game over after {move_count} moves. Winner: {state.winner.label}")


def main():
    parser = argparse.ArgumentParser(description='Chain Reaction Terminal Client')
    parser.add_argument('--depth', type=int, default=3, help='Minimax search depth')
    parser.add_argument('--rows', type=int, default=9, help='Board rows')
    parser.add_argument('--cols', type=int, default=6, help='Board columns')
    parser.add_argument('--seed', type=int, help='Seed for the AI fallback move picker')
    parser.add_argument('--watch', action='store_true', help='Watch AI vs AI')
    parser.add_argument('--delay', type=float, default=1.0, help='Seconds between AI vs AI moves')
    parser.add_argument('--play-as', choices=['red', 'blue'], default='red',
                        help='Play as red (moves first) or blue')
    parser.add_argument('--save', type=str, help='Write the game-state file here after each move')
    parser.add_argument('--load', type=str, help='Resume from a game-state file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log search details')

    args = parser.parse_args()
    if args.depth < 1:
        parser.error("--depth must be at least 1")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.load:
        header, state = read_game_state(args.load, ai_vs_ai=args.watch)
        print(f"Loaded {args.load} ({header.strip()})")
    else:
        state = GameState.new_game(args.rows, args.cols)

    if args.watch:
        watch_ai_vs_ai(state, args.depth, args.seed, args.delay, args.save)
    else:
        play_human_vs_ai(state, Player.parse(args.play_as), args.depth, args.seed, args.save)


if __name__ == '__main__':
    main()
