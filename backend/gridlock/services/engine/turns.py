"""Turn resolution: placement, line clears, scoring, refill and stalemate.

A turn is resolved in two steps. ``resolve_turn`` is the pure rules part: it
places a piece from the tray, clears every full row and column at once and
reports what happened. ``build_turn_updates`` then turns that result into the
dotted-path updates a synchronization adapter understands, layering on the
win check, the stalemate board-wipe and the outgoing attack.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from .attacks import make_attack, should_attack
from .board import (
    Grid,
    can_place,
    clear_lines,
    cleared_cell_count,
    empty_board,
    fits_anywhere,
    full_lines,
    place,
)
from .pieces import Piece, generate_batch
from .rules import DEFAULT_RULES, FINISHED, Rules, opponent_role
from .state import PlayerState, check_win

Generator = Callable[[int], List[Piece]]


@dataclass
class TurnResult:
    board: Grid
    pieces: List[Optional[Piece]]
    score_delta: int
    cleared_cells: int
    lines_cleared: int
    stalemate: bool
    refilled: bool = False
    rows: Set[int] = field(default_factory=set)
    cols: Set[int] = field(default_factory=set)


def has_any_move(pieces: Sequence[Optional[Piece]], grid: Grid) -> bool:
    """True if some tray piece fits somewhere. An empty tray always counts as movable."""
    remaining = [p for p in pieces if p is not None]
    if not remaining:
        return True
    return any(fits_anywhere(p.cells, grid) for p in remaining)


def resolve_turn(
    grid: Grid,
    pieces: Sequence[Optional[Piece]],
    slot: int,
    x: int,
    y: int,
    rules: Rules = DEFAULT_RULES,
    generate: Optional[Generator] = None,
) -> Optional[TurnResult]:
    """Place the piece in ``slot`` at column ``x``, row ``y``.

    Returns None, leaving everything untouched, when the slot is empty or the
    placement is illegal.
    """
    if not 0 <= slot < len(pieces):
        return None
    piece = pieces[slot]
    if piece is None or not can_place(piece.cells, x, y, grid):
        return None

    placed = place(piece.cells, x, y, grid)
    tray = list(pieces)
    tray[slot] = None

    rows, cols = full_lines(placed)
    cleared = cleared_cell_count(rows, cols, rules.board_size)
    score_delta = cleared if cleared > 0 else 0
    final = clear_lines(placed, rows, cols)

    refilled = False
    if all(p is None for p in tray):
        generate = generate or generate_batch
        tray = list(generate(rules.tray_size))
        refilled = True

    return TurnResult(
        board=final,
        pieces=tray,
        score_delta=score_delta,
        cleared_cells=cleared,
        lines_cleared=len(rows) + len(cols),
        stalemate=not has_any_move(tray, final),
        refilled=refilled,
        rows=rows,
        cols=cols,
    )


def build_turn_updates(
    role: str,
    player: PlayerState,
    result: TurnResult,
    actor_id: str,
    now: int,
    multiplayer: bool = True,
    rules: Rules = DEFAULT_RULES,
) -> Dict[str, Any]:
    """Dotted-path updates committing ``result`` for ``role``.

    The win check uses the pre-penalty score; a winning turn skips the
    board-wipe since the match is over.
    """
    new_score = player.score + result.score_delta
    updates: Dict[str, Any] = {
        f'{role}.board': result.board,
        f'{role}.pieces': result.pieces,
        f'{role}.score': new_score,
    }

    won = check_win(new_score, rules)
    if won:
        updates['status'] = FINISHED
        updates['winner'] = actor_id

    if multiplayer and should_attack(result.lines_cleared, rules):
        updates[f'{opponent_role(role)}.incoming_attack'] = make_attack(now, rules)

    if result.stalemate and not won:
        updates[f'{role}.board'] = empty_board(rules.board_size)
        updates[f'{role}.score'] = max(0, new_score - rules.stalemate_penalty)
        updates[f'{role}.locked_until'] = now + rules.stalemate_freeze_ms

    return updates
