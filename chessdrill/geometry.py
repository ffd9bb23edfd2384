"""Simplified piece movement for the piece-movement drill.

Destinations are computed from board geometry alone: occupancy,
side to move, check and special moves are ignored. Pawns are treated
as white pawns moving forward only.
"""

from __future__ import annotations

import chess

from chessdrill.models import PieceKind, parse_square

_KNIGHT_OFFSETS = [
    (-2, -1), (-2, 1), (-1, -2), (-1, 2),
    (1, -2), (1, 2), (2, -1), (2, 1),
]
_KING_OFFSETS = [
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1), (0, 1),
    (1, -1), (1, 0), (1, 1),
]
_DIAGONAL_RAYS = [(-1, -1), (-1, 1), (1, -1), (1, 1)]
_ORTHOGONAL_RAYS = [(-1, 0), (1, 0), (0, -1), (0, 1)]


def _on_board(file: int, rank: int) -> bool:
    return 0 <= file < 8 and 0 <= rank < 8


def _steps(file: int, rank: int, offsets) -> set[str]:
    """Single-step destinations for each offset that stays on the board."""
    found: set[str] = set()
    for df, dr in offsets:
        f, r = file + df, rank + dr
        if _on_board(f, r):
            found.add(chess.square_name(chess.square(f, r)))
    return found


def _rays(file: int, rank: int, directions) -> set[str]:
    """Every square along each ray up to and including the board edge."""
    found: set[str] = set()
    for df, dr in directions:
        f, r = file + df, rank + dr
        while _on_board(f, r):
            found.add(chess.square_name(chess.square(f, r)))
            f, r = f + df, r + dr
    return found


def _pawn_steps(file: int, rank: int) -> set[str]:
    found: set[str] = set()
    if rank < 7:
        found.add(chess.square_name(chess.square(file, rank + 1)))
        if rank == 1:
            found.add(chess.square_name(chess.square(file, rank + 2)))
    return found


def candidate_destinations(piece: PieceKind | str, origin: str) -> set[str]:
    """Return the geometry-only destination squares for a piece.

    Args:
        piece: Piece kind or its lower-case name.
        origin: Canonical name of the origin square.

    Returns:
        Set of square names. Iteration order is not meaningful.

    Raises:
        ValueError: If piece is not a known piece kind or origin is not
            a canonical square name.
    """
    kind = PieceKind.from_name(piece)
    if kind is None:
        raise ValueError(f"Unknown piece kind: {piece!r}")

    square = parse_square(origin)
    file, rank = chess.square_file(square), chess.square_rank(square)

    if kind is PieceKind.KNIGHT:
        return _steps(file, rank, _KNIGHT_OFFSETS)
    if kind is PieceKind.KING:
        return _steps(file, rank, _KING_OFFSETS)
    if kind is PieceKind.BISHOP:
        return _rays(file, rank, _DIAGONAL_RAYS)
    if kind is PieceKind.ROOK:
        return _rays(file, rank, _ORTHOGONAL_RAYS)
    if kind is PieceKind.QUEEN:
        return _rays(file, rank, _DIAGONAL_RAYS + _ORTHOGONAL_RAYS)
    return _pawn_steps(file, rank)


def sorted_destinations(piece: PieceKind | str, origin: str) -> list[str]:
    """Candidate destinations in board order (a1, b1, ..., h8) for display."""
    return sorted(
        candidate_destinations(piece, origin), key=chess.parse_square
    )
