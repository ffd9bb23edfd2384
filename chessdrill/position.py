"""Rules-aware position queries backed by python-chess.

The adapter holds at most one position. Malformed or rules-invalid
notation leaves it without a position; every query then degrades to
an empty result instead of raising.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

import chess

from chessdrill.models import EMPTY_BOARD_NOTATIONS, EMPTY_FEN, PieceKind

logger = logging.getLogger(__name__)


class PositionOutcome(str, enum.Enum):
    OK = "ok"
    EMPTY = "empty"
    INVALID = "invalid"


@dataclass(frozen=True)
class PositionResult:
    """Outcome of PositionAdapter.set_position.

    Truthy for OK and EMPTY, falsy for INVALID. ``reason`` is
    ``"parse"`` when the notation could not be read and ``"rules"``
    when it was read but describes an impossible setup.
    """

    outcome: PositionOutcome
    reason: str | None = None
    detail: str = ""

    def __bool__(self) -> bool:
        return self.outcome is not PositionOutcome.INVALID


@dataclass(frozen=True)
class PiecePlacement:
    kind: PieceKind
    side: str


def _square_index(square: str) -> chess.Square | None:
    if not isinstance(square, str) or square not in chess.SQUARE_NAMES:
        return None
    return chess.parse_square(square)


class PositionAdapter:
    """Wraps a chess.Board for legal-destination and piece lookups."""

    def __init__(self) -> None:
        self._board: chess.Board | None = None

    @property
    def has_position(self) -> bool:
        return self._board is not None

    def set_position(self, notation: str | None) -> PositionResult:
        """Replace the current position with one parsed from FEN.

        Args:
            notation: FEN string, or a blank/empty-board sentinel.

        Returns:
            PositionResult tagged OK, EMPTY or INVALID.
        """
        self._board = None

        text = (notation or "").strip()
        if not text or text in EMPTY_BOARD_NOTATIONS:
            return PositionResult(PositionOutcome.EMPTY)

        try:
            board = chess.Board(text)
        except ValueError as exc:
            logger.info("unparseable position", extra={"fen": text})
            return PositionResult(PositionOutcome.INVALID, "parse", str(exc))

        if not board.is_valid():
            logger.info(
                "position violates setup rules",
                extra={"fen": text, "status": int(board.status())},
            )
            return PositionResult(
                PositionOutcome.INVALID, "rules", repr(board.status())
            )

        self._board = board
        return PositionResult(PositionOutcome.OK)

    def legal_destinations(self, square: str) -> set[str]:
        """Destinations of legal moves from square for the side to move."""
        origin = _square_index(square)
        if self._board is None or origin is None:
            return set()
        return {
            chess.square_name(move.to_square)
            for move in self._board.legal_moves
            if move.from_square == origin
        }

    def all_legal_destinations(self) -> dict[str, set[str]]:
        """Map every origin square with at least one legal move to its destinations."""
        result: dict[str, set[str]] = {}
        if self._board is None:
            return result
        for move in self._board.legal_moves:
            origin = chess.square_name(move.from_square)
            result.setdefault(origin, set()).add(chess.square_name(move.to_square))
        return result

    def is_move_legal(self, origin: str, dest: str) -> bool:
        return dest in self.legal_destinations(origin)

    def piece_at(self, square: str) -> PiecePlacement | None:
        index = _square_index(square)
        if self._board is None or index is None:
            return None
        piece = self._board.piece_at(index)
        if piece is None:
            return None
        return PiecePlacement(
            kind=PieceKind.from_piece_type(piece.piece_type),
            side="white" if piece.color == chess.WHITE else "black",
        )

    def export_notation(self) -> str:
        if self._board is None:
            return EMPTY_FEN
        return self._board.fen()
