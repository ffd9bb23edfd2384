"""Shared data models for the chess drill trainer.

Question, Stats and Session are the shared contract between the
drill session engine, the HTTP client and the terminal front end.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

import chess

# Placement-only and full forms of the empty board sent by the server
# for drills that do not need a position.
EMPTY_BOARD = "8/8/8/8/8/8/8/8"
EMPTY_FEN = "8/8/8/8/8/8/8/8 w - - 0 1"
EMPTY_BOARD_NOTATIONS = frozenset({EMPTY_BOARD, EMPTY_FEN})


# ---------------------------------------------------------------------------
# Squares and pieces
# ---------------------------------------------------------------------------


def parse_square(text: str) -> chess.Square:
    """Parse a canonical square name such as ``e4``.

    Args:
        text: Square name, file a-h followed by rank 1-8.

    Returns:
        The python-chess square index.

    Raises:
        ValueError: If text is not a canonical square name. Upper case
            and surrounding whitespace are rejected, not normalized.
    """
    if not isinstance(text, str):
        raise ValueError(f"Square must be a string, got {text!r}")
    return chess.parse_square(text)


def is_square(text: object) -> bool:
    """Return True if text is a canonical square name."""
    return isinstance(text, str) and text in chess.SQUARE_NAMES


class PieceKind(str, enum.Enum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"

    @classmethod
    def from_name(cls, name: object) -> PieceKind | None:
        """Look up a piece kind by its lower-case name, None if unknown."""
        if isinstance(name, cls):
            return name
        if not isinstance(name, str):
            return None
        try:
            return cls(name)
        except ValueError:
            return None

    @classmethod
    def from_piece_type(cls, piece_type: chess.PieceType) -> PieceKind:
        return cls(chess.piece_name(piece_type))

    @property
    def piece_type(self) -> chess.PieceType:
        return chess.PIECE_NAMES.index(self.value)


class DrillType(str, enum.Enum):
    NAME_SQUARE = "name_square"
    FIND_SQUARE = "find_square"
    PIECE_MOVEMENT = "piece_movement"
    MOVE_NOTATION = "move_notation"

    @classmethod
    def parse(cls, value: object) -> DrillType:
        """Parse a drill type name.

        Empty values default to name_square, as the drill server does.

        Raises:
            ValueError: If value names no known drill type.
        """
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.NAME_SQUARE
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown drill type: {value!r}") from None


class SessionState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_QUESTION = "awaiting_question"
    QUESTION_ACTIVE = "question_active"
    AWAITING_ANSWER = "awaiting_answer"
    ENDED = "ended"


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


def _first_present(detail: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = detail.get(key)
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class Question:
    """A single drill question as delivered by the server."""

    session_id: str
    target: str
    prompt: str = ""
    position: str = ""
    drill_type: DrillType | None = None
    piece_kind: PieceKind | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_event(
        cls, detail: Mapping[str, Any], session_id: str | None = None
    ) -> Question:
        """Build a Question from a questionReady/nextQuestion payload.

        Accepts both camelCase and snake_case keys. The piece kind is
        read from ``piece_kind``/``pieceKind`` or ``metadata.piece_type``.

        Args:
            detail: Event payload mapping.
            session_id: Fallback session id when the payload carries none,
                e.g. a start response that keeps it beside the question.

        Returns:
            A new Question.
        """
        raw_metadata = detail.get("metadata")
        metadata = dict(raw_metadata) if isinstance(raw_metadata, Mapping) else {}
        sid = _first_present(detail, "sessionId", "session_id") or session_id or ""

        raw_type = _first_present(detail, "drillType", "drill_type", "type")
        try:
            drill_type = DrillType.parse(raw_type) if raw_type else None
        except ValueError:
            drill_type = None

        piece_kind = PieceKind.from_name(
            _first_present(detail, "pieceKind", "piece_kind")
            or metadata.get("piece_type")
        )

        return cls(
            session_id=str(sid),
            target=str(detail.get("target") or ""),
            prompt=str(detail.get("prompt") or ""),
            position=str(_first_present(detail, "fen", "position") or ""),
            drill_type=drill_type,
            piece_kind=piece_kind,
            metadata=metadata,
        )

    @property
    def has_position(self) -> bool:
        notation = self.position.strip()
        return bool(notation) and notation not in EMPTY_BOARD_NOTATIONS


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@dataclass
class Stats:
    """Running accuracy, streak and timing counters for a drill."""

    total: int = 0
    correct: int = 0
    streak: int = 0
    best_streak: int = 0
    total_response_ms: int = 0

    def record(self, correct: bool, response_ms: int) -> None:
        """Record one judged answer."""
        self.total += 1
        self.total_response_ms += response_ms
        if correct:
            self.correct += 1
            self.streak += 1
            self.best_streak = max(self.best_streak, self.streak)
        else:
            self.streak = 0

    @property
    def accuracy(self) -> int:
        """Percentage of correct answers, rounded; 0 when nothing answered."""
        if self.total == 0:
            return 0
        return round(self.correct / self.total * 100)

    @property
    def average_response_ms(self) -> int:
        if self.total == 0:
            return 0
        return round(self.total_response_ms / self.total)

    @property
    def score_line(self) -> str:
        return f"{self.correct}/{self.total} ({self.accuracy}%)"

    def copy(self) -> Stats:
        return replace(self)


@dataclass
class Session:
    """The active drill session owned by a DrillSession."""

    session_id: str
    drill_type: DrillType
    current_question: Question | None = None
    state: SessionState = SessionState.QUESTION_ACTIVE
