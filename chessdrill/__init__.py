"""Chess drill trainer: drill session engine, move geometry and position queries."""

from chessdrill.geometry import candidate_destinations
from chessdrill.models import DrillType, PieceKind, Question, Stats
from chessdrill.position import PositionAdapter, PositionOutcome, PositionResult
from chessdrill.session import DrillSession

__all__ = [
    "DrillSession",
    "DrillType",
    "PieceKind",
    "PositionAdapter",
    "PositionOutcome",
    "PositionResult",
    "Question",
    "Stats",
    "candidate_destinations",
]
