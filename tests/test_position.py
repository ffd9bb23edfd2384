"""Pytest tests for PositionAdapter.

Covers the three-way set_position outcome, legal-destination and
piece lookups, notation export, and degradation on bad input.
"""

from __future__ import annotations

import chess
import pytest

from chessdrill.models import EMPTY_FEN, PieceKind
from chessdrill.position import PiecePlacement, PositionAdapter, PositionOutcome

from conftest import START_FEN

_TWO_WHITE_KINGS = "4k3/8/8/8/8/8/8/3KK3 w - - 0 1"
_LONE_KNIGHT = "8/8/8/8/3N4/8/8/8 w - - 0 1"
_PROMOTION = "8/P7/8/8/8/8/8/k6K w - - 0 1"


@pytest.fixture()
def adapter() -> PositionAdapter:
    return PositionAdapter()


# ---------------------------------------------------------------------------
# set_position outcomes
# ---------------------------------------------------------------------------


class TestSetPosition:

    @pytest.mark.parametrize(
        "notation", [None, "", "   ", "8/8/8/8/8/8/8/8", "8/8/8/8/8/8/8/8 w - - 0 1"]
    )
    def test_empty_notations(self, adapter, notation):
        result = adapter.set_position(notation)
        assert result.outcome is PositionOutcome.EMPTY
        assert result
        assert not adapter.has_position
        assert adapter.legal_destinations("e2") == set()

    @pytest.mark.parametrize(
        "notation",
        [
            "not a fen",
            "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP w KQkq - 0 1",
            "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR x KQkq - 0 1",
        ],
    )
    def test_unparseable_notation_is_invalid(self, adapter, notation):
        result = adapter.set_position(notation)
        assert result.outcome is PositionOutcome.INVALID
        assert result.reason == "parse"
        assert not result

    @pytest.mark.parametrize("notation", [_TWO_WHITE_KINGS, _LONE_KNIGHT])
    def test_rules_invalid_notation(self, adapter, notation):
        result = adapter.set_position(notation)
        assert result.outcome is PositionOutcome.INVALID
        assert result.reason == "rules"
        assert not adapter.has_position

    def test_valid_notation(self, adapter):
        result = adapter.set_position(START_FEN)
        assert result.outcome is PositionOutcome.OK
        assert adapter.has_position

    def test_invalid_replaces_previous_position(self, adapter):
        adapter.set_position(START_FEN)
        adapter.set_position("garbage")
        assert not adapter.has_position
        assert adapter.piece_at("e1") is None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:

    def test_pawn_destinations_from_start(self, adapter):
        adapter.set_position(START_FEN)
        assert adapter.legal_destinations("e2") == {"e3", "e4"}

    def test_knight_destinations_from_start(self, adapter):
        adapter.set_position(START_FEN)
        assert adapter.legal_destinations("g1") == {"f3", "h3"}

    def test_blocked_piece_has_no_destinations(self, adapter):
        adapter.set_position(START_FEN)
        assert adapter.legal_destinations("a1") == set()

    def test_side_not_to_move_has_no_destinations(self, adapter):
        adapter.set_position(START_FEN)
        assert adapter.legal_destinations("e7") == set()

    def test_promotions_collapse_to_one_destination(self, adapter):
        assert adapter.set_position(_PROMOTION).outcome is PositionOutcome.OK
        assert adapter.legal_destinations("a7") == {"a8"}

    @pytest.mark.parametrize("square", ["z9", "E2", "", None])
    def test_off_board_square(self, adapter, square):
        adapter.set_position(START_FEN)
        assert adapter.legal_destinations(square) == set()
        assert adapter.piece_at(square) is None

    def test_all_legal_destinations(self, adapter):
        adapter.set_position(START_FEN)
        dests = adapter.all_legal_destinations()
        assert len(dests) == 10
        assert sum(len(v) for v in dests.values()) == 20
        assert dests["b1"] == {"a3", "c3"}

    def test_is_move_legal(self, adapter):
        adapter.set_position(START_FEN)
        assert adapter.is_move_legal("g1", "f3")
        assert not adapter.is_move_legal("g1", "g3")

    def test_piece_at(self, adapter):
        adapter.set_position(START_FEN)
        assert adapter.piece_at("e1") == PiecePlacement(PieceKind.KING, "white")
        assert adapter.piece_at("d8") == PiecePlacement(PieceKind.QUEEN, "black")
        assert adapter.piece_at("e4") is None


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class TestExport:

    def test_export_without_position(self, adapter):
        assert adapter.export_notation() == EMPTY_FEN

    def test_export_round_trips_start_position(self, adapter):
        adapter.set_position(START_FEN)
        assert adapter.export_notation() == chess.STARTING_FEN

    def test_export_normalizes_placement_only_notation(self, adapter):
        adapter.set_position("rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR")
        assert adapter.export_notation().startswith(
            "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR w"
        )
