"""Board widget interface and an in-memory observable implementation.

The drill session only talks to a board through BoardWidget. Square
selection is delivered to the armed selection callback and then to
every registered subscriber, synchronously and in registration order.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Protocol

from chessdrill.models import EMPTY_BOARD, is_square

logger = logging.getLogger(__name__)

SquareCallback = Callable[[str], object]


class BoardWidget(Protocol):
    def set_position(self, fen: str) -> None: ...

    def highlight_square(self, square: str) -> None: ...

    def highlight_squares(self, squares: Iterable[str], style: str = "green") -> None: ...

    def clear_highlights(self) -> None: ...

    def enable_selection(self, callback: SquareCallback) -> None: ...

    def disable_selection(self) -> None: ...

    def subscribe(self, callback: SquareCallback) -> None: ...

    def unsubscribe(self, callback: SquareCallback) -> None: ...

    def select(self, square: str) -> None: ...


class ObservableBoard:
    """Board state without rendering: position, highlights and selection.

    Renderers (see chessdrill.tui) read ``fen``, ``highlights`` and
    ``orientation`` to draw the board.
    """

    def __init__(self, fen: str = EMPTY_BOARD) -> None:
        self.fen = fen
        self.orientation = "white"
        self.show_coordinates = True
        # square -> style tag
        self.highlights: dict[str, str] = {}
        self._selection_callback: SquareCallback | None = None
        self._subscribers: list[SquareCallback] = []

    def set_position(self, fen: str) -> None:
        self.fen = fen

    def highlight_square(self, square: str) -> None:
        self.highlights = {square: "yellow"}

    def highlight_squares(self, squares: Iterable[str], style: str = "green") -> None:
        self.highlights = {sq: style for sq in squares}

    def clear_highlights(self) -> None:
        self.highlights = {}

    def enable_selection(self, callback: SquareCallback) -> None:
        self._selection_callback = callback

    def disable_selection(self) -> None:
        self._selection_callback = None

    @property
    def selection_enabled(self) -> bool:
        return self._selection_callback is not None

    def subscribe(self, callback: SquareCallback) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: SquareCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def select(self, square: str) -> None:
        """Deliver a square selection to the armed callback and subscribers."""
        if not is_square(square):
            logger.debug("ignoring selection of non-square %r", square)
            return
        if self._selection_callback is not None:
            self._selection_callback(square)
        for callback in list(self._subscribers):
            callback(square)

    def toggle_orientation(self) -> None:
        self.orientation = "black" if self.orientation == "white" else "white"

    def set_orientation(self, color: str) -> None:
        if color not in ("white", "black"):
            raise ValueError(f"Orientation must be white or black, got {color!r}")
        self.orientation = color

    def toggle_coordinates(self) -> None:
        self.show_coordinates = not self.show_coordinates
