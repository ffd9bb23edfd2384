"""Terminal front end for the chess drill trainer.

Renders the drill board with Rich and runs a drill session against
the drill server. Answers are typed at the prompt; in click drills a
typed square acts as a click on the board. Supports --sample to
render a sample question without a server.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys

import chess
from rich.console import Console
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chessdrill.app import QUESTION_READY, AppContext, create_app
from chessdrill.board import ObservableBoard
from chessdrill.client import DrillClientError
from chessdrill.config import DrillConfig, configure_logging, load_config
from chessdrill.models import DrillType, is_square
from chessdrill.session import DrillSession

# Unicode piece symbols
_PIECE_SYMBOLS = {
    "K": "♔", "Q": "♕", "R": "♖", "B": "♗",
    "N": "♘", "P": "♙",
    "k": "♚", "q": "♛", "r": "♜", "b": "♝",
    "n": "♞", "p": "♟",
}

_LIGHT_SQ = "grey85"
_DARK_SQ = "grey50"
_HIGHLIGHT_STYLES = {"yellow": "yellow", "green": "green3", "red": "red3"}

_CLICK_DRILLS = (DrillType.FIND_SQUARE, DrillType.PIECE_MOVEMENT)

_SAMPLE_QUESTION = {
    "sessionId": "sample",
    "target": "d4",
    "prompt": "Where can the knight move?",
    "fen": "8/8/8/8/3N4/8/8/8 w - - 0 1",
    "type": "piece_movement",
    "metadata": {"piece_type": "knight"},
}

_HELP = ":end ends the session, :reveal shows destinations, :flip turns the board"


def _board_for(fen: str) -> chess.Board:
    try:
        return chess.Board(fen)
    except ValueError:
        return chess.Board(None)


def render_board(board: ObservableBoard, title: str = "Chess Drill") -> Panel:
    """Render the board widget state as a Rich Panel.

    Args:
        board: Board holding the position, highlights and orientation.
        title: Panel title.

    Returns:
        Panel containing the board.
    """
    position = _board_for(board.fen)
    is_flipped = board.orientation == "black"

    table = Table(show_header=False, show_edge=False, pad_edge=False,
                  box=None, padding=(0, 1))

    # Rank label + 8 squares
    table.add_column(width=2, justify="right")
    for _ in range(8):
        table.add_column(width=3, justify="center")

    ranks = range(8) if is_flipped else range(7, -1, -1)
    files = list(range(7, -1, -1)) if is_flipped else list(range(8))

    for rank in ranks:
        label = str(rank + 1) if board.show_coordinates else ""
        row: list[Text] = [Text(label, style="bold")]
        for file in files:
            sq = chess.square(file, rank)
            piece = position.piece_at(sq)

            is_light = (rank + file) % 2 == 1
            bg = _LIGHT_SQ if is_light else _DARK_SQ
            style_tag = board.highlights.get(chess.square_name(sq))
            if style_tag is not None:
                bg = _HIGHLIGHT_STYLES.get(style_tag, _HIGHLIGHT_STYLES["yellow"])

            if piece is not None:
                symbol = _PIECE_SYMBOLS.get(piece.symbol(), "?")
                cell = Text(f" {symbol} ", style=f"on {bg}")
            else:
                cell = Text("   ", style=f"on {bg}")

            row.append(cell)

        table.add_row(*row)

    if board.show_coordinates:
        file_labels = [Text("  ")]
        for f in files:
            file_labels.append(Text(f" {chr(ord('a') + f)} ", style="bold"))
        table.add_row(*file_labels)

    return Panel(table, title=title, border_style="blue")


def render_sidebar(session: DrillSession, messages: list[str]) -> Panel:
    """Render the question prompt, statistics and latest feedback."""
    parts: list[str] = []
    stats = session.stats

    parts.append(f"[bold]{session.drill_type.value.replace('_', ' ').title()}[/bold]")
    question = session.current_question
    if question is not None:
        if session.drill_type is DrillType.NAME_SQUARE:
            parts.append("Name the highlighted square.")
        elif question.prompt:
            parts.append(question.prompt)
        else:
            parts.append(f"Find {question.target}.")
    parts.append("")

    parts.append(f"[bold]Score:[/bold] {stats.score_line}")
    parts.append(f"Streak: {stats.streak}")
    parts.append(f"Best streak: {stats.best_streak}")
    if stats.total > 0:
        parts.append(f"Avg time: {stats.average_response_ms}ms")

    if messages:
        parts.append("")
        parts.append(f"[italic]{messages[-1]}[/italic]")

    return Panel("\n".join(parts), title="Drill", border_style="green")


def render_drill(ctx: AppContext) -> Layout:
    layout = Layout()
    layout.split_row(
        Layout(name="board", ratio=2),
        Layout(name="sidebar", ratio=1),
    )
    layout["board"].update(render_board(ctx.board))
    layout["sidebar"].update(render_sidebar(ctx.session, ctx.messages))
    return layout


async def _await_pending(ctx: AppContext, console: Console) -> None:
    """Wait for the session's in-flight requests, reporting failures."""
    pending = ctx.session.pending_tasks
    if not pending:
        return
    results = await asyncio.gather(*pending, return_exceptions=True)
    for result in results:
        if isinstance(result, DrillClientError):
            console.print(f"[red]Request failed: {result}[/red]")
        elif isinstance(result, BaseException):
            raise result


def handle_input(ctx: AppContext, text: str) -> bool:
    """Apply one line of learner input.

    Returns:
        False when the learner asked to stop.
    """
    text = text.strip()
    session = ctx.session
    if text in (":end", ":quit"):
        session.end_session()
        return False
    if text == ":reveal":
        session.reveal_destinations()
        return True
    if text == ":flip":
        ctx.board.toggle_orientation()
        return True
    if not text:
        return True

    if session.drill_type in _CLICK_DRILLS and is_square(text):
        ctx.board.select(text)
        # find_square submits from the click; piece_movement only checks it.
        if session.drill_type is DrillType.PIECE_MOVEMENT:
            session.submit_answer(text)
    else:
        session.submit_answer(text)
    return True


async def _run(ctx: AppContext, console: Console) -> None:
    try:
        started = await ctx.start()
    except DrillClientError as exc:
        console.print(f"[red]Could not start drill: {exc}[/red]")
        return
    if not started:
        console.print("[red]Drill server did not return a question.[/red]")
        return

    console.print(f"[dim]{_HELP}[/dim]")
    keep_going = True
    while keep_going and ctx.active:
        console.print(render_drill(ctx))
        try:
            text = await asyncio.to_thread(console.input, "> ")
        except (EOFError, KeyboardInterrupt):
            ctx.session.end_session()
            keep_going = False
        else:
            keep_going = handle_input(ctx, text)
        await _await_pending(ctx, console)

    if ctx.messages:
        console.print(ctx.messages[-1])


async def _main_async(config: DrillConfig, console: Console) -> None:
    ctx = create_app(config, on_message=None)
    try:
        await _run(ctx, console)
    finally:
        await ctx.aclose()


def _render_sample(config: DrillConfig, console: Console) -> None:
    ctx = create_app(
        DrillConfig(drill_type=DrillType.PIECE_MOVEMENT, perspective=config.perspective)
    )
    ctx.dispatch(QUESTION_READY, _SAMPLE_QUESTION)
    ctx.session.reveal_destinations()
    console.print(render_drill(ctx))


def main() -> None:
    """CLI entry point for the terminal drill."""
    parser = argparse.ArgumentParser(description="Chess drill terminal UI")
    parser.add_argument(
        "--drill-type", choices=[d.value for d in DrillType], default=None,
        help="Drill to run (default from CHESSDRILL_DRILL_TYPE)",
    )
    parser.add_argument("--base-url", default=None, help="Drill server URL")
    parser.add_argument(
        "--perspective", choices=["white", "black"], default=None,
        help="Board orientation",
    )
    parser.add_argument(
        "--sample", action="store_true",
        help="Render a sample question and exit (no server)",
    )
    args = parser.parse_args()

    try:
        config = load_config()
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    overrides = {}
    if args.drill_type:
        overrides["drill_type"] = DrillType(args.drill_type)
    if args.base_url:
        overrides["base_url"] = args.base_url.rstrip("/")
    if args.perspective:
        overrides["perspective"] = args.perspective
    if overrides:
        config = dataclasses.replace(config, **overrides)

    configure_logging(config.log_level)
    console = Console()

    if args.sample:
        _render_sample(config, console)
        return

    try:
        asyncio.run(_main_async(config, console))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
