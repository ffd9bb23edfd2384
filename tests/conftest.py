"""Shared test fixtures for the drill engine.

Fixtures:
    board         - Fresh ObservableBoard.
    fake_server   - In-process drill server behind httpx.MockTransport.
    make_session  - Factory building a DrillSession wired to fake_server.
"""

from __future__ import annotations

import asyncio
import itertools
from unittest.mock import MagicMock
from urllib.parse import parse_qs

import httpx
import pytest

from chessdrill.board import ObservableBoard
from chessdrill.client import DrillClient
from chessdrill.models import Question
from chessdrill.session import DrillSession
from chessdrill.timer import Stopwatch

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


# ---------------------------------------------------------------------------
# Fake drill server
# ---------------------------------------------------------------------------


class FakeDrillServer:
    """Answers the start/check/end endpoints and records every request.

    ``gates`` maps a session id to an asyncio.Event; requests for that
    session wait on the event before answering, which lets tests hold
    a reply in flight while other events arrive.
    """

    def __init__(self) -> None:
        self.requests: list[tuple[str, dict[str, str], httpx.Headers]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.fail_status: int | None = None
        self.fail_transport = False
        self.next_question: dict | None = None
        self.start_question: dict = {
            "type": "find_square",
            "target": "e4",
            "prompt": "Find e4",
            "fen": "8/8/8/8/8/8/8/8",
        }

    def requests_to(self, path: str) -> list[dict[str, str]]:
        return [form for p, form, _ in self.requests if p == path]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        body = (await request.aread()).decode()
        form = {k: v[0] for k, v in parse_qs(body).items()}
        path = request.url.path
        self.requests.append((path, form, request.headers))

        gate = self.gates.get(form.get("session_id", ""))
        if gate is not None:
            await gate.wait()

        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, text="server error")

        if path == "/api/drill/start":
            return httpx.Response(
                200, json={"session_id": "s1", "question": self.start_question}
            )
        if path == "/api/drill/check":
            correct = form.get("answer") == form.get("target")
            if request.headers.get("HX-Request") == "true":
                message = "Correct!" if correct else "Incorrect!"
                return httpx.Response(200, html=f"<div>{message}</div>")
            return httpx.Response(
                200, json={"correct": correct, "next_question": self.next_question}
            )
        if path == "/api/drill/end":
            return httpx.Response(
                200,
                json={
                    "total_attempts": 4,
                    "correct": 3,
                    "avg_response_ms": 850,
                    "streak_best": 2,
                },
            )
        return httpx.Response(404, text="not found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def board() -> ObservableBoard:
    return ObservableBoard()


@pytest.fixture()
def fake_server() -> FakeDrillServer:
    return FakeDrillServer()


@pytest.fixture()
def make_session(board, fake_server):
    """Build a DrillSession for a drill type, wired to the fake server.

    The stopwatch clock advances 1.5 s per reading, so an answer given
    right after its question reports 1500 ms.
    """

    def _make(drill_type: str, **kwargs) -> DrillSession:
        ticks = itertools.count(0.0, 1.5)
        stopwatch = Stopwatch(clock=lambda: next(ticks))
        client = DrillClient("http://drill.test", transport=fake_server.transport())
        return DrillSession(
            board,
            drill_type,
            client,
            stopwatch=stopwatch,
            on_feedback=kwargs.pop("on_feedback", MagicMock()),
            on_session_ended=kwargs.pop("on_session_ended", MagicMock()),
            **kwargs,
        )

    return _make


def make_question(
    session_id: str = "s1",
    target: str = "e4",
    drill_type: str | None = None,
    prompt: str = "",
    fen: str = "",
    **extra,
) -> Question:
    """Build a Question the way the server's questionReady event does."""
    detail = {
        "sessionId": session_id,
        "target": target,
        "prompt": prompt,
        "fen": fen,
        "type": drill_type,
        **extra,
    }
    return Question.from_event(detail)
