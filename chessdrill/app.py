"""Application wiring: one AppContext owns the board, client and session.

Front ends create a context with ``create_app`` and feed it events
through ``AppContext.dispatch``. Server replies for the current session
come back through the session's reply callbacks, which this module
turns into statistics updates, next questions and learner messages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import httpx

from chessdrill.board import ObservableBoard
from chessdrill.client import DrillClient, ServerReply
from chessdrill.config import DrillConfig
from chessdrill.models import Question
from chessdrill.session import DrillSession
from chessdrill.timer import Stopwatch

logger = logging.getLogger(__name__)

QUESTION_READY = "chessdrill:questionReady"
NEXT_QUESTION = "chessdrill:nextQuestion"


@dataclass
class AppContext:
    """Everything a drill front end needs, passed explicitly."""

    config: DrillConfig
    board: ObservableBoard
    client: DrillClient
    session: DrillSession
    stopwatch: Stopwatch
    on_message: Callable[[str], object] | None = None
    messages: list[str] = field(default_factory=list)
    active: bool = False
    summary: dict[str, Any] | None = None

    def _emit(self, message: str) -> None:
        self.messages.append(message)
        if self.on_message is not None:
            self.on_message(message)

    # -----------------------------------------------------------------------
    # Events
    # -----------------------------------------------------------------------

    def dispatch(self, name: str, detail: Mapping[str, Any]) -> bool:
        """Route a question event to the session.

        Returns:
            True if the session accepted the question.
        """
        if name == QUESTION_READY:
            accepted = self.session.question_ready(detail)
            self.active = self.active or accepted
            return accepted
        if name == NEXT_QUESTION:
            return self.session.next_question(detail)
        logger.warning("unknown drill event", extra={"event": name})
        return False

    async def start(self) -> bool:
        """Ask the server for a new session and install its first question.

        Raises:
            DrillClientError: If the start request fails.
        """
        self.session.begin()
        reply = await self.client.start_drill(
            self.config.drill_type, self.config.input_method, self.config.perspective
        )
        try:
            data = reply.json()
        except ValueError:
            logger.warning("start reply is not JSON", extra={"status_code": reply.status_code})
            return False
        question = data.get("question") if isinstance(data, dict) else None
        if not isinstance(question, dict):
            logger.warning("start reply carries no question")
            return False
        self.summary = None
        return self.dispatch(
            QUESTION_READY,
            {**question, "session_id": question.get("session_id") or reply.session_id},
        )

    # -----------------------------------------------------------------------
    # Server replies
    # -----------------------------------------------------------------------

    def handle_check_reply(self, reply: ServerReply) -> None:
        """Apply a check reply: JSON updates stats, anything else is shown as-is.

        A reply without a verdict (an HTML fragment or malformed JSON)
        reopens the question so the learner can keep answering.
        """
        data = None
        if reply.is_json:
            try:
                data = reply.json()
            except ValueError:
                logger.warning(
                    "check reply is not valid JSON", extra={"session_id": reply.session_id}
                )
        if not isinstance(data, dict):
            self.session.release_answer(reply.session_id)
            self._emit(reply.body)
            return

        correct = bool(data.get("correct"))
        try:
            response_ms = int(reply.form.get("response_ms", 0))
        except ValueError:
            response_ms = 0
        if not self.session.result_received(correct, response_ms, session_id=reply.session_id):
            return
        self._emit("Correct!" if correct else "Incorrect!")

        next_question = data.get("next_question")
        if isinstance(next_question, dict):
            self.session.next_question(
                Question.from_event(next_question, session_id=reply.session_id)
            )

    def handle_end_reply(self, reply: ServerReply) -> None:
        self.active = False
        if not reply.is_json:
            self._emit(reply.body)
            return
        try:
            summary = reply.json()
        except ValueError:
            self._emit(reply.body)
            return
        self.summary = summary if isinstance(summary, dict) else None
        if self.summary is not None:
            self._emit(
                "Session over: {correct}/{total} correct, best streak {streak}, "
                "avg {avg} ms".format(
                    correct=self.summary.get("correct", 0),
                    total=self.summary.get("total_attempts", 0),
                    streak=self.summary.get("streak_best", 0),
                    avg=self.summary.get("avg_response_ms", 0),
                )
            )

    async def aclose(self) -> None:
        await self.client.aclose()


def create_app(
    config: DrillConfig,
    board: ObservableBoard | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    on_message: Callable[[str], object] | None = None,
) -> AppContext:
    """Build an AppContext with its collaborators wired together.

    Args:
        config: Loaded configuration.
        board: Board widget; a fresh ObservableBoard if omitted.
        transport: Optional httpx transport for the drill client.
        on_message: Called with every learner-facing message.

    Returns:
        A context whose session is idle until the first question event.
    """
    board = board or ObservableBoard()
    if config.perspective == "black":
        board.set_orientation("black")
    stopwatch = Stopwatch()
    client = DrillClient(
        config.base_url,
        timeout=config.timeout_s,
        html_fragments=config.html_fragments,
        transport=transport,
    )
    session = DrillSession(board, config.drill_type, client, stopwatch=stopwatch)
    ctx = AppContext(
        config=config,
        board=board,
        client=client,
        session=session,
        stopwatch=stopwatch,
        on_message=on_message,
    )
    session.on_feedback = ctx.handle_check_reply
    session.on_session_ended = ctx.handle_end_reply
    return ctx
