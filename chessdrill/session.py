"""Drill session engine.

DrillSession owns the current question and the running statistics.
It arms the board for the active drill type, forwards answers to the
drill server, and applies server replies only while they still belong
to the current session.

All handlers run on one asyncio event loop. Network requests are
scheduled as tasks; each captures the session id at scheduling time
and its reply passes through ``_dispatch_reply``, which drops replies
for a session that has since been replaced.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Coroutine, Mapping

from chessdrill.board import BoardWidget
from chessdrill.client import AnswerSubmission, DrillClient, DrillClientError, ServerReply
from chessdrill.geometry import candidate_destinations
from chessdrill.models import (
    DrillType,
    PieceKind,
    Question,
    Session,
    SessionState,
    Stats,
    is_square,
)
from chessdrill.position import PositionAdapter
from chessdrill.timer import Stopwatch

logger = logging.getLogger(__name__)

ReplyCallback = Callable[[ServerReply], object]

_FILES = "abcdefgh"
_RANKS = "12345678"

# Index of the piece name in prompts such as "Where can the knight move?"
_PROMPT_PIECE_TOKEN = 3


@dataclass(frozen=True)
class MoveCheck:
    """Local evaluation of a click in the piece-movement drill."""

    piece: PieceKind
    origin: str
    square: str
    is_candidate: bool


def piece_kind_for(question: Question) -> PieceKind | None:
    """Piece kind a question asks about.

    Uses the structured field when present, otherwise the fourth
    whitespace-separated word of the lower-cased prompt.
    """
    if question.piece_kind is not None:
        return question.piece_kind
    words = question.prompt.lower().split()
    if len(words) <= _PROMPT_PIECE_TOKEN:
        return None
    return PieceKind.from_name(words[_PROMPT_PIECE_TOKEN])


class DrillSession:
    """State machine for one learner's run of drill questions."""

    def __init__(
        self,
        board: BoardWidget,
        drill_type: DrillType | str,
        client: DrillClient,
        stopwatch: Stopwatch | None = None,
        position: PositionAdapter | None = None,
        on_feedback: ReplyCallback | None = None,
        on_session_ended: ReplyCallback | None = None,
    ) -> None:
        """Create an idle session engine.

        Args:
            board: Board widget to arm and highlight.
            drill_type: Drill type, fixed for the engine's lifetime.
            client: Drill server client used for check and end requests.
            stopwatch: Response timer; restarted on every question.
            position: Adapter receiving each question's position.
            on_feedback: Called with check replies for the current session.
            on_session_ended: Called with the end reply for the current session.

        Raises:
            ValueError: If drill_type is not a known drill type.
        """
        self._board = board
        self._drill_type = DrillType.parse(drill_type)
        self._client = client
        self._stopwatch = stopwatch or Stopwatch()
        self._position = position or PositionAdapter()
        self.on_feedback = on_feedback
        self.on_session_ended = on_session_ended

        self._session: Session | None = None
        self._state = SessionState.IDLE
        self._stats = Stats()
        self._pending_file: str | None = None
        self._tasks: set[asyncio.Task] = set()
        self.last_move_check: MoveCheck | None = None

    # -----------------------------------------------------------------------
    # Read-only views
    # -----------------------------------------------------------------------

    @property
    def drill_type(self) -> DrillType:
        return self._drill_type

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self._session.session_id if self._session else None

    @property
    def current_question(self) -> Question | None:
        return self._session.current_question if self._session else None

    @property
    def session(self) -> Session | None:
        return replace(self._session) if self._session else None

    @property
    def stats(self) -> Stats:
        return self._stats.copy()

    @property
    def position(self) -> PositionAdapter:
        return self._position

    @property
    def pending_tasks(self) -> set[asyncio.Task]:
        return set(self._tasks)

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        if self._session is not None:
            self._session.state = state

    def _is_live(self) -> bool:
        """True when an interaction can act on a current question."""
        return (
            self._session is not None
            and bool(self._session.session_id)
            and self._session.current_question is not None
            and self._state is not SessionState.ENDED
        )

    # -----------------------------------------------------------------------
    # Question lifecycle
    # -----------------------------------------------------------------------

    def begin(self) -> None:
        """Mark that a start request is in flight."""
        if self._state in (SessionState.IDLE, SessionState.ENDED):
            self._set_state(SessionState.AWAITING_QUESTION)

    def question_ready(self, question: Question | Mapping[str, Any]) -> bool:
        """Start a session with its first question.

        Replaces any previous session, including an ended one.

        Returns:
            True if the question was installed.
        """
        if not isinstance(question, Question):
            if not isinstance(question, Mapping):
                logger.debug("ignoring malformed questionReady payload")
                return False
            question = Question.from_event(question)
        if not question.session_id:
            logger.debug("ignoring questionReady without a session id")
            return False

        previous = self.session_id
        if previous and previous != question.session_id:
            logger.info(
                "drill session replaced",
                extra={"previous_session_id": previous, "session_id": question.session_id},
            )
        self._session = Session(
            session_id=question.session_id,
            drill_type=self._drill_type,
            current_question=question,
        )
        self._install_question(question)
        return True

    def next_question(self, question: Question | Mapping[str, Any]) -> bool:
        """Replace the current question within the active session.

        Returns:
            True if the question was installed, False if it was ignored
            because no session is active or it belongs to another session.
        """
        if self._session is None or self._state is SessionState.ENDED:
            logger.debug("ignoring nextQuestion with no active session")
            return False
        if not isinstance(question, Question):
            if not isinstance(question, Mapping):
                logger.debug("ignoring malformed nextQuestion payload")
                return False
            question = Question.from_event(question, session_id=self._session.session_id)
        if not question.session_id:
            question = replace(question, session_id=self._session.session_id)
        elif question.session_id != self._session.session_id:
            logger.info(
                "ignoring nextQuestion for stale session",
                extra={"session_id": question.session_id},
            )
            return False

        self._session.current_question = question
        self._install_question(question)
        return True

    def _install_question(self, question: Question) -> None:
        if question.drill_type is not None and question.drill_type is not self._drill_type:
            logger.warning(
                "question drill type differs from session drill type",
                extra={
                    "question_drill_type": question.drill_type.value,
                    "drill_type": self._drill_type.value,
                },
            )

        self._board.disable_selection()
        self._pending_file = None
        self.last_move_check = None
        self._board.clear_highlights()

        if question.has_position:
            self._board.set_position(question.position)
            result = self._position.set_position(question.position)
            logger.debug(
                "question position loaded",
                extra={"outcome": result.outcome.value, "reason": result.reason},
            )
        else:
            self._position.set_position(None)

        self._stopwatch.start()
        self._set_state(SessionState.QUESTION_ACTIVE)

        if self._drill_type is DrillType.NAME_SQUARE:
            self._board.highlight_square(question.target)
        elif self._drill_type is DrillType.FIND_SQUARE:
            self._board.enable_selection(self._on_board_click)
        elif self._drill_type is DrillType.PIECE_MOVEMENT:
            self._board.highlight_square(question.target)
            self._board.enable_selection(self._on_board_click)

    # -----------------------------------------------------------------------
    # Interaction
    # -----------------------------------------------------------------------

    def _on_board_click(self, square: str) -> Any:
        if not self._is_live():
            logger.debug("ignoring board click with no active question")
            return None
        if self._drill_type is DrillType.FIND_SQUARE:
            if self._state is not SessionState.QUESTION_ACTIVE:
                return None
            self._board.disable_selection()
            return self.submit_answer(square)
        if self._drill_type is DrillType.PIECE_MOVEMENT:
            return self.check_piece_move(square)
        return None

    def check_piece_move(self, square: str) -> MoveCheck | None:
        """Check a clicked square against the question piece's geometry.

        Informational only: nothing is submitted or scored.
        """
        question = self.current_question
        if not self._is_live() or question is None:
            return None
        piece = piece_kind_for(question)
        if piece is None or not is_square(question.target):
            logger.info(
                "cannot determine piece for movement check",
                extra={"prompt": question.prompt, "target": question.target},
            )
            return None

        check = MoveCheck(
            piece=piece,
            origin=question.target,
            square=square,
            is_candidate=square in candidate_destinations(piece, question.target),
        )
        logger.info(
            "piece movement click",
            extra={
                "piece": piece.value,
                "origin": check.origin,
                "square": square,
                "is_candidate": check.is_candidate,
            },
        )
        self.last_move_check = check
        return check

    def reveal_destinations(self) -> set[str]:
        """Highlight where the question's piece can go.

        Uses legal destinations when a position is loaded, otherwise
        the geometry candidates for the question's piece kind.
        """
        question = self.current_question
        if not self._is_live() or question is None:
            return set()
        if self._position.has_position:
            squares = self._position.legal_destinations(question.target)
        else:
            piece = piece_kind_for(question)
            if piece is None or not is_square(question.target):
                return set()
            squares = candidate_destinations(piece, question.target)
        if squares:
            self._board.highlight_squares(squares, "green")
        return squares

    def press_file(self, file: str) -> None:
        """Select a file from the coordinate buttons."""
        if not self._is_live():
            return
        if isinstance(file, str) and len(file) == 1 and file in _FILES:
            self._pending_file = file

    @property
    def pending_file(self) -> str | None:
        return self._pending_file

    def press_rank(self, rank: str | int) -> asyncio.Task | None:
        """Complete a file+rank button selection and submit it."""
        if not self._is_live() or self._pending_file is None:
            return None
        rank = str(rank)
        if len(rank) != 1 or rank not in _RANKS:
            return None
        square = self._pending_file + rank
        self._pending_file = None
        return self.submit_answer(square)

    # -----------------------------------------------------------------------
    # Answers and statistics
    # -----------------------------------------------------------------------

    def submit_answer(self, answer: str) -> asyncio.Task | None:
        """Forward an answer to the drill server.

        Must be called from a running event loop. The returned task
        resolves to the ServerReply, or raises DrillClientError; the
        caller owns handling that failure.

        Returns:
            The request task, or None if there is no question to answer
            or an answer is already awaiting its result.
        """
        question = self.current_question
        if not self._is_live() or question is None:
            logger.debug("ignoring answer with no active question")
            return None
        if self._state is not SessionState.QUESTION_ACTIVE:
            logger.debug("ignoring answer while another is pending")
            return None

        submission = AnswerSubmission(
            session_id=self._session.session_id,
            target=question.target,
            answer=str(answer),
            drill_type=self._drill_type,
            response_ms=self._stopwatch.elapsed(),
        )
        task = self._schedule(self._send_answer, submission)
        self._set_state(SessionState.AWAITING_ANSWER)
        logger.info(
            "answer submitted",
            extra={
                "session_id": submission.session_id,
                "drill_type": submission.drill_type.value,
                "response_ms": submission.response_ms,
            },
        )
        return task

    async def _send_answer(self, submission: AnswerSubmission) -> ServerReply:
        try:
            reply = await self._client.check_answer(submission)
        except DrillClientError:
            self.release_answer(submission.session_id)
            raise
        self._dispatch_reply(reply)
        return reply

    def release_answer(self, session_id: str | None = None) -> bool:
        """Reopen the current question without recording a result.

        Used when a pending answer gets no verdict: the request failed,
        or the server replied with a fragment the client cannot judge.
        find_square selection is re-armed.

        Returns:
            True if an awaiting answer was released.
        """
        if not self._is_live() or self._state is not SessionState.AWAITING_ANSWER:
            return False
        if session_id is not None and session_id != self.session_id:
            return False
        self._set_state(SessionState.QUESTION_ACTIVE)
        if self._drill_type is DrillType.FIND_SQUARE:
            self._board.enable_selection(self._on_board_click)
        return True

    def result_received(
        self, correct: bool, response_ms: int, session_id: str | None = None
    ) -> bool:
        """Apply a judged answer to the statistics.

        Args:
            correct: Whether the server judged the answer correct.
            response_ms: Response time of the judged answer.
            session_id: Session the result belongs to; a mismatch with
                the current session drops the result.

        Returns:
            True if the statistics were updated.
        """
        if not self._is_live():
            logger.debug("ignoring result with no active question")
            return False
        if session_id is not None and session_id != self.session_id:
            logger.info("ignoring result for stale session", extra={"session_id": session_id})
            return False
        self.update_stats(correct, response_ms)
        self._set_state(SessionState.QUESTION_ACTIVE)
        return True

    def update_stats(self, correct: bool, response_ms: int) -> None:
        self._stats.record(bool(correct), int(response_ms))
        logger.debug(
            "stats updated",
            extra={
                "total": self._stats.total,
                "correct": self._stats.correct,
                "streak": self._stats.streak,
            },
        )

    def reset_stats(self) -> None:
        self._stats = Stats()

    # -----------------------------------------------------------------------
    # Ending
    # -----------------------------------------------------------------------

    def end_session(self) -> asyncio.Task | None:
        """End the session and notify the server.

        The session becomes inert immediately; the request completes
        later. Returns the request task, or None if nothing is active.
        """
        if self._session is None or self._state is SessionState.ENDED:
            return None
        session_id = self._session.session_id
        task = self._schedule(self._send_end, session_id)
        self._set_state(SessionState.ENDED)
        self._board.disable_selection()
        self._pending_file = None
        self._stopwatch.stop()
        logger.info("drill session ended", extra={"session_id": session_id})
        return task

    async def _send_end(self, session_id: str) -> ServerReply:
        reply = await self._client.end_session(session_id)
        self._dispatch_reply(reply)
        return reply

    # -----------------------------------------------------------------------
    # Reply dispatch
    # -----------------------------------------------------------------------

    def _schedule(
        self, send: Callable[..., Coroutine[Any, Any, ServerReply]], *args: Any
    ) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        task = loop.create_task(send(*args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _dispatch_reply(self, reply: ServerReply) -> bool:
        """Apply a server reply if it belongs to the current session."""
        if self._session is None or reply.session_id != self._session.session_id:
            logger.info(
                "dropping stale reply",
                extra={"kind": reply.kind, "session_id": reply.session_id},
            )
            return False

        if reply.kind == "end":
            if self.on_session_ended is not None:
                self.on_session_ended(reply)
            return True

        if self._state is SessionState.ENDED:
            logger.debug("dropping check reply after session end")
            return False
        if self.on_feedback is not None:
            self.on_feedback(reply)
        return True
