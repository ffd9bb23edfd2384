"""Async HTTP client for the drill server.

Wraps the start, check and end endpoints. Replies are returned as
opaque ServerReply objects tagged with the session id the request
was made for; the session engine decides whether they still apply.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from chessdrill.models import DrillType

logger = logging.getLogger(__name__)

START_PATH = "/api/drill/start"
CHECK_PATH = "/api/drill/check"
END_PATH = "/api/drill/end"


class DrillClientError(Exception):
    """A drill server request failed (transport error or non-2xx status)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class AnswerSubmission:
    """Everything sent to the check endpoint for one answer."""

    session_id: str
    target: str
    answer: str
    drill_type: DrillType
    response_ms: int = 0

    def form(self) -> dict[str, str]:
        return {
            "session_id": self.session_id,
            "target": self.target,
            "answer": self.answer,
            "drill_type": self.drill_type.value,
            "response_ms": str(self.response_ms),
        }


@dataclass(frozen=True)
class ServerReply:
    """Raw response from the drill server.

    ``body`` is forwarded untouched to whatever surface displays it.
    """

    kind: str
    session_id: str
    status_code: int
    content_type: str
    body: str
    form: dict[str, str] = field(default_factory=dict)

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.body)


class DrillClient:
    """Talks to the drill server's form-encoded endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        html_fragments: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create the client.

        Args:
            base_url: Server root, e.g. ``http://localhost:8080``.
            timeout: Per-request timeout in seconds.
            html_fragments: Send ``HX-Request: true`` on check/end so the
                server answers with rendered HTML instead of JSON.
            transport: Optional httpx transport, used by tests.
        """
        self._html_fragments = html_fragments
        self._http = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> DrillClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(
        self, kind: str, path: str, form: dict[str, str], session_id: str,
        fragments: bool,
    ) -> ServerReply:
        headers = {"HX-Request": "true"} if fragments else {}
        start = time.perf_counter()
        try:
            response = await self._http.post(path, data=form, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning(
                "drill request rejected",
                extra={"kind": kind, "session_id": session_id, "status_code": status},
            )
            raise DrillClientError(
                f"{kind} request failed with status {status}", status_code=status
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "drill request failed",
                extra={"kind": kind, "session_id": session_id, "error": str(exc)},
            )
            raise DrillClientError(f"{kind} request failed: {exc}") from exc

        logger.debug(
            "drill request completed",
            extra={
                "kind": kind,
                "session_id": session_id,
                "status_code": response.status_code,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return ServerReply(
            kind=kind,
            session_id=session_id,
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
            body=response.text,
            form=dict(form),
        )

    async def start_drill(
        self,
        drill_type: DrillType | str = DrillType.NAME_SQUARE,
        input_method: str = "type",
        perspective: str = "white",
    ) -> ServerReply:
        """Start a drill session; the server replies with JSON
        ``{"session_id": ..., "question": {...}}``."""
        form = {
            "drill_type": DrillType.parse(drill_type).value,
            "input_method": input_method or "type",
            "perspective": perspective or "white",
        }
        reply = await self._post("start", START_PATH, form, "", fragments=False)
        try:
            session_id = str(reply.json().get("session_id") or "")
        except (ValueError, AttributeError):
            session_id = ""
        return ServerReply(
            kind=reply.kind,
            session_id=session_id,
            status_code=reply.status_code,
            content_type=reply.content_type,
            body=reply.body,
            form=reply.form,
        )

    async def check_answer(self, submission: AnswerSubmission) -> ServerReply:
        return await self._post(
            "check", CHECK_PATH, submission.form(), submission.session_id,
            fragments=self._html_fragments,
        )

    async def end_session(self, session_id: str) -> ServerReply:
        return await self._post(
            "end", END_PATH, {"session_id": session_id}, session_id,
            fragments=self._html_fragments,
        )
