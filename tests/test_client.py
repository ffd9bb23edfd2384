"""Pytest tests for the drill server HTTP client."""

from __future__ import annotations

import asyncio

import pytest

from chessdrill.client import AnswerSubmission, DrillClient, DrillClientError
from chessdrill.models import DrillType


def _submission(**overrides) -> AnswerSubmission:
    fields = {
        "session_id": "s1",
        "target": "e4",
        "answer": "e4",
        "drill_type": DrillType.FIND_SQUARE,
        "response_ms": 1234,
    }
    fields.update(overrides)
    return AnswerSubmission(**fields)


def _run(coro_factory):
    async def scenario():
        return await coro_factory()
    return asyncio.run(scenario())


class TestCheckAnswer:

    def test_posts_form_fields(self, fake_server):
        client = DrillClient("http://drill.test", transport=fake_server.transport())
        reply = _run(lambda: client.check_answer(_submission()))

        path, form, headers = fake_server.requests[0]
        assert path == "/api/drill/check"
        assert form == {
            "session_id": "s1",
            "target": "e4",
            "answer": "e4",
            "drill_type": "find_square",
            "response_ms": "1234",
        }
        assert headers["content-type"] == "application/x-www-form-urlencoded"
        assert "hx-request" not in headers
        assert reply.kind == "check"
        assert reply.is_json
        assert reply.json()["correct"] is True
        assert reply.form["response_ms"] == "1234"

    def test_html_fragments_send_hx_header(self, fake_server):
        client = DrillClient(
            "http://drill.test", html_fragments=True, transport=fake_server.transport()
        )
        reply = _run(lambda: client.check_answer(_submission(answer="e5")))

        _, _, headers = fake_server.requests[0]
        assert headers["hx-request"] == "true"
        assert not reply.is_json
        assert reply.body == "<div>Incorrect!</div>"

    def test_error_status_raises(self, fake_server):
        fake_server.fail_status = 503
        client = DrillClient("http://drill.test", transport=fake_server.transport())
        with pytest.raises(DrillClientError) as exc_info:
            _run(lambda: client.check_answer(_submission()))
        assert exc_info.value.status_code == 503

    def test_transport_error_raises(self, fake_server):
        fake_server.fail_transport = True
        client = DrillClient("http://drill.test", transport=fake_server.transport())
        with pytest.raises(DrillClientError, match="connection refused") as exc_info:
            _run(lambda: client.check_answer(_submission()))
        assert exc_info.value.status_code is None


class TestStartAndEnd:

    def test_start_reads_session_id(self, fake_server):
        client = DrillClient("http://drill.test", transport=fake_server.transport())
        reply = _run(lambda: client.start_drill("find_square", perspective="black"))

        assert fake_server.requests_to("/api/drill/start") == [{
            "drill_type": "find_square",
            "input_method": "type",
            "perspective": "black",
        }]
        assert reply.session_id == "s1"
        assert reply.json()["question"]["target"] == "e4"

    def test_start_defaults_drill_type(self, fake_server):
        client = DrillClient("http://drill.test", transport=fake_server.transport())
        _run(lambda: client.start_drill(""))
        assert fake_server.requests_to("/api/drill/start")[0]["drill_type"] == "name_square"

    def test_end_posts_session_id(self, fake_server):
        async def scenario():
            async with DrillClient(
                "http://drill.test", transport=fake_server.transport()
            ) as client:
                return await client.end_session("s7")

        reply = asyncio.run(scenario())
        assert fake_server.requests_to("/api/drill/end") == [{"session_id": "s7"}]
        assert reply.session_id == "s7"
        assert reply.json()["total_attempts"] == 4
