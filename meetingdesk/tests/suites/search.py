"""Meeting search suite."""
from __future__ import annotations

import asyncio
import json
import shutil
import tempfile

from meetingdesk.services.agent_client import AgentCallResult, AgentTransportError
from meetingdesk.services.agent_settings import SEARCH_AGENT_ID
from meetingdesk.services.app_state import AppState
from meetingdesk.services.records import SearchResultSet
from meetingdesk.services.search_service import (
    SEARCH_EMPTY_ERROR,
    SEARCH_FAILED_ERROR,
    SEARCH_NETWORK_ERROR,
    SEARCH_PARSE_ERROR,
    MeetingSearchService,
)
from meetingdesk.tests.base import TestSuite
from meetingdesk.tests.fakes import (
    ScriptedAgentTransport,
    UnreadableEnvelope,
    envelope_reply,
    write_settings,
)

SEARCH_RECORD = {
    "query": "database migration",
    "total_results": 2,
    "results": [
        {
            "meeting_title": "Architecture Review",
            "meeting_date": "2025-02-11",
            "relevance_score": 0.92,
            "matching_section": "technical_decisions",
            "excerpt": "Move to Postgres 16 before Q2.",
            "key_participants": ["Sam Ortiz", "Dana Lee"],
        },
        {
            "meeting_title": "Sprint Planning",
            "meeting_date": "2025-02-10",
            "relevance_score": 0.61,
            "matching_section": "action_items",
            "excerpt": "Dana to draft the migration plan.",
            "key_participants": ["Dana Lee"],
        },
    ],
    "suggested_refinements": ["postgres upgrade timeline", "migration owners"],
}


class MeetingSearchSuite(TestSuite):
    suite_id = "search"
    name = "Meeting Search"
    description = "Search dispatch, fallbacks, failures and refinements"

    def _register_tests(self):
        self.add_test("MS-001", "Blank query does nothing", self._test_blank_query)
        self.add_test("MS-002", "Structured response becomes the result set", self._test_structured)
        self.add_test("MS-003", "Stringified response is decoded", self._test_stringified)
        self.add_test("MS-004", "Undecodable text reports a parse error", self._test_parse_error)
        self.add_test("MS-005", "Missing payload reports no results", self._test_empty_error)
        self.add_test("MS-006", "Failure clears previous results", self._test_failure_clears_results)
        self.add_test("MS-007", "Transport exception reports network error", self._test_network_error)
        self.add_test("MS-008", "New search replaces the previous error", self._test_error_replaced)
        self.add_test("MS-009", "Refinement only fills the query", self._test_refinement)
        self.add_test("MS-010", "Stale search response is dropped", self._test_stale_search)
        self.add_test("MS-011", "Unreadable response still closes the search", self._test_unreadable_response)

    async def make_context(self) -> dict:
        tmp_dir = tempfile.mkdtemp(prefix="meetingdesk-search-")
        state = AppState()
        transport = ScriptedAgentTransport()
        return {
            "tmp_dir": tmp_dir,
            "state": state,
            "transport": transport,
            "service": MeetingSearchService(state, transport, write_settings(tmp_dir)),
        }

    async def release_context(self, context: dict) -> None:
        shutil.rmtree(context["tmp_dir"], ignore_errors=True)

    async def _test_blank_query(self, ctx: dict):
        state = ctx["state"]
        state.search.query = "previous"
        state.search.error = SEARCH_FAILED_ERROR
        before = state.search.to_dict()

        for query in ("", "   ", "\n\t"):
            assert await ctx["service"].search(query) is None

        assert ctx["transport"].calls == []
        assert state.search.to_dict() == before

    async def _test_structured(self, ctx: dict):
        ctx["transport"].queue(envelope_reply(SEARCH_RECORD))

        outcome = await ctx["service"].search("  database migration ")

        assert ctx["transport"].calls == [("database migration", SEARCH_AGENT_ID)]
        results = ctx["state"].search.results
        assert outcome.succeeded
        assert results.total_results == 2
        assert results.results[0]["meeting_title"] == "Architecture Review"
        assert results.suggested_refinements == ["postgres upgrade timeline", "migration owners"]
        assert ctx["state"].search.is_searching is False
        assert ctx["state"].search.query == "database migration"

    async def _test_stringified(self, ctx: dict):
        ctx["transport"].queue(envelope_reply({"text": json.dumps(SEARCH_RECORD)}))
        await ctx["service"].search("database migration")
        assert ctx["state"].search.results.total_results == 2

        ctx["transport"].queue(AgentCallResult(success=True, response={"message": json.dumps(SEARCH_RECORD)}))
        await ctx["service"].search("database migration")
        assert len(ctx["state"].search.results.results) == 2

    async def _test_parse_error(self, ctx: dict):
        ctx["transport"].queue(
            AgentCallResult(success=True, response={"message": "I could not find anything relevant."})
        )
        outcome = await ctx["service"].search("budget")
        assert outcome.error == SEARCH_PARSE_ERROR
        assert ctx["state"].search.results is None

        ctx["transport"].queue(AgentCallResult(success=True, response={"message": "9" * 5000}))
        outcome = await ctx["service"].search("budget")
        assert outcome.error == SEARCH_PARSE_ERROR
        assert ctx["state"].search.is_searching is False

    async def _test_empty_error(self, ctx: dict):
        ctx["transport"].queue(envelope_reply("plain words without structure"))
        outcome = await ctx["service"].search("budget")
        assert outcome.error == SEARCH_EMPTY_ERROR

        ctx["transport"].queue(AgentCallResult(success=True, response={}))
        outcome = await ctx["service"].search("budget")
        assert outcome.error == SEARCH_EMPTY_ERROR

    async def _test_failure_clears_results(self, ctx: dict):
        state = ctx["state"]
        ctx["transport"].queue(
            envelope_reply(SEARCH_RECORD),
            AgentCallResult(success=False, error="search backend down"),
            AgentCallResult(success=False),
        )
        await ctx["service"].search("database migration")
        assert isinstance(state.search.results, SearchResultSet)

        await ctx["service"].search("roadmap")
        assert state.search.results is None
        assert state.search.error == "search backend down"

        await ctx["service"].search("roadmap")
        assert state.search.error == SEARCH_FAILED_ERROR

    async def _test_network_error(self, ctx: dict):
        ctx["transport"].queue(AgentTransportError("timeout"))
        outcome = await ctx["service"].search("roadmap")
        assert outcome.error == SEARCH_NETWORK_ERROR
        assert ctx["state"].search.is_searching is False

    async def _test_error_replaced(self, ctx: dict):
        state = ctx["state"]
        transport = ctx["transport"]
        transport.queue(AgentCallResult(success=False, error="first"))
        await ctx["service"].search("roadmap")
        assert state.search.error == "first"

        transport.queue(envelope_reply(SEARCH_RECORD))
        gate = transport.hold(1)
        task = asyncio.create_task(ctx["service"].search("roadmap"))
        for _ in range(50):
            if len(transport.calls) == 2:
                break
            await asyncio.sleep(0)
        assert state.search.is_searching is True
        assert state.search.error is None
        gate.set()
        await task
        assert state.search.error is None
        assert state.search.results is not None

        state.search.error = "dismiss"
        state.clear_search_error()
        assert state.search.error is None

    async def _test_refinement(self, ctx: dict):
        state = ctx["state"]
        ctx["transport"].queue(envelope_reply(SEARCH_RECORD))
        await ctx["service"].search("database migration")
        results = state.search.results

        chosen = ctx["service"].select_refinement(results.suggested_refinements[0])

        assert chosen == "postgres upgrade timeline"
        assert state.search.query == "postgres upgrade timeline"
        assert state.search.results is results
        assert len(ctx["transport"].calls) == 1

    async def _test_stale_search(self, ctx: dict):
        state = ctx["state"]
        transport = ctx["transport"]
        transport.queue(
            envelope_reply({"results": [{"meeting_title": "Old"}]}),
            envelope_reply({"results": [{"meeting_title": "New"}]}),
        )
        gate = transport.hold(0)

        older = asyncio.create_task(ctx["service"].search("old"))
        for _ in range(50):
            if transport.calls:
                break
            await asyncio.sleep(0)
        await ctx["service"].search("new")
        gate.set()
        stale = await older

        assert stale.stale
        assert state.search.results.results[0]["meeting_title"] == "New"
        assert state.search.query == "new"

    async def _test_unreadable_response(self, ctx: dict):
        state = ctx["state"]
        ctx["transport"].queue(
            AgentCallResult(success=True, response=UnreadableEnvelope(message="{}")),
        )
        outcome = await ctx["service"].search("roadmap")
        assert outcome.error == SEARCH_PARSE_ERROR
        assert state.search.is_searching is False
        assert state.search.error == SEARCH_PARSE_ERROR
        assert state.search.results is None
