"""Search across past meeting notes via the search agent."""

import json
import logging
import time
from typing import Any, Optional

from meetingdesk.services.agent_call_logger import AgentCallLogger
from meetingdesk.services.agent_client import AgentCallResult, AgentTransport
from meetingdesk.services.agent_settings import AgentSettings
from meetingdesk.services.app_state import AppState, ErrorKind, SearchOutcome
from meetingdesk.services.envelope import Recognized, normalize_envelope
from meetingdesk.services.records import SearchResultSet

SEARCH_PARSE_ERROR = "Could not parse search results. Raw response received."
SEARCH_EMPTY_ERROR = "No results returned from search agent."
SEARCH_FAILED_ERROR = "Search failed. Please try again."
SEARCH_NETWORK_ERROR = "Network error during search."


def _fallback_text(envelope: Any) -> str:
    """Primary text field of the envelope: ``result.text``, then ``message``."""
    if not isinstance(envelope, dict):
        return ""
    result = envelope.get("result")
    text = result.get("text") if isinstance(result, dict) else None
    if text is None:
        text = envelope.get("message")
    return text if isinstance(text, str) else ""


def interpret_search_result(
    call_result: AgentCallResult, request_id: int, query: str
) -> SearchOutcome:
    if not call_result.success:
        return SearchOutcome(
            request_id=request_id,
            query=query,
            error=call_result.error or SEARCH_FAILED_ERROR,
            error_kind=ErrorKind.REPORTED_FAILURE,
        )

    normalized = normalize_envelope(call_result.response)
    if isinstance(normalized, Recognized):
        return SearchOutcome(
            request_id=request_id,
            query=query,
            results=SearchResultSet.from_record(normalized.record, query),
        )

    text = _fallback_text(call_result.response)
    if not text:
        return SearchOutcome(
            request_id=request_id,
            query=query,
            error=SEARCH_EMPTY_ERROR,
            error_kind=ErrorKind.UNRECOGNIZED_FORMAT,
        )
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        parsed = None
    if not isinstance(parsed, dict):
        return SearchOutcome(
            request_id=request_id,
            query=query,
            error=SEARCH_PARSE_ERROR,
            error_kind=ErrorKind.UNRECOGNIZED_FORMAT,
        )
    return SearchOutcome(
        request_id=request_id,
        query=query,
        results=SearchResultSet.from_record(parsed, query),
    )


class MeetingSearchService:
    """Runs search queries and holds exactly one result set at a time."""

    def __init__(
        self,
        state: AppState,
        transport: AgentTransport,
        settings: AgentSettings,
        call_logger: Optional[AgentCallLogger] = None,
    ) -> None:
        self._state = state
        self._transport = transport
        self._settings = settings
        self._call_logger = call_logger
        self._logger = logging.getLogger("meetingdesk.search")

    async def search(self, query: str) -> Optional[SearchOutcome]:
        """Search meeting notes.

        Blank queries do nothing and return None.  A new search discards the
        previous result set before the request is sent, so a failed search
        leaves no stale results behind.
        """
        if not query or not query.strip():
            self._logger.debug("Empty search query ignored")
            return None
        query = query.strip()

        agent_id = self._settings.search_agent_id
        request_id = self._state.begin_search(query)
        self._logger.info("Search dispatch request_id=%s query=%r", request_id, query)

        start = time.perf_counter()
        call_result: Optional[AgentCallResult] = None
        try:
            call_result = await self._transport.send(query, agent_id)
        except Exception as exc:
            self._logger.exception("Search transport failed request_id=%s: %s", request_id, exc)
            outcome = SearchOutcome(
                request_id=request_id,
                query=query,
                error=SEARCH_NETWORK_ERROR,
                error_kind=ErrorKind.TRANSPORT_EXCEPTION,
            )
        else:
            try:
                outcome = interpret_search_result(call_result, request_id, query)
            except Exception as exc:
                self._logger.exception("Search result unreadable request_id=%s: %s", request_id, exc)
                outcome = SearchOutcome(
                    request_id=request_id,
                    query=query,
                    error=SEARCH_PARSE_ERROR,
                    error_kind=ErrorKind.UNRECOGNIZED_FORMAT,
                )
        duration_ms = int((time.perf_counter() - start) * 1000)

        applied = self._state.apply_search(outcome)
        if applied.succeeded:
            self._logger.info(
                "Search succeeded request_id=%s results=%s stale=%s",
                request_id,
                len(applied.results.results),
                applied.stale,
            )
        else:
            self._logger.warning("Search failed request_id=%s error=%s", request_id, applied.error)

        if self._call_logger is not None:
            self._call_logger.log_call(
                stem="search",
                agent_id=agent_id,
                agent_label=self._settings.agent_label(agent_id),
                message=query,
                response=(
                    {
                        "success": call_result.success,
                        "response": call_result.response,
                        "error": call_result.error,
                    }
                    if call_result is not None
                    else None
                ),
                outcome=applied.to_dict(),
                duration_ms=duration_ms,
            )
        return applied

    def select_refinement(self, refinement: str) -> str:
        """Put a suggested refinement into the query input without searching."""
        self._state.set_search_query(refinement)
        return refinement
