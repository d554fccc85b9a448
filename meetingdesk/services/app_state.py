"""Application state shared by the orchestration services.

``AppState`` is created once at boot and handed to every service; nothing
reads it through module globals.  It has three slices (processing, search
and knowledge base) and each slice is written by exactly one service.

Services describe what happened with outcome records and apply them through
the ``apply_*`` methods here.  Every request on a slice gets a sequence
number from ``begin_*``; only the latest request on a slice may replace the
slice's result, set its error, or clear its in-flight flag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from meetingdesk.services.knowledge_base_client import KnowledgeDocument
from meetingdesk.services.meeting_registry import MeetingRegistry
from meetingdesk.services.records import SearchResultSet


class ErrorKind(Enum):
    UNRECOGNIZED_FORMAT = "unrecognized_format"
    REPORTED_FAILURE = "reported_failure"
    TRANSPORT_EXCEPTION = "transport_exception"


@dataclass(frozen=True)
class ProcessingOutcome:
    request_id: int
    succeeded: bool
    record: Optional[dict] = None
    shape: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    meeting_id: Optional[str] = None
    meeting_updated: bool = False
    stale: bool = False
    skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "succeeded": self.succeeded,
            "shape": self.shape,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "meeting_id": self.meeting_id,
            "meeting_updated": self.meeting_updated,
            "stale": self.stale,
            "skipped": self.skipped,
        }


@dataclass(frozen=True)
class SearchOutcome:
    request_id: int
    query: str
    results: Optional[SearchResultSet] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    stale: bool = False
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.results is not None

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "query": self.query,
            "succeeded": self.succeeded,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "stale": self.stale,
            "skipped": self.skipped,
        }


@dataclass
class ProcessingState:
    is_processing: bool = False
    active_agent_id: Optional[str] = None
    active_agent_label: Optional[str] = None
    active_record: Optional[dict] = None
    error: Optional[str] = None
    latest_request: int = 0

    def to_dict(self) -> dict:
        return {
            "is_processing": self.is_processing,
            "active_agent_id": self.active_agent_id,
            "active_agent_label": self.active_agent_label,
            "active_record": self.active_record,
            "error": self.error,
        }


@dataclass
class SearchState:
    query: str = ""
    results: Optional[SearchResultSet] = None
    is_searching: bool = False
    error: Optional[str] = None
    latest_request: int = 0

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "results": self.results.to_dict() if self.results else None,
            "is_searching": self.is_searching,
            "error": self.error,
        }


@dataclass
class KnowledgeBaseState:
    documents: list[KnowledgeDocument] = field(default_factory=list)
    loading: bool = False
    upload_status: Optional[str] = None
    upload_error: Optional[str] = None
    upload_generation: int = 0
    refresh_generation: int = 0

    def to_dict(self) -> dict:
        return {
            "documents": [document.to_dict() for document in self.documents],
            "loading": self.loading,
            "upload_status": self.upload_status,
            "upload_error": self.upload_error,
        }


class AppState:
    def __init__(self, meetings: Optional[MeetingRegistry] = None) -> None:
        self.meetings = meetings or MeetingRegistry()
        self.processing = ProcessingState()
        self.search = SearchState()
        self.knowledge_base = KnowledgeBaseState()
        self._logger = logging.getLogger("meetingdesk.state")

    # ---- processing slice ----

    def begin_processing(self, agent_id: str, agent_label: Optional[str]) -> int:
        state = self.processing
        state.latest_request += 1
        state.is_processing = True
        state.active_agent_id = agent_id
        state.active_agent_label = agent_label
        state.error = None
        return state.latest_request

    def is_latest_processing(self, request_id: int) -> bool:
        return request_id == self.processing.latest_request

    def apply_processing(self, outcome: ProcessingOutcome) -> ProcessingOutcome:
        """Apply a processing outcome and close its request.

        The registry update is keyed by meeting id and applies for stale
        requests too; the active record and error only follow the latest
        request.
        """
        state = self.processing
        stale = not self.is_latest_processing(outcome.request_id)
        meeting_updated = False

        if outcome.succeeded and outcome.record is not None:
            if outcome.meeting_id:
                meeting_updated = self.meetings.mark_processed(outcome.meeting_id, outcome.record)
            if not stale:
                state.active_record = outcome.record
        elif not stale:
            state.error = outcome.error

        if stale:
            self._logger.info(
                "Stale processing response request_id=%s latest=%s",
                outcome.request_id,
                state.latest_request,
            )
        else:
            state.is_processing = False
            state.active_agent_id = None
            state.active_agent_label = None

        return ProcessingOutcome(
            request_id=outcome.request_id,
            succeeded=outcome.succeeded,
            record=outcome.record,
            shape=outcome.shape,
            error=outcome.error,
            error_kind=outcome.error_kind,
            meeting_id=outcome.meeting_id,
            meeting_updated=meeting_updated,
            stale=stale,
        )

    def clear_processing_error(self) -> None:
        self.processing.error = None

    # ---- search slice ----

    def begin_search(self, query: str) -> int:
        state = self.search
        state.latest_request += 1
        state.query = query
        state.is_searching = True
        state.error = None
        state.results = None
        return state.latest_request

    def apply_search(self, outcome: SearchOutcome) -> SearchOutcome:
        state = self.search
        if outcome.request_id != state.latest_request:
            self._logger.info(
                "Stale search response request_id=%s latest=%s",
                outcome.request_id,
                state.latest_request,
            )
            return SearchOutcome(
                request_id=outcome.request_id,
                query=outcome.query,
                results=outcome.results,
                error=outcome.error,
                error_kind=outcome.error_kind,
                stale=True,
            )
        state.results = outcome.results
        state.error = outcome.error
        state.is_searching = False
        return outcome

    def set_search_query(self, query: str) -> None:
        self.search.query = query

    def clear_search_error(self) -> None:
        self.search.error = None

    # ---- knowledge base slice ----

    def begin_refresh(self) -> int:
        state = self.knowledge_base
        state.refresh_generation += 1
        state.loading = True
        return state.refresh_generation

    def apply_refresh(
        self, generation: int, documents: Optional[list[KnowledgeDocument]]
    ) -> bool:
        """Close a listing request.

        Only the latest listing clears ``loading`` or replaces the cache; a
        None listing (failure) keeps the current cache.  Returns False for a
        superseded listing.
        """
        state = self.knowledge_base
        if generation != state.refresh_generation:
            self._logger.info(
                "Stale document listing generation=%s latest=%s",
                generation,
                state.refresh_generation,
            )
            return False
        state.loading = False
        if documents is not None:
            state.documents = list(documents)
        return True

    def begin_upload(self) -> int:
        state = self.knowledge_base
        state.upload_generation += 1
        state.upload_status = "Uploading..."
        state.upload_error = None
        return state.upload_generation

    def clear_upload_messages(self, generation: Optional[int] = None) -> bool:
        """Clear upload status and error unless a newer upload owns them."""
        state = self.knowledge_base
        if generation is not None and generation != state.upload_generation:
            return False
        state.upload_status = None
        state.upload_error = None
        return True

    # ---- consumer surface ----

    def snapshot(self) -> dict:
        return {
            "meetings": [meeting.to_dict() for meeting in self.meetings.list_meetings()],
            "processing": self.processing.to_dict(),
            "search": self.search.to_dict(),
            "knowledge_base": self.knowledge_base.to_dict(),
        }
