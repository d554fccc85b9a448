"""Meeting processing dispatch.

Sends meeting text to the processing coordinator agent, turns whatever comes
back into a ``ProcessingOutcome`` and applies it to the application state.
Transport failures never escape ``process_meeting``: they become an error
string on the processing slice.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from meetingdesk.services.agent_call_logger import AgentCallLogger
from meetingdesk.services.agent_client import AgentCallResult, AgentTransport
from meetingdesk.services.agent_settings import AgentSettings
from meetingdesk.services.app_state import AppState, ErrorKind, ProcessingOutcome
from meetingdesk.services.envelope import Recognized, normalize_envelope
from meetingdesk.services.meeting_registry import Meeting
from meetingdesk.services.records import collection_counts

PROCESS_FORMAT_ERROR = (
    "Could not parse meeting processing results. The agent returned an unexpected format."
)
PROCESS_FAILED_ERROR = "Meeting processing failed. Please try again."
PROCESS_NETWORK_ERROR = "Network error during processing."


def _summary_fallback(envelope) -> Optional[dict]:
    """Raw ``result`` mapping carrying a summary, used when normalization fails."""
    if not isinstance(envelope, dict):
        return None
    payload = envelope.get("result")
    if isinstance(payload, dict) and payload.get("summary"):
        return payload
    return None


def interpret_processing_result(
    call_result: AgentCallResult, request_id: int, meeting_id: Optional[str] = None
) -> ProcessingOutcome:
    if not call_result.success:
        return ProcessingOutcome(
            request_id=request_id,
            succeeded=False,
            error=call_result.error or PROCESS_FAILED_ERROR,
            error_kind=ErrorKind.REPORTED_FAILURE,
            meeting_id=meeting_id,
        )

    normalized = normalize_envelope(call_result.response)
    if isinstance(normalized, Recognized):
        return ProcessingOutcome(
            request_id=request_id,
            succeeded=True,
            record=normalized.record,
            shape=normalized.shape,
            meeting_id=meeting_id,
        )

    fallback = _summary_fallback(call_result.response)
    if fallback is not None:
        return ProcessingOutcome(
            request_id=request_id,
            succeeded=True,
            record=fallback,
            shape="summary_fallback",
            meeting_id=meeting_id,
        )

    return ProcessingOutcome(
        request_id=request_id,
        succeeded=False,
        error=PROCESS_FORMAT_ERROR,
        error_kind=ErrorKind.UNRECOGNIZED_FORMAT,
        meeting_id=meeting_id,
    )


class MeetingProcessingService:
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
        self._logger = logging.getLogger("meetingdesk.processing")

    async def process_meeting(
        self, message: str, meeting_id: Optional[str] = None
    ) -> ProcessingOutcome:
        """Dispatch one processing request and apply its outcome.

        Overlapping calls are not rejected.  The latest call owns the active
        record and the in-flight flag; earlier calls that resolve later only
        update their own meeting.
        """
        agent_id = self._settings.processing_agent_id
        agent_label = self._settings.agent_label(agent_id)
        request_id = self._state.begin_processing(agent_id, agent_label)
        self._logger.info(
            "Processing dispatch request_id=%s meeting_id=%s agent=%s chars=%s",
            request_id,
            meeting_id,
            agent_label,
            len(message),
        )

        start = time.perf_counter()
        call_result: Optional[AgentCallResult] = None
        try:
            call_result = await self._transport.send(message, agent_id)
        except Exception as exc:
            self._logger.exception("Processing transport failed request_id=%s: %s", request_id, exc)
            outcome = ProcessingOutcome(
                request_id=request_id,
                succeeded=False,
                error=PROCESS_NETWORK_ERROR,
                error_kind=ErrorKind.TRANSPORT_EXCEPTION,
                meeting_id=meeting_id,
            )
        else:
            try:
                outcome = interpret_processing_result(call_result, request_id, meeting_id)
            except Exception as exc:
                self._logger.exception(
                    "Processing result unreadable request_id=%s: %s", request_id, exc
                )
                outcome = ProcessingOutcome(
                    request_id=request_id,
                    succeeded=False,
                    error=PROCESS_FORMAT_ERROR,
                    error_kind=ErrorKind.UNRECOGNIZED_FORMAT,
                    meeting_id=meeting_id,
                )
        duration_ms = int((time.perf_counter() - start) * 1000)

        applied = self._state.apply_processing(outcome)
        if applied.succeeded:
            self._logger.info(
                "Processing succeeded request_id=%s shape=%s meeting_updated=%s counts=%s",
                request_id,
                applied.shape,
                applied.meeting_updated,
                collection_counts(applied.record),
            )
        else:
            self._logger.warning(
                "Processing failed request_id=%s kind=%s error=%s",
                request_id,
                applied.error_kind.value if applied.error_kind else None,
                applied.error,
            )

        if self._call_logger is not None:
            self._call_logger.log_call(
                stem="process_meeting",
                agent_id=agent_id,
                agent_label=agent_label,
                message=message,
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
                meeting_id=meeting_id,
            )
        return applied

    async def process_known_meeting(self, meeting_id: str) -> ProcessingOutcome:
        """Process a registered meeting.  Already processed meetings are skipped.

        Raises:
            MeetingNotFoundError: if the id is not in the registry
        """
        meeting = self._state.meetings.require_meeting(meeting_id)
        if meeting.is_processed:
            self._logger.info("Skipping already processed meeting id=%s", meeting_id)
            return ProcessingOutcome(
                request_id=self._state.processing.latest_request,
                succeeded=False,
                meeting_id=meeting_id,
                skipped=True,
            )
        return await self.process_meeting(meeting.processing_message(), meeting.id)

    async def process_custom(self, text: str) -> Optional[tuple[Meeting, ProcessingOutcome]]:
        """Process pasted meeting text as a new ad-hoc meeting.

        The meeting is registered as pending before the request is sent.
        Blank text is ignored.
        """
        if not text or not text.strip():
            return None
        meeting = self._state.meetings.create_adhoc(text)
        outcome = await self.process_meeting(text.strip(), meeting.id)
        return meeting, outcome
