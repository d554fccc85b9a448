import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from meetingdesk.services.app_state import AppState
from meetingdesk.services.meeting_registry import Meeting, MeetingNotFoundError
from meetingdesk.services.processing import MeetingProcessingService
from meetingdesk.services.records import analysis_view


class RegisterMeetingRequest(BaseModel):
    id: str = Field(..., min_length=1)
    title: str = ""
    date: str = ""
    time: str = ""
    attendees: int = Field(0, ge=0)
    organizer: str = ""
    description: str = ""


class CustomMeetingRequest(BaseModel):
    text: str


def create_meetings_router(
    state: AppState, processing_service: MeetingProcessingService
) -> APIRouter:
    router = APIRouter(tags=["meetings"])
    logger = logging.getLogger("meetingdesk.api.meetings")

    @router.get("/api/meetings")
    def list_meetings() -> list[dict]:
        return [meeting.to_dict() for meeting in state.meetings.list_meetings()]

    @router.post("/api/meetings")
    def register_meeting(payload: RegisterMeetingRequest) -> dict:
        meeting = state.meetings.register(Meeting(**payload.model_dump()))
        return meeting.to_dict()

    @router.get("/api/meetings/{meeting_id}")
    def get_meeting(meeting_id: str) -> dict:
        meeting = state.meetings.get_meeting(meeting_id)
        if not meeting:
            raise HTTPException(status_code=404, detail="Meeting not found")
        return meeting.to_dict()

    @router.post("/api/meetings/custom")
    async def process_custom_meeting(payload: CustomMeetingRequest) -> dict:
        if not payload.text.strip():
            raise HTTPException(status_code=400, detail="Meeting text is empty")
        processed = await processing_service.process_custom(payload.text)
        if processed is None:
            raise HTTPException(status_code=400, detail="Meeting text is empty")
        meeting, outcome = processed
        current = state.meetings.get_meeting(meeting.id) or meeting
        return {
            "outcome": outcome.to_dict(),
            "meeting": current.to_dict(),
            "processing": state.processing.to_dict(),
        }

    @router.post("/api/meetings/{meeting_id}/process")
    async def process_meeting(meeting_id: str) -> dict:
        try:
            outcome = await processing_service.process_known_meeting(meeting_id)
        except MeetingNotFoundError as exc:
            logger.warning("Process requested for unknown meeting id=%s", meeting_id)
            raise HTTPException(status_code=404, detail="Meeting not found") from exc
        meeting = state.meetings.get_meeting(meeting_id)
        return {
            "outcome": outcome.to_dict(),
            "meeting": meeting.to_dict() if meeting else None,
            "processing": state.processing.to_dict(),
        }

    @router.get("/api/notes/active")
    def active_notes() -> dict:
        record: Optional[dict] = state.processing.active_record
        return {
            "record": record,
            "view": analysis_view(record) if record is not None else None,
            "is_processing": state.processing.is_processing,
            "active_agent_label": state.processing.active_agent_label,
            "error": state.processing.error,
        }

    @router.delete("/api/processing/error")
    def clear_processing_error() -> dict:
        state.clear_processing_error()
        return {"status": "ok"}

    return router
