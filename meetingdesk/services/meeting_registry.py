from __future__ import annotations

import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

ADHOC_TITLE = "Custom Meeting"
ADHOC_ORGANIZER = "You"
ADHOC_DESCRIPTION_LIMIT = 200


class MeetingStatus(Enum):
    PENDING = "pending"
    PROCESSED = "processed"


class MeetingNotFoundError(LookupError):
    pass


@dataclass
class Meeting:
    id: str
    title: str = ""
    date: str = ""
    time: str = ""
    attendees: int = 0
    organizer: str = ""
    description: str = ""
    status: MeetingStatus = MeetingStatus.PENDING
    processed_data: Optional[dict] = field(default=None)

    @property
    def is_processed(self) -> bool:
        return self.status == MeetingStatus.PROCESSED

    def processing_message(self) -> str:
        """Request text sent to the processing agent for a known meeting."""
        return (
            "Process this meeting:\n"
            f"Title: {self.title}\n"
            f"Date: {self.date} {self.time}\n"
            f"Organizer: {self.organizer}\n"
            f"Attendees: {self.attendees}\n"
            f"Description: {self.description}"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "time": self.time,
            "attendees": self.attendees,
            "organizer": self.organizer,
            "description": self.description,
            "status": self.status.value,
            "processed_data": self.processed_data,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Meeting":
        status_raw = str(data.get("status") or MeetingStatus.PENDING.value).lower()
        try:
            status = MeetingStatus(status_raw)
        except ValueError:
            status = MeetingStatus.PENDING
        processed = data.get("processed_data", data.get("processedData"))
        try:
            attendees = int(data.get("attendees") or 0)
        except (TypeError, ValueError):
            attendees = 0
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            date=str(data.get("date") or ""),
            time=str(data.get("time") or ""),
            attendees=attendees,
            organizer=str(data.get("organizer") or ""),
            description=str(data.get("description") or ""),
            status=status,
            processed_data=processed if isinstance(processed, dict) else None,
        )


class MeetingRegistry:
    """Process-lifetime registry of known meetings, newest first.

    The only mutation after a meeting is added is ``mark_processed``, which
    replaces the single matching entry.  Entries are never removed.
    """

    def __init__(self, meetings: Iterable[Meeting] = ()) -> None:
        self._meetings: list[Meeting] = list(meetings)
        self._logger = logging.getLogger("meetingdesk.meetings")

    def list_meetings(self) -> list[Meeting]:
        return list(self._meetings)

    def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        for meeting in self._meetings:
            if meeting.id == meeting_id:
                return meeting
        return None

    def require_meeting(self, meeting_id: str) -> Meeting:
        meeting = self.get_meeting(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(meeting_id)
        return meeting

    def load(self, meetings: Iterable[Meeting]) -> None:
        """Replace the registry with a known source list."""
        self._meetings = list(meetings)
        self._logger.info("Registry loaded count=%s", len(self._meetings))

    def load_file(self, path: str) -> int:
        if not os.path.exists(path):
            return 0
        try:
            with open(path, "r", encoding="utf-8") as source_file:
                data = json.load(source_file)
        except (OSError, json.JSONDecodeError) as exc:
            self._logger.warning("Failed to read meeting source: %s error=%s", path, exc)
            return 0
        if not isinstance(data, list):
            self._logger.warning("Meeting source is not a list: %s", path)
            return 0
        meetings = [Meeting.from_dict(item) for item in data if isinstance(item, dict) and item.get("id")]
        self.load(meetings)
        return len(meetings)

    def register(self, meeting: Meeting) -> Meeting:
        existing = self.get_meeting(meeting.id)
        if existing is not None:
            return existing
        self._meetings.append(meeting)
        self._logger.info("Meeting registered id=%s title=%r", meeting.id, meeting.title)
        return meeting

    def add_front(self, meeting: Meeting) -> None:
        self._meetings.insert(0, meeting)

    def create_adhoc(self, text: str, now: Optional[datetime] = None) -> Meeting:
        """Synthesize a pending meeting for pasted text and put it first."""
        now = now or datetime.now()
        meeting = Meeting(
            id=f"custom-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
            title=ADHOC_TITLE,
            date=now.strftime("%Y-%m-%d"),
            time=now.strftime("%H:%M"),
            attendees=0,
            organizer=ADHOC_ORGANIZER,
            description=text[:ADHOC_DESCRIPTION_LIMIT],
        )
        self.add_front(meeting)
        self._logger.info("Ad-hoc meeting created id=%s chars=%s", meeting.id, len(text))
        return meeting

    def mark_processed(self, meeting_id: str, record: dict) -> bool:
        """Attach an analysis record and move the meeting to processed.

        Unknown ids and meetings that are already processed are left alone.
        """
        for index, meeting in enumerate(self._meetings):
            if meeting.id != meeting_id:
                continue
            if meeting.is_processed:
                self._logger.debug("Meeting already processed id=%s", meeting_id)
                return False
            self._meetings[index] = replace(
                meeting, status=MeetingStatus.PROCESSED, processed_data=record
            )
            self._logger.info("Meeting processed id=%s", meeting_id)
            return True
        self._logger.debug("Processed meeting not in registry id=%s", meeting_id)
        return False
