"""Local cache of the remote knowledge-base corpus.

Uploads resynchronize the whole list from the server so document status is
whatever the server assigned.  Deletes remove the entry locally without a
resync, and listing or deleting failures are logged but not surfaced.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from meetingdesk.services.agent_settings import AgentSettings
from meetingdesk.services.app_state import AppState
from meetingdesk.services.knowledge_base_client import (
    DocumentTransport,
    DocumentUpload,
    KnowledgeDocument,
)

UPLOAD_SUCCESS_STATUS = "Upload successful. Document is being processed."
UPLOAD_FAILED_ERROR = "Upload failed."
UPLOAD_NETWORK_ERROR = "Upload failed due to network error."


@dataclass(frozen=True)
class KnowledgeBaseOutcome:
    operation: str  # "refresh", "upload", "delete"
    succeeded: bool
    error: Optional[str] = None
    file_name: Optional[str] = None
    stale: bool = False

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "succeeded": self.succeeded,
            "error": self.error,
            "file_name": self.file_name,
            "stale": self.stale,
        }


class KnowledgeBaseSync:
    def __init__(
        self,
        state: AppState,
        transport: DocumentTransport,
        settings: AgentSettings,
    ) -> None:
        self._state = state
        self._transport = transport
        self._settings = settings
        self._logger = logging.getLogger("meetingdesk.kb")

    @property
    def documents(self) -> list[KnowledgeDocument]:
        return list(self._state.knowledge_base.documents)

    async def refresh(self) -> KnowledgeBaseOutcome:
        """Reload the document list; on any failure keep the current cache.

        Overlapping refreshes are allowed.  Only the most recently started
        one may replace the cache or clear ``loading``.
        """
        generation = self._state.begin_refresh()
        documents: Optional[list[KnowledgeDocument]] = None
        try:
            result = await self._transport.list_documents(self._settings.corpus_id)
        except Exception as exc:
            self._logger.warning("Document listing failed: %s", exc)
        else:
            if result.success and result.documents is not None:
                documents = list(result.documents)
            else:
                self._logger.warning("Document listing not successful error=%s", result.error)

        if not self._state.apply_refresh(generation, documents):
            return KnowledgeBaseOutcome("refresh", succeeded=False, stale=True)
        if documents is None:
            return KnowledgeBaseOutcome("refresh", succeeded=False)
        self._logger.info("Document cache reloaded count=%s", len(documents))
        return KnowledgeBaseOutcome("refresh", succeeded=True)

    async def upload(self, document: DocumentUpload) -> KnowledgeBaseOutcome:
        kb_state = self._state.knowledge_base
        generation = self._state.begin_upload()
        self._logger.info(
            "Upload started file=%s bytes=%s", document.filename, len(document.content)
        )
        try:
            result = await self._transport.upload(self._settings.corpus_id, document)
        except Exception as exc:
            self._logger.exception("Upload transport failed file=%s: %s", document.filename, exc)
            kb_state.upload_error = UPLOAD_NETWORK_ERROR
            kb_state.upload_status = None
            outcome = KnowledgeBaseOutcome(
                "upload", succeeded=False, error=UPLOAD_NETWORK_ERROR, file_name=document.filename
            )
        else:
            if result.success:
                kb_state.upload_status = UPLOAD_SUCCESS_STATUS
                await self.refresh()
                outcome = KnowledgeBaseOutcome("upload", succeeded=True, file_name=document.filename)
            else:
                error = result.error or UPLOAD_FAILED_ERROR
                self._logger.warning("Upload rejected file=%s error=%s", document.filename, error)
                kb_state.upload_error = error
                kb_state.upload_status = None
                outcome = KnowledgeBaseOutcome(
                    "upload", succeeded=False, error=error, file_name=document.filename
                )

        self._schedule_message_clear(generation)
        return outcome

    def _schedule_message_clear(self, generation: int) -> None:
        delay = self._settings.status_display_seconds
        if delay <= 0:
            return
        loop = asyncio.get_running_loop()
        loop.call_later(delay, self._state.clear_upload_messages, generation)

    def clear_messages(self) -> None:
        self._state.clear_upload_messages()

    async def delete(self, file_name: str) -> KnowledgeBaseOutcome:
        kb_state = self._state.knowledge_base
        try:
            result = await self._transport.delete(self._settings.corpus_id, [file_name])
        except Exception as exc:
            self._logger.warning("Document delete failed file=%s: %s", file_name, exc)
            return KnowledgeBaseOutcome("delete", succeeded=False, file_name=file_name)

        if not result.success:
            self._logger.warning("Document delete not successful file=%s", file_name)
            return KnowledgeBaseOutcome("delete", succeeded=False, file_name=file_name)

        kb_state.documents = [doc for doc in kb_state.documents if doc.file_name != file_name]
        self._logger.info("Document removed file=%s", file_name)
        return KnowledgeBaseOutcome("delete", succeeded=True, file_name=file_name)
