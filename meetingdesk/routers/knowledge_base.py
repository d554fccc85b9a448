import logging

from fastapi import APIRouter, File, HTTPException, UploadFile

from meetingdesk.services.app_state import AppState
from meetingdesk.services.knowledge_base import KnowledgeBaseSync
from meetingdesk.services.knowledge_base_client import DocumentUpload


def create_knowledge_base_router(state: AppState, kb_sync: KnowledgeBaseSync) -> APIRouter:
    router = APIRouter(tags=["knowledge-base"])
    logger = logging.getLogger("meetingdesk.api.kb")

    @router.get("/api/knowledge-base/documents")
    def list_documents() -> dict:
        return state.knowledge_base.to_dict()

    @router.post("/api/knowledge-base/refresh")
    async def refresh_documents() -> dict:
        outcome = await kb_sync.refresh()
        return {"outcome": outcome.to_dict(), "knowledge_base": state.knowledge_base.to_dict()}

    @router.post("/api/knowledge-base/upload")
    async def upload_document(file: UploadFile = File(...)) -> dict:
        try:
            contents = await file.read()
        except Exception as exc:
            logger.exception("Reading upload failed: %s", exc)
            raise HTTPException(status_code=400, detail="Could not read uploaded file") from exc

        document = DocumentUpload(
            filename=file.filename or "document",
            content=contents,
            content_type=file.content_type or "application/octet-stream",
        )
        outcome = await kb_sync.upload(document)
        return {"outcome": outcome.to_dict(), "knowledge_base": state.knowledge_base.to_dict()}

    @router.delete("/api/knowledge-base/documents/{file_name:path}")
    async def delete_document(file_name: str) -> dict:
        outcome = await kb_sync.delete(file_name)
        return {"outcome": outcome.to_dict(), "knowledge_base": state.knowledge_base.to_dict()}

    @router.delete("/api/knowledge-base/messages")
    def clear_messages() -> dict:
        kb_sync.clear_messages()
        return {"status": "ok"}

    return router
