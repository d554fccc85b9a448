from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import httpx


class KnowledgeBaseTransportError(RuntimeError):
    pass


@dataclass
class KnowledgeDocument:
    file_name: str
    status: str = ""

    def to_dict(self) -> dict:
        return {"fileName": self.file_name, "status": self.status}

    @classmethod
    def from_dict(cls, data: dict) -> Optional["KnowledgeDocument"]:
        name = data.get("fileName") or data.get("file_name")
        if not name:
            return None
        return cls(file_name=str(name), status=str(data.get("status") or ""))


@dataclass
class DocumentUpload:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class DocumentListResult:
    success: bool
    documents: Optional[list[KnowledgeDocument]] = None
    error: Optional[str] = None


@dataclass
class DocumentOperationResult:
    success: bool
    error: Optional[str] = None
    details: dict = field(default_factory=dict)


class DocumentTransport(ABC):
    @abstractmethod
    async def list_documents(self, corpus_id: str) -> DocumentListResult:
        raise NotImplementedError

    @abstractmethod
    async def upload(self, corpus_id: str, document: DocumentUpload) -> DocumentOperationResult:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, corpus_id: str, file_names: Sequence[str]) -> DocumentOperationResult:
        raise NotImplementedError


def _documents_from_body(body: Any) -> Optional[list[KnowledgeDocument]]:
    raw = body.get("documents") if isinstance(body, dict) else None
    if not isinstance(raw, list):
        return None
    documents = []
    for item in raw:
        if isinstance(item, dict):
            document = KnowledgeDocument.from_dict(item)
            if document is not None:
                documents.append(document)
    return documents


class HttpDocumentTransport(DocumentTransport):
    """Knowledge-base transport: ``<url>/<corpus_id>/documents``."""

    def __init__(
        self,
        settings_provider: Callable[[], dict],
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._http_transport = http_transport
        self._logger = logging.getLogger("meetingdesk.kb.http")

    def _endpoint(self, corpus_id: str) -> tuple[str, dict, float]:
        settings = self._settings_provider()
        base_url = (settings.get("url") or "").rstrip("/")
        if not base_url:
            raise KnowledgeBaseTransportError("Knowledge base URL is not configured")
        headers = {}
        if settings.get("api_key"):
            headers["x-api-key"] = settings["api_key"]
        timeout = float(settings.get("timeout") or 60)
        return f"{base_url}/{corpus_id}/documents", headers, timeout

    @staticmethod
    def _json_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    async def list_documents(self, corpus_id: str) -> DocumentListResult:
        url, headers, timeout = self._endpoint(corpus_id)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._http_transport) as client:
                response = await client.get(url, headers=headers)
        except httpx.RequestError as exc:
            raise KnowledgeBaseTransportError("Failed to reach knowledge base") from exc

        body = self._json_body(response)
        if not response.is_success or not isinstance(body, dict):
            return DocumentListResult(
                success=False, error=f"Knowledge base error: {response.status_code}"
            )
        return DocumentListResult(
            success=bool(body.get("success")),
            documents=_documents_from_body(body),
            error=body.get("error"),
        )

    async def upload(self, corpus_id: str, document: DocumentUpload) -> DocumentOperationResult:
        url, headers, timeout = self._endpoint(corpus_id)
        files = {"file": (document.filename, document.content, document.content_type)}
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._http_transport) as client:
                response = await client.post(url, headers=headers, files=files)
        except httpx.RequestError as exc:
            raise KnowledgeBaseTransportError("Failed to reach knowledge base") from exc

        body = self._json_body(response)
        if not isinstance(body, dict):
            return DocumentOperationResult(
                success=False, error=f"Knowledge base error: {response.status_code}"
            )
        success = response.is_success and bool(body.get("success"))
        error = body.get("error")
        return DocumentOperationResult(
            success=success,
            error=str(error) if error else None,
            details=body,
        )

    async def delete(self, corpus_id: str, file_names: Sequence[str]) -> DocumentOperationResult:
        url, headers, timeout = self._endpoint(corpus_id)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._http_transport) as client:
                response = await client.request(
                    "DELETE", url, headers=headers, json={"fileNames": list(file_names)}
                )
        except httpx.RequestError as exc:
            raise KnowledgeBaseTransportError("Failed to reach knowledge base") from exc

        body = self._json_body(response)
        success = response.is_success and isinstance(body, dict) and bool(body.get("success"))
        return DocumentOperationResult(success=success, details=body if isinstance(body, dict) else {})
