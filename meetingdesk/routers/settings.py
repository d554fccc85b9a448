import logging
from typing import Optional

import requests

from fastapi import APIRouter
from pydantic import BaseModel, Field

from meetingdesk.services.agent_call_logger import AgentCallLogger
from meetingdesk.services.agent_settings import AgentSettings

_logger = logging.getLogger("meetingdesk.api.settings")


class AgentServiceSettingsRequest(BaseModel):
    url: str = Field(..., min_length=1)
    api_key: str = ""
    timeout: float = Field(120, gt=0)
    processing_agent_id: Optional[str] = None
    search_agent_id: Optional[str] = None


class KnowledgeBaseSettingsRequest(BaseModel):
    url: str = Field(..., min_length=1)
    api_key: str = ""
    corpus_id: str = Field(..., min_length=1)
    timeout: float = Field(60, gt=0)
    status_display_seconds: float = Field(3.0, ge=0)


class ServiceTestRequest(BaseModel):
    url: str = ""
    api_key: str = ""


class LoggingSettingsRequest(BaseModel):
    agent_calls: bool


MASK = "********"


def _mask(section: dict) -> dict:
    masked = dict(section)
    if masked.get("api_key"):
        masked["api_key"] = MASK
    return masked


def create_settings_router(settings: AgentSettings, call_logger: AgentCallLogger) -> APIRouter:
    router = APIRouter(tags=["settings"])

    @router.get("/api/settings/agent-service")
    def get_agent_service_settings() -> dict:
        config = settings.config()
        return {**_mask(config["agent_service"]), "agents": config["agents"]}

    @router.post("/api/settings/agent-service")
    def update_agent_service_settings(payload: AgentServiceSettingsRequest) -> dict:
        values = {"url": payload.url, "timeout": payload.timeout}
        if payload.api_key != MASK:
            values["api_key"] = payload.api_key
        settings.update_section("agent_service", values)
        agents = {}
        if payload.processing_agent_id:
            agents["processing"] = payload.processing_agent_id
        if payload.search_agent_id:
            agents["search"] = payload.search_agent_id
        if agents:
            settings.update_section("agents", agents)
        return {"status": "ok"}

    @router.post("/api/settings/agent-service/test")
    def test_agent_service(payload: ServiceTestRequest) -> dict:
        current = settings.agent_service()
        url = payload.url.strip() or current.get("url", "")
        if not url:
            return {"status": "error", "message": "Missing agent service URL"}
        headers = {}
        api_key = payload.api_key or current.get("api_key")
        if api_key:
            headers["x-api-key"] = api_key
        try:
            response = requests.get(url, headers=headers, timeout=15)
        except requests.RequestException as exc:
            _logger.warning("Agent service test failed url=%s error=%s", url, exc)
            return {"status": "error", "message": f"Failed to reach agent service: {exc}"}
        if response.status_code >= 500:
            return {"status": "error", "message": f"agent service error: {response.status_code}"}
        return {"status": "ok", "http_status": response.status_code}

    @router.get("/api/settings/knowledge-base")
    def get_knowledge_base_settings() -> dict:
        return _mask(settings.knowledge_base())

    @router.post("/api/settings/knowledge-base")
    def update_knowledge_base_settings(payload: KnowledgeBaseSettingsRequest) -> dict:
        values = payload.model_dump()
        if values["api_key"] == MASK:
            values.pop("api_key")
        settings.update_section("knowledge_base", values)
        return {"status": "ok"}

    @router.get("/api/settings/logging")
    def get_logging_settings() -> dict:
        return {"agent_calls": call_logger.enabled}

    @router.post("/api/settings/logging")
    def update_logging_settings(payload: LoggingSettingsRequest) -> dict:
        settings.update_section("logging", {"agent_calls": payload.agent_calls})
        call_logger.set_enabled(payload.agent_calls)
        return {"status": "ok"}

    return router
