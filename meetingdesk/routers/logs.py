"""Log access: recent server errors, client-side reports and agent call logs."""

import glob
import logging
import os
import re
from typing import Literal

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from meetingdesk.services.agent_call_logger import AgentCallLogger

ERROR_PATTERN = re.compile(r"error|exception|traceback", re.IGNORECASE)
MAX_ERROR_LINES = 200


class ClientLogRequest(BaseModel):
    level: Literal["error", "warning", "info"] = "error"
    message: str = Field(..., min_length=1)
    context: dict = Field(default_factory=dict)


def _latest_server_log(logs_dir: str):
    candidates = glob.glob(os.path.join(logs_dir, "server_*.log"))
    return max(candidates, key=os.path.getmtime) if candidates else None


def create_logs_router(ctx, call_logger: AgentCallLogger) -> APIRouter:
    router = APIRouter(tags=["logs"])
    client_logger = logging.getLogger("meetingdesk.client")

    @router.get("/api/logs/errors")
    def error_log() -> dict:
        """Error-looking lines from the current server log, oldest first."""
        latest = _latest_server_log(ctx.logs_dir)
        if latest is None:
            return {"lines": []}
        try:
            with open(latest, "r", encoding="utf-8", errors="replace") as log_file:
                matches = [line.rstrip("\n") for line in log_file if ERROR_PATTERN.search(line)]
        except OSError:
            return {"lines": []}
        return {"lines": matches[-MAX_ERROR_LINES:]}

    @router.post("/api/logs/client")
    def client_log(payload: ClientLogRequest) -> dict:
        level = {"warning": logging.WARNING, "info": logging.INFO}.get(payload.level, logging.ERROR)
        if payload.context:
            client_logger.log(level, "[client] %s | context=%s", payload.message, payload.context)
        else:
            client_logger.log(level, "[client] %s", payload.message)
        return {"status": "ok"}

    @router.get("/api/logs/agent")
    def agent_logs() -> dict:
        return {"enabled": call_logger.enabled, "logs": call_logger.list_logs()}

    @router.get("/api/logs/agent/{filename}", response_class=PlainTextResponse)
    def agent_log(filename: str) -> str:
        content = call_logger.get_log(filename)
        if content is None:
            raise HTTPException(status_code=404, detail="Log not found")
        return content

    return router
