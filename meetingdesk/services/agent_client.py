from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx


class AgentTransportError(RuntimeError):
    pass


@dataclass
class AgentCallResult:
    success: bool
    response: Any = None
    error: Optional[str] = None

    @classmethod
    def from_body(cls, body: Any) -> "AgentCallResult":
        if not isinstance(body, dict):
            return cls(success=False, error="Agent service returned a non-object body")
        error = body.get("error")
        return cls(
            success=bool(body.get("success")),
            response=body.get("response"),
            error=str(error) if error else None,
        )


class AgentTransport(ABC):
    @abstractmethod
    async def send(self, message: str, agent_id: str) -> AgentCallResult:
        """Send one message to one agent and return its reply."""
        raise NotImplementedError


class HttpAgentTransport(AgentTransport):
    """Agent transport over HTTP.

    Settings are read through ``settings_provider`` on every call so URL and
    key edits made in the settings API apply to the next request.
    """

    def __init__(
        self,
        settings_provider: Callable[[], dict],
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._http_transport = http_transport
        self._logger = logging.getLogger("meetingdesk.agent.http")

    async def send(self, message: str, agent_id: str) -> AgentCallResult:
        settings = self._settings_provider()
        url = settings.get("url", "")
        if not url:
            return AgentCallResult(success=False, error="Agent service URL is not configured.")

        headers = {"Content-Type": "application/json"}
        if settings.get("api_key"):
            headers["x-api-key"] = settings["api_key"]
        timeout = float(settings.get("timeout") or 120)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._http_transport) as client:
                response = await client.post(
                    url,
                    headers=headers,
                    json={"message": message, "agent_id": agent_id},
                )
        except httpx.RequestError as exc:
            raise AgentTransportError("Failed to reach agent service") from exc

        if not response.is_success:
            self._logger.warning(
                "Agent service error status=%s agent_id=%s", response.status_code, agent_id
            )
            return AgentCallResult(
                success=False, error=f"Agent service error: {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError:
            self._logger.warning("Agent service returned non-JSON body agent_id=%s", agent_id)
            return AgentCallResult(success=False, error="Agent service returned an invalid body")
        return AgentCallResult.from_body(body)
