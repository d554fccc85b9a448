import copy
import json
import logging
import os
import threading
from typing import Optional

PROCESSING_AGENT_ID = "699959a07929f75fa2684eb4"
CALENDAR_AGENT_ID = "699959877929f75fa2684ea8"
TRANSCRIPT_AGENT_ID = "699959887929f75fa2684eac"
ANALYST_AGENT_ID = "69995988db37e68c87a52d60"
SEARCH_AGENT_ID = "699959b17929f75fa2684eb9"
CORPUS_ID = "69995926e12ce168202fcc11"

AGENT_CATALOG = [
    {
        "id": PROCESSING_AGENT_ID,
        "name": "Meeting Processing Coordinator",
        "purpose": "Orchestrates end-to-end meeting processing",
    },
    {
        "id": CALENDAR_AGENT_ID,
        "name": "Calendar Context Agent",
        "purpose": "Extracts calendar metadata and attendees",
    },
    {
        "id": TRANSCRIPT_AGENT_ID,
        "name": "Transcript Retrieval Agent",
        "purpose": "Retrieves and structures meeting transcripts",
    },
    {
        "id": ANALYST_AGENT_ID,
        "name": "Meeting Analyst Agent",
        "purpose": "Analyzes content for decisions, actions, risks",
    },
    {
        "id": SEARCH_AGENT_ID,
        "name": "Meeting Search Agent",
        "purpose": "Searches past meeting notes by query",
    },
]

DEFAULT_CONFIG = {
    "agent_service": {
        "url": "http://127.0.0.1:8787/api/agent",
        "api_key": "",
        "timeout": 120,
    },
    "agents": {
        "processing": PROCESSING_AGENT_ID,
        "search": SEARCH_AGENT_ID,
    },
    "knowledge_base": {
        "url": "http://127.0.0.1:8787/api/rag",
        "api_key": "",
        "corpus_id": CORPUS_ID,
        "timeout": 60,
        "status_display_seconds": 3.0,
    },
    "logging": {
        "agent_calls": True,
    },
}


def _merge(defaults: dict, overrides: dict) -> dict:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class AgentSettings:
    """Agent targets and service endpoints, read from config.json.

    The file is re-read on every access so settings edits apply to the next
    request without a restart.  Missing keys fall back to ``DEFAULT_CONFIG``.
    """

    def __init__(self, config_path: str) -> None:
        self._config_path = config_path
        self._write_lock = threading.Lock()
        self._logger = logging.getLogger("meetingdesk.settings")

    def _read_config(self) -> dict:
        """Read config from file, returning empty dict if not found."""
        if not os.path.exists(self._config_path):
            return {}
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            self._logger.warning("Failed to read config: %s error=%s", self._config_path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def config(self) -> dict:
        return _merge(DEFAULT_CONFIG, self._read_config())

    def update_section(self, section: str, values: dict) -> dict:
        with self._write_lock:
            data = self._read_config()
            current = data.get(section, {})
            if not isinstance(current, dict):
                current = {}
            current.update(values)
            data[section] = current
            os.makedirs(os.path.dirname(self._config_path) or ".", exist_ok=True)
            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        self._logger.info("Settings updated section=%s keys=%s", section, sorted(values.keys()))
        return self.config()[section]

    def agent_service(self) -> dict:
        return self.config()["agent_service"]

    def knowledge_base(self) -> dict:
        return self.config()["knowledge_base"]

    @property
    def processing_agent_id(self) -> str:
        return self.config()["agents"]["processing"]

    @property
    def search_agent_id(self) -> str:
        return self.config()["agents"]["search"]

    @property
    def corpus_id(self) -> str:
        return self.knowledge_base()["corpus_id"]

    @property
    def status_display_seconds(self) -> float:
        return float(self.knowledge_base().get("status_display_seconds") or 0)

    @property
    def log_agent_calls(self) -> bool:
        return bool(self.config()["logging"].get("agent_calls"))

    def agent_catalog(self) -> list[dict]:
        return copy.deepcopy(AGENT_CATALOG)

    def agent_label(self, agent_id: Optional[str]) -> Optional[str]:
        if agent_id is None:
            return None
        for agent in AGENT_CATALOG:
            if agent["id"] == agent_id:
                return agent["name"]
        return agent_id
