"""Structured per-call log files for agent dispatches.

Each dispatch (processing or search) can be written to ``logs/agent/`` with
its target, timing, request text, raw response and the outcome the
orchestration layer derived from it.
"""

import itertools
import json
import os
import threading
from datetime import datetime
from typing import Any, Optional

RULE = "=" * 80
THIN_RULE = "-" * 80


def _section(title: str, body: str) -> list[str]:
    return ["", THIN_RULE, f"## {title}", THIN_RULE, body]


def _as_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _is_safe_name(filename: str) -> bool:
    return bool(filename) and os.path.basename(filename) == filename and ".." not in filename


class AgentCallLogger:
    def __init__(self, logs_dir: str, enabled: bool = True) -> None:
        self._logs_dir = logs_dir
        self._enabled = enabled
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        os.makedirs(self._logs_dir, exist_ok=True)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def log_call(
        self,
        *,
        stem: str,
        agent_id: str,
        agent_label: Optional[str],
        message: str,
        response: Any,
        outcome: dict,
        duration_ms: int,
        meeting_id: Optional[str] = None,
    ) -> Optional[str]:
        """Write one call log and return its path (None when disabled).

        Args:
            stem: Call type, used as the file name prefix ('process_meeting', 'search')
            agent_id: Target agent id
            agent_label: Catalogue name of the agent, if known
            message: Request text sent to the agent
            response: Raw transport result (success/response/error), None on exceptions
            outcome: Outcome summary produced by the orchestration layer
            duration_ms: Call duration in milliseconds
            meeting_id: Meeting the call was made for, if any
        """
        if not self._enabled:
            return None

        now = datetime.now()
        metadata = [
            f"Timestamp: {now.isoformat()}",
            f"Agent: {agent_label or '(unknown)'} ({agent_id})",
            f"Duration: {duration_ms}ms",
        ]
        if meeting_id:
            metadata.append(f"Meeting ID: {meeting_id}")

        lines = [RULE, f"AGENT CALL LOG: {stem}", RULE]
        lines += _section("METADATA", "\n".join(metadata))
        lines += _section("REQUEST", message)
        lines += _section("RAW RESPONSE", _as_json(response))
        lines += _section("OUTCOME", _as_json(outcome))
        lines += ["", RULE]

        with self._lock:
            filename = f"{stem}_{now:%Y-%m-%d_%H-%M-%S}_{next(self._sequence):04d}.log"
            path = os.path.join(self._logs_dir, filename)
            with open(path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
        return path

    def list_logs(self) -> list[dict]:
        """Call logs, newest first."""
        if not os.path.isdir(self._logs_dir):
            return []
        entries = []
        with os.scandir(self._logs_dir) as it:
            for entry in it:
                if not entry.is_file() or not entry.name.endswith(".log"):
                    continue
                stat = entry.stat()
                entries.append({
                    "filename": entry.name,
                    "size": stat.st_size,
                    "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
                })
        entries.sort(key=lambda item: (item["modified"], item["filename"]), reverse=True)
        return entries

    def get_log(self, filename: str) -> Optional[str]:
        if not _is_safe_name(filename):
            return None
        path = os.path.join(self._logs_dir, filename)
        if not os.path.isfile(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
