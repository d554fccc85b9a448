"""Runtime paths shared by routers and services."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppContext:
    """Directory layout for one app instance.

    ``config_path`` always lives in ``<cwd>/data`` so a custom ``data_dir``
    named in the config can be found again; logs always stay under ``cwd``.
    """

    cwd: str
    data_dir: str
    config_path: str

    @classmethod
    def resolve(cls, cwd: str, config: dict) -> "AppContext":
        default_data_dir = os.path.join(cwd, "data")
        data_dir = default_data_dir
        custom = config.get("data_dir") or ""
        if custom:
            if os.path.isdir(custom) and os.access(custom, os.W_OK):
                data_dir = custom
            else:
                logging.getLogger("meetingdesk.boot").warning(
                    "Configured data_dir=%s is missing or not writable, using %s",
                    custom,
                    default_data_dir,
                )
        return cls(
            cwd=cwd,
            data_dir=data_dir,
            config_path=os.path.join(default_data_dir, "config.json"),
        )

    @property
    def meetings_source_path(self) -> str:
        return os.path.join(self.data_dir, "meetings.json")

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.cwd, "logs")

    @property
    def agent_logs_dir(self) -> str:
        return os.path.join(self.logs_dir, "agent")

    def ensure_dirs(self) -> None:
        for path in (self.data_dir, os.path.dirname(self.config_path), self.logs_dir, self.agent_logs_dir):
            os.makedirs(path, exist_ok=True)
