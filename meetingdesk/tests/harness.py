"""Suite harness: registers suites, runs them, and writes a log per run."""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from typing import Optional

from meetingdesk.tests.base import SuiteResult, TestSuite

_FILE_FORMAT = "[%(asctime)s] [%(name)s] %(message)s"


class TestHarness:
    """Runs registered suites and records their output under ``logs_dir``."""

    def __init__(self, logs_dir: str, console: bool = True):
        self.logs_dir = logs_dir
        self.console = console
        self.suites: dict[str, type[TestSuite]] = {}
        self.logger = logging.getLogger("meetingdesk.test.harness")
        self._register_suites()

    def _register_suites(self):
        from meetingdesk.tests.suites.envelope import EnvelopeNormalizerSuite
        from meetingdesk.tests.suites.processing import MeetingProcessingSuite
        from meetingdesk.tests.suites.search import MeetingSearchSuite
        from meetingdesk.tests.suites.knowledge_base import KnowledgeBaseSuite
        from meetingdesk.tests.suites.transports import TransportSuite
        from meetingdesk.tests.suites.api import ApiRoutesSuite

        for suite_class in (
            EnvelopeNormalizerSuite,
            MeetingProcessingSuite,
            MeetingSearchSuite,
            KnowledgeBaseSuite,
            TransportSuite,
            ApiRoutesSuite,
        ):
            self.suites[suite_class.suite_id] = suite_class

    def get_available_suites(self) -> list[dict]:
        return [suite_class().get_info() for suite_class in self.suites.values()]

    def _run_logger(self, name: str) -> tuple[logging.Logger, str]:
        os.makedirs(self.logs_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_file = os.path.join(self.logs_dir, f"test_{name}_{timestamp}.log")

        logger = logging.getLogger(f"meetingdesk.test.run.{name}")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(file_handler)

        if self.console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(
                logging.Formatter("[%(asctime)s] [TEST] %(message)s", datefmt="%H:%M:%S")
            )
            logger.addHandler(console_handler)

        return logger, log_file

    @staticmethod
    def _close_logger(logger: logging.Logger) -> None:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()

    async def run_suite(self, suite_id: str) -> dict:
        if suite_id not in self.suites:
            return {
                "status": "error",
                "message": f"Unknown suite: {suite_id}",
                "available": list(self.suites.keys()),
            }

        logger, log_file = self._run_logger(suite_id)
        try:
            logger.info(f"Starting test suite: {suite_id}")
            logger.info(f"Log file: {log_file}")
            result: SuiteResult = await self.suites[suite_id](logger=logger).run()
            logger.info("JSON RESULT:")
            logger.info(json.dumps(result.to_dict(), indent=2))
        finally:
            self._close_logger(logger)

        return {"status": "ok", "log_file": log_file, "result": result.to_dict()}

    async def run_all(self, suite_ids: Optional[list[str]] = None) -> dict:
        selected = suite_ids or list(self.suites.keys())
        logger, log_file = self._run_logger("all")
        totals = {"total_passed": 0, "total_failed": 0, "total_skipped": 0, "total_error": 0}
        all_results = []
        try:
            logger.info("RUNNING SUITES: %s", ", ".join(selected))
            for suite_id in selected:
                suite_class = self.suites.get(suite_id)
                if suite_class is None:
                    logger.warning("Skipping unknown suite %s", suite_id)
                    continue
                result = await suite_class(logger=logger).run()
                all_results.append(result.to_dict())
                totals["total_passed"] += result.passed
                totals["total_failed"] += result.failed
                totals["total_skipped"] += result.skipped
                totals["total_error"] += result.error

            logger.info(
                f"Total: {totals['total_passed']} passed, {totals['total_failed']} failed, "
                f"{totals['total_skipped']} skipped, {totals['total_error']} errors"
            )
            logger.info(json.dumps({**totals, "suites": all_results}, indent=2))
        finally:
            self._close_logger(logger)

        return {"status": "ok", "log_file": log_file, **totals, "suites": all_results}
