"""Run the harness suites under pytest."""
from __future__ import annotations

import asyncio

import pytest

from meetingdesk.tests import harness as harness_module

SUITE_IDS = ["envelope", "processing", "search", "knowledge-base", "transports", "api"]


def test_all_suites_registered(tmp_path):
    harness = harness_module.TestHarness(str(tmp_path), console=False)
    assert sorted(harness.suites) == sorted(SUITE_IDS)
    for info in harness.get_available_suites():
        assert info["test_count"] > 0


@pytest.mark.parametrize("suite_id", SUITE_IDS)
def test_suite_passes(suite_id, tmp_path):
    harness = harness_module.TestHarness(str(tmp_path), console=False)
    report = asyncio.run(harness.run_suite(suite_id))

    assert report["status"] == "ok"
    result = report["result"]
    problems = [
        f"{r['test_id']} {r['status']}: {r['message']}\n{r['error'] or ''}"
        for r in result["results"]
        if r["status"] in ("failed", "error")
    ]
    assert not problems, "\n\n".join(problems)
    assert result["passed"] == len(result["results"])


def test_unknown_suite(tmp_path):
    harness = harness_module.TestHarness(str(tmp_path), console=False)
    report = asyncio.run(harness.run_suite("nope"))
    assert report["status"] == "error"
    assert "envelope" in report["available"]
