"""Suite harness routes: list suites and run one, several or all of them."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from meetingdesk.tests.harness import TestHarness


def create_testing_router(ctx) -> APIRouter:
    router = APIRouter(tags=["testing"])
    logger = logging.getLogger("meetingdesk.api.testing")
    harness = TestHarness(ctx.logs_dir)

    @router.get("/api/test/suites")
    async def list_suites() -> dict:
        return {"status": "ok", "suites": harness.get_available_suites()}

    @router.post("/api/test/run")
    async def run_tests(
        suite: Optional[list[str]] = Query(None, description="Suite id; repeat to run several"),
        all_suites: bool = Query(False, alias="all", description="Run every registered suite"),
    ) -> dict:
        logger.info("Test run requested suites=%s all=%s", suite, all_suites)
        if all_suites:
            return await harness.run_all()
        if not suite:
            raise HTTPException(
                status_code=400,
                detail={
                    "message": "Specify ?suite=<suite_id> (repeatable) or ?all=true",
                    "available_suites": sorted(harness.suites),
                },
            )
        unknown = [suite_id for suite_id in suite if suite_id not in harness.suites]
        if unknown:
            raise HTTPException(status_code=404, detail=f"Unknown suite(s): {', '.join(unknown)}")
        if len(suite) == 1:
            return await harness.run_suite(suite[0])
        return await harness.run_all(suite)

    return router
