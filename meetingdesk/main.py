import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from meetingdesk.context import AppContext
from meetingdesk.routers.knowledge_base import create_knowledge_base_router
from meetingdesk.routers.logs import create_logs_router
from meetingdesk.routers.meetings import create_meetings_router
from meetingdesk.routers.search import create_search_router
from meetingdesk.routers.settings import create_settings_router
from meetingdesk.routers.testing import create_testing_router
from meetingdesk.services.agent_call_logger import AgentCallLogger
from meetingdesk.services.agent_client import AgentTransport, HttpAgentTransport
from meetingdesk.services.agent_settings import AgentSettings
from meetingdesk.services.app_state import AppState
from meetingdesk.services.knowledge_base import KnowledgeBaseSync
from meetingdesk.services.knowledge_base_client import DocumentTransport, HttpDocumentTransport
from meetingdesk.services.logging_setup import configure_logging, enable_crash_logging
from meetingdesk.services.meeting_registry import MeetingRegistry
from meetingdesk.services.processing import MeetingProcessingService
from meetingdesk.services.search_service import MeetingSearchService


def create_app(
    *,
    cwd: Optional[str] = None,
    agent_transport: Optional[AgentTransport] = None,
    document_transport: Optional[DocumentTransport] = None,
    install_logging: bool = True,
) -> FastAPI:
    cwd = cwd or os.getcwd()
    if install_logging:
        configure_logging(os.path.join(cwd, "logs"))
        enable_crash_logging(os.path.join(cwd, "logs"))
    logger = logging.getLogger("meetingdesk.boot")
    logger.info("Boot: starting create_app cwd=%s", cwd)

    settings = AgentSettings(os.path.join(cwd, "data", "config.json"))
    config = settings.config()
    logger.info("Boot: config sections=%s", sorted(config.keys()))
    ctx = AppContext.resolve(cwd, config)
    ctx.ensure_dirs()
    logger.info("Boot: AppContext ready data_dir=%s", ctx.data_dir)

    call_logger = AgentCallLogger(ctx.agent_logs_dir, enabled=settings.log_agent_calls)

    registry = MeetingRegistry()
    loaded = registry.load_file(ctx.meetings_source_path)
    logger.info("Boot: meeting registry ready known_meetings=%s", loaded)
    state = AppState(registry)

    if agent_transport is None:
        agent_transport = HttpAgentTransport(settings.agent_service)
    if document_transport is None:
        document_transport = HttpDocumentTransport(settings.knowledge_base)

    processing_service = MeetingProcessingService(state, agent_transport, settings, call_logger)
    search_service = MeetingSearchService(state, agent_transport, settings, call_logger)
    kb_sync = KnowledgeBaseSync(state, document_transport, settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        # Initial document listing; failures leave the cache empty.
        await kb_sync.refresh()
        yield

    app = FastAPI(title="MeetingDesk", version="0.1.0", lifespan=lifespan)
    app.state.ctx = ctx
    app.state.app_state = state
    app.state.settings = settings

    request_logger = logging.getLogger("meetingdesk.http")

    class RequestLogMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            start = time.perf_counter()
            response = await call_next(request)
            if request.url.path.startswith("/api/"):
                request_logger.info(
                    "%s %s -> %s (%.1fms)",
                    request.method,
                    request.url.path,
                    response.status_code,
                    (time.perf_counter() - start) * 1000,
                )
            return response

    app.add_middleware(RequestLogMiddleware)
    logger.info("Boot: request log middleware added")

    app.include_router(create_meetings_router(state, processing_service))
    logger.info("Boot: meetings router mounted")
    app.include_router(create_search_router(state, search_service))
    logger.info("Boot: search router mounted")
    app.include_router(create_knowledge_base_router(state, kb_sync))
    logger.info("Boot: knowledge base router mounted")
    app.include_router(create_settings_router(settings, call_logger))
    logger.info("Boot: settings router mounted")
    app.include_router(create_logs_router(ctx, call_logger))
    logger.info("Boot: logs router mounted")
    app.include_router(create_testing_router(ctx))
    logger.info("Boot: testing router mounted")

    @app.get("/api/state")
    def app_state() -> dict:
        return state.snapshot()

    @app.get("/api/agents")
    def agents() -> list[dict]:
        active = state.processing.active_agent_id if state.processing.is_processing else None
        return [
            {**agent, "active": agent["id"] == active}
            for agent in settings.agent_catalog()
        ]

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok", "version": app.version}

    logger.info("Boot: create_app complete")
    return app
