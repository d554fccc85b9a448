"""Search router for querying past meeting notes through the search agent."""

from fastapi import APIRouter
from pydantic import BaseModel

from meetingdesk.services.app_state import AppState
from meetingdesk.services.search_service import MeetingSearchService


class SearchRequest(BaseModel):
    query: str


class RefinementRequest(BaseModel):
    refinement: str


def create_search_router(state: AppState, search_service: MeetingSearchService) -> APIRouter:
    router = APIRouter(tags=["search"])

    @router.get("/api/search")
    def current_search() -> dict:
        return state.search.to_dict()

    @router.post("/api/search")
    async def search_meetings(payload: SearchRequest) -> dict:
        """Run a search.  Blank queries are ignored and leave state as it was."""
        outcome = await search_service.search(payload.query)
        return {
            "outcome": outcome.to_dict() if outcome else None,
            "search": state.search.to_dict(),
        }

    @router.post("/api/search/refinement")
    def select_refinement(payload: RefinementRequest) -> dict:
        search_service.select_refinement(payload.refinement)
        return state.search.to_dict()

    @router.delete("/api/search/error")
    def clear_search_error() -> dict:
        state.clear_search_error()
        return {"status": "ok"}

    return router
