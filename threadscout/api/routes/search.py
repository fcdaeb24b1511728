from __future__ import annotations

import json as _json

from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse

from threadscout.agents.orchestrator import RetrievalOrchestrator
from threadscout.llm_client import get_model
from threadscout.models.schemas import SearchRequest
from threadscout.services import logger as log_service

router = APIRouter(prefix="/api/search", tags=["search"])


def build_orchestrator(model: str) -> RetrievalOrchestrator:
    return RetrievalOrchestrator(model=model)


@router.post("")
async def search(request: SearchRequest):
    """Stream sources, answer chunks and completion as Server-Sent Events."""
    model = request.model or get_model()
    history = [message.model_dump() for message in request.history]

    async def event_generator():
        log_service.log_event(
            event_type="search_started",
            message="Search started",
            model=model,
            mode=request.optimization_mode,
            query=request.query[:100],
        )
        orchestrator = build_orchestrator(model)
        async for event in orchestrator.run(
            request.query,
            history,
            request.optimization_mode,
            request.file_ids,
        ):
            yield {"event": event.event.value, "data": _json.dumps(event.data)}

    return EventSourceResponse(event_generator())
