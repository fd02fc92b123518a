"""Graph execution API routes."""

import json
import logging

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from computeflow.models import ExecutionProgress
from computeflow.sessions import get_session_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/projects/{project_id}/execute", response_model=ExecutionProgress, status_code=202)
async def execute_graph(project_id: str) -> ExecutionProgress:
    """Start running the project's graph on the execution engine.

    Returns immediately; progress is available from ``/execution`` and the
    ``/events`` stream. Starting while a run is active does nothing.
    """
    session = await get_session_manager().get_or_create_session(project_id)
    session.start_execution()
    return session.store.execution


@router.post("/projects/{project_id}/execute/cancel")
async def cancel_execution(project_id: str) -> dict[str, bool]:
    """Cancel the active run, if any."""
    session = await get_session_manager().get_or_create_session(project_id)
    return {"cancelled": session.cancel_execution()}


@router.get("/projects/{project_id}/execution", response_model=ExecutionProgress)
async def get_execution(project_id: str) -> ExecutionProgress:
    """Get progress of the current or most recent run."""
    session = await get_session_manager().get_or_create_session(project_id)
    return session.store.execution


@router.get("/projects/{project_id}/events")
async def stream_events(project_id: str) -> StreamingResponse:
    """Stream store change notifications as Server-Sent Events.

    Events:
        - changed: nodes or edges changed
        - history: a history entry was recorded or the cursor moved
        - execution: run progress changed
        - fit_view: newly added nodes should be brought into view
    """
    session = await get_session_manager().get_or_create_session(project_id)

    async def event_generator():
        try:
            async for event in session.events():
                payload = event.model_dump(mode="json", by_alias=True)
                yield f"event: {event.type.value}\ndata: {json.dumps(payload)}\n\n"
        except Exception as e:
            logger.error(f"Error in event stream for project {project_id}: {e}")
            yield f"event: error\ndata: {json.dumps({'error': str(e)})}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
