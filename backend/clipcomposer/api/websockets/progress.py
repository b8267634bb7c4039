"""WebSocket handler for render job events."""

from fastapi import APIRouter, Depends, WebSocket, status

from clipcomposer.pipeline.progress_reporter import connection_manager
from clipcomposer.pipeline.providers import job_registry
from clipcomposer.pipeline.registry import JobRegistry

router = APIRouter()


@router.websocket("/renders/{job_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    job_id: str,
    registry: JobRegistry = Depends(job_registry),
) -> None:
    """Stream a live job's events; the socket closes after the terminal event."""
    runner = registry.get(job_id)
    if runner is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Render job is not running")
        return

    await connection_manager.connect(websocket, job_id)
    await connection_manager.forward(websocket, job_id, runner.channel)
