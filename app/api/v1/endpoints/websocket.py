"""WebSocket endpoint: live dashboard stats for the authenticated user.

Requires a valid Supabase access token via query param ?token=... before
registering the connection. On connect the current state is sent and a
fetch is started (cache permitting); every later state change is pushed
by the stats service listener wired in lifespan. Sending the text
"refresh" forces a full refetch.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.domain.exceptions import AuthenticationException
from app.infrastructure.security.jwt import user_id_from_token

logger = logging.getLogger(__name__)

router = APIRouter()

REFRESH_COMMAND = "refresh"


async def _reject_websocket(websocket: WebSocket, reason: str, code: int = 1008) -> None:
    """Accept then immediately close with code/reason so client gets a proper close frame."""
    await websocket.accept()
    await websocket.close(code=code, reason=reason)


@router.websocket("")
async def websocket_endpoint(websocket: WebSocket):
    manager = websocket.app.state.ws_manager
    service = getattr(websocket.app.state, "stats_service", None)
    token = websocket.query_params.get("token")
    if not token:
        await _reject_websocket(websocket, "Missing token")
        return
    try:
        user_id = user_id_from_token(token)
    except AuthenticationException:
        await _reject_websocket(websocket, "Invalid token")
        return
    if service is None:
        await _reject_websocket(websocket, "Stats service not initialized", code=1011)
        return

    await manager.connect(websocket, user_id)
    try:
        await service.get_dashboard_stats(user_id)
        await websocket.send_json(
            {"type": "stats_state", **service.get_state(user_id).to_dict()}
        )
        while True:
            data = await websocket.receive_text()
            if data.strip().lower() == REFRESH_COMMAND:
                await service.refresh(user_id)
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown command: {data[:50]}"})
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
        if not await manager.has_connections(user_id):
            logger.debug("Last dashboard connection closed for user %s; stopping its fetches", user_id)
            await service.close(user_id)
