"""WebSocket connection manager.

Holds active dashboard connections per user and provides user-scoped
broadcast. Use via app.state.ws_manager (set in lifespan). A user only
ever receives their own stats.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import WebSocket


class ConnectionManager:
    """Manages WebSocket connections keyed by authenticated user id.

    - One user may have several tabs open; each gets every update.
    - Connections that fail on send are dropped.
    """

    def __init__(self) -> None:
        self._connections_by_user: dict[str, set[WebSocket]] = {}
        self._websocket_to_user: dict[WebSocket, str] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """Accept and register a new connection for the given user.

        Args:
            websocket: The WebSocket instance to accept and track.
            user_id: User id from the verified access token.
        """
        await websocket.accept()
        async with self._lock:
            self._connections_by_user.setdefault(user_id, set()).add(websocket)
            self._websocket_to_user[websocket] = user_id

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._remove(websocket)

    def _remove(self, websocket: WebSocket) -> None:
        user_id = self._websocket_to_user.pop(websocket, None)
        if user_id and user_id in self._connections_by_user:
            conns = self._connections_by_user[user_id]
            conns.discard(websocket)
            if not conns:
                del self._connections_by_user[user_id]

    async def has_connections(self, user_id: str) -> bool:
        async with self._lock:
            return bool(self._connections_by_user.get(user_id))

    async def broadcast_to_user(self, user_id: str, message: str | dict[str, Any]) -> None:
        """Send a message to all of one user's connections.

        Args:
            user_id: Target user.
            message: String or JSON-serializable dict to send.
        """
        async with self._lock:
            snapshot = list(self._connections_by_user.get(user_id, set()))
        if not snapshot:
            return
        dead: list[WebSocket] = []
        for ws in snapshot:
            try:
                if isinstance(message, dict):
                    await ws.send_json(message)
                else:
                    await ws.send_text(message)
            except Exception:
                dead.append(ws)
        if dead:
            async with self._lock:
                for ws in dead:
                    self._remove(ws)

    async def get_connection_count(self) -> int:
        """Return the total number of active connections (lock-safe)."""
        async with self._lock:
            return sum(len(c) for c in self._connections_by_user.values())
