import logging
from typing import Dict, List
from fastapi import WebSocket

logger = logging.getLogger("fitfix")


class ConnectionManager:
    """Per-user websocket connections used to push chat events."""

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, user_id: str, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)

    def disconnect(self, user_id: str, websocket: WebSocket):
        connections = self.active_connections.get(user_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(user_id, None)

    def is_connected(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    async def send_to_user(self, user_id: str, message: dict) -> int:
        """Push to every open socket of a user. Returns how many sockets got it."""
        delivered = 0
        # Iterate over a copy to avoid modification issues during iteration
        for connection in self.active_connections.get(user_id, [])[:]:
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping dead socket for {user_id}: {e}")
                self.disconnect(user_id, connection)
        return delivered


# Global instance
manager = ConnectionManager()


def get_connection_manager() -> ConnectionManager:
    return manager
