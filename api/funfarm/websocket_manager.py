"""WebSocket connection manager for real-time notifications."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Set
from uuid import UUID

import redis
from fastapi import WebSocket

from .cache import get_redis_client

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and broadcasts notifications."""

    def __init__(self, max_connections: int = 15000):
        # Map of user_id -> set of WebSocket connections
        self.active_connections: Dict[UUID, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()
        self._pubsub_task: asyncio.Task | None = None
        self._running = False
        self._max_connections = max_connections

    async def connect(self, websocket: WebSocket, user_id: UUID) -> bool:
        """Accept and register a new WebSocket connection. Returns False if limit reached."""
        if self.get_connection_count() >= self._max_connections:
            logger.warning(f"Connection limit reached ({self._max_connections}), rejecting connection")
            return False

        await websocket.accept()
        async with self._lock:
            self.active_connections.setdefault(user_id, set()).add(websocket)
        logger.info(f"User {user_id} connected. Total connections: {self.get_connection_count()}")
        return True

    async def disconnect(self, websocket: WebSocket, user_id: UUID) -> None:
        async with self._lock:
            if user_id in self.active_connections:
                self.active_connections[user_id].discard(websocket)
                if not self.active_connections[user_id]:
                    del self.active_connections[user_id]
        logger.info(f"User {user_id} disconnected. Total connections: {self.get_connection_count()}")

    async def send_personal_message(self, message: dict, user_id: UUID) -> None:
        """Send a message to all connections for a specific user."""
        connections = list(self.active_connections.get(user_id, ()))
        disconnected = []

        for websocket in connections:
            try:
                await websocket.send_json(message)
            except (RuntimeError, ConnectionError) as e:
                logger.error(f"Error sending message to user {user_id}: {e}")
                disconnected.append(websocket)

        if disconnected:
            async with self._lock:
                for ws in disconnected:
                    if user_id in self.active_connections:
                        self.active_connections[user_id].discard(ws)
                if user_id in self.active_connections and not self.active_connections[user_id]:
                    del self.active_connections[user_id]

    def get_connection_count(self) -> int:
        return sum(len(conns) for conns in self.active_connections.values())

    async def start_redis_listener(self) -> None:
        """Start Redis Pub/Sub listener for notification broadcasts."""
        if self._running:
            return
        if get_redis_client() is None:
            logger.info("Redis disabled, realtime notifications limited to polling")
            return

        self._running = True
        self._pubsub_task = asyncio.create_task(self._redis_listener())
        logger.info("Redis Pub/Sub listener started")

    async def stop_redis_listener(self) -> None:
        self._running = False
        if self._pubsub_task:
            self._pubsub_task.cancel()
            try:
                await self._pubsub_task
            except asyncio.CancelledError:
                pass
            self._pubsub_task = None
            logger.info("Redis Pub/Sub listener stopped")

    async def _redis_listener(self) -> None:
        """Listen for Redis Pub/Sub messages and forward them to WebSocket clients."""
        client = get_redis_client()
        if not client:
            logger.error("Redis not available, cannot start Pub/Sub listener")
            return

        pubsub = client.pubsub()
        pubsub.psubscribe("notifications:user:*")

        try:
            while self._running:
                message = pubsub.get_message(timeout=1.0)
                if message and message["type"] == "pmessage":
                    try:
                        user_id = UUID(str(message["channel"]).rsplit(":", 1)[-1])
                        payload = json.loads(message["data"])
                        await self.send_personal_message(payload, user_id)
                    except (ValueError, TypeError) as e:
                        logger.error(f"Error processing Redis message: {e}")

                await asyncio.sleep(0.01)
        except redis.RedisError as e:
            logger.error(f"Redis listener error: {e}")
        finally:
            try:
                pubsub.punsubscribe("notifications:user:*")
                pubsub.close()
            except redis.RedisError as e:
                logger.error(f"Error closing Redis Pub/Sub: {e}")


# Global connection manager instance
connection_manager = ConnectionManager()
