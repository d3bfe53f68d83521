"""
Kitchen Display Broadcast

Kitchen displays connect over a WebSocket and receive JSON frames of the form
``{"event": <name>, "data": {...}}``. A display may subscribe to a single
restaurant; without a filter it receives every restaurant's events.

Two hubs:
    - KitchenDisplayHub: fan-out to the sockets connected to this process
    - RedisKitchenDisplayHub: publishes to a Redis channel; every process
      relays channel messages to its own sockets

Delivery is best-effort. A socket that fails to receive is dropped.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from fastapi import WebSocket

logger = logging.getLogger(__name__)


class KitchenDisplayHub:
    """In-process registry of connected kitchen displays."""

    def __init__(self):
        self._connections: dict[WebSocket, Optional[str]] = {}

    @property
    def provider_name(self) -> str:
        return "local"

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, restaurant_id: Optional[str] = None) -> None:
        await websocket.accept()
        self._connections[websocket] = restaurant_id
        logger.info(f"🖥️ Kitchen display connected (restaurant={restaurant_id or 'all'}, total={self.connection_count})")

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._connections:
            del self._connections[websocket]
            logger.info(f"Kitchen display disconnected (total={self.connection_count})")

    async def deliver(self, event: str, data: dict[str, Any]) -> int:
        """Send an event to matching local sockets. Returns how many received it."""
        frame = {"event": event, "data": data}
        target = data.get("restaurantId")
        delivered = 0

        for websocket, restaurant_id in list(self._connections.items()):
            if restaurant_id is not None and restaurant_id != target:
                continue
            try:
                await websocket.send_json(frame)
                delivered += 1
            except Exception as e:
                logger.debug(f"Dropping kitchen display after failed send: {e}")
                self._connections.pop(websocket, None)

        return delivered

    async def broadcast(self, event: str, data: dict[str, Any]) -> int:
        return await self.deliver(event, data)

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


class RedisKitchenDisplayHub(KitchenDisplayHub):
    """
    Hub that routes events through Redis pub/sub so all workers see them.

    The relay task re-subscribes with exponential backoff when Redis drops
    the connection; it only ends when the hub is stopped.
    """

    def __init__(
        self,
        redis_url: str,
        channel: str,
        client: Optional[aioredis.Redis] = None,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ):
        super().__init__()
        self.channel = channel
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self._subscribed = False
        self._redis = client or aioredis.from_url(redis_url, decode_responses=True)
        self._listener: Optional[asyncio.Task] = None

    @property
    def provider_name(self) -> str:
        return "redis"

    async def broadcast(self, event: str, data: dict[str, Any]) -> int:
        """Publish to the channel. Returns the number of subscribed processes."""
        return await self._redis.publish(self.channel, json.dumps({"event": event, "data": data}))

    async def start(self) -> None:
        if self._listener is None:
            self._listener = asyncio.create_task(self._relay())

    async def _relay(self) -> None:
        """Keep a channel subscription alive, re-subscribing after Redis errors."""
        delay = self.reconnect_delay
        while True:
            self._subscribed = False
            try:
                await self._listen()
                logger.warning(f"Redis subscription to {self.channel} ended, re-subscribing")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Kitchen display relay lost Redis: {e}")

            if self._subscribed:
                delay = self.reconnect_delay
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            self._subscribed = True
            logger.info(f"Relaying kitchen display events from Redis channel {self.channel}")
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    frame = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning("Ignoring malformed kitchen display event")
                    continue
                await self.deliver(frame.get("event", "message"), frame.get("data") or {})
        finally:
            try:
                await pubsub.unsubscribe(self.channel)
                await pubsub.aclose()
            except Exception as e:
                logger.debug(f"Redis pubsub cleanup failed: {e}")

    async def stop(self) -> None:
        try:
            if self._listener is not None:
                self._listener.cancel()
                try:
                    await self._listener
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.error(f"Kitchen display relay had failed: {e}")
                self._listener = None
        finally:
            await self._redis.aclose()
