from __future__ import annotations

import asyncio
import threading
from collections import defaultdict
from typing import Any
from uuid import UUID

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from securesign.core.logging_setup import logger

DOCUMENT_UPDATED = "document-updated"


class DocumentEventHub:
    """
    Per-document rooms of websocket subscribers.

    Created once per application, started inside the lifespan (it binds to the
    running event loop) and shut down on exit. ``publish`` is safe to call from
    the threadpool that runs synchronous endpoints.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def started(self) -> bool:
        return self._loop is not None

    def start(self) -> None:
        if self._loop is not None:
            raise RuntimeError("Event hub already started")
        self._loop = asyncio.get_running_loop()
        logger.info("Realtime event hub started")

    async def shutdown(self) -> None:
        with self._lock:
            sockets = [ws for room in self._rooms.values() for ws in room]
            self._rooms.clear()
        for websocket in sockets:
            try:
                await websocket.close()
            except RuntimeError:
                pass
        self._loop = None
        logger.info("Realtime event hub stopped (%d sockets closed)", len(sockets))

    async def join(self, document_id: UUID | str, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._rooms[str(document_id)].add(websocket)
        logger.debug("Socket joined document room %s", document_id)

    def leave(self, document_id: UUID | str, websocket: WebSocket) -> None:
        room = str(document_id)
        with self._lock:
            members = self._rooms.get(room)
            if not members:
                return
            members.discard(websocket)
            if not members:
                del self._rooms[room]

    def connection_count(self, document_id: UUID | str) -> int:
        with self._lock:
            return len(self._rooms.get(str(document_id), ()))

    def pending_broadcasts(self) -> int:
        return len(self._tasks)

    def publish(
        self,
        document_id: UUID | str,
        event: str = DOCUMENT_UPDATED,
        payload: dict[str, Any] | None = None,
    ) -> None:
        if self._loop is None:
            logger.debug("Event hub not started; dropping %s for %s", event, document_id)
            return
        message = {"event": event, "document_id": str(document_id), **(payload or {})}
        coroutine = self._broadcast(str(document_id), message)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            task = self._loop.create_task(coroutine)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
        else:
            asyncio.run_coroutine_threadsafe(coroutine, self._loop)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Realtime broadcast failed: %s", task.exception())

    async def _broadcast(self, room: str, message: dict[str, Any]) -> None:
        with self._lock:
            members = list(self._rooms.get(room, ()))
        for websocket in members:
            try:
                await websocket.send_json(message)
            except (RuntimeError, WebSocketDisconnect):
                self.leave(room, websocket)
        logger.debug("Emitted %s to %d sockets in %s", message["event"], len(members), room)
