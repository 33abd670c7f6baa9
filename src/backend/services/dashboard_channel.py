"""
Realtime dashboard channel session.

One DashboardConnection per authenticated WebSocket. The role scopes are
resolved once at connect time and bound to the connection for its whole
lifetime. The connection owns four tasks (receiver, update loop, heartbeat
loop, liveness monitor) plus at most one task per on-demand event; close() is
idempotent and cancels all of them exactly once, whichever side ends the
session.

Wire format: JSON text frames {"event": <name>, "data": <payload>}.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, Mapping, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from core.config import WebSocketSettings
from core.role_scope import RoleScope
from db.categories import CATEGORIES
from services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

# Close codes
CLOSE_NORMAL = 1000
CLOSE_INTERNAL_ERROR = 1011
CLOSE_HEARTBEAT_TIMEOUT = 4000
CLOSE_AUTH_FAILED = 4001

# Server -> client
EVENT_PING = "ping"
EVENT_SET_RESOLUTION = "setResolution"
EVENT_ANALYTICS_UPDATE = "analyticsUpdate"
EVENT_ERROR = "error"
EVENT_CONNECT_ERROR = "connect_error"

# Client -> server
EVENT_PONG = "pong"
EVENT_DISCONNECT = "disconnect"

# Dashboard data requests and their replies. Chief and warden clients use
# different names; both are answered from the scopes bound at connect time.
DASHBOARD_EVENTS: Dict[str, str] = {
    "cowDashboardData": "setCowDashboardData",
    "getWardenDashboardData": "setWardenDashboardData",
}


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(frozen=True)
class ChannelIntervals:
    """Loop periods and the liveness bound, in seconds."""

    update: float = 1.0
    heartbeat: float = 25.0
    monitor: float = 30.0
    heartbeat_timeout: float = 60.0

    @classmethod
    def from_settings(cls, ws: WebSocketSettings) -> "ChannelIntervals":
        return cls(
            update=ws.update_interval,
            heartbeat=ws.heartbeat_interval,
            monitor=ws.monitor_interval,
            heartbeat_timeout=ws.heartbeat_timeout,
        )


def frame(event: str, data: Any = None) -> str:
    return json.dumps({"event": event, "data": data}, default=str)


def dump(model: Any) -> Any:
    if isinstance(model, list):
        return [dump(m) for m in model]
    return model.model_dump(by_alias=True, mode="json")


class DashboardConnection:
    """State machine for one dashboard WebSocket: connecting, active, closed."""

    def __init__(
        self,
        websocket: WebSocket,
        username: str,
        scopes: Mapping[str, RoleScope],
        provider: DashboardService,
        intervals: Optional[ChannelIntervals] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.websocket = websocket
        self.username = username
        self.scopes: Dict[str, RoleScope] = dict(scopes)
        self.provider = provider
        self.intervals = intervals or ChannelIntervals()
        self.clock = clock

        self.state = ConnectionState.CONNECTING
        self.last_ack = clock()
        self._tasks: Set[asyncio.Task] = set()
        self._requests: Dict[str, asyncio.Task] = {}
        self._closed = asyncio.Event()

        self._stats_events = {
            d.stats_event: d for d in CATEGORIES.values()
        }

    # ------------------------------------------------------------------
    # Liveness
    # ------------------------------------------------------------------

    def acknowledge(self) -> None:
        self.last_ack = self.clock()

    def is_stale(self) -> bool:
        return self.clock() - self.last_ack > self.intervals.heartbeat_timeout

    async def check_liveness(self) -> bool:
        """Terminate the connection if the last ack is too old."""
        if self.state != ConnectionState.ACTIVE:
            return False
        if self.is_stale():
            logger.info(
                f"Dashboard client {self.username} connection dead - no heartbeat "
                f"for {self.clock() - self.last_ack:.0f}s"
            )
            await self.close(CLOSE_HEARTBEAT_TIMEOUT)
            return False
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"dashboard:{self.username}:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def task_count(self) -> int:
        return len(self._tasks)

    async def run(self) -> None:
        """Drive an accepted WebSocket until the session closes."""
        self.state = ConnectionState.ACTIVE
        self.acknowledge()
        logger.info(
            f"Dashboard client {self.username} connected with scopes {sorted(self.scopes)}"
        )

        try:
            await self.push_snapshot()
        except Exception as e:
            logger.error(f"Initial dashboard push failed for {self.username}: {e}", exc_info=True)
            await self.close(CLOSE_INTERNAL_ERROR)
            return

        self._spawn(self._receive_loop(), "receiver")
        self._spawn(self._update_loop(), "update")
        self._spawn(self._heartbeat_loop(), "heartbeat")
        self._spawn(self._monitor_loop(), "monitor")

        try:
            await self._closed.wait()
        finally:
            await self.close()

    async def close(self, code: int = CLOSE_NORMAL) -> None:
        """Close the session. Safe to call any number of times from any task."""
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED

        current = asyncio.current_task()
        others = [t for t in list(self._tasks) if t is not current and not t.done()]
        for task in others:
            task.cancel()

        if self.websocket.client_state == WebSocketState.CONNECTED:
            try:
                await self.websocket.close(code=code)
            except (RuntimeError, WebSocketDisconnect):
                pass

        if others:
            await asyncio.gather(*others, return_exceptions=True)

        self._closed.set()
        logger.info(f"Dashboard client {self.username} disconnected (code {code})")

    async def emit(self, event: str, data: Any = None) -> bool:
        """Send one frame if the connection is still active."""
        if self.state != ConnectionState.ACTIVE:
            return False
        try:
            await self.websocket.send_text(frame(event, data))
            return True
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Emit {event} to {self.username} failed: {e}")
            await self.close()
            return False

    # ------------------------------------------------------------------
    # Pushes
    # ------------------------------------------------------------------

    async def push_snapshot(self) -> None:
        analytics = await self.provider.analytics_snapshot(self.scopes)
        resolution = self.provider.resolution_snapshot(analytics)
        await self.emit(EVENT_SET_RESOLUTION, dump(resolution))
        await self.emit(EVENT_ANALYTICS_UPDATE, dump(analytics))

    async def _periodic(self, interval: float, name: str, tick: Callable[[], Coroutine]) -> None:
        while self.state == ConnectionState.ACTIVE:
            await asyncio.sleep(interval)
            if self.state != ConnectionState.ACTIVE:
                break
            try:
                await tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Dashboard {name} tick failed for {self.username}: {e}")

    async def _update_loop(self) -> None:
        await self._periodic(self.intervals.update, "update", self.push_snapshot)

    async def _heartbeat_loop(self) -> None:
        await self._periodic(self.intervals.heartbeat, "heartbeat", lambda: self.emit(EVENT_PING))

    async def _monitor_loop(self) -> None:
        await self._periodic(self.intervals.monitor, "monitor", self.check_liveness)

    # ------------------------------------------------------------------
    # Client requests
    # ------------------------------------------------------------------

    async def _receive_loop(self) -> None:
        try:
            while self.state == ConnectionState.ACTIVE:
                raw = await self.websocket.receive_text()
                await self.handle_message(raw)
        except WebSocketDisconnect:
            logger.debug(f"Dashboard client {self.username} went away")
        except RuntimeError as e:
            # receive after the socket closed
            logger.debug(f"Dashboard receive for {self.username} stopped: {e}")
        finally:
            await self.close()

    async def handle_message(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            await self.emit(EVENT_ERROR, {"message": "Malformed message"})
            return

        event = message.get("event") if isinstance(message, dict) else None
        if not isinstance(event, str):
            await self.emit(EVENT_ERROR, {"message": "Malformed message"})
            return

        if event == EVENT_PONG:
            self.acknowledge()
            logger.debug(f"Heartbeat received from {self.username}")
        elif event == EVENT_DISCONNECT:
            await self.close(CLOSE_NORMAL)
        elif event in DASHBOARD_EVENTS:
            self._request(event, self._reply_dashboard(DASHBOARD_EVENTS[event]))
        elif event in self._stats_events:
            self._request(event, self._reply_category_stats(event))
        else:
            await self.emit(EVENT_ERROR, {"message": f"Unknown event: {event}"})

    def _request(self, event: str, coro: Coroutine) -> Optional[asyncio.Task]:
        """Run an on-demand reply unless one for the same event is pending.

        Repeats arriving while a reply is in flight are dropped; the pending
        reply carries current data.
        """
        pending = self._requests.get(event)
        if pending is not None and not pending.done():
            coro.close()
            logger.debug(f"Dropped repeated {event} from {self.username}")
            return None
        task = self._spawn(coro, event)
        self._requests[event] = task
        return task

    @property
    def pending_requests(self) -> int:
        return sum(1 for t in self._requests.values() if not t.done())

    async def _reply_category_stats(self, event: str) -> None:
        descriptor = self._stats_events[event]
        scope = self.scopes.get(descriptor.name)
        if scope is None:
            await self.emit(EVENT_ERROR, {"message": "Unauthorized access"})
            return
        try:
            stats = await self.provider.category_stats(descriptor.name, scope)
        except Exception as e:
            logger.error(f"{event} request failed for {self.username}: {e}")
            await self.emit(EVENT_ERROR, {"message": "Error in fetching stats"})
            return
        await self.emit(descriptor.stats_reply_event, dump(stats))

    async def _reply_dashboard(self, reply_event: str) -> None:
        try:
            snapshot = await self.provider.dashboard_snapshot(self.scopes)
        except Exception as e:
            logger.error(f"Dashboard data request failed for {self.username}: {e}")
            await self.emit(EVENT_ERROR, {"message": "Error in fetching dashboard data"})
            return
        await self.emit(reply_event, dump(snapshot))


async def reject(websocket: WebSocket, message: str) -> None:
    """Accept, report the connection error and close with the auth failure code."""
    await websocket.accept()
    try:
        await websocket.send_text(frame(EVENT_CONNECT_ERROR, {"message": message}))
    finally:
        await websocket.close(code=CLOSE_AUTH_FAILED)
