from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import (
    CLOSE_DISTANCE_MAX,
    OBJECT_COUNT_RANGE,
    OBJECT_SIZE_RANGE,
    VELOCITY_SCALAR_RANGE,
    SimulationConfig,
)
from ..sim.core.errors import ConfigurationError
from ..sim.core.world import World

logger = logging.getLogger(__name__)

MAX_QUEUED_SNAPSHOTS = 120


@dataclass(frozen=True)
class QueuedSnapshot:
    frame: int
    payload: str


def _check_range(name: str, value: float, low: float, high: float) -> None:
    if not low <= value <= high:
        raise ConfigurationError(name, f"must be within [{low}, {high}], got {value}")


def parse_configure_request(payload: dict) -> Dict[str, float]:
    """Validate a control-panel request against the panel ranges.

    Only keys present in ``payload`` are returned, so omitted controls keep
    their current value.
    """
    updates: Dict[str, float] = {}
    try:
        if "object_count" in payload:
            count = int(payload["object_count"])
            _check_range("object_count", count, *OBJECT_COUNT_RANGE)
            updates["object_count"] = count
        if "object_size" in payload:
            size = float(payload["object_size"])
            _check_range("object_size", size, *OBJECT_SIZE_RANGE)
            updates["object_size"] = size
        if "velocity_scalar" in payload:
            scalar = float(payload["velocity_scalar"])
            _check_range("velocity_scalar", scalar, *VELOCITY_SCALAR_RANGE)
            updates["velocity_scalar"] = scalar
        # contact <= close is validated by World.configure on the resulting flock.
        if "close_distance" in payload:
            close = float(payload["close_distance"])
            _check_range("close_distance", close, 0.0, CLOSE_DISTANCE_MAX)
            updates["close_distance"] = close
        if "contact_distance" in payload:
            contact = float(payload["contact_distance"])
            _check_range("contact_distance", contact, 0.0, CLOSE_DISTANCE_MAX)
            updates["contact_distance"] = contact
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("payload", str(exc)) from exc
    return updates


class SimulationController:
    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1):
        self.config = config
        self.world = World(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=MAX_QUEUED_SNAPSHOTS)
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._broadcast_task: Optional[asyncio.Task] = None

    @property
    def frame(self) -> int:
        return self.world.frame

    async def start(self) -> None:
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._loop())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.running = False
        if self._broadcast_task is not None:
            self._broadcast_task.cancel()
            try:
                await self._broadcast_task
            except asyncio.CancelledError:
                pass
            self._broadcast_task = None
        async with self._lock:
            self.world.shutdown()

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
        await self._restart_stream()

    async def configure(self, payload: dict) -> bool:
        async with self._lock:
            updates = parse_configure_request(payload)
            rebuilt = self.world.configure(**updates)
        if rebuilt:
            await self._restart_stream()
        return rebuilt

    async def _restart_stream(self) -> None:
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def _loop(self) -> None:
        frame_delta = 1.0 / self.config.frame_rate
        while True:
            await asyncio.sleep(frame_delta / self.speed_multiplier)
            if not self.running:
                continue
            async with self._lock:
                self.world.step(frame_delta)
            if self.world.frame % self.broadcast_interval == 0:
                await self._broadcast_snapshot()

    async def acknowledge(self, frame: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].frame <= frame:
                self._snapshot_queue.popleft()

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.world.snapshot()
        payload = {
            "type": "snapshot",
            "frame": snapshot.frame,
            "payload": {
                "frame": snapshot.frame,
                "metrics": asdict(snapshot.metrics),
                "agents": snapshot.agents,
                "arena": asdict(snapshot.arena),
                "metadata": asdict(snapshot.metadata),
            },
        }
        return QueuedSnapshot(frame=snapshot.frame, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.frame > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.frame
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        for client in stale:
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


app = FastAPI(title="Flock Simulation")
controller = SimulationController(SimulationConfig())


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
    await controller.shutdown()


@app.get("/api/status")
async def status() -> JSONResponse:
    snapshot = controller.world.snapshot()
    return JSONResponse(
        {
            "running": controller.running,
            "frame": controller.frame,
            "agents": len(controller.world.store),
            "metrics": asdict(snapshot.metrics),
            "metadata": asdict(snapshot.metadata),
        }
    )


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    controller.running = False
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "frame": controller.frame})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = float(payload.get("multiplier", 1.0))
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.post("/api/control/configure")
async def configure_simulation(payload: dict) -> JSONResponse:
    try:
        rebuilt = await controller.configure(payload)
    except ConfigurationError as exc:
        return JSONResponse({"error": str(exc), "field": exc.field}, status_code=422)
    flock = controller.world.config.flock
    return JSONResponse({"rebuilt": rebuilt, "flock": asdict(flock)})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                logger.debug("ignoring malformed websocket message")
                continue
            if payload.get("type") == "ack":
                frame = payload.get("frame")
                if isinstance(frame, int):
                    await controller.acknowledge(frame)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


__all__ = ["app", "controller", "SimulationController", "parse_configure_request"]
