"""Best-effort relay that lets game clients see each other.

Clients announce themselves with ``playerJoin``, stream ``playerUpdate`` and
``shootEvent`` frames, and the hub fans each one out to every other client.
The hub keeps the last known state per player only so late joiners get a
snapshot; it has no say over collisions or scoring.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, ValidationError

from .config import RelayConfig, load_settings

log = logging.getLogger(__name__)


class PlayerJoin(BaseModel):
    x: float
    y: float
    health: float = 100.0


class PlayerUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    x: Optional[float] = None
    y: Optional[float] = None
    health: Optional[float] = None


class RelayHub:
    def __init__(self, stale_after: float = 10.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.stale_after = stale_after
        self.clock = clock
        self.players: Dict[str, Dict[str, Any]] = {}
        self.sockets: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        player_id = uuid.uuid4().hex
        self.sockets[player_id] = websocket
        log.info("client %s connected", player_id)
        return player_id

    async def handle(self, player_id: str, message: Dict[str, Any]) -> None:
        kind = message.get("type")
        payload = {k: v for k, v in message.items() if k not in ("type", "id")}
        try:
            if kind == "playerJoin":
                await self._join(player_id, PlayerJoin.model_validate(payload))
            elif kind == "playerUpdate":
                await self._update(player_id, PlayerUpdate.model_validate(payload))
            elif kind == "shootEvent":
                await self.broadcast({"type": "shootEvent", "id": player_id, **payload}, exclude=player_id)
            else:
                log.warning("unknown frame type %r from %s", kind, player_id)
        except ValidationError as exc:
            log.warning("invalid %s frame from %s: %s", kind, player_id, exc.errors())

    async def _join(self, player_id: str, join: PlayerJoin) -> None:
        self.players[player_id] = {"id": player_id, **join.model_dump(), "lastUpdate": self.clock()}
        log.info("player %s joined", player_id)
        await self.send(player_id, {"type": "existingPlayers", "players": list(self.players.values())})
        await self.broadcast({"type": "playerJoined", "player": self.players[player_id]}, exclude=player_id)

    async def _update(self, player_id: str, update: PlayerUpdate) -> None:
        state = self.players.get(player_id)
        if state is None:
            return
        changes = update.model_dump(exclude_none=True)
        state.update(changes)
        state["lastUpdate"] = self.clock()
        await self.broadcast({"type": "playerUpdate", "id": player_id, **changes}, exclude=player_id)

    async def disconnect(self, player_id: str) -> None:
        self.sockets.pop(player_id, None)
        self.players.pop(player_id, None)
        log.info("client %s disconnected", player_id)
        await self.broadcast({"type": "playerLeave", "id": player_id})

    async def send(self, player_id: str, message: Dict[str, Any]) -> None:
        websocket = self.sockets.get(player_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as exc:
            log.warning("dropping client %s: %s", player_id, exc)
            self.sockets.pop(player_id, None)

    async def broadcast(self, message: Dict[str, Any], exclude: Optional[str] = None) -> None:
        for player_id in list(self.sockets):
            if player_id != exclude:
                await self.send(player_id, message)

    def evict_stale(self, now: Optional[float] = None) -> List[str]:
        """Forget players whose last update is older than ``stale_after``."""
        now = self.clock() if now is None else now
        stale = [pid for pid, state in self.players.items() if now - state["lastUpdate"] > self.stale_after]
        for pid in stale:
            del self.players[pid]
            log.info("evicted stale player %s", pid)
        return stale

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        evicted = self.evict_stale(now)
        for pid in evicted:
            await self.broadcast({"type": "playerLeave", "id": pid})
        return evicted


def create_app(config: Optional[RelayConfig] = None, hub: Optional[RelayHub] = None) -> FastAPI:
    config = config or RelayConfig()
    hub = hub or RelayHub(stale_after=config.stale_after)

    async def _sweeper() -> None:
        while True:
            await asyncio.sleep(config.sweep_interval)
            await hub.sweep()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(_sweeper())
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    app = FastAPI(title="Starblitz Relay", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.state.hub = hub

    @app.get("/")
    def root() -> Dict[str, Any]:
        return {"status": "ok", "players": len(hub.players)}

    @app.get("/api/players")
    def get_players() -> List[Dict[str, Any]]:
        return list(hub.players.values())

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        player_id = await hub.connect(websocket)
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    log.warning("malformed frame from %s", player_id)
                    continue
                if not isinstance(message, dict):
                    log.warning("malformed frame from %s", player_id)
                    continue
                await hub.handle(player_id, message)
        except WebSocketDisconnect:
            pass
        finally:
            await hub.disconnect(player_id)

    return app


app = create_app()


def main() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    relay = load_settings().relay
    uvicorn.run(create_app(relay), host=relay.host, port=relay.port)


if __name__ == "__main__":
    main()
