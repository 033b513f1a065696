import logging
from collections import defaultdict
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from starlette.concurrency import run_in_threadpool

from ridepool.actors import Actor
from ridepool.api.rate_limit import ws_limiter
from ridepool.core.exceptions import RidePoolError

logger = logging.getLogger(__name__)

router = APIRouter()


def extract_api_key_and_protocol(websocket: WebSocket) -> tuple[str | None, str | None]:
    """Extract API key and full protocol from Sec-WebSocket-Protocol header.

    Expected format: apikey.<key>
    Returns: (api_key, full_protocol) - both needed for proper handshake
    """
    protocol_header = websocket.headers.get("sec-websocket-protocol")
    if protocol_header:
        protocols = [p.strip() for p in protocol_header.split(",")]
        for protocol in protocols:
            if protocol.startswith("apikey."):
                return protocol.split(".", 1)[1], protocol
    return None, None


class ConnectionManager:
    """Tracks WebSocket connections, who opened them and the ride rooms they joined."""

    def __init__(self) -> None:
        self.active_connections: dict[WebSocket, str | None] = {}
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(
        self,
        websocket: WebSocket,
        subprotocol: str | None = None,
        user_id: str | None = None,
    ) -> None:
        await websocket.accept(subprotocol=subprotocol)
        self.active_connections[websocket] = user_id

    def disconnect(self, websocket: WebSocket) -> None:
        self.active_connections.pop(websocket, None)
        for ride_id in list(self.rooms):
            self.leave(websocket, ride_id)

    def join(self, websocket: WebSocket, ride_id: str) -> None:
        self.rooms[ride_id].add(websocket)

    def leave(self, websocket: WebSocket, ride_id: str) -> None:
        members = self.rooms.get(ride_id)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[ride_id]

    def evict(self, ride_id: str, user_id: str) -> int:
        """Drop ``user_id``'s connections from a room. Returns how many left."""
        evicted = [
            ws for ws in self.rooms.get(ride_id, ()) if self.active_connections.get(ws) == user_id
        ]
        for websocket in evicted:
            self.leave(websocket, ride_id)
        return len(evicted)

    def room_size(self, ride_id: str) -> int:
        return len(self.rooms.get(ride_id, ()))

    async def send_message(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.send_json(message)

    async def broadcast_to_room(self, ride_id: str, message: dict[str, Any]) -> int:
        """Fire-and-forget delivery to everyone in the room. Returns recipients."""
        members = list(self.rooms.get(ride_id, ()))
        for connection in members:
            await self.send_message(connection, message)
        return len(members)


manager = ConnectionManager()


def _error(code: str, detail: str) -> dict[str, Any]:
    return {"type": "error", "error": code, "detail": detail}


async def _resolve_actor(websocket: WebSocket) -> Actor | None:
    user_id = websocket.headers.get("x-user-id") or websocket.query_params.get("user_id")
    if not user_id:
        return None
    service = websocket.app.state.ride_service
    profile = await run_in_threadpool(service.get_actor, user_id)
    return profile.to_actor() if profile else None


async def _handle_client_message(
    websocket: WebSocket, actor: Actor, message: Any
) -> dict[str, Any]:
    if not isinstance(message, dict):
        return _error("validation_error", "Messages must be JSON objects")

    message_type = message.get("type")
    ride_id = message.get("ride_id")
    if message_type not in ("join", "leave") or not isinstance(ride_id, str) or not ride_id:
        return _error("validation_error", "Expected {type: join|leave, ride_id}")

    if message_type == "leave":
        manager.leave(websocket, ride_id)
        return {"type": "left", "ride_id": ride_id}

    service = websocket.app.state.ride_service
    try:
        await run_in_threadpool(service.get_ride, actor, ride_id)
    except RidePoolError as e:
        return _error(e.code, e.message)
    manager.join(websocket, ride_id)
    return {"type": "joined", "ride_id": ride_id}


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    api_key, subprotocol = extract_api_key_and_protocol(websocket)
    settings = websocket.app.state.settings

    if not api_key or api_key != settings.api.key:
        await websocket.close(code=1008)
        return

    actor = await _resolve_actor(websocket)
    if actor is None:
        await websocket.close(code=1008)
        return

    if ws_limiter.is_limited(f"user:{actor.id}"):
        await websocket.close(code=1008)
        return

    await manager.connect(websocket, subprotocol=subprotocol, user_id=actor.id)

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await manager.send_message(websocket, _error("validation_error", "Invalid JSON"))
                continue
            reply = await _handle_client_message(websocket, actor, message)
            await manager.send_message(websocket, reply)
    except WebSocketDisconnect:
        manager.disconnect(websocket)
