"""
FastAPI WebSocket server for the storyteller game.

Each inbound event maps onto exactly one GameSession operation; after every
accepted command the room and player projections are pushed to every
connection in the room.
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Dict, Optional

import orjson
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..engine import GameSession, SessionRegistry
from ..errors import GameError, NotFoundError
from ..scheduler import PhaseTimer
from ..serialization import encode
from .events import (
    BaseEvent, ErrorCode, EventType, JoinEvent, ReconnectEvent,
    create_error_event, create_joined_event, create_kicked_event,
    create_state_event, parse_inbound_event
)

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and broadcasting."""

    def __init__(self):
        self.rooms: Dict[str, Dict[WebSocket, str]] = {}

    def connect(self, room_id: str, websocket: WebSocket, player_id: str) -> None:
        self.rooms.setdefault(room_id, {})[websocket] = player_id
        logger.info(f"Player {player_id} connected to room {room_id}")

    def disconnect(self, room_id: str, websocket: WebSocket) -> Optional[str]:
        connections = self.rooms.get(room_id, {})
        player_id = connections.pop(websocket, None)
        if room_id in self.rooms and not connections:
            del self.rooms[room_id]
        return player_id

    def sockets_for(self, room_id: str, player_id: str):
        return [ws for ws, pid in self.rooms.get(room_id, {}).items() if pid == player_id]

    async def send(self, websocket: WebSocket, event) -> None:
        await websocket.send_text(encode(event.model_dump(mode="json")).decode())

    async def broadcast_state(self, room_id: str, session: GameSession) -> None:
        """Send each connection the room state plus its own private state."""
        room = session.room_projection()
        for websocket, player_id in list(self.rooms.get(room_id, {}).items()):
            try:
                event = create_state_event(room, session.player_projection(player_id))
                await self.send(websocket, event)
            except Exception as e:
                logger.error(f"Error broadcasting to {player_id}: {e}")
                self.disconnect(room_id, websocket)


def _board_settings_kwargs(event) -> dict:
    kwargs = {}
    if "background" in event.model_fields_set:
        kwargs["background"] = event.background
    if event.pattern is not None:
        kwargs["pattern"] = event.pattern
    return kwargs


# Handlers for events sent by a joined player
HANDLERS: Dict[EventType, Callable[[GameSession, str, BaseEvent], object]] = {
    EventType.LEAVE: lambda s, pid, e: s.leave_player(pid),
    EventType.KICK: lambda s, pid, e: s.kick_player(pid, e.target_player_id),
    EventType.PROMOTE: lambda s, pid, e: s.promote_admin(pid, e.target_player_id),
    EventType.SET_ADMIN_SECRET: lambda s, pid, e: s.set_admin_secret(pid, e.secret),
    EventType.CLAIM_ADMIN: lambda s, pid, e: s.claim_admin(pid, e.secret),
    EventType.CHANGE_NAME: lambda s, pid, e: s.change_name(pid, e.name),
    EventType.SET_TOKEN_IMAGE: lambda s, pid, e: s.set_token_image(pid, e.image_data),
    EventType.UPLOAD_CARD: lambda s, pid, e: s.upload_card(pid, e.image_data),
    EventType.DELETE_CARD: lambda s, pid, e: s.delete_card(pid, e.card_id),
    EventType.LOCK_POOL: lambda s, pid, e: s.lock_pool(pid),
    EventType.UNLOCK_POOL: lambda s, pid, e: s.unlock_pool(pid),
    EventType.SET_UPLOAD_MODE: lambda s, pid, e: s.set_upload_mode(pid, e.mode),
    EventType.SET_WIN_TARGET: lambda s, pid, e: s.set_win_target(pid, e.target),
    EventType.SET_BOARD_SETTINGS: lambda s, pid, e: s.set_board_display_settings(pid, **_board_settings_kwargs(e)),
    EventType.START_GAME: lambda s, pid, e: s.start_game(pid),
    EventType.STORYTELLER_SUBMIT: lambda s, pid, e: s.storyteller_submit(pid, e.card_id, e.clue),
    EventType.PLAYER_SUBMIT: lambda s, pid, e: s.player_submit(pid, e.card_id),
    EventType.VOTE: lambda s, pid, e: s.player_vote(pid, e.card_id),
    EventType.ADVANCE_ROUND: lambda s, pid, e: s.advance_round(pid),
    EventType.RESET_GAME: lambda s, pid, e: s.reset_game(pid),
    EventType.NEW_DECK: lambda s, pid, e: s.new_deck(pid),
    EventType.REQUEST_STATE: lambda s, pid, e: None,
}


def create_app(
    registry: Optional[SessionRegistry] = None,
    timer_interval: float = 1.0,
    enable_timer: bool = True
) -> FastAPI:
    """Build the FastAPI application around a session registry."""
    if registry is None:
        registry = SessionRegistry()
    manager = ConnectionManager()

    async def broadcast_room(room_id: str) -> None:
        session = registry.get_room(room_id)
        if session is not None:
            await manager.broadcast_state(room_id, session)

    timer = PhaseTimer(registry, on_change=broadcast_room, interval=timer_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if enable_timer:
            timer.start()
        yield
        await timer.stop()

    app = FastAPI(title="Storyteller Game Engine", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.registry = registry
    app.state.connections = manager
    app.state.timer = timer

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "rooms": len(registry),
            "connections": sum(len(conns) for conns in manager.rooms.values())
        }

    async def handle_join(websocket: WebSocket, room_id: str, event) -> str:
        if isinstance(event, JoinEvent):
            is_new_room = registry.get_room(room_id) is None
            session = registry.create_room(room_id)
            try:
                player = session.add_player(event.client_id, event.name)
            except GameError:
                if is_new_room and not session.players:
                    registry.remove_room(room_id)
                raise
        else:
            session = registry.get_room(room_id)
            if session is None:
                raise NotFoundError(f"Room {room_id}")
            player = session.reconnect_player(event.client_id)
            session.repair_hand(player.id)
        manager.connect(room_id, websocket, player.id)
        await manager.send(websocket, create_joined_event(player.id))
        return player.id

    async def handle_kick(room_id: str, target_id: str) -> None:
        for target_socket in manager.sockets_for(room_id, target_id):
            manager.disconnect(room_id, target_socket)
            try:
                await manager.send(target_socket, create_kicked_event())
                await target_socket.close()
            except Exception as e:
                logger.error(f"Error closing kicked player {target_id}: {e}")

    @app.websocket("/ws/{room_id}")
    async def websocket_endpoint(websocket: WebSocket, room_id: str):
        await websocket.accept()
        player_id: Optional[str] = None

        try:
            while True:
                raw_data = await websocket.receive_text()
                try:
                    event = parse_inbound_event(orjson.loads(raw_data))
                except (orjson.JSONDecodeError, ValueError) as e:
                    await manager.send(websocket, create_error_event(ErrorCode.INVALID_EVENT, str(e)))
                    continue

                try:
                    if isinstance(event, (JoinEvent, ReconnectEvent)):
                        if player_id is not None:
                            manager.disconnect(room_id, websocket)
                        player_id = await handle_join(websocket, room_id, event)
                    elif player_id is None:
                        await manager.send(websocket, create_error_event(ErrorCode.NOT_JOINED, "Join the room first"))
                        continue
                    else:
                        session = registry.get_room(room_id)
                        if session is None:
                            raise NotFoundError(f"Room {room_id}")
                        HANDLERS[event.type](session, player_id, event)
                        if event.type == EventType.KICK:
                            await handle_kick(room_id, event.target_player_id)
                        elif event.type == EventType.LEAVE:
                            manager.disconnect(room_id, websocket)
                            player_id = None
                except GameError as e:
                    logger.warning(f"Rejected {event.type.value} from {player_id} in room {room_id}: {e}")
                    await manager.send(websocket, create_error_event(ErrorCode.from_code(e.code), e.message))
                    continue
                except Exception as e:
                    logger.error(f"Error handling event {event.type.value}: {e}")
                    await manager.send(websocket, create_error_event(ErrorCode.INTERNAL, "Internal server error"))
                    continue

                await broadcast_room(room_id)

        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected for player {player_id}")
        except Exception as e:
            logger.error(f"WebSocket error for player {player_id}: {e}")
        finally:
            manager.disconnect(room_id, websocket)
            session = registry.get_room(room_id)
            if player_id and session is not None and player_id in session.players \
                    and not manager.sockets_for(room_id, player_id):
                try:
                    session.remove_player(player_id)
                    await broadcast_room(room_id)
                except GameError as e:
                    logger.warning(f"Could not mark {player_id} disconnected: {e}")

    return app
