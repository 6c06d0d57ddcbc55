"""
WebSocket event models and validation.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..constants import BoardPattern, UploadMode


class EventType(str, Enum):
    """Inbound event types."""
    JOIN = "join"
    RECONNECT = "reconnect"
    LEAVE = "leave"
    KICK = "kick"
    PROMOTE = "promote"
    SET_ADMIN_SECRET = "set_admin_secret"
    CLAIM_ADMIN = "claim_admin"
    CHANGE_NAME = "change_name"
    SET_TOKEN_IMAGE = "set_token_image"
    UPLOAD_CARD = "upload_card"
    DELETE_CARD = "delete_card"
    LOCK_POOL = "lock_pool"
    UNLOCK_POOL = "unlock_pool"
    SET_UPLOAD_MODE = "set_upload_mode"
    SET_WIN_TARGET = "set_win_target"
    SET_BOARD_SETTINGS = "set_board_settings"
    START_GAME = "start_game"
    STORYTELLER_SUBMIT = "storyteller_submit"
    PLAYER_SUBMIT = "player_submit"
    VOTE = "vote"
    ADVANCE_ROUND = "advance_round"
    RESET_GAME = "reset_game"
    NEW_DECK = "new_deck"
    REQUEST_STATE = "request_state"


class OutboundEventType(str, Enum):
    """Outbound event types."""
    JOINED = "joined"
    STATE = "state"
    ERROR = "error"
    KICKED = "kicked"


class ErrorCode(str, Enum):
    """Error codes sent to clients."""
    INVALID_EVENT = "INVALID_EVENT"
    NOT_JOINED = "NOT_JOINED"
    INTERNAL = "INTERNAL"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    GAME_STATE_ERROR = "GAME_STATE_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    NAME_TAKEN = "NAME_TAKEN"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    DECK_FULL = "DECK_FULL"
    WRONG_PHASE = "WRONG_PHASE"
    DECK_LOCKED = "DECK_LOCKED"
    ROOM_FULL = "ROOM_FULL"
    NOT_ENOUGH_PLAYERS = "NOT_ENOUGH_PLAYERS"
    INSUFFICIENT_DECK = "INSUFFICIENT_DECK"
    SECRET_NOT_SET = "SECRET_NOT_SET"
    ADMIN_REQUIRED = "ADMIN_REQUIRED"
    NOT_STORYTELLER = "NOT_STORYTELLER"
    IS_STORYTELLER = "IS_STORYTELLER"
    UPLOAD_NOT_ALLOWED = "UPLOAD_NOT_ALLOWED"
    NOT_CARD_OWNER = "NOT_CARD_OWNER"
    WRONG_SECRET = "WRONG_SECRET"
    CARD_NOT_IN_HAND = "CARD_NOT_IN_HAND"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    ALREADY_VOTED = "ALREADY_VOTED"
    OWN_CARD_VOTE = "OWN_CARD_VOTE"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    CARD_NOT_FOUND = "CARD_NOT_FOUND"
    PROCESSING = "PROCESSING"

    @classmethod
    def from_code(cls, code: str) -> "ErrorCode":
        try:
            return cls(code)
        except ValueError:
            return cls.INTERNAL


# Inbound event models
class BaseEvent(BaseModel):
    """Base event model."""
    type: EventType


class JoinEvent(BaseEvent):
    """Join room event."""
    type: EventType = EventType.JOIN
    client_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=50)


class ReconnectEvent(BaseEvent):
    type: EventType = EventType.RECONNECT
    client_id: str = Field(..., min_length=1, max_length=64)


class LeaveEvent(BaseEvent):
    type: EventType = EventType.LEAVE


class KickEvent(BaseEvent):
    type: EventType = EventType.KICK
    target_player_id: str = Field(..., min_length=1)


class PromoteEvent(BaseEvent):
    type: EventType = EventType.PROMOTE
    target_player_id: str = Field(..., min_length=1)


class SetAdminSecretEvent(BaseEvent):
    type: EventType = EventType.SET_ADMIN_SECRET
    secret: str


class ClaimAdminEvent(BaseEvent):
    type: EventType = EventType.CLAIM_ADMIN
    secret: str


class ChangeNameEvent(BaseEvent):
    type: EventType = EventType.CHANGE_NAME
    name: str = Field(..., min_length=1, max_length=50)


class SetTokenImageEvent(BaseEvent):
    """Set or clear (null) the player's avatar."""
    type: EventType = EventType.SET_TOKEN_IMAGE
    image_data: Optional[str] = None


class UploadCardEvent(BaseEvent):
    type: EventType = EventType.UPLOAD_CARD
    image_data: str = Field(..., min_length=1)


class DeleteCardEvent(BaseEvent):
    type: EventType = EventType.DELETE_CARD
    card_id: str = Field(..., min_length=1)


class LockPoolEvent(BaseEvent):
    type: EventType = EventType.LOCK_POOL


class UnlockPoolEvent(BaseEvent):
    type: EventType = EventType.UNLOCK_POOL


class SetUploadModeEvent(BaseEvent):
    type: EventType = EventType.SET_UPLOAD_MODE
    mode: UploadMode


class SetWinTargetEvent(BaseEvent):
    type: EventType = EventType.SET_WIN_TARGET
    target: int = Field(..., ge=1, le=100)


class SetBoardSettingsEvent(BaseEvent):
    """Board display settings; omitted fields are left unchanged."""
    type: EventType = EventType.SET_BOARD_SETTINGS
    background: Optional[str] = None
    pattern: Optional[BoardPattern] = None


class StartGameEvent(BaseEvent):
    type: EventType = EventType.START_GAME


class StorytellerSubmitEvent(BaseEvent):
    type: EventType = EventType.STORYTELLER_SUBMIT
    card_id: str = Field(..., min_length=1)
    clue: str = Field(..., min_length=1, max_length=200)


class PlayerSubmitEvent(BaseEvent):
    type: EventType = EventType.PLAYER_SUBMIT
    card_id: str = Field(..., min_length=1)


class VoteEvent(BaseEvent):
    type: EventType = EventType.VOTE
    card_id: str = Field(..., min_length=1)


class AdvanceRoundEvent(BaseEvent):
    type: EventType = EventType.ADVANCE_ROUND


class ResetGameEvent(BaseEvent):
    type: EventType = EventType.RESET_GAME


class NewDeckEvent(BaseEvent):
    type: EventType = EventType.NEW_DECK


class RequestStateEvent(BaseEvent):
    """Request full state event."""
    type: EventType = EventType.REQUEST_STATE


EVENT_MODELS = {
    EventType.JOIN: JoinEvent,
    EventType.RECONNECT: ReconnectEvent,
    EventType.LEAVE: LeaveEvent,
    EventType.KICK: KickEvent,
    EventType.PROMOTE: PromoteEvent,
    EventType.SET_ADMIN_SECRET: SetAdminSecretEvent,
    EventType.CLAIM_ADMIN: ClaimAdminEvent,
    EventType.CHANGE_NAME: ChangeNameEvent,
    EventType.SET_TOKEN_IMAGE: SetTokenImageEvent,
    EventType.UPLOAD_CARD: UploadCardEvent,
    EventType.DELETE_CARD: DeleteCardEvent,
    EventType.LOCK_POOL: LockPoolEvent,
    EventType.UNLOCK_POOL: UnlockPoolEvent,
    EventType.SET_UPLOAD_MODE: SetUploadModeEvent,
    EventType.SET_WIN_TARGET: SetWinTargetEvent,
    EventType.SET_BOARD_SETTINGS: SetBoardSettingsEvent,
    EventType.START_GAME: StartGameEvent,
    EventType.STORYTELLER_SUBMIT: StorytellerSubmitEvent,
    EventType.PLAYER_SUBMIT: PlayerSubmitEvent,
    EventType.VOTE: VoteEvent,
    EventType.ADVANCE_ROUND: AdvanceRoundEvent,
    EventType.RESET_GAME: ResetGameEvent,
    EventType.NEW_DECK: NewDeckEvent,
    EventType.REQUEST_STATE: RequestStateEvent,
}


# Outbound event models
class JoinedEvent(BaseModel):
    type: OutboundEventType = OutboundEventType.JOINED
    player_id: str
    timestamp: float


class StateEvent(BaseModel):
    """Room-wide state plus the receiving player's private state."""
    type: OutboundEventType = OutboundEventType.STATE
    room: Dict[str, Any]
    player: Optional[Dict[str, Any]] = None
    timestamp: float


class ErrorEvent(BaseModel):
    type: OutboundEventType = OutboundEventType.ERROR
    code: ErrorCode
    message: str
    timestamp: float


class KickedEvent(BaseModel):
    type: OutboundEventType = OutboundEventType.KICKED
    message: str
    timestamp: float


def parse_inbound_event(data: Dict[str, Any]) -> BaseEvent:
    """
    Parse raw event data into the matching event model.

    Raises:
        ValueError: If event type is invalid or data is malformed
    """
    if not isinstance(data, dict):
        raise ValueError("Event must be a JSON object")

    event_type = data.get("type")
    if not event_type:
        raise ValueError("Missing event type")

    try:
        event_type = EventType(event_type)
    except ValueError:
        raise ValueError(f"Invalid event type: {event_type}")

    event_class = EVENT_MODELS[event_type]
    try:
        return event_class(**data)
    except PydanticValidationError as e:
        raise ValueError(f"Invalid event data: {e.errors()[0]['msg']}")


def create_error_event(code: ErrorCode, message: str) -> ErrorEvent:
    return ErrorEvent(code=code, message=message, timestamp=time.time())


def create_joined_event(player_id: str) -> JoinedEvent:
    return JoinedEvent(player_id=player_id, timestamp=time.time())


def create_state_event(room: Dict[str, Any], player: Optional[Dict[str, Any]]) -> StateEvent:
    return StateEvent(room=room, player=player, timestamp=time.time())


def create_kicked_event(message: str = "You have been removed from the game") -> KickedEvent:
    return KickedEvent(message=message, timestamp=time.time())
