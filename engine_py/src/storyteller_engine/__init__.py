"""Session engine for a storyteller party card game."""

from .constants import Phase, UploadMode, BoardPattern
from .engine import GameSession, SessionRegistry
from .errors import (
    GameError, ValidationError, PermissionDeniedError, GameStateError,
    NotFoundError, ConflictError
)
from .rules import GameRules, create_rules, default_rules

__all__ = [
    "Phase", "UploadMode", "BoardPattern",
    "GameSession", "SessionRegistry",
    "GameError", "ValidationError", "PermissionDeniedError", "GameStateError",
    "NotFoundError", "ConflictError",
    "GameRules", "create_rules", "default_rules",
]
