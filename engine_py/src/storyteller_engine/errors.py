# engine_py/src/storyteller_engine/errors.py

class GameError(Exception):
    """Base exception for game-related errors."""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ValidationError(GameError):
    """Malformed or out-of-range input."""
    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(code, message)


class PermissionDeniedError(GameError):
    """Acting player lacks the role required for the action."""
    def __init__(self, message: str, code: str = "PERMISSION_DENIED"):
        super().__init__(code, message)


class GameStateError(GameError):
    """Action is not valid in the current phase or game state."""
    def __init__(self, message: str, code: str = "GAME_STATE_ERROR"):
        super().__init__(code, message)


class NotFoundError(GameError):
    def __init__(self, resource: str, code: str = "NOT_FOUND"):
        super().__init__(code, f"{resource} not found")


class ConflictError(GameError):
    """A phase transition is already being resolved; retry later."""
    def __init__(self, message: str = "Session is processing a phase transition", code: str = "PROCESSING"):
        super().__init__(code, message)


# Specific error codes
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

_ERROR_CLASSES = {
    INVALID_INPUT: ValidationError,
    NAME_TAKEN: ValidationError,
    IMAGE_TOO_LARGE: ValidationError,
    QUOTA_EXCEEDED: ValidationError,
    DECK_FULL: ValidationError,
    WRONG_SECRET: PermissionDeniedError,
    ADMIN_REQUIRED: PermissionDeniedError,
    NOT_STORYTELLER: PermissionDeniedError,
    IS_STORYTELLER: PermissionDeniedError,
    UPLOAD_NOT_ALLOWED: PermissionDeniedError,
    NOT_CARD_OWNER: PermissionDeniedError,
    PROCESSING: ConflictError,
}


def raise_error(code: str, message: str):
    """Raise the exception type matching an error code."""
    if code in (PLAYER_NOT_FOUND, CARD_NOT_FOUND):
        raise NotFoundError(message, code)
    error_class = _ERROR_CLASSES.get(code, GameStateError)
    raise error_class(message, code)
