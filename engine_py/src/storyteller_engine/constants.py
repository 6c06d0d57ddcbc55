"""Game constants and utilities"""

import math
from enum import Enum


class Phase(str, Enum):
    DECK_BUILDING = "DECK_BUILDING"
    STORYTELLER_CHOICE = "STORYTELLER_CHOICE"
    PLAYERS_CHOICE = "PLAYERS_CHOICE"
    VOTING = "VOTING"
    REVEAL = "REVEAL"
    GAME_END = "GAME_END"


class UploadMode(str, Enum):
    HOST_ONLY = "HOST_ONLY"
    PLAYERS_ONLY = "PLAYERS_ONLY"
    MIXED = "MIXED"


class BoardPattern(str, Enum):
    SNAKE = "snake"
    SPIRAL = "spiral"


# Phases in which a round is being played
ROUND_PHASES = (
    Phase.STORYTELLER_CHOICE,
    Phase.PLAYERS_CHOICE,
    Phase.VOTING,
    Phase.REVEAL,
)

HAND_SIZE = 6
MIN_PLAYERS = 3
MAX_PLAYERS = 20
DEFAULT_WIN_TARGET = 30
MAX_IMAGE_SIZE = 5 * 1024 * 1024
MAX_IMAGES_PER_PLAYER = 200
MAX_DECK_SIZE = 1000

# Clue used when the storyteller runs out of time
AUTO_CLUE = "..."


def min_deck_size(players_count: int, win_target: int, hand_size: int = HAND_SIZE) -> int:
    """Cards needed to play a full game, rounded up to the nearest 10.

    players × (hand_size + win_target / 2) × 1.3
    """
    calculated = players_count * (hand_size + win_target / 2) * 1.3
    # round() strips float noise such as 81.90000000000001 before ceil
    return math.ceil(round(calculated / 10, 9)) * 10


def estimate_payload_size(image_data: str) -> int:
    """Approximate decoded size in bytes of a base64 payload."""
    return (len(image_data) * 3) // 4
