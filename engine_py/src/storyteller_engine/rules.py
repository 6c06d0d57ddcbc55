"""
Game rule configuration and validation.
"""

import os

from pydantic import BaseModel, Field, field_validator

from .constants import (
    DEFAULT_WIN_TARGET, HAND_SIZE, MAX_DECK_SIZE, MAX_IMAGE_SIZE,
    MAX_IMAGES_PER_PLAYER, MAX_PLAYERS, MIN_PLAYERS, Phase
)


class GameRules(BaseModel):
    """Configuration for game rules and settings."""

    hand_size: int = Field(
        default=HAND_SIZE,
        ge=3,
        le=10,
        description="Number of cards each player holds"
    )
    min_players: int = Field(
        default=MIN_PLAYERS,
        ge=2,
        le=20,
        description="Minimum number of players required to start"
    )
    max_players: int = Field(
        default=MAX_PLAYERS,
        ge=2,
        le=50,
        description="Maximum number of players allowed"
    )
    default_win_target: int = Field(
        default=DEFAULT_WIN_TARGET,
        ge=1,
        description="Points needed to win when no target was chosen"
    )
    min_win_target: int = Field(default=10, ge=1)
    max_win_target: int = Field(default=40, ge=1)
    max_deck_size: int = Field(
        default=MAX_DECK_SIZE,
        ge=10,
        description="Maximum number of cards in the pool"
    )
    max_image_size: int = Field(
        default=MAX_IMAGE_SIZE,
        ge=1024,
        description="Maximum decoded size of one image in bytes"
    )
    max_images_per_player: int = Field(
        default=MAX_IMAGES_PER_PLAYER,
        ge=1,
        description="Upload quota per player"
    )
    min_secret_length: int = Field(default=4, ge=1)
    max_secret_length: int = Field(default=20, ge=1)
    max_name_length: int = Field(default=50, ge=1)
    max_clue_length: int = Field(default=200, ge=1)
    storyteller_timeout: int = Field(
        default=120,
        ge=5,
        le=3600,
        description="Seconds the storyteller has to pick a card and clue"
    )
    players_timeout: int = Field(default=90, ge=5, le=3600)
    voting_timeout: int = Field(default=90, ge=5, le=3600)
    reveal_timeout: int = Field(
        default=30,
        ge=1,
        le=3600,
        description="Seconds before the reveal auto-advances"
    )
    auto_advance_reveal: bool = Field(
        default=True,
        description="Whether the reveal phase advances on its own after the timeout"
    )
    admin_grace_period: int = Field(
        default=60,
        ge=0,
        description="Seconds a disconnected admin keeps the role"
    )
    max_disconnected_time: int = Field(
        default=30 * 60,
        ge=0,
        description="Seconds before a disconnected player is removed"
    )

    @field_validator('max_players')
    @classmethod
    def validate_max_players(cls, v, info):
        """Validate maximum players doesn't fall below minimum."""
        min_players = info.data.get('min_players', MIN_PLAYERS)
        if v < min_players:
            raise ValueError(f'max_players ({v}) must be >= min_players ({min_players})')
        return v

    @field_validator('max_win_target')
    @classmethod
    def validate_win_target_bounds(cls, v, info):
        min_target = info.data.get('min_win_target', 10)
        if v < min_target:
            raise ValueError(f'max_win_target ({v}) must be >= min_win_target ({min_target})')
        return v

    def phase_timeout(self, phase) -> int:
        """Get the deadline duration in seconds for a round phase."""
        return {
            Phase.STORYTELLER_CHOICE: self.storyteller_timeout,
            Phase.PLAYERS_CHOICE: self.players_timeout,
            Phase.VOTING: self.voting_timeout,
            Phase.REVEAL: self.reveal_timeout,
        }.get(phase, 0)


# Default configuration instance
default_rules = GameRules()


def create_rules(**overrides) -> GameRules:
    """Create a GameRules with optional overrides."""
    config_dict = default_rules.model_dump()
    config_dict.update(overrides)
    return GameRules(**config_dict)


_ENV_FIELDS = {
    "MIN_PLAYERS": "min_players",
    "MAX_PLAYERS": "max_players",
    "MAX_DECK_SIZE": "max_deck_size",
    "MAX_IMAGE_SIZE": "max_image_size",
    "MAX_IMAGES_PER_PLAYER": "max_images_per_player",
    "MIN_WIN_TARGET": "min_win_target",
    "MAX_WIN_TARGET": "max_win_target",
    "ADMIN_MIN_PASSWORD_LENGTH": "min_secret_length",
    "ADMIN_MAX_PASSWORD_LENGTH": "max_secret_length",
    "ADMIN_GRACE_PERIOD": "admin_grace_period",
}


def rules_from_env() -> GameRules:
    """Create a GameRules from environment variables, falling back to defaults."""
    overrides = {}
    for env_name, field_name in _ENV_FIELDS.items():
        value = os.getenv(env_name)
        if value:
            overrides[field_name] = int(value)
    return create_rules(**overrides)
