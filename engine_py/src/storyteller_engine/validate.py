"""
Input validation and response-collection checks.

Validators never mutate anything; the session runs them before touching
state and raises the returned error when a result is not valid.
"""

import re
from typing import Any, List, Optional

from .constants import Phase
from .errors import (
    ALREADY_SUBMITTED, ALREADY_VOTED, CARD_NOT_FOUND, CARD_NOT_IN_HAND,
    INVALID_INPUT, IS_STORYTELLER, NOT_STORYTELLER, OWN_CARD_VOTE,
    PLAYER_NOT_FOUND, WRONG_PHASE, raise_error
)
from .models import Player, SessionState, Submission, Vote
from .rules import GameRules

_TAG_RE = re.compile(r"<[^>]*>")


class ValidationResult:
    """Result of validating a player action."""

    def __init__(
        self,
        valid: bool,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        value: Any = None
    ):
        self.valid = valid
        self.error_code = error_code
        self.error_message = error_message
        self.value = value

    @classmethod
    def success(cls, value: Any = None) -> 'ValidationResult':
        """Create a successful validation result."""
        return cls(valid=True, value=value)

    @classmethod
    def error(cls, error_code: str, error_message: str) -> 'ValidationResult':
        """Create an error validation result."""
        return cls(valid=False, error_code=error_code, error_message=error_message)

    def raise_if_invalid(self) -> Any:
        """Raise the matching GameError, or return the validated value."""
        if not self.valid:
            raise_error(self.error_code, self.error_message)
        return self.value


def clean_text(text: str) -> str:
    """Strip markup and surrounding whitespace from user supplied text."""
    return _TAG_RE.sub("", text).strip()


def _validate_text(text: Optional[str], label: str, max_length: int, min_length: int = 1) -> ValidationResult:
    if not isinstance(text, str):
        return ValidationResult.error(INVALID_INPUT, f"{label} must be a string")
    cleaned = clean_text(text)
    if len(cleaned) < min_length:
        if min_length == 1:
            return ValidationResult.error(INVALID_INPUT, f"{label} must not be empty")
        return ValidationResult.error(INVALID_INPUT, f"{label} must be at least {min_length} characters")
    if len(cleaned) > max_length:
        return ValidationResult.error(INVALID_INPUT, f"{label} must be at most {max_length} characters")
    return ValidationResult.success(cleaned)


def validate_name(name: Optional[str], rules: GameRules) -> ValidationResult:
    return _validate_text(name, "Name", rules.max_name_length)


def validate_clue(clue: Optional[str], rules: GameRules) -> ValidationResult:
    return _validate_text(clue, "Clue", rules.max_clue_length)


def validate_secret(secret: Optional[str], rules: GameRules) -> ValidationResult:
    """Secrets are compared verbatim, so only the length is checked."""
    if not isinstance(secret, str):
        return ValidationResult.error(INVALID_INPUT, "Secret must be a string")
    if not rules.min_secret_length <= len(secret) <= rules.max_secret_length:
        return ValidationResult.error(
            INVALID_INPUT,
            f"Secret must be {rules.min_secret_length}-{rules.max_secret_length} characters"
        )
    return ValidationResult.success(secret)


def validate_phase(state: SessionState, expected: Phase) -> ValidationResult:
    if state.phase != expected:
        return ValidationResult.error(
            WRONG_PHASE,
            f"Action requires phase {expected.value} (current: {state.phase.value})"
        )
    return ValidationResult.success()


def validate_storyteller_submit(
    state: SessionState,
    player: Optional[Player],
    card_id: str,
    clue: Optional[str],
    rules: GameRules
) -> ValidationResult:
    """
    Validate the storyteller's card and clue.

    Returns:
        ValidationResult carrying the cleaned clue on success
    """
    result = validate_phase(state, Phase.STORYTELLER_CHOICE)
    if not result.valid:
        return result
    if player is None:
        return ValidationResult.error(PLAYER_NOT_FOUND, "Player")
    if state.storyteller_id != player.id:
        return ValidationResult.error(NOT_STORYTELLER, "You are not the storyteller")
    if not player.has_card(card_id):
        return ValidationResult.error(CARD_NOT_IN_HAND, "You do not have that card")
    return validate_clue(clue, rules)


def validate_player_submit(state: SessionState, player: Optional[Player], card_id: str) -> ValidationResult:
    result = validate_phase(state, Phase.PLAYERS_CHOICE)
    if not result.valid:
        return result
    if player is None:
        return ValidationResult.error(PLAYER_NOT_FOUND, "Player")
    if state.storyteller_id == player.id:
        return ValidationResult.error(IS_STORYTELLER, "Storyteller cannot submit another card")
    if state.submission_for(player.id) is not None:
        return ValidationResult.error(ALREADY_SUBMITTED, "You have already submitted a card")
    if not player.has_card(card_id):
        return ValidationResult.error(CARD_NOT_IN_HAND, "You do not have that card")
    return ValidationResult.success()


def validate_vote(state: SessionState, player: Optional[Player], card_id: str) -> ValidationResult:
    result = validate_phase(state, Phase.VOTING)
    if not result.valid:
        return result
    if player is None:
        return ValidationResult.error(PLAYER_NOT_FOUND, "Player")
    if state.storyteller_id == player.id:
        return ValidationResult.error(IS_STORYTELLER, "Storyteller cannot vote")
    if state.vote_for(player.id) is not None:
        return ValidationResult.error(ALREADY_VOTED, "You have already voted")
    own = state.submission_for(player.id)
    if own is not None and own.card_id == card_id:
        return ValidationResult.error(OWN_CARD_VOTE, "Cannot vote for your own card")
    if not any(submission.card_id == card_id for submission in state.submissions):
        return ValidationResult.error(CARD_NOT_FOUND, f"Card {card_id}")
    return ValidationResult.success()


def submissions_complete(phase: Phase, submissions: List[Submission], player_count: int) -> bool:
    """Whether every player has put a card on the table."""
    return phase == Phase.PLAYERS_CHOICE and player_count > 0 and len(submissions) >= player_count


def votes_complete(phase: Phase, votes: List[Vote], player_count: int) -> bool:
    """Whether every player except the storyteller has voted."""
    return phase == Phase.VOTING and len(votes) >= player_count - 1


def valid_vote_targets(state: SessionState, voter_id: str) -> List[str]:
    """Card ids a player may vote for."""
    return [s.card_id for s in state.submissions if s.player_id != voter_id]
