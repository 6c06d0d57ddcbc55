"""
Tests for rule configuration and deck sizing.
"""

import pytest
from pydantic import ValidationError

from storyteller_engine.constants import Phase, min_deck_size
from storyteller_engine.rules import create_rules, default_rules, rules_from_env


def test_min_deck_size():
    """Cards needed are rounded up to the next multiple of ten."""
    assert min_deck_size(3, 30) == 90
    assert min_deck_size(4, 30) == 110
    assert min_deck_size(3, 10) == 50
    assert min_deck_size(6, 30) == 170
    assert min_deck_size(5, 20) == 110


def test_default_rules():
    assert default_rules.hand_size == 6
    assert default_rules.min_players == 3
    assert default_rules.default_win_target == 30
    assert default_rules.max_images_per_player == 200


def test_create_rules_overrides():
    rules = create_rules(max_players=8, voting_timeout=30)
    assert rules.max_players == 8
    assert rules.voting_timeout == 30
    assert rules.min_players == default_rules.min_players


def test_invalid_rules():
    with pytest.raises(ValidationError):
        create_rules(min_players=5, max_players=4)
    with pytest.raises(ValidationError):
        create_rules(min_win_target=20, max_win_target=10)
    with pytest.raises(ValidationError):
        create_rules(hand_size=1)


def test_phase_timeout():
    rules = create_rules(storyteller_timeout=60)
    assert rules.phase_timeout(Phase.STORYTELLER_CHOICE) == 60
    assert rules.phase_timeout(Phase.REVEAL) == rules.reveal_timeout
    assert rules.phase_timeout(Phase.DECK_BUILDING) == 0
    assert rules.phase_timeout(Phase.GAME_END) == 0


def test_rules_from_env(monkeypatch):
    monkeypatch.setenv("MAX_PLAYERS", "8")
    monkeypatch.setenv("MAX_WIN_TARGET", "35")
    monkeypatch.delenv("MIN_PLAYERS", raising=False)

    rules = rules_from_env()

    assert rules.max_players == 8
    assert rules.max_win_target == 35
    assert rules.min_players == default_rules.min_players
