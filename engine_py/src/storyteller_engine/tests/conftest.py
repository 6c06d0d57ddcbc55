"""
Shared fixtures for the storyteller engine tests.
"""

import random

import pytest

from storyteller_engine.engine import GameSession

SECRET = "s3cret"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def upload_cards(session: GameSession, count: int) -> None:
    """Upload ``count`` small images, spread over the players in join order."""
    player_ids = list(session.players)
    for i in range(count):
        session.upload_card(player_ids[i % len(player_ids)], f"image-{i}")


def setup_lobby(session: GameSession, player_count: int = 3, extra_cards: int = 0) -> GameSession:
    """Join players p1..pN, set the admin secret and upload a minimal deck."""
    for i in range(1, player_count + 1):
        session.add_player(f"p{i}", f"Player {i}")
    session.set_admin_secret("p1", SECRET)
    upload_cards(session, session.required_deck_size() + extra_cards)
    return session


def create_game(clock, player_count=3, extra_cards=0, start=True, seed=7) -> GameSession:
    session = GameSession("test-room", rng=random.Random(seed), clock=clock)
    setup_lobby(session, player_count, extra_cards)
    if start:
        session.start_game("p1")
    return session


def play_to_voting(session: GameSession, clue: str = "A quiet morning") -> str:
    """Storyteller and every player submit their first card; returns the storyteller's card id."""
    storyteller = session.players[session.state.storyteller_id]
    card_id = storyteller.hand[0].id
    session.storyteller_submit(storyteller.id, card_id, clue)
    for player in list(session.players.values()):
        if player.id != storyteller.id:
            session.player_submit(player.id, player.hand[0].id)
    return card_id


def vote_all(session: GameSession, card_id: str) -> None:
    """Every voter picks ``card_id``, or the first other card when it is their own."""
    for player_id in list(session.players):
        if player_id == session.state.storyteller_id:
            continue
        own = session.state.submission_for(player_id)
        target = card_id
        if own is not None and own.card_id == card_id:
            target = next(s.card_id for s in session.state.submissions if s.player_id != player_id)
        session.player_vote(player_id, target)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lobby(clock):
    """Three players and a full pool, still in deck building."""
    return create_game(clock, start=False)


@pytest.fixture
def game(clock):
    """A started three player game."""
    return create_game(clock)


@pytest.fixture
def game4(clock):
    """A started four player game."""
    return create_game(clock, player_count=4)
