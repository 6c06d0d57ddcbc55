"""
Tests for the card pool.
"""

import random

import pytest

from storyteller_engine.constants import UploadMode
from storyteller_engine.deck import CardPool
from storyteller_engine.errors import (
    DECK_FULL, DECK_LOCKED, IMAGE_TOO_LARGE, INSUFFICIENT_DECK, NOT_CARD_OWNER,
    QUOTA_EXCEEDED, UPLOAD_NOT_ALLOWED, GameStateError, PermissionDeniedError,
    ValidationError
)
from storyteller_engine.rules import create_rules


@pytest.fixture
def pool():
    return CardPool(rng=random.Random(1))


def _fill(pool, count, player_id="p1"):
    return [pool.add_card(f"img-{i}", player_id) for i in range(count)]


def test_add_card():
    """Test uploading a card."""
    pool = CardPool()
    card = pool.add_card("aGVsbG8=", "p1")

    assert pool.size == 1
    assert len(pool) == 1
    assert card.uploaded_by == "p1"
    assert pool.get_card(card.id) is card
    assert pool.uploads_by("p1") == 1


def test_card_ids_are_unique(pool):
    cards = _fill(pool, 50)
    assert len({c.id for c in cards}) == 50


def test_upload_quota(pool):
    """The 201st upload of one player is rejected."""
    _fill(pool, 200)

    with pytest.raises(ValidationError) as exc_info:
        pool.add_card("one-more", "p1")
    assert exc_info.value.code == QUOTA_EXCEEDED

    # Other players are not affected
    pool.add_card("one-more", "p2")
    assert pool.size == 201


def test_deck_full():
    pool = CardPool(create_rules(max_deck_size=10))
    for i in range(10):
        pool.add_card(f"img-{i}", f"p{i}")

    with pytest.raises(ValidationError) as exc_info:
        pool.add_card("extra", "p99")
    assert exc_info.value.code == DECK_FULL


def test_image_too_large():
    pool = CardPool(create_rules(max_image_size=1024))

    with pytest.raises(ValidationError) as exc_info:
        pool.add_card("a" * 2000, "p1")
    assert exc_info.value.code == IMAGE_TOO_LARGE
    assert pool.size == 0


def test_upload_modes(pool):
    """Host-only and players-only modes restrict who may upload."""
    pool.set_upload_mode(UploadMode.HOST_ONLY)
    pool.add_card("host", "admin", is_admin=True)
    with pytest.raises(PermissionDeniedError) as exc_info:
        pool.add_card("guest", "p2", is_admin=False)
    assert exc_info.value.code == UPLOAD_NOT_ALLOWED

    pool.set_upload_mode(UploadMode.PLAYERS_ONLY)
    pool.add_card("guest", "p2", is_admin=False)
    with pytest.raises(PermissionDeniedError):
        pool.add_card("host", "admin", is_admin=True)

    pool.set_upload_mode(UploadMode.MIXED)
    pool.add_card("host", "admin", is_admin=True)
    pool.add_card("guest", "p2", is_admin=False)
    assert pool.size == 4


def test_locked_pool_rejects_changes(pool):
    card = pool.add_card("img", "p1")
    pool.lock()

    with pytest.raises(GameStateError) as exc_info:
        pool.add_card("img2", "p1")
    assert exc_info.value.code == DECK_LOCKED
    with pytest.raises(GameStateError):
        pool.delete_card(card.id, "p1")
    with pytest.raises(GameStateError):
        pool.set_upload_mode(UploadMode.HOST_ONLY)

    pool.unlock()
    assert pool.delete_card(card.id, "p1")


def test_delete_card_permissions(pool):
    card = pool.add_card("img", "p1")

    with pytest.raises(PermissionDeniedError) as exc_info:
        pool.delete_card(card.id, "p2")
    assert exc_info.value.code == NOT_CARD_OWNER

    assert pool.delete_card(card.id, "admin", is_admin=True)
    assert pool.size == 0
    assert pool.uploads_by("p1") == 0


def test_delete_missing_card_reports_false(pool):
    assert pool.delete_card("no-such-card", "p1") is False


def test_draw_is_all_or_nothing(pool):
    _fill(pool, 5)

    with pytest.raises(GameStateError) as exc_info:
        pool.draw(6)
    assert exc_info.value.code == INSUFFICIENT_DECK
    assert pool.size == 5

    drawn = pool.draw(5)
    assert len(drawn) == 5
    assert pool.size == 0


def test_draw_and_return_round_trip(pool):
    """Returning drawn cards restores the size and leaves quotas untouched."""
    _fill(pool, 20, "p1")
    _fill(pool, 10, "p2")

    drawn = pool.draw(12)
    assert pool.size == 18
    pool.return_cards(drawn)

    assert pool.size == 30
    assert pool.uploads_by("p1") == 20
    assert pool.uploads_by("p2") == 10


def test_shuffle_keeps_cards(pool):
    cards = _fill(pool, 30)
    pool.shuffle()

    assert sorted(c.id for c in pool.cards()) == sorted(c.id for c in cards)


def test_transfer_ownership(pool):
    _fill(pool, 3, "leaver")
    pool.add_card("mine", "admin", is_admin=True)

    moved = pool.transfer_ownership("leaver", "admin")

    assert moved == 3
    assert pool.uploads_by("admin") == 4
    assert pool.uploads_by("leaver") == 0
    assert all(c.uploaded_by == "admin" for c in pool.cards())


def test_discarded_cards_stay_in_catalog(pool):
    _fill(pool, 4)
    drawn = pool.draw(2)
    pool.discard(drawn)

    assert pool.size == 2
    assert pool.discard_size == 2
    assert pool.get_card(drawn[0].id) is drawn[0]


def test_reset_keeps_cards_and_mode(pool):
    _fill(pool, 10)
    pool.set_upload_mode(UploadMode.HOST_ONLY)
    pool.lock()
    pool.discard(pool.draw(4))

    pool.reset()

    assert pool.size == 10
    assert pool.discard_size == 0
    assert not pool.locked
    assert pool.upload_mode == UploadMode.HOST_ONLY


def test_clear_wipes_everything(pool):
    _fill(pool, 10)
    pool.set_upload_mode(UploadMode.HOST_ONLY)
    pool.lock()

    pool.clear()

    assert pool.size == 0
    assert pool.uploads_by("p1") == 0
    assert not pool.locked
    assert pool.upload_mode == UploadMode.MIXED
