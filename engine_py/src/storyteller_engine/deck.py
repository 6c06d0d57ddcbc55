"""
Card pool management: uploads, locking, shuffling and dealing.
"""

import logging
import random
import uuid
from collections import Counter
from typing import Dict, Iterable, List, Optional

from .constants import UploadMode, estimate_payload_size
from .errors import (
    CARD_NOT_FOUND, DECK_FULL, DECK_LOCKED, IMAGE_TOO_LARGE, INSUFFICIENT_DECK,
    INVALID_INPUT, NOT_CARD_OWNER, QUOTA_EXCEEDED, UPLOAD_NOT_ALLOWED, raise_error
)
from .models import Card
from .rules import GameRules, default_rules

logger = logging.getLogger(__name__)


class CardPool:
    """
    The undealt cards of a session plus the bookkeeping for every card
    uploaded into it.

    Cards that leave the pool (dealt to a hand, submitted, discarded) stay in
    the catalog so their image data and uploader can still be looked up.
    """

    def __init__(self, rules: GameRules = default_rules, rng: Optional[random.Random] = None):
        self.rules = rules
        self._rng = rng or random.Random()
        self._deck: List[Card] = []
        self._discard: List[Card] = []
        self._catalog: Dict[str, Card] = {}
        self._upload_counts: Counter = Counter()
        self.upload_mode = UploadMode.MIXED
        self.locked = False

    def __len__(self) -> int:
        return len(self._deck)

    @property
    def size(self) -> int:
        return len(self._deck)

    def cards(self) -> List[Card]:
        return list(self._deck)

    def get_card(self, card_id: str) -> Optional[Card]:
        return self._catalog.get(card_id)

    def uploads_by(self, player_id: str) -> int:
        return self._upload_counts[player_id]

    # Uploads

    def check_upload(self, image_data: str, player_id: str, is_admin: bool) -> None:
        """Raise if the upload would be rejected, without changing anything."""
        if self.locked:
            raise_error(DECK_LOCKED, "Cannot add image: deck is locked")
        if not isinstance(image_data, str) or not image_data:
            raise_error(INVALID_INPUT, "Image data must be a non-empty string")
        size = estimate_payload_size(image_data)
        if size > self.rules.max_image_size:
            raise_error(
                IMAGE_TOO_LARGE,
                f"Image too large: {size} bytes (max {self.rules.max_image_size})"
            )
        if self.upload_mode == UploadMode.HOST_ONLY and not is_admin:
            raise_error(UPLOAD_NOT_ALLOWED, "Only the host can upload images")
        if self.upload_mode == UploadMode.PLAYERS_ONLY and is_admin:
            raise_error(UPLOAD_NOT_ALLOWED, "Only players can upload images")
        if self._upload_counts[player_id] >= self.rules.max_images_per_player:
            raise_error(QUOTA_EXCEEDED, f"Maximum {self.rules.max_images_per_player} images per player")
        if len(self._catalog) >= self.rules.max_deck_size:
            raise_error(DECK_FULL, f"Deck is full ({self.rules.max_deck_size} cards)")

    def add_card(self, image_data: str, player_id: str, is_admin: bool = False) -> Card:
        self.check_upload(image_data, player_id, is_admin)
        card = Card(id=uuid.uuid4().hex, image_data=image_data, uploaded_by=player_id)
        self._deck.append(card)
        self._catalog[card.id] = card
        self._upload_counts[player_id] += 1
        return card

    def delete_card(self, card_id: str, player_id: str, is_admin: bool = False) -> bool:
        """
        Delete an undealt card.

        Returns:
            True if a card was removed, False if no such card is in the pool
        """
        if self.locked:
            raise_error(DECK_LOCKED, "Cannot delete image: deck is locked")
        card = next((c for c in self._deck if c.id == card_id), None)
        if card is None:
            return False
        if card.uploaded_by != player_id and not is_admin:
            raise_error(NOT_CARD_OWNER, "You can only delete your own images")
        self._deck.remove(card)
        del self._catalog[card.id]
        self._upload_counts[card.uploaded_by] = max(0, self._upload_counts[card.uploaded_by] - 1)
        return True

    def set_upload_mode(self, mode: UploadMode) -> None:
        if self.locked:
            raise_error(DECK_LOCKED, "Cannot change upload settings: deck is locked")
        self.upload_mode = UploadMode(mode)

    # Locking

    def lock(self) -> None:
        self.locked = True

    def unlock(self) -> None:
        self.locked = False

    # Dealing

    def shuffle(self) -> None:
        """Uniformly permute the undealt cards."""
        self._rng.shuffle(self._deck)

    def draw(self, count: int) -> List[Card]:
        """Remove exactly ``count`` cards from the front of the pool."""
        if count < 0:
            raise_error(INVALID_INPUT, "Cannot draw a negative number of cards")
        if count > len(self._deck):
            raise_error(
                INSUFFICIENT_DECK,
                f"Cannot draw {count} cards: only {len(self._deck)} remaining"
            )
        drawn = self._deck[:count]
        del self._deck[:count]
        return drawn

    def return_cards(self, cards: Iterable[Card]) -> None:
        """Put previously drawn cards back at the bottom of the pool."""
        for card in cards:
            if card.id not in self._catalog:
                raise_error(CARD_NOT_FOUND, f"Card {card.id}")
            self._deck.append(card)

    def discard(self, cards: Iterable[Card]) -> None:
        """Set played cards aside until the pool is reset."""
        self._discard.extend(cards)

    @property
    def discard_size(self) -> int:
        return len(self._discard)

    # Ownership

    def transfer_ownership(self, from_player_id: str, to_player_id: str) -> int:
        """
        Re-tag every card uploaded by one player as uploaded by another.

        Returns:
            Number of cards transferred
        """
        moved = 0
        for card in self._catalog.values():
            if card.uploaded_by == from_player_id:
                card.uploaded_by = to_player_id
                moved += 1
        if moved:
            self._upload_counts[to_player_id] += self._upload_counts.pop(from_player_id, 0)
            logger.info(f"Transferred {moved} cards from {from_player_id} to {to_player_id}")
        return moved

    # Resetting

    def reset(self) -> None:
        """Unlock and take back the discard pile, keeping all uploaded cards."""
        self._deck.extend(self._discard)
        self._discard = []
        self.locked = False

    def clear(self) -> None:
        """Drop every card and restore default settings."""
        self._deck = []
        self._discard = []
        self._catalog = {}
        self._upload_counts = Counter()
        self.upload_mode = UploadMode.MIXED
        self.locked = False
