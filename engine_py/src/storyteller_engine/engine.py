"""Session orchestrator: the phase state machine for one game room"""

import hmac
import logging
import random
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional

from .constants import (
    AUTO_CLUE, ROUND_PHASES, BoardPattern, Phase, UploadMode, estimate_payload_size,
    min_deck_size
)
from .deck import CardPool
from .errors import (
    ADMIN_REQUIRED, IMAGE_TOO_LARGE, INSUFFICIENT_DECK, INVALID_INPUT, NAME_TAKEN,
    NOT_ENOUGH_PLAYERS, PLAYER_NOT_FOUND, ROOM_FULL, SECRET_NOT_SET, WRONG_PHASE,
    WRONG_SECRET, ConflictError, raise_error
)
from .models import Card, Player, SessionState, Submission, Vote
from .rules import GameRules, default_rules
from .scoring import aggregate_scores, calculate_scores
from .serialization import player_projection, room_projection
from .validate import (
    submissions_complete, valid_vote_targets, validate_name, validate_player_submit,
    validate_secret,
    validate_storyteller_submit, validate_vote, votes_complete
)

logger = logging.getLogger(__name__)

PhaseListener = Callable[["GameSession", Phase], None]

_UNSET = object()


class GameSession:
    """
    One game room. All mutation of players, the card pool and the round goes
    through the methods of this class, one command at a time.
    """

    def __init__(
        self,
        room_id: str = "default",
        rules: Optional[GameRules] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time
    ):
        self.room_id = room_id
        self.rules = rules or default_rules
        self._rng = rng or random.Random()
        self._clock = clock
        self.players: Dict[str, Player] = {}  # insertion order is join order
        self.pool = CardPool(self.rules, self._rng)
        self.state = SessionState(win_target=self.rules.default_win_target)
        self.version = 0
        self._lock = threading.RLock()
        self._listeners: List[PhaseListener] = []

    # Command sections

    @contextmanager
    def _command(self):
        if self.state.resolving is not None:
            raise ConflictError()
        with self._lock:
            if self.state.resolving is not None:
                raise ConflictError()
            yield
            self.version += 1

    @contextmanager
    def _resolving(self, target: Phase):
        """Mark a phase transition as in flight until it has completed."""
        self.state.resolving = target
        try:
            yield
        finally:
            self.state.resolving = None

    def add_phase_listener(self, listener: PhaseListener) -> None:
        """Register a callback run whenever the session enters a phase."""
        self._listeners.append(listener)

    def _enter_phase(self, phase: Phase) -> None:
        previous = self.state.phase
        self.state.phase = phase
        duration = self.rules.phase_timeout(phase)
        if duration:
            self.state.phase_started_at = self._clock()
            self.state.phase_duration = duration
        else:
            self.state.phase_started_at = None
            self.state.phase_duration = None
        logger.info(f"Room {self.room_id}: {previous.value} -> {phase.value} (round {self.state.current_round})")
        for listener in list(self._listeners):
            try:
                listener(self, phase)
            except Exception as e:
                logger.error(f"Phase listener failed in room {self.room_id}: {e}")

    # Lookups

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def get_player(self, player_id: str) -> Player:
        player = self.players.get(player_id)
        if player is None:
            raise_error(PLAYER_NOT_FOUND, f"Player {player_id}")
        return player

    def get_admin(self) -> Optional[Player]:
        return next((p for p in self.players.values() if p.is_admin), None)

    def _require_admin(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if not player.is_admin:
            raise_error(ADMIN_REQUIRED, "Admin privileges required")
        return player

    def _require_phase(self, *phases: Phase) -> None:
        if self.state.phase not in phases:
            expected = ", ".join(p.value for p in phases)
            raise_error(WRONG_PHASE, f"Action requires phase {expected} (current: {self.state.phase.value})")

    def _check_name_free(self, name: str, player_id: Optional[str] = None) -> None:
        for other in self.players.values():
            if other.id != player_id and other.name.lower() == name.lower():
                raise_error(NAME_TAKEN, "Name is already taken")

    def _check_image(self, image_data: Optional[str]) -> None:
        if image_data is None:
            return
        if not isinstance(image_data, str):
            raise_error(INVALID_INPUT, "Image data must be a string")
        if estimate_payload_size(image_data) > self.rules.max_image_size:
            raise_error(IMAGE_TOO_LARGE, "Image too large")

    def _successor(self, player_id: str, connected_only: bool = False) -> Optional[Player]:
        """The next player after ``player_id`` in join order, wrapping around."""
        order = list(self.players)
        if player_id not in order:
            return None
        index = order.index(player_id)
        for offset in range(1, len(order)):
            candidate = self.players[order[(index + offset) % len(order)]]
            if not connected_only or candidate.is_connected:
                return candidate
        return None

    def _first_other(self, player_id: str, connected_only: bool) -> Optional[Player]:
        for player in self.players.values():
            if player.id != player_id and (player.is_connected or not connected_only):
                return player
        return None

    # Projections

    def room_projection(self) -> dict:
        with self._lock:
            return room_projection(self)

    def player_projection(self, player_id: str) -> Optional[dict]:
        with self._lock:
            return player_projection(self, player_id)

    # Players

    def add_player(self, client_id: str, name: str) -> Player:
        """Join a player, or reconnect them if the client id is already known."""
        with self._command():
            existing = self.players.get(client_id)
            if existing is not None:
                return self._reconnect(existing)

            cleaned = validate_name(name, self.rules).raise_if_invalid()
            if not client_id:
                raise_error(INVALID_INPUT, "Client id is required")
            self._require_phase(Phase.DECK_BUILDING, Phase.GAME_END)
            if len(self.players) >= self.rules.max_players:
                raise_error(ROOM_FULL, f"Room is full ({self.rules.max_players} players)")
            self._check_name_free(cleaned)

            now = self._clock()
            player = Player(
                id=client_id,
                name=cleaned,
                is_admin=self.get_admin() is None,
                last_seen=now,
                joined_at=now
            )
            self.players[client_id] = player
            logger.info(f"Player {cleaned} ({client_id}) joined room {self.room_id}"
                        f"{' as admin' if player.is_admin else ''}")
            return player

    def reconnect_player(self, client_id: str) -> Player:
        with self._command():
            return self._reconnect(self.get_player(client_id))

    def _reconnect(self, player: Player) -> Player:
        player.reconnect(self._clock())
        holder = next(
            (p for p in self.players.values() if p.is_admin and p.id != player.id), None
        )
        if player.is_admin and holder is not None:
            # First claimer wins
            player.is_admin = False
            logger.info(f"Player {player.id} reconnected without admin; {holder.id} holds it")
        elif holder is None and not player.is_admin:
            player.is_admin = True
            logger.info(f"Player {player.id} reconnected and became admin of room {self.room_id}")
        return player

    def remove_player(self, player_id: str) -> None:
        """Mark a player as disconnected; they keep their seat and cards."""
        with self._command():
            player = self.get_player(player_id)
            player.disconnect(self._clock())
            logger.info(f"Player {player_id} disconnected from room {self.room_id}")

    def leave_player(self, player_id: str) -> None:
        """Remove a player for good."""
        with self._command():
            self.get_player(player_id)
            self._remove(player_id, "left")

    def kick_player(self, admin_id: str, target_id: str) -> None:
        with self._command():
            self._require_admin(admin_id)
            if admin_id == target_id:
                raise_error(INVALID_INPUT, "Cannot kick yourself")
            self._require_phase(Phase.DECK_BUILDING, Phase.GAME_END)
            self.get_player(target_id)
            self._remove(target_id, "kicked")

    def cleanup_disconnected(self, max_age: Optional[float] = None, now: Optional[float] = None) -> List[str]:
        """
        Remove players that have been disconnected for at least ``max_age``
        seconds.

        Returns:
            Ids of the removed players
        """
        with self._command():
            max_age = self.rules.max_disconnected_time if max_age is None else max_age
            now = self._clock() if now is None else now
            stale = [
                p.id for p in self.players.values()
                if not p.is_connected and now - p.last_seen >= max_age
            ]
            for player_id in stale:
                self._remove(player_id, "timed out")
            return stale

    def _remove(self, player_id: str, reason: str) -> None:
        player = self.players[player_id]

        if player.is_admin:
            successor = self._first_other(player_id, connected_only=True) or \
                self._first_other(player_id, connected_only=False)
            player.is_admin = False
            if successor is not None:
                successor.is_admin = True
                logger.info(f"Admin passed from {player_id} to {successor.id}")

        restart_round = self._detach_from_round(player)

        if player.hand:
            self.pool.return_cards(player.hand)
            player.hand = []
        admin = self.get_admin()
        if admin is not None:
            self.pool.transfer_ownership(player_id, admin.id)

        del self.players[player_id]
        logger.info(f"Player {player.name} ({player_id}) {reason}, room {self.room_id}")

        if not self.players:
            with self._resolving(Phase.DECK_BUILDING):
                self._reset_game_state()
                self._enter_phase(Phase.DECK_BUILDING)
        elif self.state.phase in ROUND_PHASES and len(self.players) < self.rules.min_players:
            self._end_game("not enough players")
        elif restart_round:
            with self._resolving(Phase.STORYTELLER_CHOICE):
                self._enter_phase(Phase.STORYTELLER_CHOICE)
        else:
            self._check_quorum()

    def _detach_from_round(self, player: Player) -> bool:
        """
        Drop a departing player's part in the current round.

        Returns:
            True if the round has to restart with a new storyteller
        """
        state = self.state
        phase = state.phase
        if phase not in ROUND_PHASES:
            return False

        if state.storyteller_id == player.id:
            successor = self._successor(player.id)
            state.storyteller_id = successor.id if successor else None
            if phase == Phase.REVEAL:
                state.storyteller_rotated = True
                return False
            # Everyone takes their card back
            for submission in state.submissions:
                card = self.pool.get_card(submission.card_id)
                self.players[submission.player_id].add_cards([card])
            state.clear_round()
            logger.info(f"Storyteller {player.id} left; round {state.current_round} restarts")
            return True

        if phase not in (Phase.PLAYERS_CHOICE, Phase.VOTING):
            return False
        own = state.submission_for(player.id)
        if own is not None:
            state.submissions.remove(own)
            self.pool.discard([self.pool.get_card(own.card_id)])
            state.votes = [v for v in state.votes if v.card_id != own.card_id]
            if phase == Phase.VOTING:
                for position, submission in enumerate(state.submissions):
                    submission.position = position
        state.votes = [v for v in state.votes if v.voter_id != player.id]
        return False

    def _check_quorum(self) -> None:
        count = len(self.players)
        if submissions_complete(self.state.phase, self.state.submissions, count):
            self._begin_voting()
        elif votes_complete(self.state.phase, self.state.votes, count):
            self._reveal()

    # Roles

    def promote_admin(self, admin_id: str, target_id: str) -> None:
        """Hand the admin role to another connected player."""
        with self._command():
            admin = self._require_admin(admin_id)
            target = self.get_player(target_id)
            if target.id == admin.id:
                raise_error(INVALID_INPUT, "Player is already the admin")
            if not target.is_connected:
                raise_error(INVALID_INPUT, "Cannot promote a disconnected player")
            admin.is_admin = False
            target.is_admin = True
            logger.info(f"Admin promoted {target_id} in room {self.room_id}")

    def set_admin_secret(self, admin_id: str, secret: str) -> None:
        with self._command():
            self._require_admin(admin_id)
            self.state.admin_secret = validate_secret(secret, self.rules).raise_if_invalid()
            logger.info(f"Admin secret set in room {self.room_id}")

    def claim_admin(self, player_id: str, secret: str) -> None:
        """Take the admin role by presenting the admin secret."""
        with self._command():
            player = self.get_player(player_id)
            if self.state.admin_secret is None:
                raise_error(SECRET_NOT_SET, "No admin secret has been set")
            if not isinstance(secret, str) or not hmac.compare_digest(
                    secret.encode(), self.state.admin_secret.encode()):
                raise_error(WRONG_SECRET, "Incorrect admin secret")
            if player.is_admin:
                return
            incumbent = self.get_admin()
            if incumbent is not None:
                incumbent.is_admin = False
            player.is_admin = True
            logger.info(f"Player {player_id} claimed admin in room {self.room_id}")

    def check_admin_failover(self, grace_period: Optional[float] = None, now: Optional[float] = None) -> Optional[str]:
        """
        Move the admin role off an admin that has been gone too long.

        Returns:
            Id of the new admin, or None if nothing changed
        """
        with self._command():
            grace_period = self.rules.admin_grace_period if grace_period is None else grace_period
            now = self._clock() if now is None else now
            admin = self.get_admin()
            if admin is None:
                candidate = next((p for p in self.players.values() if p.is_connected), None)
                if candidate is None:
                    return None
                candidate.is_admin = True
                logger.info(f"Room {self.room_id} had no admin; {candidate.id} promoted")
                return candidate.id
            if admin.is_connected or now - admin.last_seen < grace_period:
                return None
            successor = self._first_other(admin.id, connected_only=True)
            if successor is None:
                return None
            admin.is_admin = False
            successor.is_admin = True
            logger.info(f"Admin {admin.id} timed out; {successor.id} is now admin of room {self.room_id}")
            return successor.id

    # Profile

    def change_name(self, player_id: str, new_name: str) -> None:
        with self._command():
            player = self.get_player(player_id)
            cleaned = validate_name(new_name, self.rules).raise_if_invalid()
            self._check_name_free(cleaned, player_id)
            player.name = cleaned

    def set_token_image(self, player_id: str, image_data: Optional[str]) -> None:
        with self._command():
            player = self.get_player(player_id)
            self._check_image(image_data)
            player.set_token_image(image_data)

    # Deck building

    def upload_card(self, player_id: str, image_data: str) -> Card:
        with self._command():
            player = self.get_player(player_id)
            self._require_phase(Phase.DECK_BUILDING)
            return self.pool.add_card(image_data, player_id, player.is_admin)

    def delete_card(self, player_id: str, card_id: str) -> bool:
        with self._command():
            player = self.get_player(player_id)
            self._require_phase(Phase.DECK_BUILDING)
            return self.pool.delete_card(card_id, player_id, player.is_admin)

    def lock_pool(self, admin_id: str) -> None:
        with self._command():
            self._require_admin(admin_id)
            self.pool.lock()

    def unlock_pool(self, admin_id: str) -> None:
        with self._command():
            self._require_admin(admin_id)
            self._require_phase(Phase.DECK_BUILDING)
            self.pool.unlock()

    def set_upload_mode(self, admin_id: str, mode) -> None:
        with self._command():
            self._require_admin(admin_id)
            try:
                mode = UploadMode(mode)
            except ValueError:
                raise_error(INVALID_INPUT, f"Unknown upload mode: {mode}")
            self.pool.set_upload_mode(mode)

    def set_win_target(self, admin_id: str, target: int) -> None:
        with self._command():
            self._require_admin(admin_id)
            self._require_phase(Phase.DECK_BUILDING)
            if isinstance(target, bool) or not isinstance(target, int) or \
                    not self.rules.min_win_target <= target <= self.rules.max_win_target:
                raise_error(
                    INVALID_INPUT,
                    f"Win target must be {self.rules.min_win_target}-{self.rules.max_win_target}"
                )
            self.state.win_target = target

    def set_board_display_settings(self, admin_id: str, background=_UNSET, pattern=None) -> None:
        """Change the board background image and/or the track pattern."""
        with self._command():
            self._require_admin(admin_id)
            if pattern is not None:
                try:
                    pattern = BoardPattern(pattern)
                except ValueError:
                    raise_error(INVALID_INPUT, f"Unknown board pattern: {pattern}")
            if background is not _UNSET:
                self._check_image(background)
                self.state.board_background = background
            if pattern is not None:
                self.state.board_pattern = pattern

    # Game flow

    def required_deck_size(self) -> int:
        return min_deck_size(len(self.players), self.state.win_target, self.rules.hand_size)

    def start_game(self, admin_id: str) -> None:
        with self._command():
            admin = self._require_admin(admin_id)
            self._require_phase(Phase.DECK_BUILDING)
            if self.state.admin_secret is None:
                raise_error(SECRET_NOT_SET, "Set an admin secret before starting the game")
            if len(self.players) < self.rules.min_players:
                raise_error(NOT_ENOUGH_PLAYERS, f"Need at least {self.rules.min_players} players to start")
            required = self.required_deck_size()
            if self.pool.size < required:
                raise_error(
                    INSUFFICIENT_DECK,
                    f"Deck has {self.pool.size} cards, {required} needed for {len(self.players)} players"
                )

            with self._resolving(Phase.STORYTELLER_CHOICE):
                self.pool.lock()
                self.pool.shuffle()
                for player in self.players.values():
                    player.hand = self.pool.draw(self.rules.hand_size)
                    player.score = 0
                self.state.clear_round()
                self.state.last_score_deltas = {}
                self.state.last_score_results = []
                self.state.storyteller_id = admin.id
                self.state.current_round = 1
                logger.info(f"Game started in room {self.room_id} with {len(self.players)} players, "
                            f"{self.pool.size} cards left")
                self._enter_phase(Phase.STORYTELLER_CHOICE)

    def storyteller_submit(self, player_id: str, card_id: str, clue: str) -> None:
        with self._command():
            player = self.players.get(player_id)
            clue = validate_storyteller_submit(
                self.state, player, card_id, clue, self.rules
            ).raise_if_invalid()
            with self._resolving(Phase.PLAYERS_CHOICE):
                player.remove_card(card_id)
                self.state.current_clue = clue
                self.state.submissions = [Submission(card_id=card_id, player_id=player_id)]
                self._enter_phase(Phase.PLAYERS_CHOICE)

    def player_submit(self, player_id: str, card_id: str) -> None:
        with self._command():
            player = self.players.get(player_id)
            validate_player_submit(self.state, player, card_id).raise_if_invalid()
            player.remove_card(card_id)
            self.state.submissions.append(Submission(card_id=card_id, player_id=player_id))
            if submissions_complete(self.state.phase, self.state.submissions, len(self.players)):
                self._begin_voting()

    def _begin_voting(self) -> None:
        with self._resolving(Phase.VOTING):
            shuffled = list(self.state.submissions)
            self._rng.shuffle(shuffled)
            for position, submission in enumerate(shuffled):
                submission.position = position
            self.state.submissions = shuffled
            self._enter_phase(Phase.VOTING)

    def player_vote(self, player_id: str, card_id: str) -> None:
        with self._command():
            player = self.players.get(player_id)
            validate_vote(self.state, player, card_id).raise_if_invalid()
            self.state.votes.append(Vote(voter_id=player_id, card_id=card_id))
            if votes_complete(self.state.phase, self.state.votes, len(self.players)):
                self._reveal()

    def _reveal(self) -> None:
        with self._resolving(Phase.REVEAL):
            state = self.state
            storyteller_card = state.submission_for(state.storyteller_id)
            results = calculate_scores(
                state.storyteller_id,
                storyteller_card.card_id if storyteller_card else "",
                state.submissions,
                state.votes
            )
            totals = aggregate_scores(results)
            state.last_score_deltas = {}
            for player in self.players.values():
                delta = totals.get(player.id, 0)
                player.add_score(delta)
                state.last_score_deltas[player.id] = delta
            state.last_score_results = [r for r in results if r.player_id in self.players]
            self._enter_phase(Phase.REVEAL)

    def advance_round(self, admin_id: str) -> None:
        with self._command():
            self._require_admin(admin_id)
            self._require_phase(Phase.REVEAL)
            self._advance_round()

    def _advance_round(self) -> None:
        state = self.state
        with self._resolving(Phase.STORYTELLER_CHOICE):
            if any(p.score >= state.win_target for p in self.players.values()):
                self._end_game("win target reached")
                return

            self.pool.discard(self.pool.get_card(s.card_id) for s in state.submissions)
            state.submissions = []

            hand_size = self.rules.hand_size
            needed = sum(max(0, hand_size - len(p.hand)) for p in self.players.values())
            if self.pool.size < needed:
                self._end_game("deck exhausted")
                return
            for player in self.players.values():
                missing = hand_size - len(player.hand)
                if missing > 0:
                    player.add_cards(self.pool.draw(missing))

            if not state.storyteller_rotated:
                successor = self._successor(state.storyteller_id)
                if successor is not None:
                    state.storyteller_id = successor.id
            state.clear_round()
            state.current_round += 1
            self._enter_phase(Phase.STORYTELLER_CHOICE)

    def _end_game(self, reason: str) -> None:
        with self._resolving(Phase.GAME_END):
            logger.info(f"Game over in room {self.room_id}: {reason}")
            self._enter_phase(Phase.GAME_END)

    def reset_game(self, admin_id: str) -> None:
        """Back to deck building with the same cards and settings."""
        with self._command():
            self._require_admin(admin_id)
            with self._resolving(Phase.DECK_BUILDING):
                self._reset_game_state()
                self._enter_phase(Phase.DECK_BUILDING)

    def _reset_game_state(self) -> None:
        state = self.state
        for submission in state.submissions:
            card = self.pool.get_card(submission.card_id)
            if card is not None:
                self.pool.return_cards([card])
        for player in self.players.values():
            self.pool.return_cards(player.hand)
            player.hand = []
            player.score = 0
        self.pool.reset()
        state.clear_round()
        state.current_round = 0
        state.storyteller_id = None
        state.last_score_deltas = {}
        state.last_score_results = []

    def new_deck(self, admin_id: str) -> None:
        """Back to deck building with an empty pool and default settings."""
        with self._command():
            self._require_admin(admin_id)
            with self._resolving(Phase.DECK_BUILDING):
                for player in self.players.values():
                    player.hand = []
                self.pool.clear()
                self._reset_game_state()
                self.state.win_target = self.rules.default_win_target
                self.state.board_background = None
                self.state.board_pattern = BoardPattern.SNAKE
                logger.info(f"Deck cleared in room {self.room_id}")
                self._enter_phase(Phase.DECK_BUILDING)

    def repair_hand(self, player_id: str) -> int:
        """
        Deal missing cards to a player whose hand is short for the phase.

        Returns:
            Number of cards dealt
        """
        with self._command():
            player = self.get_player(player_id)
            if self.state.phase not in ROUND_PHASES:
                return 0
            expected = self.rules.hand_size
            if self.state.submission_for(player_id) is not None:
                expected -= 1
            missing = min(expected - len(player.hand), self.pool.size)
            if missing <= 0:
                return 0
            player.add_cards(self.pool.draw(missing))
            logger.warning(f"Repaired hand of {player_id} with {missing} card(s)")
            return missing

    # Timeouts

    def auto_storyteller_submit(self) -> bool:
        """Pick a random card and a stock clue for an idle storyteller."""
        with self._command():
            if self.state.phase != Phase.STORYTELLER_CHOICE:
                return False
            storyteller = self.players.get(self.state.storyteller_id)
            if storyteller is None or not storyteller.hand:
                return False
            card = self._rng.choice(storyteller.hand)
            logger.info(f"Auto-submitting for storyteller {storyteller.id}")
            self.storyteller_submit(storyteller.id, card.id, AUTO_CLUE)
            return True

    def auto_player_submit(self) -> bool:
        """Submit a random card for one random player who has not submitted."""
        with self._command():
            if self.state.phase != Phase.PLAYERS_CHOICE:
                return False
            pending = [
                p for p in self.players.values()
                if p.id != self.state.storyteller_id
                and self.state.submission_for(p.id) is None
                and p.hand
            ]
            if not pending:
                return False
            player = self._rng.choice(pending)
            card = self._rng.choice(player.hand)
            logger.info(f"Auto-submitting for player {player.id}")
            self.player_submit(player.id, card.id)
            return True

    def auto_vote(self) -> bool:
        """Cast a random valid vote for every player who has not voted."""
        with self._command():
            if self.state.phase != Phase.VOTING:
                return False
            pending = [
                p.id for p in self.players.values()
                if p.id != self.state.storyteller_id and self.state.vote_for(p.id) is None
            ]
            voted = False
            for player_id in pending:
                if self.state.phase != Phase.VOTING:
                    break
                targets = valid_vote_targets(self.state, player_id)
                if not targets:
                    continue
                logger.info(f"Auto-voting for player {player_id}")
                self.player_vote(player_id, self._rng.choice(targets))
                voted = True
            return voted

    def auto_advance(self) -> bool:
        """Leave the reveal without waiting for the admin."""
        with self._command():
            if self.state.phase != Phase.REVEAL:
                return False
            admin = self.get_admin()
            if admin is not None:
                self.advance_round(admin.id)
            else:
                self._advance_round()
            return True

    def expire_phase(self, now: Optional[float] = None) -> bool:
        """
        Force progress if the current phase deadline has passed.

        Returns:
            True if anything was done on the players' behalf
        """
        with self._command():
            deadline = self.state.phase_deadline
            now = self._clock() if now is None else now
            if deadline is None or now < deadline:
                return False
            phase = self.state.phase
            logger.info(f"Phase {phase.value} timed out in room {self.room_id}")
            if phase == Phase.STORYTELLER_CHOICE:
                return self.auto_storyteller_submit()
            if phase == Phase.PLAYERS_CHOICE:
                acted = False
                while self.state.phase == Phase.PLAYERS_CHOICE and self.auto_player_submit():
                    acted = True
                return acted
            if phase == Phase.VOTING:
                return self.auto_vote()
            if phase == Phase.REVEAL and self.rules.auto_advance_reveal:
                return self.auto_advance()
            return False


class SessionRegistry:
    """Independent game sessions keyed by room id."""

    def __init__(self, rules: Optional[GameRules] = None, rng_factory: Callable[[], random.Random] = random.Random):
        self.rules = rules or default_rules
        self._rng_factory = rng_factory
        self.rooms: Dict[str, GameSession] = {}
        self._lock = threading.Lock()

    def create_room(self, room_id: str) -> GameSession:
        with self._lock:
            if room_id not in self.rooms:
                self.rooms[room_id] = GameSession(room_id, self.rules, self._rng_factory())
                logger.info(f"Created room {room_id}")
            return self.rooms[room_id]

    def get_room(self, room_id: str) -> Optional[GameSession]:
        return self.rooms.get(room_id)

    def remove_room(self, room_id: str) -> bool:
        with self._lock:
            return self.rooms.pop(room_id, None) is not None

    def __len__(self) -> int:
        return len(self.rooms)
