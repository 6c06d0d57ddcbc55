"""Game models and data structures"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .constants import DEFAULT_WIN_TARGET, BoardPattern, Phase


@dataclass
class Card:
    id: str
    image_data: str  # opaque base64 payload
    uploaded_by: str  # player id


@dataclass
class Player:
    id: str
    name: str
    is_admin: bool = False
    is_connected: bool = True
    hand: List[Card] = field(default_factory=list)
    score: int = 0
    token_image: Optional[str] = None
    last_seen: float = 0.0
    joined_at: float = 0.0

    def add_cards(self, cards: Iterable[Card]) -> None:
        self.hand.extend(cards)

    def remove_card(self, card_id: str) -> Optional[Card]:
        for index, card in enumerate(self.hand):
            if card.id == card_id:
                return self.hand.pop(index)
        return None

    def has_card(self, card_id: str) -> bool:
        return any(card.id == card_id for card in self.hand)

    def add_score(self, points: int) -> None:
        self.score += points

    def disconnect(self, now: float) -> None:
        self.is_connected = False
        self.last_seen = now

    def reconnect(self, now: float) -> None:
        self.is_connected = True
        self.last_seen = now

    def set_token_image(self, image_data: Optional[str]) -> None:
        self.token_image = image_data


@dataclass
class Submission:
    card_id: str
    player_id: str
    position: Optional[int] = None  # set when cards are shuffled for voting


@dataclass
class Vote:
    voter_id: str
    card_id: str


@dataclass(frozen=True)
class ScoreResult:
    player_id: str
    delta: int
    reason: str


@dataclass
class SessionState:
    phase: Phase = Phase.DECK_BUILDING
    current_round: int = 0
    storyteller_id: Optional[str] = None
    current_clue: Optional[str] = None
    submissions: List[Submission] = field(default_factory=list)
    votes: List[Vote] = field(default_factory=list)
    last_score_deltas: Dict[str, int] = field(default_factory=dict)
    last_score_results: List[ScoreResult] = field(default_factory=list)
    win_target: int = DEFAULT_WIN_TARGET
    board_background: Optional[str] = None
    board_pattern: BoardPattern = BoardPattern.SNAKE
    phase_started_at: Optional[float] = None
    phase_duration: Optional[int] = None
    admin_secret: Optional[str] = None
    # Set while a quorum-completing transition is being resolved
    resolving: Optional[Phase] = None
    # Storyteller was already handed over during the reveal
    storyteller_rotated: bool = False

    def submission_for(self, player_id: str) -> Optional[Submission]:
        for submission in self.submissions:
            if submission.player_id == player_id:
                return submission
        return None

    def vote_for(self, player_id: str) -> Optional[Vote]:
        for vote in self.votes:
            if vote.voter_id == player_id:
                return vote
        return None

    @property
    def phase_deadline(self) -> Optional[float]:
        if self.phase_started_at is None or not self.phase_duration:
            return None
        return self.phase_started_at + self.phase_duration

    def clear_round(self) -> None:
        self.current_clue = None
        self.submissions = []
        self.votes = []
        self.storyteller_rotated = False
