"""
Round scoring.

Rules:
- If everyone or nobody found the storyteller's card, the storyteller
  scores 0 and every other player scores 2.
- Otherwise the storyteller and every player who found the card score 3.
- On top of that, each non-storyteller scores 1 per vote their own card got.
"""

from collections import Counter
from typing import Dict, Iterable, List

from .models import ScoreResult, Submission, Vote

STORYTELLER_POINTS = 3
GUESSER_POINTS = 3
CONSOLATION_POINTS = 2


def calculate_scores(
    storyteller_id: str,
    storyteller_card_id: str,
    submissions: Iterable[Submission],
    votes: Iterable[Vote]
) -> List[ScoreResult]:
    """
    Score one round.

    Args:
        storyteller_id: Player who gave the clue
        storyteller_card_id: Card the storyteller submitted
        submissions: Every card submitted this round
        votes: Every vote cast this round

    Returns:
        One ScoreResult per rule applied. The order depends only on the
        content of the inputs, never on their order.
    """
    others = sorted(
        s.player_id for s in submissions if s.player_id != storyteller_id
    )
    card_owner = {s.card_id: s.player_id for s in submissions}
    votes = sorted(votes, key=lambda v: (v.voter_id, v.card_id))

    guessers = [v.voter_id for v in votes if v.card_id == storyteller_card_id]
    correct = len(guessers)
    eligible_voters = len(others)

    results = []
    if correct == eligible_voters or correct == 0:
        everyone = correct == eligible_voters
        results.append(ScoreResult(
            storyteller_id, 0,
            "Storyteller: all guessed (too obvious)" if everyone
            else "Storyteller: none guessed (too obscure)"
        ))
        for player_id in others:
            results.append(ScoreResult(
                player_id, CONSOLATION_POINTS,
                "Too obvious" if everyone else "Too obscure"
            ))
    else:
        results.append(ScoreResult(
            storyteller_id, STORYTELLER_POINTS, "Storyteller: some guessed correctly"
        ))
        for voter_id in guessers:
            results.append(ScoreResult(voter_id, GUESSER_POINTS, "Guessed the storyteller's card"))

    received = Counter(
        card_owner[v.card_id] for v in votes
        if v.card_id != storyteller_card_id and v.card_id in card_owner
    )
    for player_id in others:
        count = received.get(player_id, 0)
        if count > 0:
            results.append(ScoreResult(
                player_id, count, f"Received {count} vote(s) for your card"
            ))

    return results


def aggregate_scores(results: Iterable[ScoreResult]) -> Dict[str, int]:
    """Sum score deltas by player."""
    totals: Dict[str, int] = {}
    for result in results:
        totals[result.player_id] = totals.get(result.player_id, 0) + result.delta
    return totals
