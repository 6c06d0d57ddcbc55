"""
State projections for transmission to clients.

The room projection is safe to broadcast to everyone: it never contains a
player's hand, only shows pool images while the deck is being built, and only
shows the table cards and votes once they are public.
"""

from typing import Any, Dict, List, Optional

import orjson

from .constants import Phase

_TABLE_PHASES = (Phase.VOTING, Phase.REVEAL)


def _serialize_card(card) -> Dict[str, Any]:
    return {"id": card.id, "image_data": card.image_data}


def _serialize_table(session) -> List[Dict[str, Any]]:
    state = session.state
    if state.phase not in _TABLE_PHASES:
        return []
    table = []
    for submission in sorted(state.submissions, key=lambda s: s.position or 0):
        card = session.pool.get_card(submission.card_id)
        entry = {
            "card_id": submission.card_id,
            "image_data": card.image_data if card else "",
            "position": submission.position or 0,
        }
        # Owners stay hidden until the reveal
        if state.phase == Phase.REVEAL:
            entry["player_id"] = submission.player_id
        table.append(entry)
    return table


def room_projection(session) -> Dict[str, Any]:
    """
    Build the room-wide view of a session.

    Args:
        session: GameSession to project

    Returns:
        Dictionary safe to send to every client in the room
    """
    state = session.state
    pool = session.pool
    phase = state.phase

    players = [
        {
            "id": player.id,
            "name": player.name,
            "is_admin": player.is_admin,
            "is_connected": player.is_connected,
            "score": player.score,
            "hand_size": len(player.hand),
            "token_image": player.token_image,
        }
        for player in session.players.values()
    ]

    if phase == Phase.DECK_BUILDING:
        deck_images = [
            {"id": card.id, "uploaded_by": card.uploaded_by, "image_data": card.image_data}
            for card in pool.cards()
        ]
    else:
        deck_images = []

    projection = {
        "room_id": session.room_id,
        "version": session.version,
        "phase": phase.value,
        "players": players,
        "upload_mode": pool.upload_mode.value,
        "deck_size": pool.size,
        "deck_locked": pool.locked,
        "required_deck_size": session.required_deck_size(),
        "deck_images": deck_images,
        "win_target": state.win_target,
        "current_round": state.current_round,
        "storyteller_id": state.storyteller_id,
        "current_clue": state.current_clue,
        "submitted_player_ids": [s.player_id for s in state.submissions]
        if phase in (Phase.PLAYERS_CHOICE, Phase.VOTING) else [],
        "voted_player_ids": [v.voter_id for v in state.votes] if phase == Phase.VOTING else [],
        "revealed_cards": _serialize_table(session),
        "votes": [
            {"voter_id": vote.voter_id, "card_id": vote.card_id}
            for vote in state.votes
        ] if phase == Phase.REVEAL else [],
        "last_score_deltas": [
            {"player_id": player_id, "delta": delta}
            for player_id, delta in state.last_score_deltas.items()
        ],
        "score_reasons": [
            {"player_id": r.player_id, "delta": r.delta, "reason": r.reason}
            for r in state.last_score_results
        ] if phase in (Phase.REVEAL, Phase.GAME_END) else [],
        "phase_started_at": state.phase_started_at,
        "phase_duration": state.phase_duration,
        "phase_deadline": state.phase_deadline,
        "board_background": state.board_background,
        "board_pattern": state.board_pattern.value,
        "has_admin_secret": state.admin_secret is not None,
    }

    if phase == Phase.GAME_END and session.players:
        top = max(p.score for p in session.players.values())
        projection["winners"] = [p.id for p in session.players.values() if p.score == top]

    return projection


def player_projection(session, player_id: str) -> Optional[Dict[str, Any]]:
    """Build the private view of one player, or None for unknown players."""
    player = session.players.get(player_id)
    if player is None:
        return None

    state = session.state
    submission = state.submission_for(player_id)
    vote = state.vote_for(player_id)
    return {
        "player_id": player_id,
        "is_admin": player.is_admin,
        "is_storyteller": state.storyteller_id == player_id,
        "hand": [_serialize_card(card) for card in player.hand],
        "my_submitted_card_id": submission.card_id if submission else None,
        "my_vote": vote.card_id if vote else None,
    }


def encode(projection: Dict[str, Any]) -> bytes:
    """Encode a projection for the wire."""
    return orjson.dumps(projection)
