"""
Tests for players leaving in the middle of a round.
"""

from storyteller_engine.constants import Phase

from conftest import play_to_voting, vote_all


def _all_card_ids(session):
    ids = [c.id for p in session.players.values() for c in p.hand]
    ids += [s.card_id for s in session.state.submissions]
    ids += [c.id for c in session.pool.cards()]
    return ids


def test_leaving_below_minimum_ends_game(game):
    game.leave_player("p3")

    assert game.phase == Phase.GAME_END
    assert len(game.players) == 2


def test_player_leaves_during_players_choice(game4):
    game4.storyteller_submit("p1", game4.players["p1"].hand[0].id, "clue")
    game4.player_submit("p2", game4.players["p2"].hand[0].id)
    pool_before = game4.pool.size

    game4.leave_player("p2")

    assert game4.state.submission_for("p2") is None
    assert game4.pool.size == pool_before + 5
    assert game4.pool.discard_size == 1

    game4.player_submit("p3", game4.players["p3"].hand[0].id)
    game4.player_submit("p4", game4.players["p4"].hand[0].id)
    assert game4.phase == Phase.VOTING
    assert len(game4.state.submissions) == 3


def test_last_missing_player_leaving_completes_submissions(game4):
    game4.storyteller_submit("p1", game4.players["p1"].hand[0].id, "clue")
    game4.player_submit("p2", game4.players["p2"].hand[0].id)
    game4.player_submit("p3", game4.players["p3"].hand[0].id)

    game4.leave_player("p4")

    assert game4.phase == Phase.VOTING
    assert sorted(s.position for s in game4.state.submissions) == [0, 1, 2]


def test_storyteller_leaves_during_players_choice(game4):
    """The round restarts with the next player as storyteller and cards go back."""
    st_card = game4.players["p1"].hand[0].id
    game4.storyteller_submit("p1", st_card, "clue")
    p2_card = game4.players["p2"].hand[0].id
    game4.player_submit("p2", p2_card)
    pool_before = game4.pool.size

    game4.leave_player("p1")

    assert game4.phase == Phase.STORYTELLER_CHOICE
    assert game4.state.storyteller_id == "p2"
    assert game4.state.current_round == 1
    assert game4.state.submissions == []
    assert game4.state.current_clue is None
    assert game4.players["p2"].has_card(p2_card)
    assert len(game4.players["p2"].hand) == 6
    assert game4.pool.size == pool_before + 6
    assert game4.get_admin().id == "p2"
    assert game4.pool.get_card(st_card) in game4.pool.cards()


def test_voter_leaves_during_voting(game4):
    """Votes for the leaver's card are dropped and the table is renumbered."""
    st_card = play_to_voting(game4)
    p3_card = game4.state.submission_for("p3").card_id
    game4.player_vote("p2", p3_card)

    game4.leave_player("p3")

    assert game4.phase == Phase.VOTING
    assert game4.state.votes == []
    assert p3_card not in [s.card_id for s in game4.state.submissions]
    assert sorted(s.position for s in game4.state.submissions) == [0, 1, 2]

    game4.player_vote("p2", st_card)
    game4.player_vote("p4", st_card)
    assert game4.phase == Phase.REVEAL
    assert game4.state.last_score_deltas == {"p1": 0, "p2": 2, "p4": 2}


def test_last_missing_voter_leaving_completes_votes(game4):
    st_card = play_to_voting(game4)
    game4.player_vote("p2", st_card)
    game4.player_vote("p3", st_card)

    game4.leave_player("p4")

    assert game4.phase == Phase.REVEAL
    assert set(game4.state.last_score_deltas) == {"p1", "p2", "p3"}


def test_storyteller_leaves_during_reveal(game4):
    """The next storyteller is picked at once and is not skipped on advance."""
    st_card = play_to_voting(game4)
    vote_all(game4, st_card)

    game4.leave_player("p1")

    assert game4.phase == Phase.REVEAL
    assert game4.state.storyteller_id == "p2"
    assert game4.get_admin().id == "p2"

    game4.advance_round("p2")
    assert game4.phase == Phase.STORYTELLER_CHOICE
    assert game4.state.storyteller_id == "p2"
    assert game4.state.current_round == 2


def test_cards_stay_unique_after_departures(game4):
    play_to_voting(game4)
    game4.leave_player("p4")

    ids = _all_card_ids(game4)
    assert len(ids) == len(set(ids))
    assert len(ids) + game4.pool.discard_size == 110
