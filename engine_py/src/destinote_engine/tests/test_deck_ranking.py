"""
Deck construction, secret-ranking scores and winner rules.
"""

from destinote_engine.deck import build_phase2_deck, deck_target_size
from destinote_engine.models import ActionCard, GameState, Player, PlayerRanking, Vote
from destinote_engine.ranking import (
    compute_averages,
    is_collective_win,
    is_unanimous_for,
    objective_order,
    rank_to_score,
    round1,
    sanitize_ordering,
)
from destinote_engine.rules import GameConfig


def make_state(authors, votes=(), **config):
    """
    Build a state from ``authors`` (one author name per card, in creation order)
    and ``votes`` as (voter name, card index, reaction).
    """
    names = list(dict.fromkeys(authors))
    players = [Player(id=f"id-{name}", name=name) for name in names]
    cards = [
        ActionCard(id=f"c{i + 1}", display_id=i + 1, author_id=f"id-{name}", round=1, text=f"card {i + 1}")
        for i, name in enumerate(authors)
    ]
    vote_list = [
        Vote(
            id=f"v{n + 1}",
            session_key="round:1",
            voter_id=f"id-{voter}",
            voter_name=voter,
            card_id=cards[index].id,
            reaction=reaction,
        )
        for n, (voter, index, reaction) in enumerate(votes)
    ]
    state = GameState(room_id="DECK01", config=GameConfig(**config), players=players)
    state.p1.cards = cards
    state.p1.votes = vote_list
    return state


# -- deck ------------------------------------------------------------------

def test_deck_target_size():
    assert deck_target_size(2, 10, 20) == 8
    assert deck_target_size(3, 4, 20) == 4
    assert deck_target_size(9, 10, 20) == 10
    # Never below the player count
    assert deck_target_size(12, 10, 20) == 12
    # deck_max caps everything
    assert deck_target_size(12, 40, 12) == 12


def test_deck_keeps_every_author():
    """Top cards, reaction winners, then one card per missing author; trimmed to size."""
    state = make_state(
        ["Ana", "Ana", "Ana", "Ana", "Bruno", "Carla"],
        votes=[
            ("Bruno", 0, "👍"), ("Carla", 0, "👍"), ("Bruno", 0, "❤️"),
            ("Carla", 1, "😂"), ("Bruno", 1, "😂"),
            ("Carla", 2, "🔥"),
            ("Bruno", 3, "💀"),
        ],
        deck_desired=4,
    )

    deck = build_phase2_deck(state)

    assert deck == ["c1", "c2", "c5", "c6"]
    authors = {state.card_author_id(card_id) for card_id in deck}
    assert authors == {p.id for p in state.players}


def test_deck_without_votes_uses_creation_order():
    state = make_state(["Ana", "Bruno", "Carla"] * 3)

    deck = build_phase2_deck(state)

    assert deck == ["c1", "c2", "c3", "c4", "c5", "c6", "c7", "c8"]


def test_deck_has_no_duplicates_and_respects_bounds():
    state = make_state(
        ["Ana", "Bruno", "Carla", "Duda"] * 4,
        votes=[("Ana", 1, "👍"), ("Bruno", 1, "❤️"), ("Carla", 1, "😂"), ("Duda", 2, "🔥")],
    )

    deck = build_phase2_deck(state)

    assert len(deck) == len(set(deck))
    assert len(state.players) <= len(deck) <= state.config.deck_max
    assert deck[0] == "c2"


def test_deck_reaction_winner_tie_goes_to_older_card():
    state = make_state(
        ["Ana", "Bruno", "Carla", "Ana", "Bruno"],
        votes=[("Ana", 4, "💀"), ("Bruno", 3, "💀")],
    )

    deck = build_phase2_deck(state)

    # Both have one skull; c4 is older than c5 and leads the tally
    assert deck[:2] == ["c4", "c5"]


# -- ranking ---------------------------------------------------------------

def test_round1_rounds_half_up():
    assert round1(66.66) == 66.7
    assert round1(33.33) == 33.3
    assert round1(12.25) == 12.3


def test_rank_to_score():
    assert rank_to_score(0, 5) == 100.0
    assert rank_to_score(4, 5) == 0.0
    assert rank_to_score(1, 3) == 50.0
    assert rank_to_score(1, 4) == 66.7
    assert rank_to_score(0, 1) == 100.0


def test_sanitize_ordering():
    deck = ["c1", "c2", "c3"]
    assert sanitize_ordering(["x", "c2", "c1", "c2"], deck) == ["c2", "c1", "c3"]
    assert sanitize_ordering([], deck) == deck
    assert sanitize_ordering(None, deck) == deck


def test_missing_ranking_counts_as_neutral():
    players = [Player(id="a", name="Ana"), Player(id="b", name="Bruno")]
    rankings = [PlayerRanking(player_id="a", ordering=["c1", "c2"])]

    averages = compute_averages(["c1", "c2"], rankings, players)

    assert averages == {"c1": 75.0, "c2": 25.0}


def test_objective_order_breaks_ties_by_creation():
    averages = {"c1": 40.0, "c2": 80.0, "c3": 40.0}
    order = {"c1": 1, "c2": 2, "c3": 3}
    assert objective_order(["c3", "c1", "c2"], averages, order) == ["c2", "c1", "c3"]


def test_unanimity_excludes_author():
    players = [Player(id="a", name="Ana"), Player(id="b", name="Bruno"), Player(id="c", name="Carla")]
    rankings = [
        PlayerRanking(player_id="a", ordering=["c2", "c1"]),
        PlayerRanking(player_id="b", ordering=["c1", "c2"]),
        PlayerRanking(player_id="c", ordering=["c1", "c2"]),
    ]
    assert is_unanimous_for("c1", "a", players, rankings) is True
    assert is_unanimous_for("c2", "b", players, rankings) is False


def test_unanimity_needs_every_ranking():
    players = [Player(id="a", name="Ana"), Player(id="b", name="Bruno"), Player(id="c", name="Carla")]
    rankings = [PlayerRanking(player_id="b", ordering=["c1", "c2"])]
    assert is_unanimous_for("c1", "a", players, rankings) is False


def test_collective_win_needs_both_conditions():
    assert is_collective_win("c1", "c1", True) is True
    assert is_collective_win("c1", "c2", True) is False
    assert is_collective_win("c1", "c1", False) is False
    assert is_collective_win(None, None, True) is False
