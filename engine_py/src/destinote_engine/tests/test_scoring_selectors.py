"""
Phase-1 tallies and the read-only selectors.
"""

from destinote_engine.constants import REACTIONS
from destinote_engine.engine import create_empty
from destinote_engine.models import ActionCard, Phase2Summary, Player, RevealSummary, Vote, VotingSession
from destinote_engine.scoring import (
    count_votes_by_card,
    creation_order,
    phase1_summary,
    phase1_winner,
    reaction_winners,
    top_n_by_score,
)
from destinote_engine.selectors import (
    active_voting_session_key,
    compute_round_winner,
    compute_session_reactions,
    fmt_phase_label,
    get_card_by_id,
    is_setup_complete,
    winner_name,
)


def _vote(n, session_key, voter_id, card_id, reaction="👍"):
    return Vote(id=f"v{n}", session_key=session_key, voter_id=voter_id, voter_name=voter_id,
                card_id=card_id, reaction=reaction)


def make_state():
    """Ana, Bruno and Carla with one card each in round 1 and one in round 2."""
    state = create_empty("SEL01")
    state.players = [Player(id="a", name="Ana"), Player(id="b", name="Bruno"), Player(id="c", name="Carla")]
    authors = ["a", "b", "c", "a", "b", "c"]
    state.p1.cards = [
        ActionCard(id=f"c{i + 1}", display_id=i + 1, author_id=author, round=1 if i < 3 else 2, text=f"card {i + 1}")
        for i, author in enumerate(authors)
    ]
    return state


def test_count_votes_by_session():
    votes = [
        _vote(1, "round:1", "a", "c2"),
        _vote(2, "round:1", "b", "c2"),
        _vote(3, "final", "c", "c1"),
    ]
    assert count_votes_by_card(votes) == {"c2": 2, "c1": 1}
    assert count_votes_by_card(votes, "final") == {"c1": 1}


def test_top_n_tie_goes_to_older_card():
    order = {"c1": 1, "c2": 2, "c3": 3}
    top = top_n_by_score({"c3": 2, "c2": 2, "c1": 1}, 2, order)
    assert [(cp.card_id, cp.points) for cp in top] == [("c2", 2), ("c3", 2)]


def test_reaction_winners():
    state = make_state()
    votes = [
        _vote(1, "round:1", "a", "c3", "😂"),
        _vote(2, "round:1", "b", "c1", "😂"),
        _vote(3, "round:1", "c", "c2", "🔥"),
        _vote(4, "round:1", "a", "c2", "🔥"),
    ]
    winners = reaction_winners(votes, creation_order(state.p1.cards))

    assert winners["😂"].card_id == "c1"
    assert winners["😂"].count == 1
    assert winners["🔥"].card_id == "c2"
    assert winners["🔥"].count == 2
    assert "👍" not in winners


def test_phase1_winner_prefers_final_votes():
    state = make_state()
    state.p1.votes = [
        _vote(1, "round:1", "a", "c2"),
        _vote(2, "round:1", "c", "c2"),
        _vote(3, "final", "b", "c6"),
    ]
    assert phase1_winner(state) == ("c6", "c")

    state.p1.votes = state.p1.votes[:2]
    assert phase1_winner(state) == ("c2", "b")


def test_phase1_summary_winner_from_top3():
    state = make_state()
    state.p1.votes = [
        _vote(1, "round:1", "a", "c2"),
        _vote(2, "round:1", "c", "c2"),
        _vote(3, "final", "b", "c6"),
    ]
    summary = phase1_summary(state, winner_from_top3=True)
    assert summary.winner_card_id == "c2"
    assert summary.winner_author_id == "b"
    assert [cp.card_id for cp in summary.top3] == ["c2", "c6"]

    assert phase1_summary(state).winner_card_id == "c6"


def test_phase1_winner_without_votes():
    assert phase1_winner(make_state()) == (None, None)


def test_get_card_by_id():
    state = make_state()
    assert get_card_by_id(state.p1.cards, "c4").author_id == "a"
    assert get_card_by_id(state.p1.cards, "nope") is None


def test_is_setup_complete():
    state = create_empty("SEL01")
    assert not is_setup_complete(state)
    state.players = [Player(id="a", name="Ana"), Player(id="b", name="Bruno")]
    assert is_setup_complete(state)


def test_fmt_phase_label():
    assert fmt_phase_label("p2_rank") == "Phase 2: Secret ranking"
    assert fmt_phase_label("reveal") == "Reveal"
    assert fmt_phase_label("mystery") == "mystery"


def test_session_reactions_follow_active_session():
    state = make_state()
    state.p1.round = 2
    state.p1.votes = [
        _vote(1, "round:1", "a", "c2", "❤️"),
        _vote(2, "round:2", "a", "c5", "❤️"),
        _vote(3, "round:2", "c", "c5", "💀"),
    ]

    tally = compute_session_reactions(state)
    assert set(tally) == {card.id for card in state.p1.cards}
    assert tally["c5"]["❤️"] == 1
    assert tally["c5"]["💀"] == 1
    assert tally["c2"] == {reaction: 0 for reaction in REACTIONS}

    assert compute_session_reactions(state, "round:1")["c2"]["❤️"] == 1

    state.p1.voting = VotingSession(key="final", scope="final", round=None)
    assert active_voting_session_key(state) == "final"
    assert all(sum(counts.values()) == 0 for counts in compute_session_reactions(state).values())


def test_round_winner_by_raw_count():
    state = make_state()
    state.p1.votes = [
        _vote(1, "round:1", "a", "c3"),
        _vote(2, "round:1", "b", "c2"),
        _vote(3, "round:1", "c", "c2"),
        _vote(4, "round:2", "c", "c4"),
    ]

    winner = compute_round_winner(state)
    assert winner.card_id == "c2"
    assert winner.points == 2
    assert winner.winner_name == "Bruno"

    state.p1.round = 3
    assert compute_round_winner(state) is None


def test_round_winner_tie_is_first_counted():
    """The live readout keeps the first card to reach the top count."""
    state = make_state()
    state.p1.votes = [
        _vote(1, "round:1", "a", "c3"),
        _vote(2, "round:1", "b", "c1"),
    ]
    assert compute_round_winner(state).card_id == "c3"


def test_winner_name():
    state = make_state()
    assert winner_name(state) is None

    state.reveal = RevealSummary(phase2=Phase2Summary(winning_card_id="c3", winning_author_id="c"))
    assert winner_name(state) == "Carla"
