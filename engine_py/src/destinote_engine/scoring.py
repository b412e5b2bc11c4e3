"""
Phase-1 vote tallies.

Ties are broken by creation order (lower ``display_id`` first) so every tally
is reproducible from the vote log alone.
"""

from typing import Dict, List, Optional, Tuple

from .constants import FINAL_SESSION_KEY, REACTIONS, TOP_N_PHASE1
from .models import ActionCard, CardPoints, GameState, Phase1Summary, ReactionWin, Vote

UNKNOWN_ORDER = 10 ** 9


def creation_order(cards: List[ActionCard]) -> Dict[str, int]:
    """Map card id to its display id."""
    return {card.id: card.display_id for card in cards}


def count_votes_by_card(votes: List[Vote], session_key: Optional[str] = None) -> Dict[str, int]:
    """Count reactions per card, optionally restricted to one session."""
    counts: Dict[str, int] = {}
    for vote in votes:
        if session_key and vote.session_key != session_key:
            continue
        counts[vote.card_id] = counts.get(vote.card_id, 0) + 1
    return counts


def rank_by_count(counts: Dict[str, int], order: Dict[str, int]) -> List[Tuple[str, int]]:
    """(card_id, count) pairs, highest count first, then creation order."""
    return sorted(
        counts.items(),
        key=lambda item: (-item[1], order.get(item[0], UNKNOWN_ORDER)),
    )


def top_n_by_score(counts: Dict[str, int], n: int, order: Dict[str, int]) -> List[CardPoints]:
    return [CardPoints(card_id=card_id, points=points) for card_id, points in rank_by_count(counts, order)[:n]]


def reaction_winners(
    votes: List[Vote],
    order: Dict[str, int],
    session_key: Optional[str] = None
) -> Dict[str, ReactionWin]:
    """
    Find, for each reaction, the card that received it most often.

    Args:
        votes: Votes to tally
        order: Creation order used to break ties
        session_key: Optional session filter

    Returns:
        Mapping reaction -> winner; reactions nobody used are absent
    """
    winners: Dict[str, ReactionWin] = {}
    for reaction in REACTIONS:
        counts = count_votes_by_card(
            [v for v in votes if v.reaction == reaction],
            session_key,
        )
        ranked = rank_by_count(counts, order)
        if ranked:
            card_id, count = ranked[0]
            winners[reaction] = ReactionWin(card_id=card_id, count=count)
    return winners


def phase1_winner(state: GameState) -> Tuple[Optional[str], Optional[str]]:
    """
    Phase-1 crowd favourite as (card_id, author_id).

    Uses the final session's votes when one ran, otherwise every vote.
    """
    final_votes = [v for v in state.p1.votes if v.session_key == FINAL_SESSION_KEY]
    counts = count_votes_by_card(final_votes or state.p1.votes)
    top = top_n_by_score(counts, 1, creation_order(state.p1.cards))
    if not top:
        return None, None
    card_id = top[0].card_id
    return card_id, state.card_author_id(card_id)


def phase1_summary(state: GameState, winner_from_top3: bool = False) -> Phase1Summary:
    """
    Build the phase-1 part of the reveal.

    Args:
        state: Current game state
        winner_from_top3: Use the overall top card as the winner (results
            screen) instead of the final-session favourite (phase-2 start)
    """
    order = creation_order(state.p1.cards)
    counts = count_votes_by_card(state.p1.votes)
    top3 = top_n_by_score(counts, TOP_N_PHASE1, order)

    if winner_from_top3:
        winner_card_id = top3[0].card_id if top3 else None
        winner_author_id = state.card_author_id(winner_card_id)
    else:
        winner_card_id, winner_author_id = phase1_winner(state)

    return Phase1Summary(
        top3=top3,
        reaction_winners=reaction_winners(state.p1.votes, order),
        winner_card_id=winner_card_id,
        winner_author_id=winner_author_id,
    )
