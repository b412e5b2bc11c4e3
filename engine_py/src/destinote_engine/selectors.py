"""
Read-only views over a game state for display.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .constants import MIN_PLAYERS, PHASE_LABELS, REACTIONS, round_session_key
from .models import ActionCard, GameState

NO_NAME = '—'


@dataclass
class RoundWinner:
    card_id: str
    points: int
    card: Optional[ActionCard]
    winner_name: str


def get_card_by_id(cards: List[ActionCard], card_id: str) -> Optional[ActionCard]:
    for card in cards:
        if card.id == card_id:
            return card
    return None


def is_setup_complete(state: GameState) -> bool:
    """Enough players to start."""
    return len(state.players) >= MIN_PLAYERS


def fmt_phase_label(phase: str) -> str:
    return PHASE_LABELS.get(phase, str(phase))


def active_voting_session_key(state: GameState) -> str:
    """Key of the running session, else the current round's key."""
    if state.p1.voting is not None:
        return state.p1.voting.key
    return round_session_key(state.p1.round or 1)


def compute_session_reactions(state: GameState, session_key: Optional[str] = None) -> Dict[str, Dict[str, int]]:
    """
    Per-card reaction counts within one session.

    Args:
        state: Current game state
        session_key: Session to tally; defaults to the active session or the
            current round

    Returns:
        Mapping card id -> {reaction: count}, with every card and every
        reaction present
    """
    key = session_key or active_voting_session_key(state)

    tally = {card.id: {reaction: 0 for reaction in REACTIONS} for card in state.p1.cards}
    for vote in state.p1.votes:
        if vote.session_key != key:
            continue
        counts = tally.setdefault(vote.card_id, {reaction: 0 for reaction in REACTIONS})
        counts[vote.reaction] = counts.get(vote.reaction, 0) + 1
    return tally


def compute_round_winner(state: GameState) -> Optional[RoundWinner]:
    """
    Winner of the current round by raw vote count.

    This is a live readout, separate from the phase-1 summary: the first card
    to reach the highest count wins, in vote order.
    """
    key = round_session_key(state.p1.round)

    points_by_card: Dict[str, int] = {}
    for vote in state.p1.votes:
        if vote.session_key != key:
            continue
        points_by_card[vote.card_id] = points_by_card.get(vote.card_id, 0) + 1

    best_id = None
    best_points = -1
    for card_id, points in points_by_card.items():
        if points > best_points:
            best_id, best_points = card_id, points

    if best_id is None:
        return None

    card = get_card_by_id(state.p1.cards, best_id)
    author = state.get_player(card.author_id) if card else None
    return RoundWinner(
        card_id=best_id,
        points=best_points,
        card=card,
        winner_name=author.name if author else NO_NAME,
    )


def winner_name(state: GameState) -> Optional[str]:
    """Display name of the final winner, once revealed."""
    if state.reveal is None:
        return None
    author_id = state.reveal.phase2.winning_author_id
    if not author_id:
        return None
    player = state.get_player(author_id)
    return player.name if player else None
