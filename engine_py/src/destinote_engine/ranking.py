# engine_py/src/destinote_engine/ranking.py

import math
from typing import Dict, Iterable, List, Optional

from .constants import NEUTRAL_SCORE
from .models import Player, PlayerRanking
from .utils import dedupe_ids


def round1(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def sanitize_ordering(ordering: Iterable[str], deck: List[str]) -> List[str]:
    """
    Turn an arbitrary list of ids into an exact permutation of the deck.

    Foreign ids and repeats are dropped; deck ids that are missing are appended
    in deck order.
    """
    deck_ids = set(deck)
    kept = [card_id for card_id in dedupe_ids(ordering or []) if card_id in deck_ids]
    seen = set(kept)
    return kept + [card_id for card_id in deck if card_id not in seen]


def rank_to_score(index: int, deck_size: int) -> float:
    """Position 0 scores 100, the last position scores 0."""
    denom = max(1, deck_size - 1)
    return round1((denom - index) / denom * 100)


def compute_averages(
    deck: List[str],
    rankings: List[PlayerRanking],
    players: List[Player]
) -> Dict[str, float]:
    """
    Average secret-ranking score per card.

    Every player counts. A player who never submitted contributes the neutral
    score to every card, so missing rankings dilute instead of distort.

    Args:
        deck: Phase-2 deck card ids
        rankings: Submitted rankings
        players: All players in the room

    Returns:
        Mapping card id -> average score (one decimal)
    """
    denom = max(1, len(deck) - 1)
    by_player = {ranking.player_id: ranking for ranking in rankings}
    scores: Dict[str, List[float]] = {card_id: [] for card_id in deck}

    for player in players:
        ranking = by_player.get(player.id)
        if ranking is None:
            for card_id in deck:
                scores[card_id].append(NEUTRAL_SCORE)
            continue

        position = {card_id: idx for idx, card_id in enumerate(ranking.ordering)}
        for card_id in deck:
            idx = position.get(card_id, denom // 2)
            scores[card_id].append(rank_to_score(idx, len(deck)))

    averages = {}
    for card_id, values in scores.items():
        if not values:
            averages[card_id] = NEUTRAL_SCORE
            continue
        averages[card_id] = round1(sum(values) / len(values))
    return averages


def objective_order(deck: List[str], averages: Dict[str, float], order: Dict[str, int]) -> List[str]:
    """Deck sorted by average (descending), then creation order (ascending)."""
    return sorted(
        deck,
        key=lambda card_id: (-averages.get(card_id, 0.0), order.get(card_id, 10 ** 9)),
    )


def is_unanimous_for(
    card_id: Optional[str],
    author_id: Optional[str],
    players: List[Player],
    rankings: List[PlayerRanking]
) -> bool:
    """True when every player except the author ranked ``card_id`` first."""
    if not card_id or not author_id:
        return False

    by_player = {ranking.player_id: ranking for ranking in rankings}
    for player in players:
        if player.id == author_id:
            continue
        ranking = by_player.get(player.id)
        if ranking is None or not ranking.ordering:
            return False
        if ranking.ordering[0] != card_id:
            return False
    return True


def is_collective_win(
    winning_card_id: Optional[str],
    objective_top_id: Optional[str],
    unanimous: bool
) -> bool:
    """Public agreement (discussion top) and private unanimity must both hold."""
    return bool(winning_card_id) and winning_card_id == objective_top_id and unanimous
