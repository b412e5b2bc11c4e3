"""
Phase-2 deck construction.
"""

import logging
from typing import Dict, List

from .constants import MIN_DECK_SIZE, REACTIONS, TOP_N_PHASE1
from .models import ActionCard, GameState
from .scoring import count_votes_by_card, creation_order, rank_by_count, reaction_winners
from .utils import clamp, dedupe_ids

logger = logging.getLogger(__name__)


def deck_target_size(player_count: int, deck_desired: int, deck_max: int) -> int:
    """
    Number of cards the deck aims for.

    ``max(players + 1, 8)`` clamped to ``[players, deck_desired]`` and never
    above ``deck_max``.
    """
    wanted = clamp(max(player_count + 1, MIN_DECK_SIZE), player_count, deck_desired)
    return min(wanted, deck_max)


def _best_card_of(cards: List[ActionCard], counts: Dict[str, int]) -> ActionCard:
    # Highest count first, earliest card on ties
    return sorted(cards, key=lambda c: (-counts.get(c.id, 0), c.display_id))[0]


def _fit_to_size(deck: List[str], authors: Dict[str, str], size: int) -> List[str]:
    """Trim to ``size`` without dropping any author's first card in the deck."""
    if len(deck) <= size:
        return deck

    first_per_author: Dict[str, str] = {}
    for card_id in deck:
        first_per_author.setdefault(authors[card_id], card_id)
    protected = set(first_per_author.values())

    out = []
    pending = len(protected)
    for card_id in deck:
        if card_id in protected:
            out.append(card_id)
            pending -= 1
        elif len(out) + pending < size:
            out.append(card_id)
    return out


def build_phase2_deck(state: GameState) -> List[str]:
    """
    Choose which phase-1 cards go into phase 2.

    1. the three cards with the most reactions overall
    2. the top card of each reaction type
    3. the best card of every author not yet represented
    4. the next best cards by total reactions up to the target size
    5. cards in creation order when votes run out

    Args:
        state: State leaving ``p1_results``

    Returns:
        Ordered, duplicate-free list of card ids
    """
    cards = state.p1.cards
    votes = state.p1.votes
    order = creation_order(cards)
    authors = {card.id: card.author_id for card in cards}
    counts = count_votes_by_card(votes)
    ranked = rank_by_count(counts, order)

    deck: List[str] = [card_id for card_id, _ in ranked[:TOP_N_PHASE1]]

    winners = reaction_winners(votes, order)
    for reaction in REACTIONS:
        win = winners.get(reaction)
        if win and win.card_id not in deck:
            deck.append(win.card_id)

    represented = {authors[card_id] for card_id in deck if card_id in authors}
    for player in state.players:
        if player.id in represented:
            continue
        own = [card for card in cards if card.author_id == player.id]
        if not own:
            continue
        deck.append(_best_card_of(own, counts).id)
        represented.add(player.id)

    target = deck_target_size(len(state.players), state.config.deck_desired, state.config.deck_max)

    for card_id, _ in ranked:
        if len(deck) >= target:
            break
        if card_id not in deck:
            deck.append(card_id)

    for card in cards:
        if len(deck) >= target:
            break
        if card.id not in deck:
            deck.append(card.id)

    deck = [card_id for card_id in dedupe_ids(deck) if card_id in authors]
    final_deck = _fit_to_size(deck, authors, target)
    logger.debug(f"Built phase-2 deck of {len(final_deck)} cards (target {target}) for room {state.room_id}")
    return final_deck
