"""
Seeded shuffling and picking utilities.

Every draw that has to be reproducible goes through ``random.Random(seed)``;
the module-level generator is only used when no seed is given.
"""

import random
from typing import List, Optional, Sequence, TypeVar

from .constants import (
    DISCUSS_SHUFFLE_SEED_OFFSET,
    INTRO_SHUFFLE_SEED_OFFSET,
    PHASE2_THEME_SEED_OFFSET,
    ROUND_THEME_SEED_STEP,
    SEED_MODULUS,
)

T = TypeVar('T')


def make_seed(seed: Optional[int] = None) -> int:
    """
    Return the explicit seed if one was supplied, else a random 31-bit value.

    Args:
        seed: Optional seed supplied at setup

    Returns:
        Integer seed for the room
    """
    if seed is not None:
        return int(seed)
    return random.randrange(SEED_MODULUS)


def hash_string(text: str) -> int:
    """djb2-style hash used to mix a room id into its default seed."""
    h = 5381
    for ch in text:
        h = (((h << 5) + h) ^ ord(ch)) & 0xFFFFFFFF
    return h % SEED_MODULUS


def shuffle_ids(items: Sequence[T], seed: Optional[int] = None) -> List[T]:
    """
    Shuffle a sequence deterministically if seed is provided.

    Args:
        items: Items to shuffle
        seed: Optional seed for deterministic shuffling

    Returns:
        Shuffled copy of the items
    """
    items_copy = list(items)

    if seed is not None:
        rng = random.Random(seed)
        rng.shuffle(items_copy)
    else:
        random.shuffle(items_copy)

    return items_copy


def pick_one(items: Sequence[T], seed: Optional[int] = None) -> T:
    """
    Pick a single item, deterministically if seed is provided.

    Raises:
        ValueError: If items is empty
    """
    if not items:
        raise ValueError("pick_one on empty sequence")

    if seed is not None:
        return random.Random(seed).choice(list(items))
    return random.choice(list(items))


# Local seeds: each draw mixes the room seed with its own offset so draws
# differ from one another but replay identically from the room seed.

def round_theme_seed(room_seed: int, round_number: int) -> int:
    return room_seed + round_number * ROUND_THEME_SEED_STEP


def phase2_theme_seed(room_seed: int) -> int:
    return room_seed + PHASE2_THEME_SEED_OFFSET


def intro_shuffle_seed(room_seed: int) -> int:
    return room_seed + INTRO_SHUFFLE_SEED_OFFSET


def discuss_shuffle_seed(room_seed: int, card_count: int) -> int:
    return room_seed + DISCUSS_SHUFFLE_SEED_OFFSET + card_count
