"""
Small helpers shared by the reducer and the stores.
"""

import random
import time
import uuid
from typing import Iterable, List

ROOM_ID_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'  # no I/1/O/0


def clamp(value, low, high):
    return max(low, min(high, value))


def now_ms() -> int:
    return int(time.time() * 1000)


def uid(prefix: str) -> str:
    """Short unique id such as ``card_3f9a1c2b``."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def make_room_id(length: int = 6) -> str:
    rng = random.SystemRandom()
    return ''.join(rng.choice(ROOM_ID_ALPHABET) for _ in range(length))


def dedupe_ids(ids: Iterable[str]) -> List[str]:
    """Drop repeated ids, keeping first-seen order."""
    seen = set()
    out = []
    for item in ids:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out
