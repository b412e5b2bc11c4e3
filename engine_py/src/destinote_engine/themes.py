"""
Theme (prompt) resolution for rounds and for phase 2.

The engine never reads a global theme cache: callers hand the reducer a
``ThemeProvider``. ``StaticThemes`` serves fixed pools (tests, replays) and
``ThemeBank`` serves the user-edited bank persisted next to the rooms.
"""

import logging
from typing import Iterable, List, Optional, Protocol

import orjson

from .constants import THEME_BANK_KEY
from .rules import GameConfig, ThemeSlot
from .shuffle import phase2_theme_seed, pick_one, round_theme_seed

logger = logging.getLogger(__name__)

PHASE1_THEMES = [
    "A mission that starts with \"I need to...\"",
    "Something you would do with one hour to be a hero.",
    "An impulsive decision that works out (by luck).",
    "Describe a scene in 8 to 12 words.",
    "A closing line before the cut to black.",
    "A ridiculous thing you would defend with conviction.",
    "The worst possible idea, delivered with charisma.",
    "Something normal that turns absurd at the end.",
    "A technology that fixes an everyday problem.",
    "A habit you would start tomorrow if nobody was watching.",
    "A confession you would only make on the last day of the trip.",
    "Something that hurts now and pays off later.",
]

PHASE2_THEMES = [
    "Which of these would make the best movie?",
    "Which one would you actually do this year?",
    "Which one needs the most courage?",
    "Which one would make the best story to tell your grandkids?",
    "Which one is the most chaotic (in a good way)?",
    "Which one deserves a sequel?",
]


def unique_themes(themes: Iterable[str]) -> List[str]:
    """Trim, drop blanks and duplicates, keep first-seen order."""
    seen = set()
    out = []
    for theme in themes:
        text = (theme or '').strip()
        if not text or text in seen:
            continue
        seen.add(text)
        out.append(text)
    return out


class ThemeProvider(Protocol):
    """Read-only source of candidate prompts."""

    def phase1_pool(self) -> List[str]:
        ...

    def phase2_pool(self) -> List[str]:
        ...


class StaticThemes:
    """Fixed pools, mostly for tests and deterministic replays."""

    def __init__(self, p1: Optional[Iterable[str]] = None, p2: Optional[Iterable[str]] = None):
        self._p1 = unique_themes(PHASE1_THEMES if p1 is None else p1)
        self._p2 = unique_themes(PHASE2_THEMES if p2 is None else p2)

    def phase1_pool(self) -> List[str]:
        return list(self._p1)

    def phase2_pool(self) -> List[str]:
        return list(self._p2)


DEFAULT_THEMES = StaticThemes()


class ThemeBank:
    """
    User-editable theme bank persisted under its own key.

    Args:
        backend: Key-value backend from ``storage`` (get/set/delete)
        key: Storage key for the bank
    """

    def __init__(self, backend, key: str = THEME_BANK_KEY):
        self.backend = backend
        self.key = key

    def load(self):
        """
        Return ``(p1, p2)``: the built-in themes followed by the user's own.

        The built-in pools are always merged back in, so removing a default
        only lasts until the next load. Anything unreadable counts as no
        additions.
        """
        raw = self.backend.get(self.key)
        if raw is None:
            return list(PHASE1_THEMES), list(PHASE2_THEMES)
        try:
            parsed = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning(f"Ignoring unreadable theme bank at {self.key}")
            return list(PHASE1_THEMES), list(PHASE2_THEMES)
        if not isinstance(parsed, dict):
            return list(PHASE1_THEMES), list(PHASE2_THEMES)
        p1 = parsed.get('p1') if isinstance(parsed.get('p1'), list) else []
        p2 = parsed.get('p2') if isinstance(parsed.get('p2'), list) else []
        return (
            unique_themes(PHASE1_THEMES + [str(t) for t in p1]),
            unique_themes(PHASE2_THEMES + [str(t) for t in p2]),
        )

    def save(self, p1: Iterable[str], p2: Iterable[str]) -> bool:
        payload = {'p1': unique_themes(p1), 'p2': unique_themes(p2)}
        try:
            self.backend.set(self.key, orjson.dumps(payload))
        except OSError as e:
            logger.error(f"Failed to save theme bank at {self.key}: {e}")
            return False
        return True

    def phase1_pool(self) -> List[str]:
        return self.load()[0]

    def phase2_pool(self) -> List[str]:
        return self.load()[1]

    def add(self, phase: str, theme: str) -> List[str]:
        """Add a theme ahead of the user's earlier additions; returns the updated list."""
        p1, p2 = self.load()
        if phase == 'p1':
            p1 = unique_themes([theme] + p1)
        else:
            p2 = unique_themes([theme] + p2)
        self.save(p1, p2)
        return p1 if phase == 'p1' else p2

    def remove(self, phase: str, theme: str) -> List[str]:
        p1, p2 = self.load()
        if phase == 'p1':
            p1 = [t for t in p1 if t != theme]
        else:
            p2 = [t for t in p2 if t != theme]
        self.save(p1, p2)
        return p1 if phase == 'p1' else p2

    def reset(self) -> bool:
        return self.save(PHASE1_THEMES, PHASE2_THEMES)


def resolve_theme(slot: Optional[ThemeSlot], pool: List[str], seed: int) -> str:
    """Custom slot text if set, otherwise a seeded pick from the pool."""
    if slot is not None and slot.custom_text:
        return slot.custom_text
    if not pool:
        return ''
    return pick_one(pool, seed)


def p1_theme(config: GameConfig, round_number: int, themes: ThemeProvider = DEFAULT_THEMES) -> str:
    pool = themes.phase1_pool() or list(PHASE1_THEMES)
    slot = config.theme_slot_for_round(round_number)
    return resolve_theme(slot, pool, round_theme_seed(config.seed, round_number))


def p2_theme(config: GameConfig, themes: ThemeProvider = DEFAULT_THEMES) -> str:
    pool = themes.phase2_pool() or list(PHASE2_THEMES)
    return resolve_theme(config.p2_theme, pool, phase2_theme_seed(config.seed))
