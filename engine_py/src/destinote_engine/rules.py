"""
Game rule configuration and validation.
"""

from typing import TYPE_CHECKING, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .constants import (
    DECK_DESIRED_RANGE,
    DECK_MAX_RANGE,
    DEFAULT_DECK_DESIRED,
    DEFAULT_DECK_MAX,
    DEFAULT_MAX_REACTIONS,
    DEFAULT_P1_ROUNDS,
    DEFAULT_SECONDS_PER_TURN,
    DEFAULT_VOTE_MODE,
    MAX_REACTIONS_RANGE,
    P1_ROUNDS_RANGE,
    SECONDS_PER_TURN_RANGE,
    SEED_MODULUS,
    SLOT_CUSTOM,
    SLOT_RANDOM,
    VOTE_MODE_END_ONLY,
    VOTE_MODE_FINAL_ONLY,
    VOTE_MODES,
)
from .shuffle import hash_string, make_seed
from .utils import clamp

if TYPE_CHECKING:
    from .events import SetupPayload


VoteMode = Literal['per_round', 'per_round_and_final', 'final_only']


def normalize_vote_mode(mode) -> str:
    """Map legacy/unknown vote modes onto the three supported ones."""
    if mode == VOTE_MODE_END_ONLY:
        return VOTE_MODE_FINAL_ONLY
    if mode in VOTE_MODES:
        return mode
    return DEFAULT_VOTE_MODE


class ThemeSlot(BaseModel):
    """Where a round's prompt comes from: a random pick or fixed custom text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal['random', 'custom'] = SLOT_RANDOM
    text: str = ''

    @property
    def custom_text(self) -> str:
        """Trimmed custom text, or '' when the slot should draw from the pool."""
        if self.kind != SLOT_CUSTOM:
            return ''
        return (self.text or '').strip()


def _random_slots(count: int) -> List[ThemeSlot]:
    return [ThemeSlot() for _ in range(count)]


class GameConfig(BaseModel):
    """Per-room settings captured at setup. Never changes afterwards."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    vote_mode: VoteMode = Field(
        default=DEFAULT_VOTE_MODE,
        description="When reaction voting happens"
    )
    p1_rounds: int = Field(
        default=DEFAULT_P1_ROUNDS,
        ge=P1_ROUNDS_RANGE[0],
        le=P1_ROUNDS_RANGE[1],
        description="Number of writing rounds in phase 1"
    )
    seconds_per_turn: int = Field(
        default=DEFAULT_SECONDS_PER_TURN,
        ge=SECONDS_PER_TURN_RANGE[0],
        le=SECONDS_PER_TURN_RANGE[1],
        description="Advisory turn budget; the driver enforces it"
    )
    max_reactions_per_voter: int = Field(
        default=DEFAULT_MAX_REACTIONS,
        ge=MAX_REACTIONS_RANGE[0],
        le=MAX_REACTIONS_RANGE[1],
        description="Reaction budget per voter per session"
    )
    deck_desired: int = Field(
        default=DEFAULT_DECK_DESIRED,
        ge=DECK_DESIRED_RANGE[0],
        le=DECK_DESIRED_RANGE[1],
        description="Preferred phase-2 deck size"
    )
    deck_max: int = Field(
        default=DEFAULT_DECK_MAX,
        ge=DECK_MAX_RANGE[0],
        description="Hard cap on the phase-2 deck size"
    )
    allow_self_vote: bool = Field(
        default=False,
        description="Whether voters may react to their own cards"
    )
    show_theme_in_voting: bool = Field(
        default=True,
        description="Whether the round theme is shown while voting"
    )
    p1_theme_slots: List[ThemeSlot] = Field(default_factory=lambda: _random_slots(1))
    p2_theme: ThemeSlot = Field(default_factory=ThemeSlot)
    seed: int = 0

    @field_validator('vote_mode', mode='before')
    @classmethod
    def validate_vote_mode(cls, v):
        """Accept the legacy ``end_only`` spelling."""
        return normalize_vote_mode(v)

    def theme_slot_for_round(self, round_number: int) -> Optional[ThemeSlot]:
        """Slot configured for a 1-based round, if any."""
        index = round_number - 1
        if 0 <= index < len(self.p1_theme_slots):
            return self.p1_theme_slots[index]
        return None


def default_config(room_id: str) -> GameConfig:
    """Configuration of an empty room. The seed depends on the room id only."""
    seed = hash_string(room_id) % SEED_MODULUS
    return GameConfig(p1_theme_slots=_random_slots(2), seed=seed)


def _clamped(value: Optional[int], default: int, bounds) -> int:
    if value is None:
        return default
    return clamp(int(value), bounds[0], bounds[1])


def build_config(payload: 'SetupPayload', player_count: int) -> GameConfig:
    """
    Build the room configuration from a setup payload.

    Out-of-range numbers are clamped rather than rejected, and the deck cap is
    raised to the player count so every player can be represented.
    """
    deck_max = _clamped(payload.deck_max, DEFAULT_DECK_MAX, DECK_MAX_RANGE)
    return GameConfig(
        vote_mode=normalize_vote_mode(payload.vote_mode or DEFAULT_VOTE_MODE),
        p1_rounds=_clamped(payload.p1_rounds, DEFAULT_P1_ROUNDS, P1_ROUNDS_RANGE),
        seconds_per_turn=_clamped(payload.seconds_per_turn, DEFAULT_SECONDS_PER_TURN, SECONDS_PER_TURN_RANGE),
        max_reactions_per_voter=_clamped(payload.max_reactions_per_voter, DEFAULT_MAX_REACTIONS, MAX_REACTIONS_RANGE),
        deck_desired=_clamped(payload.deck_desired, DEFAULT_DECK_DESIRED, DECK_DESIRED_RANGE),
        deck_max=max(deck_max, player_count),
        allow_self_vote=bool(payload.allow_self_vote),
        show_theme_in_voting=True if payload.show_theme_in_voting is None else bool(payload.show_theme_in_voting),
        p1_theme_slots=list(payload.p1_theme_slots) if payload.p1_theme_slots else _random_slots(1),
        p2_theme=payload.p2_theme or ThemeSlot(),
        seed=make_seed(payload.seed),
    )
