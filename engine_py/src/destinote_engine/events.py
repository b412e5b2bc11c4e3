"""
Event models accepted by the reducer.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import INVALID_EVENT, GameError
from .rules import ThemeSlot


class EventType(str, Enum):
    """Inbound event types."""
    RESET_ALL = "RESET_ALL"
    SETUP_START = "SETUP_START"
    NEXT = "NEXT"
    SET_ACTIVE_VOTER = "SET_ACTIVE_VOTER"
    P1_SUBMIT = "P1_SUBMIT"
    P1_SKIP = "P1_SKIP"
    P1_START_VOTING = "P1_START_VOTING"
    P1_CAST_REACTION = "P1_CAST_REACTION"
    P1_SKIP_VOTER = "P1_SKIP_VOTER"
    P1_NEXT_VOTER = "P1_NEXT_VOTER"
    P1_END_VOTING = "P1_END_VOTING"
    P2_START = "P2_START"
    P2_SET_ORDERING = "P2_SET_ORDERING"
    P2_MOVE = "P2_MOVE"
    P2_SUBMIT_RANKING = "P2_SUBMIT_RANKING"
    P2_SKIP_RANKING = "P2_SKIP_RANKING"
    P2_FINALIZE = "P2_FINALIZE"


class _Model(BaseModel):
    """Accepts both camelCase (UI) and snake_case field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SetupPayload(_Model):
    """Settings chosen on the setup screen."""
    players: List[str] = Field(default_factory=list)
    vote_mode: Optional[str] = None
    p1_rounds: Optional[int] = None
    seconds_per_turn: Optional[int] = None
    max_reactions_per_voter: Optional[int] = None
    deck_desired: Optional[int] = None
    deck_max: Optional[int] = None
    allow_self_vote: Optional[bool] = None
    show_theme_in_voting: Optional[bool] = None
    p1_theme_slots: Optional[List[ThemeSlot]] = None
    p2_theme: Optional[ThemeSlot] = None
    seed: Optional[int] = None


# Inbound event models
class BaseEvent(_Model):
    """Base event model."""
    type: EventType


class ResetAllEvent(BaseEvent):
    type: EventType = EventType.RESET_ALL
    room_id: str


class SetupStartEvent(BaseEvent):
    type: EventType = EventType.SETUP_START
    payload: SetupPayload


class NextEvent(BaseEvent):
    """Generic advance, used where no actor-scoped event applies."""
    type: EventType = EventType.NEXT


class SetActiveVoterEvent(BaseEvent):
    type: EventType = EventType.SET_ACTIVE_VOTER
    voter_id: Optional[str] = None


class P1SubmitEvent(BaseEvent):
    type: EventType = EventType.P1_SUBMIT
    player_id: str
    text: str = ''


class P1SkipEvent(BaseEvent):
    type: EventType = EventType.P1_SKIP
    player_id: str


class P1StartVotingEvent(BaseEvent):
    """Manual start of a voting session; scope defaults to the current round."""
    type: EventType = EventType.P1_START_VOTING
    scope: Optional[str] = None


class P1CastReactionEvent(BaseEvent):
    type: EventType = EventType.P1_CAST_REACTION
    voter_id: str
    card_id: str
    reaction: str


class P1SkipVoterEvent(BaseEvent):
    type: EventType = EventType.P1_SKIP_VOTER
    voter_id: str


class P1NextVoterEvent(BaseEvent):
    type: EventType = EventType.P1_NEXT_VOTER


class P1EndVotingEvent(BaseEvent):
    type: EventType = EventType.P1_END_VOTING


class P2StartEvent(BaseEvent):
    type: EventType = EventType.P2_START


class P2SetOrderingEvent(BaseEvent):
    type: EventType = EventType.P2_SET_ORDERING
    ordering: List[str] = Field(default_factory=list)


class P2MoveEvent(BaseEvent):
    """Drag-and-drop move in the open ordering."""
    type: EventType = EventType.P2_MOVE
    from_index: int = Field(
        default=0,
        validation_alias=AliasChoices('from', 'fromIndex', 'from_index', 'fromIdx', 'source'),
        serialization_alias='from',
    )
    to_index: int = Field(
        default=0,
        validation_alias=AliasChoices('to', 'toIndex', 'to_index', 'toIdx', 'dest'),
        serialization_alias='to',
    )


class P2SubmitRankingEvent(BaseEvent):
    type: EventType = EventType.P2_SUBMIT_RANKING
    player_id: str
    ordering: List[str] = Field(default_factory=list)


class P2SkipRankingEvent(BaseEvent):
    type: EventType = EventType.P2_SKIP_RANKING
    player_id: str


class P2FinalizeEvent(BaseEvent):
    type: EventType = EventType.P2_FINALIZE


# Union type for all inbound events
GameEvent = Union[
    ResetAllEvent,
    SetupStartEvent,
    NextEvent,
    SetActiveVoterEvent,
    P1SubmitEvent,
    P1SkipEvent,
    P1StartVotingEvent,
    P1CastReactionEvent,
    P1SkipVoterEvent,
    P1NextVoterEvent,
    P1EndVotingEvent,
    P2StartEvent,
    P2SetOrderingEvent,
    P2MoveEvent,
    P2SubmitRankingEvent,
    P2SkipRankingEvent,
    P2FinalizeEvent,
]


EVENT_MODELS = {
    EventType.RESET_ALL: ResetAllEvent,
    EventType.SETUP_START: SetupStartEvent,
    EventType.NEXT: NextEvent,
    EventType.SET_ACTIVE_VOTER: SetActiveVoterEvent,
    EventType.P1_SUBMIT: P1SubmitEvent,
    EventType.P1_SKIP: P1SkipEvent,
    EventType.P1_START_VOTING: P1StartVotingEvent,
    EventType.P1_CAST_REACTION: P1CastReactionEvent,
    EventType.P1_SKIP_VOTER: P1SkipVoterEvent,
    EventType.P1_NEXT_VOTER: P1NextVoterEvent,
    EventType.P1_END_VOTING: P1EndVotingEvent,
    EventType.P2_START: P2StartEvent,
    EventType.P2_SET_ORDERING: P2SetOrderingEvent,
    EventType.P2_MOVE: P2MoveEvent,
    EventType.P2_SUBMIT_RANKING: P2SubmitRankingEvent,
    EventType.P2_SKIP_RANKING: P2SkipRankingEvent,
    EventType.P2_FINALIZE: P2FinalizeEvent,
}


def parse_event(data: Dict[str, Any]) -> GameEvent:
    """
    Parse raw event data into the matching event model.

    Args:
        data: Raw event data from the UI (camelCase or snake_case keys)

    Returns:
        Parsed event model

    Raises:
        GameError: If the event type is missing/unknown or the data is malformed
    """
    if not isinstance(data, dict):
        raise GameError(INVALID_EVENT, "Event must be an object")

    event_type = data.get("type")
    if not event_type:
        raise GameError(INVALID_EVENT, "Missing event type")

    try:
        event_type = EventType(event_type)
    except ValueError:
        raise GameError(INVALID_EVENT, f"Invalid event type: {event_type}")

    event_class = EVENT_MODELS[event_type]
    try:
        return event_class.model_validate(data)
    except ValidationError as e:
        raise GameError(INVALID_EVENT, f"Invalid event data: {e}")
