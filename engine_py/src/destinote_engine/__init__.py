"""
Destinote party game engine.

A pure reducer over a pass-the-device game plus the persistence and local sync
helpers a driver needs around it.
"""

from .engine import EventResult, apply_event, create_empty, reduce, reduce_game
from .events import EventType, parse_event
from .models import GameState
from .room import GameRoom

__all__ = [
    "EventResult",
    "EventType",
    "GameRoom",
    "GameState",
    "apply_event",
    "create_empty",
    "parse_event",
    "reduce",
    "reduce_game",
]
