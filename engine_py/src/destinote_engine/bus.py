"""
Local sync bus.

Every participant of a room opens its own ``Channel`` on the room's channel
name. A message posted on a channel reaches every *other* channel with the
same name; payloads travel as JSON bytes and are treated as untrusted on
arrival.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Union

import orjson

from .constants import CHANNEL_PREFIX, MESSAGE_HARD_RESET, MESSAGE_STATE
from .models import GameState
from .serialization import looks_like_game, state_to_dict, try_state_from_dict
from .utils import now_ms

logger = logging.getLogger(__name__)


def game_channel_name(room_id: str) -> str:
    return f"{CHANNEL_PREFIX}{room_id}"


@dataclass(frozen=True)
class StateMessage:
    """Full snapshot of a room."""
    state: GameState

    @property
    def room_id(self) -> str:
        return self.state.room_id


@dataclass(frozen=True)
class HardResetMessage:
    """Notice that a room was wiped."""
    room_id: str
    at: int


BusMessage = Union[StateMessage, HardResetMessage]


def encode_message(message: BusMessage) -> bytes:
    if isinstance(message, StateMessage):
        return orjson.dumps({"type": MESSAGE_STATE, "state": state_to_dict(message.state)})
    return orjson.dumps({"type": MESSAGE_HARD_RESET, "roomId": message.room_id, "at": message.at})


def normalize_incoming(raw: Any) -> Optional[BusMessage]:
    """
    Validate an incoming payload.

    Args:
        raw: JSON bytes/str or an already decoded object

    Returns:
        The typed message, or None when the payload is not a valid message.
        A bare game snapshot is accepted as a state message.
    """
    if isinstance(raw, (bytes, bytearray, memoryview, str)):
        try:
            raw = orjson.loads(raw)
        except orjson.JSONDecodeError:
            return None

    if not isinstance(raw, dict):
        return None

    message_type = raw.get("type")

    if message_type == MESSAGE_HARD_RESET:
        room_id = raw.get("roomId")
        if not isinstance(room_id, str) or not room_id:
            return None
        at = raw.get("at")
        if not isinstance(at, (int, float)) or isinstance(at, bool):
            at = now_ms()
        return HardResetMessage(room_id=room_id, at=int(at))

    if message_type == MESSAGE_STATE:
        state = try_state_from_dict(raw.get("state"))
        return StateMessage(state=state) if state is not None else None

    if looks_like_game(raw):
        state = try_state_from_dict(raw)
        return StateMessage(state=state) if state is not None else None

    return None


Subscriber = Callable[[bytes], None]


class Channel:
    """One participant's handle on a named channel."""

    def __init__(self, bus: 'SyncBus', name: str):
        self.bus = bus
        self.name = name
        self.closed = False
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def post(self, message: BusMessage) -> int:
        """Send to every other open channel with this name; returns the receiver count."""
        if self.closed:
            logger.debug(f"Dropped post on closed channel {self.name}")
            return 0
        return self.bus.deliver(self.name, encode_message(message), sender=self)

    def receive(self, payload: bytes) -> None:
        # Callbacks run outside the lock so they may subscribe or post
        with self._lock:
            callbacks = list(self._subscribers)
        for callback in callbacks:
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Subscriber on {self.name} failed: {e}")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        with self._lock:
            self._subscribers.clear()
        self.bus.detach(self)


class SyncBus:
    """In-process registry of named channels."""

    def __init__(self):
        self._channels: Dict[str, Set[Channel]] = defaultdict(set)
        self._lock = threading.Lock()

    def open(self, name: str) -> Channel:
        channel = Channel(self, name)
        with self._lock:
            self._channels[name].add(channel)
        return channel

    def detach(self, channel: Channel) -> None:
        with self._lock:
            members = self._channels.get(channel.name)
            if members is None:
                return
            members.discard(channel)
            if not members:
                del self._channels[channel.name]

    def post(self, name: str, message: BusMessage) -> int:
        """One-shot post from outside any channel; reaches every open channel."""
        return self.deliver(name, encode_message(message))

    def deliver(self, name: str, payload: bytes, sender: Optional[Channel] = None) -> int:
        with self._lock:
            receivers = [c for c in self._channels.get(name, ()) if c is not sender]
        for channel in receivers:
            channel.receive(payload)
        return len(receivers)
