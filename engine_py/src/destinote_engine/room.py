"""
GameRoom: the driver loop around the reducer for one participant.

Load or create the room, apply events, persist and announce every accepted
state, and follow snapshots and hard resets posted by other participants.
"""

import logging
from typing import Any, Dict, Optional, Union

from .bus import HardResetMessage, StateMessage, SyncBus, game_channel_name, normalize_incoming
from .engine import EventResult, apply_event, create_empty
from .events import GameEvent, parse_event
from .models import GameState
from .storage import RoomStore
from .themes import DEFAULT_THEMES, ThemeProvider
from .utils import now_ms

logger = logging.getLogger(__name__)


class GameRoom:
    """
    One participant's view of a room.

    Args:
        room_id: Room identifier
        store: Snapshot store
        bus: Optional sync bus shared with the other participants
        themes: Prompt source handed to the reducer
    """

    def __init__(
        self,
        room_id: str,
        store: RoomStore,
        bus: Optional[SyncBus] = None,
        themes: ThemeProvider = DEFAULT_THEMES
    ):
        self.room_id = room_id
        self.store = store
        self.themes = themes
        self.state: GameState = store.load(room_id) or create_empty(room_id)

        self.channel = None
        if bus is not None:
            self.channel = bus.open(game_channel_name(room_id))
            self.channel.subscribe(self.handle_incoming)

    def dispatch(self, event: Union[GameEvent, Dict[str, Any]]) -> EventResult:
        """
        Apply an event; accepted states are saved and broadcast.

        Raises:
            GameError: If ``event`` is a raw dict that does not parse
        """
        if isinstance(event, dict):
            event = parse_event(event)

        result = apply_event(self.state, event, self.themes)
        if not result.success:
            return result

        self.state = result.state
        self.store.save(self.state)
        if self.channel is not None:
            self.channel.post(StateMessage(state=self.state))
        return result

    def hard_reset(self, clear_setup_draft: bool = True) -> GameState:
        """Wipe the room here and tell the other participants."""
        self.store.hard_reset(self.room_id, clear_setup_draft=clear_setup_draft, announce=False)
        if self.channel is not None:
            self.channel.post(HardResetMessage(room_id=self.room_id, at=now_ms()))

        self.state = create_empty(self.room_id)
        self.store.save(self.state)
        return self.state

    def handle_incoming(self, raw: Any) -> bool:
        """
        Apply a message from another participant.

        Returns:
            True if the local state changed
        """
        message = normalize_incoming(raw)
        if message is None:
            logger.debug(f"Dropped malformed message in room {self.room_id}")
            return False

        if message.room_id != self.room_id:
            logger.debug(f"Dropped message for room {message.room_id} in room {self.room_id}")
            return False

        if isinstance(message, HardResetMessage):
            # Never re-broadcast a reset
            self.store.clear(self.room_id)
            self.store.clear_setup_draft(self.room_id)
            self.state = create_empty(self.room_id)
            return True

        # Last snapshot wins
        self.state = message.state
        self.store.save(self.state)
        return True

    def close(self) -> None:
        if self.channel is not None:
            self.channel.close()
            self.channel = None
