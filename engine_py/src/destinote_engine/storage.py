"""
Room persistence.

A backend is a tiny bytes key-value store (``get``/``set``/``delete``/``keys``).
``RoomStore`` layers room snapshots, setup drafts and hard reset on top of it.
Reads never raise: anything unreadable is reported as "no saved game".
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union
from urllib.parse import quote, unquote

import orjson

from .bus import HardResetMessage, SyncBus, game_channel_name
from .constants import ROOM_KEY_PREFIX, SETUP_DRAFT_KEY_PREFIX
from .models import GameState
from .serialization import dumps_state, loads_state
from .utils import now_ms

logger = logging.getLogger(__name__)


def room_key(room_id: str, prefix: str = ROOM_KEY_PREFIX) -> str:
    return f"{prefix}{room_id}"


def setup_draft_key(room_id: str, prefix: str = SETUP_DRAFT_KEY_PREFIX) -> str:
    return f"{prefix}{room_id}"


class MemoryBackend:
    """Process-local backend, shared by every store that holds it."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = '') -> Iterator[str]:
        return iter(sorted(k for k in self._data if k.startswith(prefix)))


class FileBackend:
    """
    One file per key under ``directory``.

    Keys are percent-encoded into file names; writes go through a temporary
    file and ``os.replace`` so readers never see a half-written snapshot.
    """

    SUFFIX = '.json'

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read {key}: {e}")
            return None

    def set(self, key: str, value: bytes) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix='.tmp-')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(value)
            os.replace(tmp_path, self._path(key))
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def keys(self, prefix: str = '') -> Iterator[str]:
        names = sorted(p.name for p in self.directory.glob(f"*{self.SUFFIX}"))
        for name in names:
            key = unquote(name[:-len(self.SUFFIX)])
            if key.startswith(prefix):
                yield key


@dataclass
class SetupDraft:
    """Player names typed on the setup screen but not started yet."""
    players: List[str] = field(default_factory=list)
    updated_at: int = 0


class RoomStore:
    """
    Room snapshots and setup drafts over a key-value backend.

    Args:
        backend: Storage backend (``MemoryBackend`` or ``FileBackend``)
        bus: Optional sync bus; hard resets are announced on it
        prefix: Namespace for room snapshot keys
    """

    def __init__(self, backend, bus: Optional[SyncBus] = None, prefix: str = ROOM_KEY_PREFIX):
        self.backend = backend
        self.bus = bus
        self.prefix = prefix

    def load(self, room_id: str) -> Optional[GameState]:
        """Saved state for the room, or None when absent or malformed."""
        raw = self.backend.get(room_key(room_id, self.prefix))
        if raw is None:
            return None
        state = loads_state(raw)
        if state is None:
            logger.warning(f"Ignoring unreadable snapshot for room {room_id}")
            return None
        if state.room_id != room_id:
            logger.warning(f"Ignoring snapshot of room {state.room_id} stored under {room_id}")
            return None
        return state

    def save(self, state: GameState) -> bool:
        try:
            self.backend.set(room_key(state.room_id, self.prefix), dumps_state(state))
        except OSError as e:
            logger.error(f"Failed to save room {state.room_id}: {e}")
            return False
        return True

    def clear(self, room_id: str) -> None:
        self.backend.delete(room_key(room_id, self.prefix))

    def room_ids(self) -> List[str]:
        return [key[len(self.prefix):] for key in self.backend.keys(self.prefix)]

    def load_setup_draft(self, room_id: str) -> Optional[SetupDraft]:
        raw = self.backend.get(setup_draft_key(room_id))
        if not raw:
            return None
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError:
            return None
        if not isinstance(data, dict) or not isinstance(data.get('players'), list):
            return None
        updated_at = data.get('updatedAt')
        if not isinstance(updated_at, int):
            return None
        return SetupDraft(players=[str(p) for p in data['players']], updated_at=updated_at)

    def save_setup_draft(self, room_id: str, players: List[str]) -> SetupDraft:
        draft = SetupDraft(players=list(players or []), updated_at=now_ms())
        payload = {'players': draft.players, 'updatedAt': draft.updated_at}
        try:
            self.backend.set(setup_draft_key(room_id), orjson.dumps(payload))
        except OSError as e:
            logger.error(f"Failed to save setup draft for room {room_id}: {e}")
        return draft

    def clear_setup_draft(self, room_id: str) -> None:
        self.backend.delete(setup_draft_key(room_id))

    def hard_reset(self, room_id: str, clear_setup_draft: bool = True, announce: bool = True) -> None:
        """
        Wipe the room and tell every other participant to do the same.

        Args:
            room_id: Room to wipe
            clear_setup_draft: Also drop the setup draft
            announce: Broadcast a ``hard_reset`` notice on the bus
        """
        self.clear(room_id)
        if clear_setup_draft:
            self.clear_setup_draft(room_id)
        logger.info(f"Hard reset of room {room_id}")

        if announce and self.bus is not None:
            self.bus.post(game_channel_name(room_id), HardResetMessage(room_id=room_id, at=now_ms()))
