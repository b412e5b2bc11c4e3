"""
Snapshots, room storage, the sync bus and the room driver.
"""

import threading

import orjson
import pytest

from destinote_engine.bus import (
    HardResetMessage,
    StateMessage,
    SyncBus,
    encode_message,
    game_channel_name,
    normalize_incoming,
)
from destinote_engine.constants import PHASE_P1_WRITE, PHASE_SETUP
from destinote_engine.engine import create_empty
from destinote_engine.errors import GameError
from destinote_engine.events import P1SubmitEvent
from destinote_engine.room import GameRoom
from destinote_engine.serialization import (
    dumps_state,
    loads_state,
    looks_like_game,
    state_from_dict,
    state_to_dict,
)
from destinote_engine.storage import FileBackend, MemoryBackend, RoomStore, room_key, setup_draft_key

ROOM_ID = "ROOM01"
SETUP = {"type": "SETUP_START", "payload": {"players": ["Ana", "Bruno"], "p1Rounds": 1, "seed": 9}}


@pytest.fixture
def played_state(to_phase2):
    """A state with cards, a closed vote, a deck and a reveal summary."""
    return to_phase2(["Ana", "Bruno", "Carla"])


# -- serialization ---------------------------------------------------------

def test_snapshot_round_trip(played_state):
    data = state_to_dict(played_state)

    assert data["roomId"] == "ROOM01"
    assert data["p1"]["cards"][0]["displayId"] == 1
    assert data["config"]["voteMode"] == "per_round"

    assert state_from_dict(data) == played_state
    assert loads_state(dumps_state(played_state)) == played_state


def test_looks_like_game():
    data = state_to_dict(create_empty(ROOM_ID))
    assert looks_like_game(data)

    for key, value in (("version", "v1"), ("roomId", 3), ("phase", None), ("players", {})):
        broken = dict(data, **{key: value})
        assert not looks_like_game(broken)
    assert not looks_like_game(["not", "a", "dict"])


def test_loads_state_rejects_garbage():
    assert loads_state(None) is None
    assert loads_state(b"") is None
    assert loads_state(b"{oops") is None
    assert loads_state(b'{"version": "v2"}') is None

    data = state_to_dict(create_empty(ROOM_ID))
    data["p1"]["cards"] = [{"text": "no ids"}]
    assert loads_state(orjson.dumps(data)) is None


# -- storage ---------------------------------------------------------------

@pytest.fixture(params=["memory", "file"])
def backend(request, tmp_path):
    if request.param == "memory":
        return MemoryBackend()
    return FileBackend(tmp_path / "rooms")


def test_store_save_and_load(backend, played_state):
    store = RoomStore(backend)
    assert store.load(ROOM_ID) is None

    assert store.save(played_state)
    assert store.load(ROOM_ID) == played_state
    assert store.room_ids() == [ROOM_ID]

    store.clear(ROOM_ID)
    assert store.load(ROOM_ID) is None


def test_store_rejects_corrupted_snapshot(backend):
    store = RoomStore(backend)
    backend.set(room_key(ROOM_ID), b"not json at all")
    assert store.load(ROOM_ID) is None

    backend.set(room_key(ROOM_ID), dumps_state(create_empty("OTHER")))
    assert store.load(ROOM_ID) is None


def test_setup_draft(backend):
    store = RoomStore(backend)
    assert store.load_setup_draft(ROOM_ID) is None

    store.save_setup_draft(ROOM_ID, ["Ana", "Bruno"])
    draft = store.load_setup_draft(ROOM_ID)
    assert draft.players == ["Ana", "Bruno"]
    assert draft.updated_at > 0

    backend.set(setup_draft_key(ROOM_ID), b'{"players": "Ana"}')
    assert store.load_setup_draft(ROOM_ID) is None


def test_hard_reset_clears_and_announces(backend):
    bus = SyncBus()
    received = []
    bus.open(game_channel_name(ROOM_ID)).subscribe(received.append)

    store = RoomStore(backend, bus=bus)
    store.save(create_empty(ROOM_ID))
    store.save_setup_draft(ROOM_ID, ["Ana"])

    store.hard_reset(ROOM_ID)

    assert store.load(ROOM_ID) is None
    assert store.load_setup_draft(ROOM_ID) is None
    assert len(received) == 1
    message = normalize_incoming(received[0])
    assert isinstance(message, HardResetMessage)
    assert message.room_id == ROOM_ID


def test_hard_reset_can_keep_draft(backend):
    store = RoomStore(backend)
    store.save_setup_draft(ROOM_ID, ["Ana"])
    store.hard_reset(ROOM_ID, clear_setup_draft=False)
    assert store.load_setup_draft(ROOM_ID).players == ["Ana"]


def test_file_backend_keys(tmp_path):
    backend = FileBackend(tmp_path)
    backend.set("destinote:game:v2:room:A/B", b"1")
    backend.set("other", b"2")

    assert list(backend.keys("destinote:")) == ["destinote:game:v2:room:A/B"]
    assert backend.get("destinote:game:v2:room:A/B") == b"1"
    backend.delete("missing")
    assert not list(tmp_path.glob(".tmp-*"))


# -- bus -------------------------------------------------------------------

def test_normalize_incoming():
    assert normalize_incoming(b"{broken") is None
    assert normalize_incoming({"type": "hard_reset"}) is None
    assert normalize_incoming({"type": "state", "state": {"version": "v1"}}) is None
    assert normalize_incoming({"type": "gossip"}) is None

    reset = normalize_incoming({"type": "hard_reset", "roomId": ROOM_ID})
    assert isinstance(reset, HardResetMessage)
    assert reset.at > 0

    state = create_empty(ROOM_ID)
    wrapped = normalize_incoming(encode_message(StateMessage(state=state)))
    assert isinstance(wrapped, StateMessage)
    assert wrapped.state == state

    bare = normalize_incoming(dumps_state(state))
    assert isinstance(bare, StateMessage)
    assert bare.room_id == ROOM_ID


def test_channel_skips_sender():
    bus = SyncBus()
    name = game_channel_name(ROOM_ID)
    sender, other = bus.open(name), bus.open(name)
    sent, got = [], []
    sender.subscribe(sent.append)
    other.subscribe(got.append)

    assert sender.post(HardResetMessage(room_id=ROOM_ID, at=1)) == 1
    assert sent == []
    assert len(got) == 1


def test_failing_subscriber_does_not_block_others():
    bus = SyncBus()
    name = game_channel_name(ROOM_ID)
    sender, listener = bus.open(name), bus.open(name)
    got = []

    def broken(payload):
        raise RuntimeError("boom")

    listener.subscribe(broken)
    listener.subscribe(got.append)
    sender.post(HardResetMessage(room_id=ROOM_ID, at=1))

    assert len(got) == 1


def test_subscribers_added_during_delivery():
    bus = SyncBus()
    name = game_channel_name(ROOM_ID)
    sender, listener = bus.open(name), bus.open(name)
    late = []

    def subscribe_late(payload):
        listener.subscribe(late.append)

    listener.subscribe(subscribe_late)

    sender.post(HardResetMessage(room_id=ROOM_ID, at=1))
    assert late == []

    sender.post(HardResetMessage(room_id=ROOM_ID, at=2))
    assert len(late) == 1


def test_concurrent_subscribe():
    bus = SyncBus()
    name = game_channel_name(ROOM_ID)
    sender, listener = bus.open(name), bus.open(name)
    got = []

    def subscribe_many():
        for _ in range(50):
            listener.subscribe(got.append)

    threads = [threading.Thread(target=subscribe_many) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    sender.post(HardResetMessage(room_id=ROOM_ID, at=1))
    assert len(got) == 200


def test_closed_channel_receives_nothing():
    bus = SyncBus()
    name = game_channel_name(ROOM_ID)
    sender, listener = bus.open(name), bus.open(name)
    got = []
    listener.subscribe(got.append)
    listener.close()

    assert sender.post(HardResetMessage(room_id=ROOM_ID, at=1)) == 0
    assert got == []


# -- room driver -----------------------------------------------------------

@pytest.fixture
def two_tabs():
    """Two participants of the same room, each with its own storage."""
    bus = SyncBus()
    first = GameRoom(ROOM_ID, RoomStore(MemoryBackend()), bus=bus)
    second = GameRoom(ROOM_ID, RoomStore(MemoryBackend()), bus=bus)
    yield first, second
    first.close()
    second.close()


def test_dispatch_persists_and_syncs(two_tabs):
    first, second = two_tabs

    result = first.dispatch(SETUP)

    assert result.success
    assert first.state.phase == PHASE_P1_WRITE
    assert first.store.load(ROOM_ID) == first.state
    assert second.state == first.state
    assert second.store.load(ROOM_ID) == first.state


def test_rejected_event_is_not_broadcast(two_tabs):
    first, second = two_tabs
    first.dispatch(SETUP)
    before = second.state

    result = first.dispatch(P1SubmitEvent(player_id="p9_nobody", text="hi"))

    assert not result.success
    assert second.state is before


def test_dispatch_rejects_malformed_dict(two_tabs):
    first, _ = two_tabs
    with pytest.raises(GameError):
        first.dispatch({"type": "NOPE"})


def test_foreign_room_messages_are_dropped(two_tabs):
    first, _ = two_tabs
    first.dispatch(SETUP)
    before = first.state

    assert not first.handle_incoming({"type": "hard_reset", "roomId": "ELSEWHERE"})
    assert not first.handle_incoming(encode_message(StateMessage(state=create_empty("ELSEWHERE"))))
    assert first.state is before


def test_hard_reset_propagates_once(two_tabs):
    first, second = two_tabs
    first.dispatch(SETUP)
    second.store.save_setup_draft(ROOM_ID, ["Ana", "Bruno"])

    first.hard_reset()

    assert first.state.phase == PHASE_SETUP
    assert second.state.phase == PHASE_SETUP
    assert second.store.load(ROOM_ID) is None
    assert second.store.load_setup_draft(ROOM_ID) is None
    assert first.store.load(ROOM_ID).phase == PHASE_SETUP


def test_room_resumes_saved_game():
    store = RoomStore(MemoryBackend())
    room = GameRoom(ROOM_ID, store)
    room.dispatch(SETUP)

    resumed = GameRoom(ROOM_ID, store)
    assert resumed.state == room.state
    assert resumed.state.phase == PHASE_P1_WRITE
