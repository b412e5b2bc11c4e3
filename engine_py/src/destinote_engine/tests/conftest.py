"""
Shared fixtures for the engine tests.
"""

import pytest

from destinote_engine.engine import create_empty, reduce_game
from destinote_engine.events import (
    NextEvent,
    P1SkipVoterEvent,
    P1SubmitEvent,
    P2StartEvent,
    SetupPayload,
    SetupStartEvent,
)
from destinote_engine.themes import StaticThemes

ROOM_ID = "ROOM01"
SEED = 42


@pytest.fixture
def themes():
    """Small fixed pools so theme draws are easy to assert."""
    return StaticThemes(
        ["Round prompt A", "Round prompt B", "Round prompt C"],
        ["Final prompt A", "Final prompt B"],
    )


@pytest.fixture
def start_game(themes):
    """Factory: a room that just left setup."""
    def _start(names, **options):
        options.setdefault("seed", SEED)
        event = SetupStartEvent(payload=SetupPayload(players=names, **options))
        return reduce_game(create_empty(ROOM_ID), event, themes)
    return _start


@pytest.fixture
def write_round(themes):
    """Factory: every player writes one card in turn."""
    def _write(state):
        for player in list(state.players):
            state = reduce_game(state, P1SubmitEvent(player_id=player.id, text=f"{player.name} card"), themes)
        return state
    return _write


@pytest.fixture
def skip_all_voters(themes):
    """Factory: every voter of the running session skips."""
    def _skip(state):
        while state.p1.voting is not None and state.p1.voting.current_voter_id:
            state = reduce_game(state, P1SkipVoterEvent(voter_id=state.p1.voting.current_voter_id), themes)
        return state
    return _skip


@pytest.fixture
def to_phase2(start_game, write_round, skip_all_voters, themes):
    """Factory: one round written, nobody votes, phase 2 started."""
    def _to_phase2(names, **options):
        state = start_game(names, p1_rounds=1, **options)
        state = write_round(state)
        state = skip_all_voters(state)
        state = reduce_game(state, NextEvent(), themes)
        return reduce_game(state, P2StartEvent(), themes)
    return _to_phase2


@pytest.fixture
def card_of():
    """Lookup: first card written by the named player."""
    def _card_of(state, player_name):
        player = next(p for p in state.players if p.name == player_name)
        return next(c for c in state.p1.cards if c.author_id == player.id)
    return _card_of
