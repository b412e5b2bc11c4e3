"""Game state machine: ``reduce_game(state, event) -> state``.

The reducer is synchronous and never mutates its input: every accepted event
works on a deep copy and returns it, every rejected event returns the very
same state object.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .constants import (
    FINAL_SESSION_KEY,
    PHASE_P1_RESULTS,
    PHASE_P1_REVIEW,
    PHASE_P1_VOTE,
    PHASE_P1_WRITE,
    PHASE_P2_DISCUSS,
    PHASE_P2_RANK,
    PHASE_REVEAL,
    SCOPE_FINAL,
    SCOPE_ROUND,
    VOTE_MODE_FINAL_ONLY,
    VOTE_MODE_PER_ROUND_AND_FINAL,
    round_session_key,
)
from .deck import build_phase2_deck
from .errors import UNHANDLED_EVENT, WRONG_PHASE
from .events import (
    EventType,
    GameEvent,
    P1CastReactionEvent,
    P1SkipEvent,
    P1SkipVoterEvent,
    P1StartVotingEvent,
    P1SubmitEvent,
    P2MoveEvent,
    P2SetOrderingEvent,
    P2SkipRankingEvent,
    P2SubmitRankingEvent,
    ResetAllEvent,
    SetActiveVoterEvent,
    SetupStartEvent,
)
from .models import (
    ActionCard,
    GameState,
    Phase1State,
    Phase2State,
    Phase2Summary,
    Player,
    PlayerRanking,
    RevealSummary,
    Vote,
    VotingSession,
)
from .ranking import compute_averages, is_collective_win, is_unanimous_for, objective_order, sanitize_ordering
from .rules import build_config, default_config
from .scoring import creation_order, phase1_summary
from .shuffle import discuss_shuffle_seed, intro_shuffle_seed, shuffle_ids
from .themes import DEFAULT_THEMES, ThemeProvider, p1_theme, p2_theme
from .utils import clamp, dedupe_ids, now_ms, uid
from . import validate

logger = logging.getLogger(__name__)


@dataclass
class EventResult:
    """Outcome of one event: the next state plus why it was ignored, if it was."""
    success: bool
    state: GameState
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, state: GameState) -> 'EventResult':
        return cls(success=True, state=state)

    @classmethod
    def rejected(cls, state: GameState, result: validate.ValidationResult) -> 'EventResult':
        return cls(
            success=False,
            state=state,
            error_code=result.error_code,
            error_message=result.error_message,
        )


def create_empty(room_id: str) -> GameState:
    """Fresh room in the setup phase."""
    started_at = now_ms()
    return GameState(
        room_id=room_id,
        config=default_config(room_id),
        started_at=started_at,
        updated_at=started_at,
    )


def _touch(state: GameState) -> GameState:
    state.updated_at = now_ms()
    return state


# -- phase 1: writing ------------------------------------------------------

def _begin_round(state: GameState, round_number: int, themes: ThemeProvider) -> None:
    state.phase = PHASE_P1_WRITE
    state.p1.round = round_number
    state.p1.player_index = 0
    state.p1.current_theme = p1_theme(state.config, round_number, themes)
    state.p1.voting = None


def _advance_writer(state: GameState, themes: ThemeProvider) -> None:
    """Move the turn pointer; close the round after the last player."""
    next_index = state.p1.player_index + 1
    if next_index < len(state.players):
        state.p1.player_index = next_index
        return

    state.p1.player_index = 0
    is_last_round = state.p1.round >= state.config.p1_rounds

    if state.config.vote_mode == VOTE_MODE_FINAL_ONLY:
        if is_last_round:
            _start_voting(state, SCOPE_FINAL)
        else:
            _begin_round(state, state.p1.round + 1, themes)
        return

    _start_voting(state, SCOPE_ROUND)


# -- phase 1: voting -------------------------------------------------------

def _start_voting(state: GameState, scope: str) -> None:
    if scope == SCOPE_ROUND:
        round_number = state.p1.round
        key = round_session_key(round_number)
        card_ids = [card.id for card in state.p1.cards if card.round == round_number]
    else:
        round_number = None
        key = FINAL_SESSION_KEY
        card_ids = [card.id for card in state.p1.cards]

    voter_order = [player.id for player in state.players]
    state.p1.voting = VotingSession(
        key=key,
        scope=scope,
        round=round_number,
        card_ids=dedupe_ids(card_ids),
        voter_order=voter_order,
        voter_index=0,
        current_voter_id=voter_order[0] if voter_order else None,
        hide_theme_context=scope == SCOPE_FINAL and state.config.vote_mode == VOTE_MODE_FINAL_ONLY,
    )
    state.phase = PHASE_P1_VOTE
    logger.info(f"Voting session {key} opened in room {state.room_id} over {len(card_ids)} cards")


def _point_at_next_voter(voting: VotingSession, start: int) -> None:
    """Point the session at the first pending voter at or after ``start``, wrapping around."""
    count = len(voting.voter_order)
    for offset in range(count):
        index = (start + offset) % count
        voter_id = voting.voter_order[index]
        if not voting.is_done(voter_id):
            voting.voter_index = index
            voting.current_voter_id = voter_id
            return
    voting.current_voter_id = None


def _finish_voting(state: GameState) -> None:
    """Lock the session, discard it and move on."""
    voting = state.p1.voting
    voting.locked = True
    voting.current_voter_id = None
    state.p1.voting = None
    logger.info(f"Voting session {voting.key} closed in room {state.room_id}")

    if voting.scope == SCOPE_ROUND:
        state.phase = PHASE_P1_REVIEW
        return
    _enter_results(state)


def _mark_voter_done(state: GameState, voter_id: str, resume_at: int) -> None:
    voting = state.p1.voting
    voting.voter_done[voter_id] = True
    _point_at_next_voter(voting, resume_at)
    if voting.all_done():
        _finish_voting(state)


def _enter_results(state: GameState) -> None:
    reveal = state.reveal or RevealSummary()
    reveal.phase1 = phase1_summary(state, winner_from_top3=True)
    state.reveal = reveal
    state.phase = PHASE_P1_RESULTS


def _has_final_votes(state: GameState) -> bool:
    return any(vote.session_key == FINAL_SESSION_KEY for vote in state.p1.votes)


# -- phase 2 ---------------------------------------------------------------

def _advance_rater(state: GameState) -> None:
    next_index = state.p2.rater_index + 1
    if next_index < len(state.players):
        state.p2.rater_index = next_index
        return

    # Everyone ranked: open the discussion on a fresh shuffle, never the average order
    deck = dedupe_ids(state.p2.deck_card_ids)
    state.p2.ordering = shuffle_ids(deck, discuss_shuffle_seed(state.config.seed, len(state.p1.cards)))
    state.phase = PHASE_P2_DISCUSS


# -- handlers --------------------------------------------------------------

Handler = Callable[[GameState, GameEvent, ThemeProvider], EventResult]


def _handle_reset_all(state: GameState, event: ResetAllEvent, themes: ThemeProvider) -> EventResult:
    return EventResult.ok(create_empty(event.room_id))


def _handle_setup_start(state: GameState, event: SetupStartEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_setup_start(state, event)
    if not result:
        return EventResult.rejected(state, result)

    created_at = now_ms()
    players = [
        Player(id=uid(f"p{i + 1}"), name=name, created_at=created_at)
        for i, name in enumerate(validate.clean_player_names(event.payload.players))
    ]
    config = build_config(event.payload, len(players))

    new_state = create_empty(state.room_id)
    new_state.players = players
    new_state.config = config
    new_state.p1 = Phase1State(round=1, current_theme=p1_theme(config, 1, themes))
    new_state.phase = PHASE_P1_WRITE
    return EventResult.ok(_touch(new_state))


def _handle_next(state: GameState, event: GameEvent, themes: ThemeProvider) -> EventResult:
    if state.phase == PHASE_P2_DISCUSS:
        return _handle_finalize(state, event, themes)

    if state.phase != PHASE_P1_REVIEW:
        return EventResult.rejected(
            state,
            validate.ValidationResult.error(WRONG_PHASE, f"Nothing to advance in phase {state.phase}"),
        )

    new_state = copy.deepcopy(state)
    if new_state.p1.round < new_state.config.p1_rounds:
        _begin_round(new_state, new_state.p1.round + 1, themes)
    elif new_state.config.vote_mode == VOTE_MODE_PER_ROUND_AND_FINAL and not _has_final_votes(new_state):
        _start_voting(new_state, SCOPE_FINAL)
    else:
        _enter_results(new_state)
    return EventResult.ok(_touch(new_state))


def _handle_set_active_voter(state: GameState, event: SetActiveVoterEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_set_active_voter(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    voting = new_state.p1.voting
    voting.voter_index = voting.voter_order.index(event.voter_id)
    voting.current_voter_id = event.voter_id
    return EventResult.ok(_touch(new_state))


def _handle_p1_submit(state: GameState, event: P1SubmitEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_submit(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    writer = new_state.current_writer()
    new_state.p1.cards.append(ActionCard(
        id=uid('card'),
        display_id=new_state.seq.next_card,
        author_id=writer.id,
        round=new_state.p1.round,
        text=event.text.strip(),
        created_at=now_ms(),
        theme=new_state.p1.current_theme,
        author_name=writer.name,
    ))
    new_state.seq.next_card += 1
    _advance_writer(new_state, themes)
    return EventResult.ok(_touch(new_state))


def _handle_p1_skip(state: GameState, event: P1SkipEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_skip_writer(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    _advance_writer(new_state, themes)
    return EventResult.ok(_touch(new_state))


def _handle_start_voting(state: GameState, event: P1StartVotingEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_start_voting(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    _start_voting(new_state, SCOPE_FINAL if event.scope == SCOPE_FINAL else SCOPE_ROUND)
    return EventResult.ok(_touch(new_state))


def _handle_cast_reaction(state: GameState, event: P1CastReactionEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_cast_reaction(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    voting = new_state.p1.voting
    voter = new_state.get_player(event.voter_id)

    new_state.p1.votes.append(Vote(
        id=f"v{new_state.seq.next_vote}",
        session_key=voting.key,
        voter_id=voter.id,
        voter_name=voter.name,
        card_id=event.card_id,
        reaction=event.reaction,
        created_at=now_ms(),
    ))
    new_state.seq.next_vote += 1

    used = voting.used_by(voter.id) + 1
    voting.votes_used_by_voter[voter.id] = used
    if used >= new_state.config.max_reactions_per_voter:
        _mark_voter_done(new_state, voter.id, voting.voter_index)
    return EventResult.ok(_touch(new_state))


def _handle_skip_voter(state: GameState, event: P1SkipVoterEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_skip_voter(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    voting = new_state.p1.voting
    _mark_voter_done(new_state, event.voter_id, voting.voter_index + 1)
    return EventResult.ok(_touch(new_state))


def _handle_next_voter(state: GameState, event: GameEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_next_voter(state)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    voting = new_state.p1.voting
    _mark_voter_done(new_state, voting.current_voter_id, voting.voter_index + 1)
    return EventResult.ok(_touch(new_state))


def _handle_end_voting(state: GameState, event: GameEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_open_session(state)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    _finish_voting(new_state)
    return EventResult.ok(_touch(new_state))


def _handle_p2_start(state: GameState, event: GameEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_p2_start(state)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    deck = build_phase2_deck(new_state)
    new_state.reveal = RevealSummary(phase1=phase1_summary(new_state))
    new_state.p2 = Phase2State(
        theme=p2_theme(new_state.config, themes),
        deck_card_ids=deck,
        ordering=shuffle_ids(deck, intro_shuffle_seed(new_state.config.seed)),
    )
    new_state.phase = PHASE_P2_RANK
    return EventResult.ok(_touch(new_state))


def _handle_set_ordering(state: GameState, event: P2SetOrderingEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_ordering_edit(state)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    new_state.p2.ordering = sanitize_ordering(event.ordering, new_state.p2.deck_card_ids)
    return EventResult.ok(_touch(new_state))


def _handle_move(state: GameState, event: P2MoveEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_move(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    ordering = new_state.p2.ordering
    last = len(ordering) - 1
    moved = ordering.pop(clamp(event.from_index, 0, last))
    ordering.insert(clamp(event.to_index, 0, last), moved)
    return EventResult.ok(_touch(new_state))


def _handle_submit_ranking(state: GameState, event: P2SubmitRankingEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_submit_ranking(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    rater = new_state.current_rater()
    ranking = PlayerRanking(
        player_id=rater.id,
        ordering=sanitize_ordering(event.ordering, new_state.p2.deck_card_ids),
        created_at=now_ms(),
    )
    new_state.p2.rankings = [r for r in new_state.p2.rankings if r.player_id != rater.id] + [ranking]
    _advance_rater(new_state)
    return EventResult.ok(_touch(new_state))


def _handle_skip_ranking(state: GameState, event: P2SkipRankingEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_skip_ranking(state, event)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    _advance_rater(new_state)
    return EventResult.ok(_touch(new_state))


def _handle_finalize(state: GameState, event: GameEvent, themes: ThemeProvider) -> EventResult:
    result = validate.validate_finalize(state)
    if not result:
        return EventResult.rejected(state, result)

    new_state = copy.deepcopy(state)
    p2 = new_state.p2
    deck = p2.deck_card_ids

    averages = compute_averages(deck, p2.rankings, new_state.players)
    correct_order = objective_order(deck, averages, creation_order(new_state.p1.cards))
    objective_top = correct_order[0] if correct_order else None

    # The group's open ordering decides the winner; the secret average is the reference.
    winning_card_id = p2.ordering[0] if p2.ordering else objective_top
    winning_author_id = new_state.card_author_id(winning_card_id)
    unanimous = is_unanimous_for(winning_card_id, winning_author_id, new_state.players, p2.rankings)

    reveal = new_state.reveal or RevealSummary()
    reveal.phase2 = Phase2Summary(
        averages=averages,
        correct_order=correct_order,
        winning_card_id=winning_card_id,
        winning_author_id=winning_author_id,
        collective_win=is_collective_win(winning_card_id, objective_top, unanimous),
    )
    new_state.reveal = reveal
    p2.finalized = True
    new_state.phase = PHASE_REVEAL
    return EventResult.ok(_touch(new_state))


HANDLERS: Dict[EventType, Handler] = {
    EventType.RESET_ALL: _handle_reset_all,
    EventType.SETUP_START: _handle_setup_start,
    EventType.NEXT: _handle_next,
    EventType.SET_ACTIVE_VOTER: _handle_set_active_voter,
    EventType.P1_SUBMIT: _handle_p1_submit,
    EventType.P1_SKIP: _handle_p1_skip,
    EventType.P1_START_VOTING: _handle_start_voting,
    EventType.P1_CAST_REACTION: _handle_cast_reaction,
    EventType.P1_SKIP_VOTER: _handle_skip_voter,
    EventType.P1_NEXT_VOTER: _handle_next_voter,
    EventType.P1_END_VOTING: _handle_end_voting,
    EventType.P2_START: _handle_p2_start,
    EventType.P2_SET_ORDERING: _handle_set_ordering,
    EventType.P2_MOVE: _handle_move,
    EventType.P2_SUBMIT_RANKING: _handle_submit_ranking,
    EventType.P2_SKIP_RANKING: _handle_skip_ranking,
    EventType.P2_FINALIZE: _handle_finalize,
}


def apply_event(state: GameState, event: GameEvent, themes: ThemeProvider = DEFAULT_THEMES) -> EventResult:
    """
    Apply one event and report whether it was accepted.

    Args:
        state: Current game state (left untouched)
        event: Event to apply
        themes: Source of round and phase-2 prompts

    Returns:
        EventResult; on rejection ``state`` is the input object itself
    """
    handler = HANDLERS.get(getattr(event, 'type', None))
    if handler is None:
        return EventResult.rejected(
            state,
            validate.ValidationResult.error(UNHANDLED_EVENT, f"Unhandled event: {event!r}"),
        )

    result = handler(state, event, themes)
    if not result.success:
        logger.debug(
            f"Ignored {event.type.value} in room {state.room_id}: [{result.error_code}] {result.error_message}"
        )
    elif result.state.phase != state.phase:
        logger.info(f"Room {result.state.room_id}: {state.phase} -> {result.state.phase} ({event.type.value})")
    return result


def reduce_game(state: GameState, event: GameEvent, themes: ThemeProvider = DEFAULT_THEMES) -> GameState:
    """Pure transition: returns the next state, or ``state`` itself if the event does not apply."""
    return apply_event(state, event, themes).state


reduce = reduce_game
