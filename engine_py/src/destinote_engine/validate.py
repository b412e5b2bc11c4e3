"""
Guards for actor-scoped events.

Each guard checks phase, actor and referenced ids against the current state.
The reducer leaves the state untouched whenever a guard fails.
"""

from typing import Optional

from .constants import (
    FINAL_SESSION_KEY,
    MIN_PLAYERS,
    PHASE_P1_RESULTS,
    PHASE_P1_REVIEW,
    PHASE_P1_VOTE,
    PHASE_P1_WRITE,
    PHASE_P2_DISCUSS,
    PHASE_P2_RANK,
    PHASE_SETUP,
    REACTIONS,
    SCOPE_FINAL,
    round_session_key,
)
from .errors import (
    BUDGET_EXHAUSTED,
    EMPTY_TEXT,
    NO_SESSION,
    NOT_ENOUGH_PLAYERS,
    NOT_YOUR_TURN,
    NOTHING_TO_MOVE,
    SELF_VOTE,
    SESSION_LOCKED,
    UNKNOWN_CARD,
    UNKNOWN_PLAYER,
    UNKNOWN_REACTION,
    VOTER_DONE,
    VOTER_NOT_DONE,
    WRONG_PHASE,
)
from .events import (
    P1CastReactionEvent,
    P1SkipEvent,
    P1SkipVoterEvent,
    P1StartVotingEvent,
    P1SubmitEvent,
    P2MoveEvent,
    P2SkipRankingEvent,
    P2SubmitRankingEvent,
    SetActiveVoterEvent,
    SetupStartEvent,
)
from .models import GameState
from .utils import clamp


class ValidationResult:
    """Result of an event guard."""

    def __init__(
        self,
        valid: bool,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None
    ):
        self.valid = valid
        self.error_code = error_code
        self.error_message = error_message

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def success(cls) -> 'ValidationResult':
        """Create a successful validation result."""
        return cls(valid=True)

    @classmethod
    def error(cls, error_code: str, error_message: str) -> 'ValidationResult':
        """Create an error validation result."""
        return cls(valid=False, error_code=error_code, error_message=error_message)


def require_phase(state: GameState, *phases: str) -> ValidationResult:
    if state.phase not in phases:
        return ValidationResult.error(
            WRONG_PHASE,
            f"Expected phase {' or '.join(phases)} (current: {state.phase})"
        )
    return ValidationResult.success()


def clean_player_names(names) -> list:
    return [name.strip() for name in (names or []) if name and name.strip()]


def validate_setup_start(state: GameState, event: SetupStartEvent) -> ValidationResult:
    result = require_phase(state, PHASE_SETUP)
    if not result:
        return result
    if len(clean_player_names(event.payload.players)) < MIN_PLAYERS:
        return ValidationResult.error(NOT_ENOUGH_PLAYERS, f"At least {MIN_PLAYERS} players are required")
    return ValidationResult.success()


def validate_writer(state: GameState, event) -> ValidationResult:
    """Writing-phase guard shared by submit and skip."""
    result = require_phase(state, PHASE_P1_WRITE)
    if not result:
        return result
    writer = state.current_writer()
    if writer is None or writer.id != event.player_id:
        return ValidationResult.error(
            NOT_YOUR_TURN,
            f"It's not your turn (current writer: {writer.id if writer else None})"
        )
    return ValidationResult.success()


def validate_submit(state: GameState, event: P1SubmitEvent) -> ValidationResult:
    result = validate_writer(state, event)
    if not result:
        return result
    if not (event.text or '').strip():
        return ValidationResult.error(EMPTY_TEXT, "Card text is empty")
    return ValidationResult.success()


def validate_skip_writer(state: GameState, event: P1SkipEvent) -> ValidationResult:
    return validate_writer(state, event)


def validate_start_voting(state: GameState, event: P1StartVotingEvent) -> ValidationResult:
    """A manual start may not reopen a session that already collected votes."""
    result = require_phase(state, PHASE_P1_WRITE, PHASE_P1_REVIEW)
    if not result:
        return result
    key = FINAL_SESSION_KEY if event.scope == SCOPE_FINAL else round_session_key(state.p1.round)
    if any(vote.session_key == key for vote in state.p1.votes):
        return ValidationResult.error(SESSION_LOCKED, f"Voting session {key} is already closed")
    return ValidationResult.success()


def validate_open_session(state: GameState) -> ValidationResult:
    """An unlocked voting session must be running."""
    result = require_phase(state, PHASE_P1_VOTE)
    if not result:
        return result
    if state.p1.voting is None:
        return ValidationResult.error(NO_SESSION, "No voting session is running")
    if state.p1.voting.locked:
        return ValidationResult.error(SESSION_LOCKED, "Voting session is locked")
    return ValidationResult.success()


def validate_set_active_voter(state: GameState, event: SetActiveVoterEvent) -> ValidationResult:
    result = validate_open_session(state)
    if not result:
        return result
    voting = state.p1.voting
    if event.voter_id not in voting.voter_order:
        return ValidationResult.error(UNKNOWN_PLAYER, f"Unknown voter: {event.voter_id}")
    if voting.is_done(event.voter_id):
        return ValidationResult.error(VOTER_DONE, "Voter has already finished")
    return ValidationResult.success()


def validate_cast_reaction(state: GameState, event: P1CastReactionEvent) -> ValidationResult:
    """
    Validate a reaction cast.

    Args:
        state: Current game state
        event: The cast event

    Returns:
        ValidationResult with validation outcome
    """
    result = validate_open_session(state)
    if not result:
        return result
    voting = state.p1.voting

    if voting.current_voter_id != event.voter_id:
        return ValidationResult.error(
            NOT_YOUR_TURN,
            f"It's not your turn to vote (current voter: {voting.current_voter_id})"
        )

    voter = state.get_player(event.voter_id)
    if voter is None:
        return ValidationResult.error(UNKNOWN_PLAYER, f"Unknown voter: {event.voter_id}")

    if voting.is_done(voter.id):
        return ValidationResult.error(VOTER_DONE, "Voter has already finished")

    card = state.get_card(event.card_id)
    if card is None or event.card_id not in voting.card_ids:
        return ValidationResult.error(UNKNOWN_CARD, f"Card {event.card_id} is not in this session")

    if event.reaction not in REACTIONS:
        return ValidationResult.error(UNKNOWN_REACTION, f"Unknown reaction: {event.reaction}")

    if not state.config.allow_self_vote and card.author_id == voter.id:
        return ValidationResult.error(SELF_VOTE, "Voting on your own card is not allowed")

    if voting.used_by(voter.id) >= state.config.max_reactions_per_voter:
        return ValidationResult.error(BUDGET_EXHAUSTED, "No reactions left")

    return ValidationResult.success()


def validate_skip_voter(state: GameState, event: P1SkipVoterEvent) -> ValidationResult:
    result = validate_open_session(state)
    if not result:
        return result
    if state.p1.voting.current_voter_id != event.voter_id:
        return ValidationResult.error(NOT_YOUR_TURN, "Only the active voter can skip")
    return ValidationResult.success()


def validate_next_voter(state: GameState) -> ValidationResult:
    result = validate_open_session(state)
    if not result:
        return result
    voting = state.p1.voting
    voter_id = voting.current_voter_id
    if not voter_id:
        return ValidationResult.error(NO_SESSION, "No active voter")
    if not voting.is_done(voter_id) and voting.used_by(voter_id) < state.config.max_reactions_per_voter:
        return ValidationResult.error(VOTER_NOT_DONE, "Active voter still has reactions left")
    return ValidationResult.success()


def validate_p2_start(state: GameState) -> ValidationResult:
    return require_phase(state, PHASE_P1_RESULTS)


def validate_ordering_edit(state: GameState) -> ValidationResult:
    return require_phase(state, PHASE_P2_RANK, PHASE_P2_DISCUSS)


def validate_move(state: GameState, event: P2MoveEvent) -> ValidationResult:
    result = validate_ordering_edit(state)
    if not result:
        return result
    size = len(state.p2.ordering)
    if size <= 1:
        return ValidationResult.error(NOTHING_TO_MOVE, "Ordering has fewer than two cards")
    if clamp(event.from_index, 0, size - 1) == clamp(event.to_index, 0, size - 1):
        return ValidationResult.error(NOTHING_TO_MOVE, "Source and destination are the same")
    return ValidationResult.success()


def validate_rater(state: GameState, event) -> ValidationResult:
    """Ranking-phase guard shared by submit and skip."""
    result = require_phase(state, PHASE_P2_RANK)
    if not result:
        return result
    rater = state.current_rater()
    if rater is None or rater.id != event.player_id:
        return ValidationResult.error(
            NOT_YOUR_TURN,
            f"It's not your turn to rank (current ranker: {rater.id if rater else None})"
        )
    return ValidationResult.success()


def validate_submit_ranking(state: GameState, event: P2SubmitRankingEvent) -> ValidationResult:
    return validate_rater(state, event)


def validate_skip_ranking(state: GameState, event: P2SkipRankingEvent) -> ValidationResult:
    return validate_rater(state, event)


def validate_finalize(state: GameState) -> ValidationResult:
    return require_phase(state, PHASE_P2_DISCUSS)
