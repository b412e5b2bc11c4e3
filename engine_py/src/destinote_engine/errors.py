"""
Reason codes for events the reducer ignores.

The reducer reports these codes through ``EventResult``. ``GameError`` is
raised only when raw input cannot be parsed into an event at all.
"""


class GameError(Exception):
    """Malformed input at the event boundary."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


INVALID_EVENT = "INVALID_EVENT"
UNHANDLED_EVENT = "UNHANDLED_EVENT"

# Phase and turn
WRONG_PHASE = "WRONG_PHASE"
NOT_YOUR_TURN = "NOT_YOUR_TURN"
NOT_ENOUGH_PLAYERS = "NOT_ENOUGH_PLAYERS"

# Writing
EMPTY_TEXT = "EMPTY_TEXT"

# Voting
NO_SESSION = "NO_SESSION"
SESSION_LOCKED = "SESSION_LOCKED"
UNKNOWN_PLAYER = "UNKNOWN_PLAYER"
UNKNOWN_CARD = "UNKNOWN_CARD"
UNKNOWN_REACTION = "UNKNOWN_REACTION"
SELF_VOTE = "SELF_VOTE"
BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"
VOTER_DONE = "VOTER_DONE"
VOTER_NOT_DONE = "VOTER_NOT_DONE"

# Ordering
NOTHING_TO_MOVE = "NOTHING_TO_MOVE"
