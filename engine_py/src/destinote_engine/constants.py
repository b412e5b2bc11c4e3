"""Game constants and utilities"""

from typing import Dict, Tuple

SCHEMA_VERSION = 'v2'

# Phases
PHASE_SETUP = 'setup'
PHASE_P1_WRITE = 'p1_write'
PHASE_P1_VOTE = 'p1_vote'
PHASE_P1_REVIEW = 'p1_review'
PHASE_P1_RESULTS = 'p1_results'
PHASE_P2_RANK = 'p2_rank'
PHASE_P2_DISCUSS = 'p2_discuss'
PHASE_REVEAL = 'reveal'

PHASES = (
    PHASE_SETUP,
    PHASE_P1_WRITE,
    PHASE_P1_VOTE,
    PHASE_P1_REVIEW,
    PHASE_P1_RESULTS,
    PHASE_P2_RANK,
    PHASE_P2_DISCUSS,
    PHASE_REVEAL,
)

PHASE_LABELS: Dict[str, str] = {
    PHASE_SETUP: 'Setup',
    PHASE_P1_WRITE: 'Phase 1: Writing',
    PHASE_P1_VOTE: 'Phase 1: Voting',
    PHASE_P1_REVIEW: 'Phase 1: Review',
    PHASE_P1_RESULTS: 'Phase 1: Results',
    PHASE_P2_RANK: 'Phase 2: Secret ranking',
    PHASE_P2_DISCUSS: 'Phase 2: Discussion',
    PHASE_REVEAL: 'Reveal',
}

# Reactions, in display order
REACTION_LIKE = '👍'
REACTION_LOVE = '❤️'
REACTION_LAUGH = '😂'
REACTION_FIRE = '🔥'
REACTION_SKULL = '💀'

REACTIONS: Tuple[str, ...] = (
    REACTION_LIKE,
    REACTION_LOVE,
    REACTION_LAUGH,
    REACTION_FIRE,
    REACTION_SKULL,
)

# Vote modes
VOTE_MODE_PER_ROUND = 'per_round'
VOTE_MODE_PER_ROUND_AND_FINAL = 'per_round_and_final'
VOTE_MODE_FINAL_ONLY = 'final_only'
VOTE_MODE_END_ONLY = 'end_only'  # legacy alias of final_only

VOTE_MODES = (VOTE_MODE_PER_ROUND, VOTE_MODE_PER_ROUND_AND_FINAL, VOTE_MODE_FINAL_ONLY)

# Voting scopes and session keys
SCOPE_ROUND = 'round'
SCOPE_FINAL = 'final'
FINAL_SESSION_KEY = 'final'


def round_session_key(round_number: int) -> str:
    return f"round:{round_number}"


# Theme slots
SLOT_RANDOM = 'random'
SLOT_CUSTOM = 'custom'

# Config defaults
DEFAULT_VOTE_MODE = VOTE_MODE_PER_ROUND
DEFAULT_P1_ROUNDS = 2
DEFAULT_SECONDS_PER_TURN = 45
DEFAULT_MAX_REACTIONS = 2
DEFAULT_DECK_DESIRED = 10
DEFAULT_DECK_MAX = 20

# Config clamp ranges (inclusive)
P1_ROUNDS_RANGE = (1, 20)
SECONDS_PER_TURN_RANGE = (10, 600)
MAX_REACTIONS_RANGE = (1, 10)
DECK_DESIRED_RANGE = (4, 40)
DECK_MAX_RANGE = (8, 60)

MIN_PLAYERS = 2
MIN_DECK_SIZE = 8
TOP_N_PHASE1 = 3
NEUTRAL_SCORE = 50.0

# Seed offsets for local draws
SEED_MODULUS = 2 ** 31
ROUND_THEME_SEED_STEP = 101
PHASE2_THEME_SEED_OFFSET = 777
INTRO_SHUFFLE_SEED_OFFSET = 999
DISCUSS_SHUFFLE_SEED_OFFSET = 2026

# Storage / sync namespaces
ROOM_KEY_PREFIX = 'destinote:game:v2:room:'
SETUP_DRAFT_KEY_PREFIX = 'destinote:game:v2:setupDraft:'
THEME_BANK_KEY = 'destinote:game:v2:themeBank'
CHANNEL_PREFIX = 'destinote:game:v2:bc:'

# Sync bus message types
MESSAGE_STATE = 'state'
MESSAGE_HARD_RESET = 'hard_reset'
