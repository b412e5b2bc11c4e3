"""Game models and data structures"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .constants import PHASE_SETUP, SCHEMA_VERSION
from .rules import GameConfig

@dataclass
class Player:
    id: str
    name: str
    created_at: int = 0

@dataclass
class ActionCard:
    id: str
    display_id: int  # monotonic per room
    author_id: str
    round: int
    text: str
    created_at: int = 0
    theme: str = ''
    author_name: str = ''

@dataclass
class Vote:
    id: str
    session_key: str  # round:<n> | final
    voter_id: str
    voter_name: str
    card_id: str
    reaction: str
    created_at: int = 0

@dataclass
class VotingSession:
    key: str
    scope: str  # round | final
    round: Optional[int]
    card_ids: List[str] = field(default_factory=list)
    voter_order: List[str] = field(default_factory=list)
    voter_index: int = 0
    current_voter_id: Optional[str] = None
    votes_used_by_voter: Dict[str, int] = field(default_factory=dict)
    voter_done: Dict[str, bool] = field(default_factory=dict)
    locked: bool = False
    hide_theme_context: bool = False

    def used_by(self, voter_id: str) -> int:
        return self.votes_used_by_voter.get(voter_id, 0)

    def is_done(self, voter_id: str) -> bool:
        return bool(self.voter_done.get(voter_id))

    def all_done(self) -> bool:
        return all(self.is_done(voter_id) for voter_id in self.voter_order)

@dataclass
class PlayerRanking:
    player_id: str
    ordering: List[str]  # permutation of the deck card ids
    created_at: int = 0

@dataclass
class CardPoints:
    card_id: str
    points: int

@dataclass
class ReactionWin:
    card_id: str
    count: int

@dataclass
class Phase1Summary:
    top3: List[CardPoints] = field(default_factory=list)
    reaction_winners: Dict[str, ReactionWin] = field(default_factory=dict)
    winner_card_id: Optional[str] = None
    winner_author_id: Optional[str] = None

@dataclass
class Phase2Summary:
    averages: Dict[str, float] = field(default_factory=dict)
    correct_order: List[str] = field(default_factory=list)
    winning_card_id: Optional[str] = None
    winning_author_id: Optional[str] = None
    collective_win: bool = False

@dataclass
class RevealSummary:
    phase1: Phase1Summary = field(default_factory=Phase1Summary)
    phase2: Phase2Summary = field(default_factory=Phase2Summary)

@dataclass
class Phase1State:
    round: int = 1
    player_index: int = 0
    current_theme: str = ''
    cards: List[ActionCard] = field(default_factory=list)  # append-only
    votes: List[Vote] = field(default_factory=list)  # append-only
    voting: Optional[VotingSession] = None

@dataclass
class Phase2State:
    theme: str = ''
    deck_card_ids: List[str] = field(default_factory=list)
    rater_index: int = 0
    rankings: List[PlayerRanking] = field(default_factory=list)
    ordering: List[str] = field(default_factory=list)  # open discussion order
    finalized: bool = False

    def ranking_for(self, player_id: str) -> Optional[PlayerRanking]:
        for ranking in self.rankings:
            if ranking.player_id == player_id:
                return ranking
        return None

@dataclass
class Sequence:
    next_card: int = 1
    next_vote: int = 1

@dataclass
class GameState:
    room_id: str
    config: GameConfig
    version: str = SCHEMA_VERSION
    phase: str = PHASE_SETUP
    players: List[Player] = field(default_factory=list)
    p1: Phase1State = field(default_factory=Phase1State)
    p2: Phase2State = field(default_factory=Phase2State)
    reveal: Optional[RevealSummary] = None
    seq: Sequence = field(default_factory=Sequence)
    started_at: int = 0
    updated_at: int = 0

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def get_card(self, card_id: Optional[str]) -> Optional[ActionCard]:
        for card in self.p1.cards:
            if card.id == card_id:
                return card
        return None

    def card_author_id(self, card_id: Optional[str]) -> Optional[str]:
        card = self.get_card(card_id)
        return card.author_id if card else None

    def current_writer(self) -> Optional[Player]:
        if not self.players:
            return None
        index = max(0, min(self.p1.player_index, len(self.players) - 1))
        return self.players[index]

    def current_rater(self) -> Optional[Player]:
        if 0 <= self.p2.rater_index < len(self.players):
            return self.players[self.p2.rater_index]
        return None
