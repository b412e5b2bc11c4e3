"""
State serialization for snapshots and sync messages.

Snapshots use the UI's camelCase wire format (``roomId``, ``p1.playerIndex``,
...). Keys that are ids or reactions are kept verbatim.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import orjson
from pydantic import ValidationError

from .constants import SCHEMA_VERSION
from .models import (
    ActionCard,
    CardPoints,
    GameState,
    Phase1State,
    Phase1Summary,
    Phase2State,
    Phase2Summary,
    Player,
    PlayerRanking,
    ReactionWin,
    RevealSummary,
    Sequence,
    Vote,
    VotingSession,
)
from .rules import GameConfig

logger = logging.getLogger(__name__)


def looks_like_game(data: Any) -> bool:
    """
    Minimal structural check applied to every untrusted snapshot.

    Args:
        data: Decoded JSON value

    Returns:
        True if it carries the schema tag, a room id, a phase and a player list
    """
    return (
        isinstance(data, dict)
        and data.get("version") == SCHEMA_VERSION
        and isinstance(data.get("roomId"), str)
        and isinstance(data.get("phase"), str)
        and isinstance(data.get("players"), list)
    )


# -- to dict ---------------------------------------------------------------

def _card_to_dict(card: ActionCard) -> Dict[str, Any]:
    return {
        "id": card.id,
        "displayId": card.display_id,
        "authorId": card.author_id,
        "authorName": card.author_name,
        "round": card.round,
        "theme": card.theme,
        "text": card.text,
        "createdAt": card.created_at,
    }


def _vote_to_dict(vote: Vote) -> Dict[str, Any]:
    return {
        "id": vote.id,
        "sessionKey": vote.session_key,
        "voterId": vote.voter_id,
        "voterName": vote.voter_name,
        "cardId": vote.card_id,
        "reaction": vote.reaction,
        "createdAt": vote.created_at,
    }


def _voting_to_dict(voting: Optional[VotingSession]) -> Optional[Dict[str, Any]]:
    if voting is None:
        return None
    return {
        "key": voting.key,
        "scope": voting.scope,
        "round": voting.round,
        "cardIds": list(voting.card_ids),
        "voterOrder": list(voting.voter_order),
        "voterIndex": voting.voter_index,
        "currentVoterId": voting.current_voter_id,
        "votesUsedByVoter": dict(voting.votes_used_by_voter),
        "voterDone": dict(voting.voter_done),
        "locked": voting.locked,
        "hideThemeContext": voting.hide_theme_context,
    }


def _reveal_to_dict(reveal: Optional[RevealSummary]) -> Optional[Dict[str, Any]]:
    if reveal is None:
        return None
    p1 = reveal.phase1
    p2 = reveal.phase2
    return {
        "phase1": {
            "top3": [{"cardId": cp.card_id, "points": cp.points} for cp in p1.top3],
            "reactionWinners": {
                reaction: {"cardId": win.card_id, "count": win.count}
                for reaction, win in p1.reaction_winners.items()
            },
            "winnerCardId": p1.winner_card_id,
            "winnerAuthorId": p1.winner_author_id,
        },
        "phase2": {
            "averages": dict(p2.averages),
            "correctOrder": list(p2.correct_order),
            "winningCardId": p2.winning_card_id,
            "winningAuthorId": p2.winning_author_id,
            "collectiveWin": p2.collective_win,
        },
    }


def state_to_dict(state: GameState) -> Dict[str, Any]:
    """Convert a game state to its JSON-ready wire form."""
    return {
        "version": state.version,
        "roomId": state.room_id,
        "phase": state.phase,
        "startedAt": state.started_at,
        "updatedAt": state.updated_at,
        "config": state.config.model_dump(mode="json", by_alias=True),
        "players": [
            {"id": p.id, "name": p.name, "createdAt": p.created_at}
            for p in state.players
        ],
        "p1": {
            "round": state.p1.round,
            "playerIndex": state.p1.player_index,
            "currentTheme": state.p1.current_theme,
            "cards": [_card_to_dict(card) for card in state.p1.cards],
            "votes": [_vote_to_dict(vote) for vote in state.p1.votes],
            "voting": _voting_to_dict(state.p1.voting),
        },
        "p2": {
            "theme": state.p2.theme,
            "deckCardIds": list(state.p2.deck_card_ids),
            "raterIndex": state.p2.rater_index,
            "rankings": [
                {"playerId": r.player_id, "ordering": list(r.ordering), "createdAt": r.created_at}
                for r in state.p2.rankings
            ],
            "ordering": list(state.p2.ordering),
            "finalized": state.p2.finalized,
        },
        "reveal": _reveal_to_dict(state.reveal),
        "seq": {"nextCard": state.seq.next_card, "nextVote": state.seq.next_vote},
    }


# -- from dict -------------------------------------------------------------

def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _card_from_dict(data: Dict[str, Any]) -> ActionCard:
    return ActionCard(
        id=data["id"],
        display_id=int(data["displayId"]),
        author_id=data["authorId"],
        round=int(data.get("round", 1)),
        text=data.get("text", ""),
        created_at=int(data.get("createdAt", 0)),
        theme=data.get("theme", ""),
        author_name=data.get("authorName", ""),
    )


def _vote_from_dict(data: Dict[str, Any]) -> Vote:
    return Vote(
        id=data["id"],
        session_key=data["sessionKey"],
        voter_id=data["voterId"],
        voter_name=data.get("voterName", ""),
        card_id=data["cardId"],
        reaction=data["reaction"],
        created_at=int(data.get("createdAt", 0)),
    )


def _voting_from_dict(data: Any) -> Optional[VotingSession]:
    if not isinstance(data, dict):
        return None
    return VotingSession(
        key=data["key"],
        scope=data["scope"],
        round=data.get("round"),
        card_ids=list(_as_list(data.get("cardIds"))),
        voter_order=list(_as_list(data.get("voterOrder"))),
        voter_index=int(data.get("voterIndex", 0)),
        current_voter_id=data.get("currentVoterId"),
        votes_used_by_voter={k: int(v) for k, v in _as_dict(data.get("votesUsedByVoter")).items()},
        voter_done={k: bool(v) for k, v in _as_dict(data.get("voterDone")).items()},
        locked=bool(data.get("locked", False)),
        hide_theme_context=bool(data.get("hideThemeContext", False)),
    )


def _reveal_from_dict(data: Any) -> Optional[RevealSummary]:
    if not isinstance(data, dict):
        return None
    p1 = _as_dict(data.get("phase1"))
    p2 = _as_dict(data.get("phase2"))
    return RevealSummary(
        phase1=Phase1Summary(
            top3=[CardPoints(card_id=cp["cardId"], points=int(cp["points"])) for cp in _as_list(p1.get("top3"))],
            reaction_winners={
                reaction: ReactionWin(card_id=win["cardId"], count=int(win["count"]))
                for reaction, win in _as_dict(p1.get("reactionWinners")).items()
            },
            winner_card_id=p1.get("winnerCardId"),
            winner_author_id=p1.get("winnerAuthorId"),
        ),
        phase2=Phase2Summary(
            averages={k: float(v) for k, v in _as_dict(p2.get("averages")).items()},
            correct_order=list(_as_list(p2.get("correctOrder"))),
            winning_card_id=p2.get("winningCardId"),
            winning_author_id=p2.get("winningAuthorId"),
            collective_win=bool(p2.get("collectiveWin", False)),
        ),
    )


def state_from_dict(data: Dict[str, Any]) -> GameState:
    """
    Rebuild a game state from its wire form.

    Raises:
        ValueError: If the data fails the structural check
        KeyError, TypeError, ValidationError: If a nested record is malformed
    """
    if not looks_like_game(data):
        raise ValueError("Not a game snapshot")

    p1 = _as_dict(data.get("p1"))
    p2 = _as_dict(data.get("p2"))
    seq = _as_dict(data.get("seq"))

    return GameState(
        room_id=data["roomId"],
        config=GameConfig.model_validate(_as_dict(data.get("config"))),
        version=data["version"],
        phase=data["phase"],
        players=[
            Player(id=p["id"], name=p["name"], created_at=int(p.get("createdAt", 0)))
            for p in data["players"]
        ],
        p1=Phase1State(
            round=int(p1.get("round", 1)),
            player_index=int(p1.get("playerIndex", 0)),
            current_theme=p1.get("currentTheme", ""),
            cards=[_card_from_dict(c) for c in _as_list(p1.get("cards"))],
            votes=[_vote_from_dict(v) for v in _as_list(p1.get("votes"))],
            voting=_voting_from_dict(p1.get("voting")),
        ),
        p2=Phase2State(
            theme=p2.get("theme", ""),
            deck_card_ids=list(_as_list(p2.get("deckCardIds"))),
            rater_index=int(p2.get("raterIndex", 0)),
            rankings=[
                PlayerRanking(
                    player_id=r["playerId"],
                    ordering=list(_as_list(r.get("ordering"))),
                    created_at=int(r.get("createdAt", 0)),
                )
                for r in _as_list(p2.get("rankings"))
            ],
            ordering=list(_as_list(p2.get("ordering"))),
            finalized=bool(p2.get("finalized", False)),
        ),
        reveal=_reveal_from_dict(data.get("reveal")),
        seq=Sequence(
            next_card=int(seq.get("nextCard", 1)),
            next_vote=int(seq.get("nextVote", 1)),
        ),
        started_at=int(data.get("startedAt", 0)),
        updated_at=int(data.get("updatedAt", 0)),
    )


def try_state_from_dict(data: Any) -> Optional[GameState]:
    """Like ``state_from_dict`` but returns None for anything malformed."""
    if not looks_like_game(data):
        return None
    try:
        return state_from_dict(data)
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        logger.warning(f"Rejected malformed snapshot for room {data.get('roomId')}: {e}")
        return None


def dumps_state(state: GameState) -> bytes:
    return orjson.dumps(state_to_dict(state))


def loads_state(raw: Union[bytes, str, None]) -> Optional[GameState]:
    """Decode a snapshot; None when it is missing, unreadable or not a game."""
    if not raw:
        return None
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError:
        logger.warning("Rejected unreadable snapshot")
        return None
    if not looks_like_game(data):
        logger.warning("Rejected snapshot that does not look like a game")
        return None
    return try_state_from_dict(data)
