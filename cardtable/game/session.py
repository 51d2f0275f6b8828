"""
State of a single game session.

A `Session` is plain mutable data guarded by its own lock. Only the
`SessionRegistry` and `TurnCoordinator` touch it, and only while holding
`Session.lock`, so every method here assumes the caller already owns the lock.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional
import threading
import time

from cardtable.common.deck import Deck
from cardtable.common.hand import Hand, HandScore
from cardtable.errors import NotYourTurn, PlayerNotInSession, SessionFinished


class SessionStatus(Enum):
    ACTIVE = auto()
    FINISHED = auto()


@dataclass
class PlayerState:
    """
    One participant's seat in a session.

    Attributes:
        identity: The player's email-like identity string
        hand: Cards dealt to the player, append-only
        standing: Whether the player chose to stand
        terminal: Whether the player's turn is over for good (stood or busted)
    """

    identity: str
    hand: Hand = field(default_factory=Hand)
    standing: bool = False
    terminal: bool = False

    @property
    def score(self) -> HandScore:
        return self.hand.score()

    @property
    def points(self) -> int:
        return self.score.total

    @property
    def busted(self) -> bool:
        return self.score.busted

    def to_dict(self) -> Dict[str, Any]:
        total, busted = self.score
        return {
            "email": self.identity,
            "points": total,
            "busted": busted,
            "standing": self.standing,
            "cards_history": [card.to_dict() for card in self.hand.cards],
            "ace_values": self.hand.ace_choices,
        }


@dataclass
class Session:
    """
    A game session: its deck, turn order and per-player state.

    Invariants while ACTIVE: `turn_order[current_index]` is a non-terminal
    player. Turn order only ever grows at the end.
    """

    id: str
    creator: str
    deck: Deck
    turn_order: List[str] = field(default_factory=list)
    players: Dict[str, PlayerState] = field(default_factory=dict)
    current_index: int = 0
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )

    @classmethod
    def create(cls, session_id: str, creator: str, participants: List[str], deck: Deck):
        session = cls(id=session_id, creator=creator, deck=deck)
        for identity in participants:
            session.turn_order.append(identity)
            session.players[identity] = PlayerState(identity)
        return session

    @property
    def finished(self) -> bool:
        return self.status is SessionStatus.FINISHED

    @property
    def current_player(self) -> Optional[str]:
        if self.finished or self.current_index >= len(self.turn_order):
            return None
        return self.turn_order[self.current_index]

    def require_active(self) -> None:
        if self.finished:
            raise SessionFinished()

    def player(self, identity: str) -> PlayerState:
        try:
            return self.players[identity]
        except KeyError:
            raise PlayerNotInSession(identity) from None

    def require_turn(self, identity: str) -> PlayerState:
        player = self.player(identity)
        if self.current_player != identity:
            raise NotYourTurn(identity, self.current_player)
        return player

    def add_participant(self, identity: str) -> PlayerState:
        """Seat a player at the end of the turn order. The current turn is unchanged."""
        player = PlayerState(identity)
        self.turn_order.append(identity)
        self.players[identity] = player
        return player

    def advance_turn(self) -> bool:
        """
        Move the turn to the next non-terminal player in turn order.

        Scans forward only; seats before the current index are always
        terminal. Finishes the session when nobody is left to act.

        Returns:
            True if the session finished as a result.
        """
        index = self.current_index
        while index < len(self.turn_order):
            if not self.players[self.turn_order[index]].terminal:
                self.current_index = index
                return False
            index += 1
        self.current_index = len(self.turn_order)
        self.finish()
        return True

    def finish(self, now: Optional[float] = None) -> None:
        self.status = SessionStatus.FINISHED
        self.finished_at = time.time() if now is None else now

    def cards_in_hands(self) -> int:
        return sum(len(player.hand) for player in self.players.values())

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the whole session."""
        return {
            "game_id": self.id,
            "creator": self.creator,
            "players": {
                identity: self.players[identity].to_dict()
                for identity in self.turn_order
            },
            "turn_order": list(self.turn_order),
            "current_turn_player": self.current_player,
            "cards_in_deck": self.deck.size,
            "finished": self.finished,
            "created_at": self.created_at,
        }
