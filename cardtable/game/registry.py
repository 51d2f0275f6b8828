"""
Registry of live game sessions.

The registry owns the table of sessions keyed by id. The table is guarded by
one short-lived lock that is only held for lookups and inserts; each session
then has its own lock for the duration of a mutation. Work on one session
therefore never waits on another.
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import threading
import uuid

from cardtable.common.deck import Deck, new_shuffled_deck
from cardtable.config import ServiceConfig
from cardtable.errors import (
    DuplicateParticipant,
    InvalidParticipantCount,
    SessionNotFound,
)
from cardtable.events import EngineEventType, EventEmitter
from cardtable.game.session import Session

logger = logging.getLogger("cardtable.game.registry")

Event = Tuple[EngineEventType, Dict[str, Any]]


class SessionRegistry:
    """
    Concurrency-safe collection of sessions.

    Attributes:
        config: Player count bounds
        events: Emitter for GAME_CREATED / PLAYER_JOINED / GAME_REMOVED
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        events: Optional[EventEmitter] = None,
        deck_factory: Callable[[], Deck] = new_shuffled_deck,
    ):
        self.config = config or ServiceConfig()
        self.events = events or EventEmitter()
        self._deck_factory = deck_factory
        self._sessions: Dict[str, Session] = {}
        self._table_lock = threading.Lock()

    def create(self, creator_id: str, participant_ids: Sequence[str]) -> str:
        """
        Create a session with a freshly shuffled deck.

        Args:
            creator_id: Identity of the player creating the game
            participant_ids: Players in turn order

        Returns:
            The new session id

        Raises:
            InvalidParticipantCount: Count outside the configured bounds
            DuplicateParticipant: An identity appears twice
        """
        participants = list(participant_ids)
        count = len(participants)
        if not self.config.min_players <= count <= self.config.max_players:
            raise InvalidParticipantCount(
                count, self.config.min_players, self.config.max_players
            )
        seen = set()
        for identity in participants:
            if identity in seen:
                raise DuplicateParticipant(identity)
            seen.add(identity)

        session_id = str(uuid.uuid4())
        session = Session.create(session_id, creator_id, participants, self._deck_factory())
        with self._table_lock:
            self._sessions[session_id] = session

        logger.info(f"Created game {session_id} with {count} players")
        self.events.emit(
            EngineEventType.GAME_CREATED,
            {"game_id": session_id, "creator": creator_id, "players": participants},
        )
        return session_id

    def _lookup(self, session_id: str) -> Session:
        with self._table_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def get(self, session_id: str) -> Session:
        """
        Look up a session without locking it.

        Callers that read or mutate session state must use `locked` instead.

        Raises:
            SessionNotFound: No session with this id
        """
        return self._lookup(session_id)

    @contextmanager
    def locked(self, session_id: str) -> Iterator[Session]:
        """
        Hold a session's lock for the duration of the block.

        The lock is released on every exit path, including exceptions.

        Raises:
            SessionNotFound: No session with this id, or it was removed while
                waiting for the lock
        """
        session = self._lookup(session_id)
        with session.lock:
            with self._table_lock:
                still_registered = self._sessions.get(session_id) is session
            if not still_registered:
                raise SessionNotFound(session_id)
            yield session

    def add_participant(
        self, session_id: str, identity: str, pending: Optional[List[Event]] = None
    ) -> None:
        """
        Append a player to the end of a session's turn order.

        Args:
            session_id: Session to join
            identity: Player joining
            pending: When given, the PLAYER_JOINED event is appended here for
                the caller to emit once its own locks are released

        Raises:
            SessionNotFound: No session with this id
            SessionFinished: The session is already finished
            DuplicateParticipant: The player is already seated
        """
        with self.locked(session_id) as session:
            session.require_active()
            if identity in session.players:
                raise DuplicateParticipant(identity)
            session.add_participant(identity)
            position = len(session.turn_order)

        logger.info(f"Player {identity} joined game {session_id} at seat {position}")
        event = (
            EngineEventType.PLAYER_JOINED,
            {"game_id": session_id, "email": identity, "position": position},
        )
        if pending is None:
            self.events.emit(*event)
        else:
            pending.append(event)

    def remove(self, session_id: str) -> None:
        """
        Drop a session from the registry.

        Waits for any in-flight mutation on the session to complete first.
        """
        with self.locked(session_id):
            with self._table_lock:
                del self._sessions[session_id]

        logger.info(f"Removed game {session_id}")
        self.events.emit(EngineEventType.GAME_REMOVED, {"game_id": session_id})

    def session_ids(self) -> List[str]:
        with self._table_lock:
            return list(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._table_lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._sessions)
