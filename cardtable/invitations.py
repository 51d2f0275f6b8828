"""
Time-bounded invitations for joining a running game session.

An invitation starts PENDING and ends in exactly one of ACCEPTED, DECLINED or
EXPIRED. Expiry is applied lazily whenever an invitation is read;
`InvitationManager.sweep_expired` does the same work in bulk and can be run
periodically, with identical observable results.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import math
import threading
import time
import uuid

from cardtable.config import ServiceConfig
from cardtable.errors import (
    DuplicateParticipant,
    InvalidRequest,
    InvitationNotFound,
    InvitationNotPending,
    NotInvitee,
    NotSessionCreator,
)
from cardtable.events import EngineEventType, EventEmitter
from cardtable.game.registry import SessionRegistry

logger = logging.getLogger("cardtable.invitations")

Event = Tuple[EngineEventType, Dict[str, Any]]


class InvitationStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not InvitationStatus.PENDING


@dataclass
class Invitation:
    """
    An offer for `invitee` to join `session_id`.

    Attributes:
        id: Unique invitation id
        session_id: The game the invitee would join
        inviter: Identity of the game creator who sent it
        invitee: Identity being invited
        created_at: Unix time the invitation was created
        expires_at: Unix time after which a pending invitation is expired
        status: Current lifecycle status
        responded_at: Unix time of the terminal transition, if any
    """

    id: str
    session_id: str
    inviter: str
    invitee: str
    created_at: float
    expires_at: float
    status: InvitationStatus = InvitationStatus.PENDING
    responded_at: Optional[float] = None
    lock: threading.Lock = field(
        init=False, default_factory=threading.Lock, repr=False, compare=False
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "game_id": self.session_id,
            "inviter_email": self.inviter,
            "invitee_email": self.invitee,
            "status": self.status.value,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
        }


class InvitationManager:
    """
    Issues and tracks invitations.

    Each invitation has its own lock, so racing accept/decline calls on one
    invitation resolve to exactly one terminal transition.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        config: Optional[ServiceConfig] = None,
        events: Optional[EventEmitter] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.config = config or registry.config
        self.events = events or registry.events
        self._clock = clock
        self._invitations: Dict[str, Invitation] = {}
        self._table_lock = threading.Lock()

    def _emit(self, pending: List[Event]) -> None:
        for event_type, data in pending:
            self.events.emit(event_type, data)

    def _lookup(self, invitation_id: str) -> Invitation:
        with self._table_lock:
            invitation = self._invitations.get(invitation_id)
        if invitation is None:
            raise InvitationNotFound(invitation_id)
        return invitation

    def _all(self) -> List[Invitation]:
        with self._table_lock:
            return list(self._invitations.values())

    def _refresh(self, invitation: Invitation, pending: List[Event]) -> None:
        """Expire an overdue pending invitation. Caller holds `invitation.lock`."""
        if invitation.status is not InvitationStatus.PENDING:
            return
        now = self._clock()
        if now > invitation.expires_at:
            invitation.status = InvitationStatus.EXPIRED
            invitation.responded_at = now
            logger.debug(f"Invitation {invitation.id} expired")
            pending.append(
                (
                    EngineEventType.INVITATION_EXPIRED,
                    {"invitation_id": invitation.id, "game_id": invitation.session_id},
                )
            )

    def create(
        self,
        session_id: str,
        inviter: str,
        invitee: str,
        ttl: Optional[float] = None,
    ) -> Invitation:
        """
        Invite a player to an active session.

        Args:
            session_id: Session to join
            inviter: Must be the session's creator
            invitee: Identity being invited
            ttl: Seconds until expiry; defaults to the configured timeout and
                is capped at the configured maximum

        Raises:
            SessionNotFound, SessionFinished
            NotSessionCreator: `inviter` did not create the session
            DuplicateParticipant: `invitee` is already playing
            InvalidRequest: ttl is not a positive finite number
        """
        if ttl is None:
            ttl = self.config.invitation_timeout_seconds
        if isinstance(ttl, bool) or not math.isfinite(ttl) or ttl <= 0:
            raise InvalidRequest(
                "Invitation timeout must be a positive number", {"timeout_seconds": ttl}
            )
        ttl = min(ttl, self.config.max_invitation_timeout_seconds)

        with self.registry.locked(session_id) as session:
            session.require_active()
            if session.creator != inviter:
                raise NotSessionCreator()
            if invitee in session.players:
                raise DuplicateParticipant(invitee)

        now = self._clock()
        invitation = Invitation(
            id=str(uuid.uuid4()),
            session_id=session_id,
            inviter=inviter,
            invitee=invitee,
            created_at=now,
            expires_at=now + ttl,
        )
        with self._table_lock:
            self._invitations[invitation.id] = invitation

        logger.info(f"Invitation {invitation.id} to game {session_id} sent to {invitee}")
        self.events.emit(EngineEventType.INVITATION_CREATED, invitation.to_dict())
        return replace(invitation)

    def get(self, invitation_id: str) -> Invitation:
        """
        Fetch a copy of an invitation, expiring it first if overdue.

        Raises:
            InvitationNotFound
        """
        invitation = self._lookup(invitation_id)
        pending: List[Event] = []
        try:
            with invitation.lock:
                self._refresh(invitation, pending)
                return replace(invitation)
        finally:
            self._emit(pending)

    def _respond(
        self, invitation_id: str, actor: Optional[str], accept: bool
    ) -> Invitation:
        invitation = self._lookup(invitation_id)
        pending: List[Event] = []
        try:
            with invitation.lock:
                self._refresh(invitation, pending)
                if actor is not None and actor != invitation.invitee:
                    raise NotInvitee()
                if invitation.status is not InvitationStatus.PENDING:
                    raise InvitationNotPending(invitation_id, invitation.status.value)

                if accept:
                    # Stays pending if the session refuses the player.
                    self.registry.add_participant(
                        invitation.session_id, invitation.invitee, pending
                    )
                    invitation.status = InvitationStatus.ACCEPTED
                    event_type = EngineEventType.INVITATION_ACCEPTED
                else:
                    invitation.status = InvitationStatus.DECLINED
                    event_type = EngineEventType.INVITATION_DECLINED
                invitation.responded_at = self._clock()

                logger.info(
                    f"Invitation {invitation_id} {invitation.status.value} by {invitation.invitee}"
                )
                pending.append((event_type, invitation.to_dict()))
                return replace(invitation)
        finally:
            self._emit(pending)

    def accept(self, invitation_id: str, actor: Optional[str] = None) -> Invitation:
        """
        Accept an invitation and seat the invitee at the end of the turn order.

        Args:
            invitation_id: Invitation to accept
            actor: When given, must be the invitee

        Raises:
            InvitationNotFound
            NotInvitee: `actor` is not the invitee
            InvitationNotPending: Already accepted, declined or expired
            SessionFinished, SessionNotFound, DuplicateParticipant: The session
                can no longer take the player; the invitation stays pending
        """
        return self._respond(invitation_id, actor, accept=True)

    def decline(self, invitation_id: str, actor: Optional[str] = None) -> Invitation:
        """
        Decline an invitation.

        Raises:
            InvitationNotFound, NotInvitee, InvitationNotPending
        """
        return self._respond(invitation_id, actor, accept=False)

    def pending_for(self, identity: str) -> List[Invitation]:
        """All still-pending invitations addressed to `identity`, oldest first."""
        result = []
        pending: List[Event] = []
        try:
            for invitation in self._all():
                if invitation.invitee != identity:
                    continue
                with invitation.lock:
                    self._refresh(invitation, pending)
                    if invitation.status is InvitationStatus.PENDING:
                        result.append(replace(invitation))
        finally:
            self._emit(pending)
        result.sort(key=lambda inv: inv.created_at)
        return result

    def sweep_expired(self) -> int:
        """
        Expire every overdue pending invitation.

        Returns:
            Number of invitations that expired during this sweep
        """
        pending: List[Event] = []
        try:
            for invitation in self._all():
                with invitation.lock:
                    self._refresh(invitation, pending)
        finally:
            self._emit(pending)
        if pending:
            logger.info(f"Expired {len(pending)} invitations")
        return len(pending)

    def cleanup_expired(self, max_age_seconds: float) -> int:
        """
        Forget terminal invitations that ended more than `max_age_seconds` ago.

        Returns:
            Number of invitations removed
        """
        self.sweep_expired()
        cutoff = self._clock() - max_age_seconds
        removed = 0
        for invitation in self._all():
            with invitation.lock:
                stale = (
                    invitation.status.is_terminal
                    and invitation.responded_at is not None
                    and invitation.responded_at < cutoff
                )
            if stale:
                with self._table_lock:
                    self._invitations.pop(invitation.id, None)
                removed += 1
        return removed

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._invitations)
