"""
The game service: one object owning every core component.

The request layer builds a single `GameService` at start-up and passes it to
whatever needs it; nothing in the package keeps a global instance.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence
import logging

from cardtable.common.deck import Deck, new_shuffled_deck
from cardtable.config import ServiceConfig
from cardtable.events import EventEmitter
from cardtable.game import (
    DrawResult,
    GameResult,
    PlayerScore,
    SessionRegistry,
    StandResult,
    TurnCoordinator,
)
from cardtable.invitations import Invitation, InvitationManager
from cardtable.ratelimit import RateLimiter, key_for

logger = logging.getLogger("cardtable.service")


class GameService:
    """
    Facade over the session registry, turn coordinator, invitation manager
    and rate limiter.

    Example:
        ```python
        service = GameService()
        game_id = service.create_game("ana@example.com", ["ana@example.com", "bo@example.com"])
        service.draw(game_id, "ana@example.com")
        service.stand(game_id, "ana@example.com")
        service.finish(game_id)
        service.results(game_id)
        ```
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        events: Optional[EventEmitter] = None,
        deck_factory: Callable[[], Deck] = new_shuffled_deck,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or ServiceConfig()
        self.events = events or EventEmitter()
        self.registry = SessionRegistry(self.config, self.events, deck_factory)
        self.coordinator = TurnCoordinator(self.registry, self.events)
        invitation_kwargs = {"clock": clock} if clock else {}
        self.invitations = InvitationManager(
            self.registry, self.config, self.events, **invitation_kwargs
        )
        limiter_kwargs = {"clock": clock} if clock else {}
        self.rate_limiter = RateLimiter(
            self.config.rate_limit_window_seconds,
            self.config.rate_limit_requests,
            **limiter_kwargs,
        )

    # Sessions

    def create_game(self, creator: str, players: Sequence[str]) -> str:
        return self.registry.create(creator, players)

    def get_state(self, game_id: str) -> Dict[str, Any]:
        return self.coordinator.state(game_id)

    def is_game_creator(self, game_id: str, identity: str) -> bool:
        with self.registry.locked(game_id) as session:
            return session.creator == identity

    def remove_game(self, game_id: str) -> None:
        self.registry.remove(game_id)

    # Turns

    def draw(self, game_id: str, actor: str) -> DrawResult:
        return self.coordinator.draw(game_id, actor)

    def set_ace_value(
        self, game_id: str, actor: str, card_id: str, as_eleven: bool
    ) -> PlayerScore:
        return self.coordinator.set_ace_value(game_id, actor, card_id, as_eleven)

    def stand(self, game_id: str, actor: str) -> StandResult:
        return self.coordinator.stand(game_id, actor)

    def finish(self, game_id: str) -> GameResult:
        return self.coordinator.finish(game_id)

    def results(self, game_id: str) -> GameResult:
        return self.coordinator.results(game_id)

    # Invitations

    def invite(
        self, game_id: str, inviter: str, invitee: str, ttl: Optional[float] = None
    ) -> Invitation:
        return self.invitations.create(game_id, inviter, invitee, ttl)

    def pending_invitations(self, identity: str) -> List[Invitation]:
        return self.invitations.pending_for(identity)

    def accept_invitation(self, invitation_id: str, actor: str) -> Invitation:
        return self.invitations.accept(invitation_id, actor)

    def decline_invitation(self, invitation_id: str, actor: str) -> Invitation:
        return self.invitations.decline(invitation_id, actor)

    # Rate limiting

    def admit(self, game_id: str, actor: str) -> None:
        """
        Raises:
            RateLimitExceeded: The player has used up this window's requests
        """
        self.rate_limiter.check(key_for(game_id, actor))

    def sweep(self) -> Dict[str, int]:
        """
        Periodic housekeeping: expire overdue invitations, forget answered
        ones older than the retention period, and drop idle rate limit windows.

        Returns:
            Counts of what each step removed or expired
        """
        expired = self.invitations.sweep_expired()
        removed = self.invitations.cleanup_expired(self.config.invitation_retention_seconds)
        purged = self.rate_limiter.purge()
        if removed or purged:
            logger.info(
                f"Sweep removed {removed} invitations and {purged} rate limit windows"
            )
        return {
            "invitations_expired": expired,
            "invitations_removed": removed,
            "rate_limit_windows_purged": purged,
        }

    def health(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "games": len(self.registry),
            "invitations": len(self.invitations),
        }
