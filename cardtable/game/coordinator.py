"""
Turn coordinator: the state machine that applies player actions to sessions.

Every operation runs while holding the session's lock, validates first and
mutates second, so a rejected action leaves the session exactly as it was.
Domain events are collected during the operation and emitted only after the
lock is released.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging

from cardtable.common.card import Card
from cardtable.errors import EmptyDeck, GameNotFinished, SessionFinished
from cardtable.events import EngineEventType, EventEmitter
from cardtable.game.registry import SessionRegistry
from cardtable.game.session import PlayerState, Session

logger = logging.getLogger("cardtable.game.coordinator")

Event = Tuple[EngineEventType, Dict[str, Any]]


@dataclass(frozen=True)
class PlayerScore:
    points: int
    busted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"points": self.points, "busted": self.busted}


@dataclass(frozen=True)
class DrawResult:
    """
    Outcome of a draw.

    Attributes:
        card: The card drawn
        points: The player's total after the draw
        busted: Whether the draw took the player over 21
        cards_remaining: Cards left in the session's deck
        cards_history: Every card in the player's hand, oldest first
        game_finished: Whether the draw ended the session
    """

    card: Card
    points: int
    busted: bool
    cards_remaining: int
    cards_history: List[Card]
    game_finished: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "card": self.card.to_dict(),
            "current_points": self.points,
            "busted": self.busted,
            "cards_remaining": self.cards_remaining,
            "cards_history": [card.to_dict() for card in self.cards_history],
            "game_finished": self.game_finished,
        }


@dataclass(frozen=True)
class StandResult:
    points: int
    busted: bool
    game_finished: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": self.points,
            "busted": self.busted,
            "game_finished": self.game_finished,
        }


@dataclass(frozen=True)
class PlayerSummary:
    points: int
    cards_count: int
    busted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": self.points,
            "cards_count": self.cards_count,
            "busted": self.busted,
        }


@dataclass(frozen=True)
class GameResult:
    """
    Final standings of a finished session.

    `winner` is set only when exactly one non-busted player holds the highest
    score; when several do, they are listed in `tied_players` instead.
    """

    winner: Optional[str]
    tied_players: List[str]
    highest_score: int
    players: Dict[str, PlayerSummary] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winner": self.winner,
            "tied_players": list(self.tied_players),
            "highest_score": self.highest_score,
            "all_players": {
                identity: summary.to_dict() for identity, summary in self.players.items()
            },
        }


def compute_results(session: Session) -> GameResult:
    """Rank the players of a session. Bust is judged from the final score only."""
    summaries = {}
    eligible = []
    for identity in session.turn_order:
        player = session.players[identity]
        points, busted = player.score
        summaries[identity] = PlayerSummary(points, len(player.hand), busted)
        if not busted:
            eligible.append((identity, points))

    if not eligible:
        return GameResult(None, [], 0, summaries)

    highest = max(points for _, points in eligible)
    leaders = [identity for identity, points in eligible if points == highest]
    if len(leaders) == 1:
        return GameResult(leaders[0], [], highest, summaries)
    return GameResult(None, leaders, highest, summaries)


class TurnCoordinator:
    """
    Validates and applies draw, stand, Ace and finish actions.

    Attributes:
        registry: Where sessions are looked up and locked
        events: Emitter for the coordinator's domain events
    """

    def __init__(self, registry: SessionRegistry, events: Optional[EventEmitter] = None):
        self.registry = registry
        self.events = events or registry.events

    def _emit(self, pending: List[Event]) -> None:
        for event_type, data in pending:
            self.events.emit(event_type, data)

    @staticmethod
    def _after_terminal(session: Session, player: PlayerState, pending: List[Event]) -> bool:
        """Move the turn on after `player` became terminal. Returns True if the game ended."""
        was_current = session.current_player == player.identity
        if not was_current:
            return False
        finished = session.advance_turn()
        if finished:
            logger.info(f"Game {session.id} finished, no players left to act")
            pending.append(
                (EngineEventType.GAME_FINISHED, {"game_id": session.id, "reason": "all_players_done"})
            )
        else:
            pending.append(
                (
                    EngineEventType.TURN_CHANGED,
                    {"game_id": session.id, "current_turn_player": session.current_player},
                )
            )
        return finished

    def draw(self, session_id: str, actor: str) -> DrawResult:
        """
        Draw the top card for the player whose turn it is.

        A draw that keeps the player at 21 or below keeps the turn with them.
        A bust ends their turn and moves it on.

        Raises:
            SessionNotFound, SessionFinished, PlayerNotInSession, NotYourTurn
            EmptyDeck: The deck ran out; the session is finished as a result
        """
        pending: List[Event] = []
        try:
            with self.registry.locked(session_id) as session:
                session.require_active()
                player = session.require_turn(actor)
                if session.deck.is_empty():
                    session.finish()
                    logger.warning(f"Game {session_id} ran out of cards, finishing")
                    pending.append(
                        (EngineEventType.GAME_FINISHED, {"game_id": session_id, "reason": "deck_empty"})
                    )
                    raise EmptyDeck()

                card = session.deck.draw()
                player.hand.add_card(card)
                points, busted = player.score
                pending.append(
                    (
                        EngineEventType.CARD_DRAWN,
                        {
                            "game_id": session_id,
                            "email": actor,
                            "card": card.to_dict(),
                            "points": points,
                        },
                    )
                )

                finished = False
                if busted:
                    player.terminal = True
                    logger.debug(f"Player {actor} busted in game {session_id} with {points}")
                    pending.append(
                        (EngineEventType.PLAYER_BUSTED, {"game_id": session_id, "email": actor, "points": points})
                    )
                    finished = self._after_terminal(session, player, pending)

                return DrawResult(
                    card=card,
                    points=points,
                    busted=busted,
                    cards_remaining=session.deck.size,
                    cards_history=player.hand.cards,
                    game_finished=finished,
                )
        finally:
            self._emit(pending)

    def set_ace_value(
        self, session_id: str, actor: str, card_id: str, as_eleven: bool
    ) -> PlayerScore:
        """
        Count one of the actor's Aces as eleven or as one.

        Allowed at any point before the session finishes, whoever's turn it
        is. If the new total busts the player, their turn is over.

        Raises:
            SessionNotFound, SessionFinished, PlayerNotInSession
            CardNotFound: The card is not an Ace in the actor's hand
        """
        pending: List[Event] = []
        try:
            with self.registry.locked(session_id) as session:
                session.require_active()
                player = session.player(actor)
                player.hand.set_ace(card_id, as_eleven)
                points, busted = player.score
                pending.append(
                    (
                        EngineEventType.ACE_CHANGED,
                        {
                            "game_id": session_id,
                            "email": actor,
                            "card_id": card_id,
                            "as_eleven": bool(as_eleven),
                            "points": points,
                        },
                    )
                )
                if busted and not player.terminal:
                    player.terminal = True
                    pending.append(
                        (EngineEventType.PLAYER_BUSTED, {"game_id": session_id, "email": actor, "points": points})
                    )
                    self._after_terminal(session, player, pending)
                return PlayerScore(points, busted)
        finally:
            self._emit(pending)

    def stand(self, session_id: str, actor: str) -> StandResult:
        """
        End the actor's turn and pass it to the next player still in play.

        Raises:
            SessionNotFound, SessionFinished, PlayerNotInSession, NotYourTurn
        """
        pending: List[Event] = []
        try:
            with self.registry.locked(session_id) as session:
                session.require_active()
                player = session.require_turn(actor)
                player.standing = True
                player.terminal = True
                points, busted = player.score
                pending.append(
                    (EngineEventType.PLAYER_STOOD, {"game_id": session_id, "email": actor, "points": points})
                )
                finished = self._after_terminal(session, player, pending)
                return StandResult(points, busted, finished)
        finally:
            self._emit(pending)

    def finish(self, session_id: str) -> GameResult:
        """
        Finish a session immediately, whoever's turn it is.

        Raises:
            SessionNotFound
            SessionFinished: Already finished
        """
        pending: List[Event] = []
        try:
            with self.registry.locked(session_id) as session:
                if session.finished:
                    raise SessionFinished()
                session.finish()
                result = compute_results(session)
                logger.info(f"Game {session_id} finished, winner: {result.winner}")
                pending.append(
                    (
                        EngineEventType.GAME_FINISHED,
                        {"game_id": session_id, "reason": "finished", "result": result.to_dict()},
                    )
                )
                return result
        finally:
            self._emit(pending)

    def results(self, session_id: str) -> GameResult:
        """
        Raises:
            SessionNotFound
            GameNotFinished: The session is still active
        """
        with self.registry.locked(session_id) as session:
            if not session.finished:
                raise GameNotFinished()
            return compute_results(session)

    def state(self, session_id: str) -> Dict[str, Any]:
        """Consistent snapshot of a session."""
        with self.registry.locked(session_id) as session:
            return session.snapshot()
