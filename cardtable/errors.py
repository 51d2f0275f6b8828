"""
Error taxonomy for the cardtable core.

Every failure the core can report is a subclass of `CardtableError`. Each
class carries a stable machine-readable `code` and the HTTP-equivalent
`status` the request layer should answer with, so callers never need their
own mapping table.
"""

from typing import Any, Dict, Optional


class CardtableError(Exception):
    """Base class for all expected, caller-recoverable failures."""

    code = "INTERNAL_ERROR"
    status = 500
    default_message = "Internal error"

    def __init__(
        self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured form used in error responses."""
        return {
            "code": self.code,
            "message": self.message,
            "details": {key: str(value) for key, value in self.details.items()},
        }


# Session errors


class SessionNotFound(CardtableError):
    code = "GAME_NOT_FOUND"
    status = 404

    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(
            f"Game {session_id} not found", details={"game_id": session_id}
        )


class InvalidParticipantCount(CardtableError):
    """Player count outside the configured bounds."""

    code = "INVALID_PLAYER_COUNT"
    status = 400
    default_message = "Invalid number of players"

    def __init__(self, provided: int, minimum: int, maximum: int):
        super().__init__(
            details={"min": minimum, "max": maximum, "provided": provided}
        )


class DuplicateParticipant(CardtableError):
    code = "DUPLICATE_PLAYER"
    status = 409

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(
            f"Player {identity} is already in the game", details={"email": identity}
        )


class PlayerNotInSession(CardtableError):
    code = "PLAYER_NOT_IN_GAME"
    status = 404

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(
            f"Player {identity} is not in this game", details={"email": identity}
        )


class NotYourTurn(CardtableError):
    code = "NOT_YOUR_TURN"
    status = 409
    default_message = "It's not your turn"

    def __init__(self, identity: str, current: Optional[str]):
        super().__init__(details={"email": identity, "current_turn": current or ""})


class SessionFinished(CardtableError):
    """Raised by mutating operations once a session is finished."""

    code = "GAME_FINISHED"
    status = 403
    default_message = "Game is already finished"


# The finish operation reports the same condition under this name.
GameFinished = SessionFinished


class GameNotFinished(CardtableError):
    code = "GAME_NOT_FINISHED"
    status = 409
    default_message = "Game is not finished yet"


# Card errors


class EmptyDeck(CardtableError):
    code = "DECK_EMPTY"
    status = 409
    default_message = "No cards left in the deck"


class CardNotFound(CardtableError):
    code = "CARD_NOT_FOUND"
    status = 404

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(
            f"Ace {card_id} not found in hand", details={"card_id": card_id}
        )


# Invitation errors


class InvitationNotFound(CardtableError):
    code = "INVITATION_NOT_FOUND"
    status = 404

    def __init__(self, invitation_id: str):
        self.invitation_id = invitation_id
        super().__init__(
            f"Invitation {invitation_id} not found",
            details={"invitation_id": invitation_id},
        )


class InvitationNotPending(CardtableError):
    code = "INVITATION_NOT_PENDING"
    status = 409

    def __init__(self, invitation_id: str, status):
        self.invitation_id = invitation_id
        super().__init__(
            f"Invitation {invitation_id} is {status}",
            details={"invitation_id": invitation_id, "status": status},
        )


class NotSessionCreator(CardtableError):
    code = "NOT_CREATOR"
    status = 403
    default_message = "Only the game creator can send invitations"


class NotInvitee(CardtableError):
    code = "NOT_INVITEE"
    status = 403
    default_message = "This invitation is not for you"


# Request layer errors


class RateLimitExceeded(CardtableError):
    code = "RATE_LIMIT_EXCEEDED"
    status = 429

    def __init__(self, key: str, window_seconds: float, max_requests: int):
        self.key = key
        super().__init__(
            f"Too many requests, limit is {max_requests} per {window_seconds:g}s",
            details={"window_seconds": window_seconds, "max_requests": max_requests},
        )


class InvalidRequest(CardtableError):
    code = "INVALID_REQUEST"
    status = 400
    default_message = "Malformed request"
