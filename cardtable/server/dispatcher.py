"""
Request dispatcher for the cardtable server.

Turns a decoded client message into a `GameService` call and the call's
outcome into a response envelope. Core errors become structured error
responses carrying their code and HTTP-equivalent status. Session-scoped
mutating actions are checked against the rate limiter first.
"""

from typing import Any, Callable, Dict, Optional
import logging

from cardtable.errors import CardtableError, InvalidRequest
from cardtable.service import GameService

logger = logging.getLogger("cardtable.server.dispatcher")


def ok(data: Any, status: int = 200) -> Dict[str, Any]:
    return {"ok": True, "status": status, "data": data}


def error(exc: CardtableError) -> Dict[str, Any]:
    return {"ok": False, "status": exc.status, "error": exc.to_dict()}


def _require(data: Dict[str, Any], name: str, kind=str):
    value = data.get(name)
    if value is None or not isinstance(value, kind):
        raise InvalidRequest(f"Field '{name}' is required", {"field": name})
    return value


class RequestDispatcher:
    """
    Routes actions to the game service.

    Every handler receives the already-authenticated actor identity and the
    message's ``data`` dict.
    """

    # Actions that mutate a session and count against the rate limit.
    RATE_LIMITED = frozenset({"draw", "set_ace", "stand", "finish", "invite"})

    def __init__(self, service: GameService):
        self.service = service
        self._handlers: Dict[str, Callable[[str, Dict[str, Any]], Dict[str, Any]]] = {
            "health": self._health,
            "create_game": self._create_game,
            "get_state": self._get_state,
            "draw": self._draw,
            "set_ace": self._set_ace,
            "stand": self._stand,
            "finish": self._finish,
            "results": self._results,
            "invite": self._invite,
            "pending_invitations": self._pending_invitations,
            "accept_invitation": self._accept_invitation,
            "decline_invitation": self._decline_invitation,
        }

    @property
    def actions(self):
        return sorted(self._handlers)

    def handle(self, actor: Optional[str], message: Dict[str, Any]) -> Dict[str, Any]:
        """
        Dispatch one message.

        Args:
            actor: Verified identity of the caller, or None before connect
            message: ``{"action": <name>, "data": {...}}``

        Returns:
            ``{"ok": True, "status": 200, "data": ...}`` or
            ``{"ok": False, "status": <int>, "error": {...}}``
        """
        action = message.get("action") if isinstance(message, dict) else None
        try:
            handler = self._handlers.get(action)
            if handler is None:
                raise InvalidRequest(f"Unknown action: {action}", {"action": action})
            data = message.get("data") or {}
            if not isinstance(data, dict):
                raise InvalidRequest("Field 'data' must be an object")
            if action != "health" and not actor:
                raise InvalidRequest("Not connected")
            if action in self.RATE_LIMITED:
                self.service.admit(_require(data, "game_id"), actor)
            return handler(actor, data)
        except CardtableError as exc:
            logger.debug(f"{action} by {actor} rejected: {exc.code}")
            return error(exc)
        except Exception:
            logger.error(f"Unhandled error while handling {action}", exc_info=True)
            return {
                "ok": False,
                "status": 500,
                "error": {"code": "INTERNAL_ERROR", "message": "Internal error", "details": {}},
            }

    def _health(self, actor, data):
        return ok(self.service.health())

    def _create_game(self, actor, data):
        emails = data.get("emails")
        if not isinstance(emails, list) or not all(isinstance(e, str) for e in emails):
            raise InvalidRequest("Field 'emails' must be a list of strings", {"field": "emails"})
        game_id = self.service.create_game(actor, emails)
        return ok(
            {
                "game_id": game_id,
                "message": "Game created successfully",
                "player_count": len(emails),
            },
            status=201,
        )

    def _get_state(self, actor, data):
        return ok(self.service.get_state(_require(data, "game_id")))

    def _draw(self, actor, data):
        return ok(self.service.draw(data["game_id"], actor).to_dict())

    def _set_ace(self, actor, data):
        card_id = _require(data, "card_id")
        as_eleven = _require(data, "as_eleven", bool)
        return ok(self.service.set_ace_value(data["game_id"], actor, card_id, as_eleven).to_dict())

    def _stand(self, actor, data):
        response = self.service.stand(data["game_id"], actor).to_dict()
        response["message"] = "Player stood successfully"
        return ok(response)

    def _finish(self, actor, data):
        return ok(self.service.finish(data["game_id"]).to_dict())

    def _results(self, actor, data):
        return ok(self.service.results(_require(data, "game_id")).to_dict())

    def _invite(self, actor, data):
        invitee = _require(data, "invitee_email")
        ttl = data.get("timeout_seconds")
        if ttl is not None and (isinstance(ttl, bool) or not isinstance(ttl, (int, float))):
            raise InvalidRequest("Field 'timeout_seconds' must be a number", {"field": "timeout_seconds"})
        invitation = self.service.invite(data["game_id"], actor, invitee, ttl)
        return ok(
            {
                "invitation_id": invitation.id,
                "invitee_email": invitation.invitee,
                "expires_at": invitation.expires_at,
                "message": "Invitation sent successfully",
            },
            status=201,
        )

    def _pending_invitations(self, actor, data):
        invitations = self.service.pending_invitations(actor)
        return ok({"invitations": [inv.to_dict() for inv in invitations]})

    def _accept_invitation(self, actor, data):
        invitation = self.service.accept_invitation(_require(data, "invitation_id"), actor)
        return ok(
            {
                "game_id": invitation.session_id,
                "message": "Invitation accepted, joined game successfully",
            }
        )

    def _decline_invitation(self, actor, data):
        self.service.decline_invitation(_require(data, "invitation_id"), actor)
        return ok({"message": "Invitation declined"})
