import pytest

from cardtable.config import ServiceConfig
from cardtable.errors import InvitationNotFound, SessionNotFound
from cardtable.events import EngineEventType


def test_health_counts_games_and_invitations(service):
    assert service.health() == {"status": "healthy", "games": 0, "invitations": 0}
    game_id = service.create_game("a", ["a"])
    service.invite(game_id, "a", "b")
    assert service.health() == {"status": "healthy", "games": 1, "invitations": 1}


def test_is_game_creator(service):
    game_id = service.create_game("host", ["a", "b"])
    assert service.is_game_creator(game_id, "host")
    assert not service.is_game_creator(game_id, "a")
    with pytest.raises(SessionNotFound):
        service.is_game_creator("missing", "host")


def test_remove_game(service):
    removed = []
    service.events.on(EngineEventType.GAME_REMOVED, removed.append)
    game_id = service.create_game("a", ["a"])

    service.remove_game(game_id)

    assert removed == [{"game_id": game_id}]
    with pytest.raises(SessionNotFound):
        service.get_state(game_id)
    with pytest.raises(SessionNotFound):
        service.draw(game_id, "a")


def test_state_snapshot_is_detached(service):
    game_id = service.create_game("a", ["a", "b"])
    state = service.get_state(game_id)
    state["turn_order"].append("intruder")
    state["players"]["a"]["cards_history"].append("fake")
    assert service.get_state(game_id)["turn_order"] == ["a", "b"]
    assert service.get_state(game_id)["players"]["a"]["cards_history"] == []


def test_sweep_expires_forgets_and_purges(make_service, clock):
    service = make_service(
        config=ServiceConfig(
            invitation_retention_seconds=100,
            rate_limit_window_seconds=10,
        )
    )
    game_id = service.create_game("a", ["a"])
    declined = service.invite(game_id, "a", "b")
    service.decline_invitation(declined.id, "b")
    overdue = service.invite(game_id, "a", "c", ttl=5)
    for i in range(20):
        service.admit(f"g{i}", "a")

    clock.advance(6)
    assert service.sweep() == {
        "invitations_expired": 1,
        "invitations_removed": 0,
        "rate_limit_windows_purged": 0,
    }

    clock.advance(200)
    assert service.sweep() == {
        "invitations_expired": 0,
        "invitations_removed": 2,
        "rate_limit_windows_purged": 20,
    }
    assert service.health()["invitations"] == 0
    assert len(service.rate_limiter) == 0
    with pytest.raises(InvitationNotFound):
        service.invitations.get(overdue.id)
