"""
Tests for the turn coordinator state machine.

Decks are stacked through the `make_service` fixture so every draw is known.
"""

import pytest

from cardtable.common.card import Card, Rank, Suit
from cardtable.common.deck import Deck
from cardtable.errors import (
    CardNotFound,
    EmptyDeck,
    GameNotFinished,
    NotYourTurn,
    PlayerNotInSession,
    SessionFinished,
    SessionNotFound,
)
from cardtable.events import EngineEventType
from cardtable.service import GameService

A, B, C = "a@x.com", "b@x.com", "c@x.com"


def assert_cards_conserved(service, game_id):
    session = service.registry.get(game_id)
    assert session.deck.size + session.cards_in_hands() == 52


def ace_id(service, game_id, identity):
    hand = service.registry.get(game_id).players[identity].hand
    return next(card.id for card in hand.cards if card.is_ace)


def test_draw_keeps_turn_and_reports_state(make_service):
    service = make_service(Rank.KING, Rank.FIVE)
    game_id = service.create_game(A, [A, B])

    first = service.draw(game_id, A)
    assert first.card.rank is Rank.KING
    assert (first.points, first.busted, first.cards_remaining) == (10, False, 51)
    assert not first.game_finished

    second = service.draw(game_id, A)
    assert second.points == 15
    assert [c.rank for c in second.cards_history] == [Rank.KING, Rank.FIVE]
    assert service.get_state(game_id)["current_turn_player"] == A
    assert_cards_conserved(service, game_id)


def test_turn_order_stand_then_bust_advances(make_service):
    service = make_service(Rank.KING, Rank.QUEEN, Rank.TWO)
    game_id = service.create_game(A, [A, B, C])

    service.stand(game_id, A)
    assert service.get_state(game_id)["current_turn_player"] == B

    service.draw(game_id, B)
    service.draw(game_id, B)
    result = service.draw(game_id, B)
    assert result.busted and result.points == 22
    assert not result.game_finished

    state = service.get_state(game_id)
    assert state["current_turn_player"] == C
    assert state["players"][B]["busted"]
    assert_cards_conserved(service, game_id)


def test_actions_out_of_turn_are_rejected_without_changes(service):
    game_id = service.create_game(A, [A, B])

    with pytest.raises(NotYourTurn) as exc_info:
        service.draw(game_id, B)
    assert exc_info.value.status == 409
    with pytest.raises(NotYourTurn):
        service.stand(game_id, B)

    state = service.get_state(game_id)
    assert state["cards_in_deck"] == 52
    assert state["current_turn_player"] == A
    assert not state["players"][B]["standing"]


def test_unknown_player_and_game(service):
    game_id = service.create_game(A, [A])
    with pytest.raises(PlayerNotInSession):
        service.draw(game_id, "z@x.com")
    with pytest.raises(PlayerNotInSession):
        service.set_ace_value(game_id, "z@x.com", "card", True)
    with pytest.raises(SessionNotFound):
        service.draw("missing", A)


def test_finish_before_any_draws_ties_everyone(service):
    game_id = service.create_game(A, [A, B, C])

    with pytest.raises(GameNotFinished):
        service.results(game_id)

    result = service.finish(game_id)
    assert result.winner is None
    assert result.tied_players == [A, B, C]
    assert result.highest_score == 0
    assert all(s.points == 0 and s.cards_count == 0 and not s.busted for s in result.players.values())

    with pytest.raises(SessionFinished):
        service.finish(game_id)
    assert service.results(game_id) == result


def test_finished_session_rejects_mutations(make_service):
    service = make_service(Rank.ACE)
    game_id = service.create_game(A, [A])
    service.draw(game_id, A)
    card_id = ace_id(service, game_id, A)
    service.finish(game_id)

    with pytest.raises(SessionFinished):
        service.draw(game_id, A)
    with pytest.raises(SessionFinished):
        service.stand(game_id, A)
    with pytest.raises(SessionFinished):
        service.set_ace_value(game_id, A, card_id, False)
    assert_cards_conserved(service, game_id)


def test_ace_toggle_is_reversible(make_service):
    service = make_service(Rank.ACE, Rank.KING)
    game_id = service.create_game(A, [A])
    service.draw(game_id, A)
    service.draw(game_id, A)
    card_id = ace_id(service, game_id, A)

    low = service.set_ace_value(game_id, A, card_id, False)
    assert (low.points, low.busted) == (11, False)
    high = service.set_ace_value(game_id, A, card_id, True)
    assert (high.points, high.busted) == (21, False)
    assert service.get_state(game_id)["players"][A]["ace_values"] == {card_id: True}


def test_ace_toggle_allowed_out_of_turn_but_only_by_owner(make_service):
    service = make_service(Rank.ACE, Rank.KING)
    game_id = service.create_game(A, [A, B])
    service.draw(game_id, A)
    service.stand(game_id, A)
    card_id = ace_id(service, game_id, A)

    assert service.set_ace_value(game_id, A, card_id, False).points == 1

    service.draw(game_id, B)
    with pytest.raises(CardNotFound):
        service.set_ace_value(game_id, B, card_id, True)
    king_id = service.registry.get(game_id).players[B].hand.cards[0].id
    with pytest.raises(CardNotFound):
        service.set_ace_value(game_id, B, king_id, True)


def test_ace_toggle_into_bust_ends_turn(make_service):
    service = make_service(Rank.ACE, Rank.KING, Rank.QUEEN)
    game_id = service.create_game(A, [A, B])
    service.draw(game_id, A)
    card_id = ace_id(service, game_id, A)
    service.set_ace_value(game_id, A, card_id, False)
    service.draw(game_id, A)
    service.draw(game_id, A)

    score = service.set_ace_value(game_id, A, card_id, True)
    assert (score.points, score.busted) == (31, True)
    assert service.get_state(game_id)["current_turn_player"] == B


def test_unbusting_with_ace_does_not_return_the_turn(make_service):
    service = make_service(Rank.KING, Rank.QUEEN, Rank.ACE)
    game_id = service.create_game(A, [A, B])
    service.draw(game_id, A)
    service.draw(game_id, A)
    assert service.draw(game_id, A).busted

    card_id = ace_id(service, game_id, A)
    score = service.set_ace_value(game_id, A, card_id, False)
    assert (score.points, score.busted) == (21, False)
    with pytest.raises(NotYourTurn):
        service.draw(game_id, A)

    service.stand(game_id, B)
    result = service.results(game_id)
    assert result.winner == A
    assert result.highest_score == 21


def test_last_stand_finishes_game(make_service):
    service = make_service(Rank.NINE, Rank.TEN)
    game_id = service.create_game(A, [A, B])
    service.draw(game_id, A)
    assert not service.stand(game_id, A).game_finished
    service.draw(game_id, B)
    outcome = service.stand(game_id, B)

    assert outcome.game_finished
    assert (outcome.points, outcome.busted) == (10, False)
    result = service.results(game_id)
    assert result.winner == B
    assert result.tied_players == []
    assert result.highest_score == 10
    assert result.players[A].points == 9
    with pytest.raises(SessionFinished):
        service.finish(game_id)


def test_last_bust_finishes_game(make_service):
    service = make_service(Rank.KING, Rank.QUEEN, Rank.JACK)
    game_id = service.create_game(A, [A])
    service.draw(game_id, A)
    service.draw(game_id, A)
    result = service.draw(game_id, A)
    assert result.busted and result.game_finished

    final = service.results(game_id)
    assert final.winner is None
    assert final.tied_players == []
    assert final.highest_score == 0
    assert final.players[A].busted


def test_busted_player_never_wins_or_ties(make_service):
    service = make_service(Rank.KING, Rank.QUEEN, Rank.FIVE, Rank.TWO)
    game_id = service.create_game(A, [A, B])
    service.draw(game_id, A)
    service.draw(game_id, A)
    service.draw(game_id, A)
    service.draw(game_id, B)
    service.stand(game_id, B)

    result = service.results(game_id)
    assert result.winner == B
    assert result.highest_score == 2
    assert result.players[A].points == 25


def test_results_report_ties_in_turn_order(make_service):
    service = make_service(Rank.KING, Rank.FIVE, Rank.QUEEN)
    game_id = service.create_game(A, [A, B, C])
    service.draw(game_id, A)
    service.stand(game_id, A)
    service.draw(game_id, B)
    service.stand(game_id, B)
    service.draw(game_id, C)

    result = service.finish(game_id).to_dict()
    assert result["winner"] is None
    assert result["tied_players"] == [A, C]
    assert result["highest_score"] == 10
    assert result["all_players"][B] == {"points": 5, "cards_count": 1, "busted": False}


def test_empty_deck_finishes_session():
    cards = [Card(Suit.HEARTS, Rank.TWO), Card(Suit.CLUBS, Rank.TWO)]
    service = GameService(deck_factory=lambda: Deck(cards))
    game_id = service.create_game(A, [A])
    service.draw(game_id, A)
    service.draw(game_id, A)

    with pytest.raises(EmptyDeck):
        service.draw(game_id, A)
    state = service.get_state(game_id)
    assert state["finished"]
    assert state["players"][A]["points"] == 4
    assert service.results(game_id).winner == A


def test_cards_conserved_through_a_full_game(service):
    game_id = service.create_game(A, [A, B, C])
    for player in (A, B, C):
        while True:
            outcome = service.draw(game_id, player)
            assert_cards_conserved(service, game_id)
            if outcome.busted or outcome.points >= 17:
                break
        if not outcome.busted:
            service.stand(game_id, player)
        assert_cards_conserved(service, game_id)
    assert service.get_state(game_id)["finished"]


def test_bust_emits_events_in_order(make_service):
    service = make_service(Rank.KING, Rank.QUEEN, Rank.TWO)
    game_id = service.create_game(A, [A, B])
    seen = []
    service.events.on_any(lambda payload: seen.append(payload[0]))

    service.draw(game_id, A)
    service.draw(game_id, A)
    service.draw(game_id, A)

    assert seen == [
        EngineEventType.CARD_DRAWN.name,
        EngineEventType.CARD_DRAWN.name,
        EngineEventType.CARD_DRAWN.name,
        EngineEventType.PLAYER_BUSTED.name,
        EngineEventType.TURN_CHANGED.name,
    ]


def test_listener_can_read_state_from_event(make_service):
    service = make_service(Rank.KING)
    game_id = service.create_game(A, [A])
    snapshots = []
    service.events.on(
        EngineEventType.CARD_DRAWN, lambda data: snapshots.append(service.get_state(data["game_id"]))
    )

    service.draw(game_id, A)
    assert snapshots[0]["players"][A]["points"] == 10
