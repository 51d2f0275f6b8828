"""
Pytest configuration and shared fixtures.

Games in tests are dealt from stacked decks so that outcomes are known in
advance, and time comes from a fake clock instead of sleeping.
"""

import pytest

from cardtable.common.card import Rank
from cardtable.common.deck import Deck
from cardtable.config import ServiceConfig
from cardtable.service import GameService


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_deck(*ranks: Rank) -> Deck:
    """A full 52-card deck whose first cards have the given ranks, in order."""
    cards = Deck.initialize_default_deck()
    front = []
    for rank in ranks:
        card = next(c for c in cards if c.rank is rank)
        cards.remove(card)
        front.append(card)
    return Deck(front + cards)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stacked_deck():
    return make_deck


@pytest.fixture
def make_service(clock):
    """Build a GameService whose games are dealt from `make_deck(*ranks)`."""

    def factory(*ranks, config=None):
        return GameService(
            config=config or ServiceConfig(),
            deck_factory=lambda: make_deck(*ranks),
            clock=clock,
        )

    return factory


@pytest.fixture
def service(make_service):
    return make_service()
