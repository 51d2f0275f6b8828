"""
This module contains the Deck class, which represents the deck owned by one
game session.

>>> deck = new_shuffled_deck()
>>> deck.size
52
>>> card = deck.draw()
>>> deck.size
51
"""

import random
from typing import Iterator, List, Optional

from cardtable.common.card import Card, Rank, Suit
from cardtable.errors import EmptyDeck

SUITS = [Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS, Suit.SPADES]
RANKS = [
    Rank.TWO,
    Rank.THREE,
    Rank.FOUR,
    Rank.FIVE,
    Rank.SIX,
    Rank.SEVEN,
    Rank.EIGHT,
    Rank.NINE,
    Rank.TEN,
    Rank.JACK,
    Rank.QUEEN,
    Rank.KING,
    Rank.ACE,
]

DECK_SIZE = len(SUITS) * len(RANKS)


class Deck:
    """
    A class representing an ordered deck of cards.

    Cards are drawn from the front. A deck is never refilled once play has
    started; `draw` raises `EmptyDeck` when it runs out.
    """

    def __init__(self, cards: Optional[List[Card]] = None):
        """
        Initialize a Deck instance.

        :param cards: A list of Card instances to populate the deck (optional).
                      If not provided, a fresh unshuffled standard deck is built.
        """
        if cards is None:
            self.cards: List[Card] = self.initialize_default_deck()
        else:
            self.cards = list(cards)

    @staticmethod
    def initialize_default_deck() -> List[Card]:
        """
        Construct a standard deck with every suit and rank combination.

        Every call produces new card instances with new identifiers.
        """
        return [Card(suit, rank) for suit in SUITS for rank in RANKS]

    def shuffle(self, rng: Optional[random.Random] = None) -> "Deck":
        """
        Shuffle the cards in place.

        :param rng: Optional random generator, for reproducible orderings.
        """
        (rng or random).shuffle(self.cards)
        return self

    def draw(self) -> Card:
        """
        Remove and return the front card.

        :raises EmptyDeck: If no cards remain.
        """
        if not self.cards:
            raise EmptyDeck()
        return self.cards.pop(0)

    @property
    def size(self) -> int:
        """
        Return the number of remaining cards in the deck.
        """
        return len(self.cards)

    def is_empty(self) -> bool:
        return not self.cards

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __repr__(self) -> str:
        return f"Deck({[repr(card) for card in self.cards]})"

    def __str__(self) -> str:
        return f"Deck of {len(self.cards)} cards"


def new_shuffled_deck(rng: Optional[random.Random] = None) -> Deck:
    """
    Build all 52 cards in uniformly random order.

    :param rng: Optional random generator. The module-level generator is used
                when omitted; fairness, not unpredictability, is the goal.
    """
    return Deck().shuffle(rng)
