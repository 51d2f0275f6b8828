"""
This module defines the `Suit`, `Rank`, and `Card` classes, which are used to represent playing cards.

- `Suit`: An enum representing the four suits of a standard deck of playing
cards: Hearts, Diamonds, Clubs, and Spades.

- `Rank`: An enum representing the thirteen ranks of a standard deck of playing
cards: Two through Ten, Jack, Queen, King, and Ace.

- `Card`: A class representing one dealt playing card. Every card carries its
own identifier so that two sessions, or a player toggling an Ace, can refer to
one physical card instance unambiguously.

This module is part of the `cardtable` package, a server for hosting concurrent
card game sessions.
"""

import uuid
from enum import Enum, unique
from typing import Any, Dict, Optional


@unique
class Suit(Enum):
    """
    Enum for suits in a card deck.
    """

    HEARTS = "♥"
    DIAMONDS = "♦"
    CLUBS = "♣"
    SPADES = "♠"

    @property
    def display_name(self) -> str:
        """The suit name as shown to players, e.g. ``Hearts``."""
        return self.name.capitalize()

    def __str__(self) -> str:
        return self.value


@unique
class Rank(Enum):
    """
    Enum for ranks in a card deck.

    Each member's value is its display label. The scoring value lives in
    `rank_value`, since Jack, Queen and King share a score and would
    otherwise collapse into aliases of Ten.
    """

    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "Jack"
    QUEEN = "Queen"
    KING = "King"
    ACE = "Ace"

    @property
    def rank_value(self) -> int:
        """The value of the rank, used for scoring. An Ace's base value is 11."""
        if self is Rank.ACE:
            return ACE_HIGH
        if self in (Rank.JACK, Rank.QUEEN, Rank.KING):
            return 10
        return int(self.value)

    @property
    def rank_str(self) -> str:
        """A short string representation of the rank."""
        if self in (Rank.JACK, Rank.QUEEN, Rank.KING, Rank.ACE):
            return self.value[0]
        return self.value

    def __str__(self) -> str:
        return self.rank_str


ACE_HIGH = 11
ACE_LOW = 1


class Card:
    """
    Class representing a dealt playing card.

    Cards are immutable once created. The value a player chooses for an Ace
    is tracked on the player's state, not on the card itself.

    >>> card = Card(Suit.HEARTS, Rank.TWO, card_id="c1")
    >>> print(card)
    2 of ♥
    >>> card.value
    2
    """

    __slots__ = ("_id", "_suit", "_rank")

    def __init__(self, suit: Suit, rank: Rank, card_id: Optional[str] = None):
        """
        Initialize a Card instance.

        :param suit: Suit of the card (one of the Suit enums)
        :param rank: Rank of the card (one of the Rank enums)
        :param card_id: Identifier of this card instance. A fresh uuid4 is
                        generated when omitted.
        """
        if not isinstance(suit, Suit):
            raise TypeError(f"Invalid suit: {suit}")
        if not isinstance(rank, Rank):
            raise TypeError(f"Invalid rank: {rank}")
        object.__setattr__(self, "_suit", suit)
        object.__setattr__(self, "_rank", rank)
        object.__setattr__(self, "_id", card_id or str(uuid.uuid4()))

    def __setattr__(self, name, value):
        raise AttributeError("Card instances are immutable")

    @property
    def id(self) -> str:
        return self._id

    @property
    def suit(self) -> Suit:
        return self._suit

    @property
    def rank(self) -> Rank:
        return self._rank

    @property
    def name(self) -> str:
        """Rank label as shown to players, e.g. ``King`` or ``8``."""
        return self._rank.value

    @property
    def value(self) -> int:
        """Base scoring value. Aces report 11 here."""
        return self._rank.rank_value

    @property
    def is_ace(self) -> bool:
        return self._rank is Rank.ACE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the card for the request layer."""
        return {
            "id": self._id,
            "name": self.name,
            "value": self.value,
            "suit": self._suit.display_name,
        }

    def __eq__(self, other):
        """
        Checks if this card is the same card instance as another card.

        :param other: The other card to compare to.
        :return: True if both refer to the same dealt card.
        """
        if isinstance(other, Card):
            return self._id == other._id
        return NotImplemented

    def __hash__(self):
        return hash(self._id)

    def __repr__(self) -> str:
        """
        Provide a machine-readable representation of the card.

        :return: A string representation of the card.
        """
        return f"Card(Suit.{self._suit.name}, Rank.{self._rank.name}, card_id={self._id!r})"

    def __str__(self) -> str:
        """
        Provide a human-readable representation of the card.

        :return: A string representation of the card.
        """
        return f"{self._rank.rank_str} of {self._suit}"
