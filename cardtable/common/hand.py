"""
This module contains the hand evaluator and the `Hand` class that holds a
player's dealt cards.

Scoring never renormalises Aces on its own. Each Ace counts as 11 until its
owner explicitly flips it to 1, and the owner may flip it back at any time.

Classes and functions:

score: Pure function computing a total and bust flag from cards and Ace choices.
HandScore: Named tuple returned by `score`.
Hand: An append-only sequence of cards plus the owner's Ace choices.
"""
from typing import Dict, Iterable, List, Mapping, NamedTuple

from cardtable.common.card import ACE_HIGH, ACE_LOW, Card
from cardtable.errors import CardNotFound

BUST_THRESHOLD = 21


class HandScore(NamedTuple):
    total: int
    busted: bool


def score(cards: Iterable[Card], ace_choices: Mapping[str, bool]) -> HandScore:
    """
    Compute the total of a hand.

    Args:
        cards: The cards in the hand.
        ace_choices: Maps an Ace's card id to True when it counts as eleven.
            Aces missing from the mapping count as eleven.

    Returns:
        HandScore with the total and whether it exceeds 21.
    """
    total = 0
    for card in cards:
        if card.is_ace:
            total += ACE_HIGH if ace_choices.get(card.id, True) else ACE_LOW
        else:
            total += card.value
    return HandScore(total, total > BUST_THRESHOLD)


class Hand:
    """
    The cards dealt to one player, in the order they were dealt.

    Cards can only be added, never removed.
    """

    def __init__(self):
        self._cards: List[Card] = []
        self._ace_choices: Dict[str, bool] = {}

    @property
    def cards(self) -> List[Card]:
        """Returns a copy of the cards in the hand."""
        return list(self._cards)

    @property
    def ace_choices(self) -> Dict[str, bool]:
        """Returns a copy of the Ace choices, card id -> counts as eleven."""
        return dict(self._ace_choices)

    def add_card(self, card: Card) -> None:
        """
        Adds a card to the hand. A new Ace starts out counting as eleven.

        Args:
            card: The card to add.
        """
        self._cards.append(card)
        if card.is_ace:
            self._ace_choices[card.id] = True

    def set_ace(self, card_id: str, as_eleven: bool) -> None:
        """
        Choose whether an Ace in this hand counts as eleven or one.

        Raises:
            CardNotFound: If the card is not in this hand or is not an Ace.
        """
        if card_id not in self._ace_choices:
            raise CardNotFound(card_id)
        self._ace_choices[card_id] = bool(as_eleven)

    def score(self) -> HandScore:
        return score(self._cards, self._ace_choices)

    def __len__(self) -> int:
        return len(self._cards)

    def __repr__(self) -> str:
        return f"Hand({self._cards!r})"

    def __str__(self) -> str:
        return ", ".join(str(card) for card in self._cards)
