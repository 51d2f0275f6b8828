"""
Cards, decks and hand scoring shared by every game session.
"""

from cardtable.common.card import Card, Rank, Suit
from cardtable.common.deck import DECK_SIZE, Deck, new_shuffled_deck
from cardtable.common.hand import Hand, HandScore, score

__all__ = [
    "Card",
    "Rank",
    "Suit",
    "Deck",
    "DECK_SIZE",
    "new_shuffled_deck",
    "Hand",
    "HandScore",
    "score",
]
