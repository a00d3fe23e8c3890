"""
hearts_cfr/game/cards.py

Playing cards and decks. A card's index (0..51) is its position in the deck
ordered by suit, then rank; the encoder and the wide action space both use it.
"""

from typing import Iterable, List, NamedTuple

import numpy as np

from ..constants import NUM_CARDS, NUM_RANKS, QUEEN_OF_SPADES_POINTS, Rank, Suit


class Card(NamedTuple):
    """A playing card."""

    rank: Rank
    suit: Suit

    def to_index(self) -> int:
        return int(self.suit) * NUM_RANKS + int(self.rank) - int(Rank.TWO)

    @classmethod
    def from_index(cls, index: int) -> "Card":
        if not 0 <= index < NUM_CARDS:
            raise ValueError(f"Card index out of range: {index}")
        suit, offset = divmod(index, NUM_RANKS)
        return cls(Rank(offset + int(Rank.TWO)), Suit(suit))

    @classmethod
    def parse(cls, text: str) -> "Card":
        """Parses a two-character card string such as "QS" or "2C"."""
        if len(text) != 2:
            raise ValueError(f"Invalid card string: {text!r}")
        rank = Rank("23456789TJQKA".index(text[0].upper()) + int(Rank.TWO))
        suit = Suit("CDHS".index(text[1].upper()))
        return cls(rank, suit)

    @property
    def point_value(self) -> int:
        """Hearts point value: 1 per heart, 13 for the queen of spades."""
        if self.suit == Suit.HEARTS:
            return 1
        if self.suit == Suit.SPADES and self.rank == Rank.QUEEN:
            return QUEEN_OF_SPADES_POINTS
        return 0

    def __str__(self) -> str:
        return f"{self.rank.char}{self.suit.char}"

    def __repr__(self) -> str:
        return f"Card({self.rank.char}{self.suit.letter})"


ALL_CARDS: List[Card] = [Card.from_index(i) for i in range(NUM_CARDS)]

TWO_OF_CLUBS = Card(Rank.TWO, Suit.CLUBS)
QUEEN_OF_SPADES = Card(Rank.QUEEN, Suit.SPADES)


def sort_cards(cards: Iterable[Card]) -> List[Card]:
    """Cards in deck order."""
    return sorted(cards, key=Card.to_index)


def shuffle_deck(rng: np.random.Generator) -> List[Card]:
    """Creates a shuffled deck using the given random source."""
    return [ALL_CARDS[i] for i in rng.permutation(NUM_CARDS)]


def cards_to_string(cards: Iterable[Card]) -> str:
    return " ".join(str(card) for card in sort_cards(cards))
