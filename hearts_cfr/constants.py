"""
hearts_cfr/constants.py

Defines core constants and enumerations for the Hearts game and CFR agent.

Includes card ranks/suits, seats, deck geometry, and the fixed sizes shared by
the encoder, the advantage network and the sample store.
"""

import enum


# --- Seats ---
class Seat(enum.IntEnum):
    """A location occupied by a player, in clockwise order."""

    WEST = 0
    NORTH = 1
    EAST = 2
    SOUTH = 3

    def incr(self, n: int) -> "Seat":
        """Nth seat after this one."""
        if n < 0:
            raise ValueError(f"Seat offset must be non-negative, got {n}")
        return Seat((int(self) + n) % NUM_SEATS)

    @property
    def next(self) -> "Seat":
        return self.incr(1)

    def cycle(self):
        """All seats in order, starting with this one."""
        return [self.incr(i) for i in range(NUM_SEATS)]

    @property
    def char(self) -> str:
        return "WNES"[int(self)]


# --- Suits ---
class Suit(enum.IntEnum):
    CLUBS = 0
    DIAMONDS = 1
    HEARTS = 2
    SPADES = 3

    @property
    def char(self) -> str:
        return "♣♦♥♠"[int(self)]

    @property
    def letter(self) -> str:
        return "CDHS"[int(self)]


# --- Ranks ---
class Rank(enum.IntEnum):
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13
    ACE = 14

    @property
    def char(self) -> str:
        return "23456789TJQKA"[int(self) - int(Rank.TWO)]


NUM_SEATS = len(Seat)
NUM_SUITS = len(Suit)
NUM_RANKS = len(Rank)
NUM_CARDS = NUM_SUITS * NUM_RANKS  # 52
NUM_CARDS_PER_HAND = NUM_CARDS // NUM_SEATS  # 13

# Hearts scoring
QUEEN_OF_SPADES_POINTS = NUM_RANKS  # 13
TOTAL_POINTS = NUM_RANKS + QUEEN_OF_SPADES_POINTS  # 26

# Maximum number of legal actions in a single decision (one per card in hand)
MAX_ACTIONS = NUM_CARDS_PER_HAND

# Model output: one advantage per card in the deck ("wide" action space)
NUM_ACTIONS = NUM_CARDS
