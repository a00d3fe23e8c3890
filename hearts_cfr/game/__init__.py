"""Hearts rules engine: cards, tricks, deals and information sets."""

from .cards import (
    ALL_CARDS,
    QUEEN_OF_SPADES,
    TWO_OF_CLUBS,
    Card,
    cards_to_string,
    shuffle_deck,
    sort_cards,
)
from .engine import (
    ClosedDeal,
    Hand,
    InformationSet,
    OpenDeal,
    Score,
    Trick,
    deal_random,
    final_score,
    legal_actions,
    terminal_payoff,
    try_get_score,
    zero_sum_payoff,
)

__all__ = [
    "ALL_CARDS",
    "QUEEN_OF_SPADES",
    "TWO_OF_CLUBS",
    "Card",
    "ClosedDeal",
    "Hand",
    "InformationSet",
    "OpenDeal",
    "Score",
    "Trick",
    "cards_to_string",
    "deal_random",
    "final_score",
    "legal_actions",
    "shuffle_deck",
    "sort_cards",
    "terminal_payoff",
    "try_get_score",
    "zero_sum_payoff",
]
