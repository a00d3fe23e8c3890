"""
hearts_cfr/encoding.py

Converts an InformationSet into a fixed-size bit vector for Deep CFR.

Feature vector layout (276 bits total):
  - Own hand:                      52 (multi-hot by card index)
  - Unseen unplayed cards:         52 (unplayed cards not in own hand)
  - Current trick:             3 x 52 (one-hot per card, chronological)
  - Voids of other seats:      4 x 3  (suit-major, seats relative to player)
  - Seats with points taken:        4 (starting with the player)

Every seat-dependent feature is rotated so the acting seat is always "self",
which lets one network serve all four seats.

Action space: 52 fixed indices, one per card in the deck.
"""

from typing import Iterable, Sequence

import numpy as np

from .cfr.exceptions import EncodingError
from .constants import NUM_CARDS, NUM_SEATS, NUM_SUITS
from .game import Card, InformationSet

# --- Constants ---
TRICK_SLOTS = NUM_SEATS - 1  # a trick in progress never holds four cards
VOID_DIM = (NUM_SEATS - 1) * NUM_SUITS
SCORE_DIM = NUM_SEATS

INPUT_DIM = (
    NUM_CARDS  # own hand
    + NUM_CARDS  # unseen unplayed cards
    + TRICK_SLOTS * NUM_CARDS  # current trick
    + VOID_DIM  # voids
    + SCORE_DIM  # score
)  # 276

# Offsets of each section within the feature vector
HAND_OFFSET = 0
UNSEEN_OFFSET = HAND_OFFSET + NUM_CARDS
TRICK_OFFSET = UNSEEN_OFFSET + NUM_CARDS
VOID_OFFSET = TRICK_OFFSET + TRICK_SLOTS * NUM_CARDS
SCORE_OFFSET = VOID_OFFSET + VOID_DIM

__all__ = [
    "INPUT_DIM",
    "encode",
    "encode_batch",
]


def _set_cards(features: np.ndarray, offset: int, cards: Iterable[Card]):
    for card in cards:
        features[offset + card.to_index()] = True


def encode(info_set: InformationSet) -> np.ndarray:
    """
    Encode an information set into a fixed-size feature vector.

    Args:
        info_set: The acting player's view of the deal.

    Returns:
        np.ndarray of shape (276,) with bool dtype.

    Raises:
        EncodingError: If the deal has no trick in progress.
    """
    deal = info_set.deal
    player = info_set.player
    trick = deal.current_trick
    if trick is None:
        raise EncodingError("Cannot encode an information set without a current trick")

    features = np.zeros(INPUT_DIM, dtype=bool)

    # --- Own hand ---
    _set_cards(features, HAND_OFFSET, info_set.hand)

    # --- Unplayed cards not in own hand ---
    _set_cards(features, UNSEEN_OFFSET, deal.unplayed_cards - info_set.hand)

    # --- Current trick: one slot per card played so far ---
    if len(trick.cards) > TRICK_SLOTS:
        raise EncodingError(f"Trick in progress has {len(trick.cards)} cards")
    for slot, card in enumerate(trick.cards):
        features[TRICK_OFFSET + slot * NUM_CARDS + card.to_index()] = True

    # --- Voids of the other seats ---
    for seat, suit in deal.voids:
        if seat != player:
            suit_offset = (NUM_SEATS - 1) * int(suit)
            seat_offset = (int(seat) - int(player) - 1) % NUM_SEATS
            features[VOID_OFFSET + suit_offset + seat_offset] = True

    # --- Points taken, starting with the player ---
    for i, seat in enumerate(player.cycle()):
        features[SCORE_OFFSET + i] = deal.score[seat] > 0

    return features


def encode_batch(info_sets: Sequence[InformationSet]) -> np.ndarray:
    """Encodes several information sets as an (N, INPUT_DIM) float32 array."""
    batch = np.zeros((len(info_sets), INPUT_DIM), dtype=np.float32)
    for i, info_set in enumerate(info_sets):
        batch[i] = encode(info_set)
    return batch
