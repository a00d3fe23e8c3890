"""
tests/test_encoding.py

Tests for the information set encoder (layout, rotation, error cases).
"""

import dataclasses

import numpy as np
import pytest

from hearts_cfr.cfr.exceptions import EncodingError
from hearts_cfr.constants import NUM_CARDS, Seat
from hearts_cfr.encoding import (
    HAND_OFFSET,
    INPUT_DIM,
    SCORE_OFFSET,
    TRICK_OFFSET,
    UNSEEN_OFFSET,
    VOID_OFFSET,
    encode,
    encode_batch,
)
from hearts_cfr.game import TWO_OF_CLUBS, Card, ClosedDeal, InformationSet


def cards(text: str):
    return frozenset(Card.parse(c) for c in text.split())


def section(features: np.ndarray, offset: int, size: int) -> np.ndarray:
    return features[offset : offset + size]


def test_input_dim():
    assert INPUT_DIM == 276
    assert SCORE_OFFSET + 4 == INPUT_DIM


def test_opening_info_set(deal):
    info_set = deal.current_info_set()
    features = encode(info_set)
    assert features.shape == (INPUT_DIM,)
    assert features.dtype == bool
    assert section(features, HAND_OFFSET, NUM_CARDS).sum() == 13
    assert section(features, UNSEEN_OFFSET, NUM_CARDS).sum() == 39
    assert not features[TRICK_OFFSET:].any()
    for card in info_set.hand:
        assert features[HAND_OFFSET + card.to_index()]
        assert not features[UNSEEN_OFFSET + card.to_index()]


def test_trick_cards_are_chronological(deal):
    deal = deal.add_play(TWO_OF_CLUBS)
    info_set = deal.current_info_set()
    legal = info_set.legal_actions
    deal = deal.add_play(legal[0])
    features = encode(deal.current_info_set())

    assert features[TRICK_OFFSET + TWO_OF_CLUBS.to_index()]
    assert features[TRICK_OFFSET + NUM_CARDS + legal[0].to_index()]
    assert section(features, TRICK_OFFSET, 3 * NUM_CARDS).sum() == 2
    # played cards are no longer unseen
    assert section(features, UNSEEN_OFFSET, NUM_CARDS).sum() == 52 - 2 - 13


def test_void_bits_are_relative_to_player():
    deal = (
        ClosedDeal(Seat.WEST)
        .start_play(Seat.NORTH)
        .add_play(TWO_OF_CLUBS)
        .add_play(Card.parse("3D"))  # EAST shows out of clubs
    )
    # SOUTH sees EAST two seats to its left
    features = encode(InformationSet(Seat.SOUTH, cards("4C 9H"), deal))
    voids = section(features, VOID_OFFSET, 12)
    assert voids.sum() == 1
    assert voids[0 * 3 + 2]

    # NORTH sees EAST as the next seat
    features = encode(InformationSet(Seat.NORTH, cards("5C"), deal))
    voids = section(features, VOID_OFFSET, 12)
    assert voids.sum() == 1
    assert voids[0]


def test_own_void_is_not_encoded():
    deal = (
        ClosedDeal(Seat.WEST)
        .start_play(Seat.NORTH)
        .add_play(TWO_OF_CLUBS)
        .add_play(Card.parse("3D"))
    )
    features = encode(InformationSet(Seat.EAST, cards("4D"), deal))
    assert not section(features, VOID_OFFSET, 12).any()


def test_score_bits_start_with_player():
    deal = dataclasses.replace(
        ClosedDeal(Seat.WEST).start_play(Seat.WEST), score=(0, 5, 0, 0)
    )
    features = encode(InformationSet(Seat.SOUTH, cards("2C"), deal))
    # SOUTH, WEST, NORTH, EAST
    assert list(features[SCORE_OFFSET:]) == [False, False, True, False]


def test_no_current_trick_raises():
    with pytest.raises(EncodingError):
        encode(InformationSet(Seat.WEST, frozenset(), ClosedDeal(Seat.WEST)))


def test_encode_batch(deal):
    info_set = deal.current_info_set()
    batch = encode_batch([info_set, info_set])
    assert batch.shape == (2, INPUT_DIM)
    assert batch.dtype == np.float32
    np.testing.assert_array_equal(batch[0], encode(info_set).astype(np.float32))
