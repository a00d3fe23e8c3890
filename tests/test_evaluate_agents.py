"""
tests/test_evaluate_agents.py

Tests for players, deal playouts and tournaments.
"""

import numpy as np
import pytest
import torch

from hearts_cfr.constants import Seat
from hearts_cfr.evaluate_agents import (
    ModelPlayer,
    RandomPlayer,
    evaluate_model,
    play_deal,
    run_tournament,
)
from hearts_cfr.game import deal_random
from hearts_cfr.networks import AdvantageNetwork


def test_random_player_plays_legal_cards(deal, rng):
    player = RandomPlayer()
    for _ in range(20):
        info_set = deal.current_info_set()
        assert player.choose_play(info_set, rng) in info_set.legal_actions


def test_model_player_plays_legal_cards(rng):
    player = ModelPlayer(AdvantageNetwork(hidden_dim=16, num_hidden_layers=1))
    deal = deal_random(rng, Seat.EAST)
    for _ in range(52):
        info_set = deal.current_info_set()
        card = player.choose_play(info_set, rng)
        assert card in info_set.legal_actions
        deal = deal.add_play(card)
    assert deal.closed_deal.is_complete


def test_play_deal_scores(rng):
    players = {seat: RandomPlayer() for seat in Seat}
    for i in range(10):
        score = play_deal(rng, deal_random(rng, Seat(i % 4)), players)
        assert len(score) == 4
        # 26 normally, 78 after shooting the moon
        assert sum(score) in (26, 78)


def test_random_tournament_is_near_zero():
    payoff = run_tournament(np.random.default_rng(0), 200, RandomPlayer(), RandomPlayer())
    assert isinstance(payoff, float)
    assert abs(payoff) < 3.0


def test_tournament_requires_deals(rng):
    with pytest.raises(ValueError):
        run_tournament(rng, 0, RandomPlayer(), RandomPlayer())


def test_evaluate_model_is_repeatable():
    torch.manual_seed(0)
    network = AdvantageNetwork(hidden_dim=16, num_hidden_layers=1)
    assert evaluate_model(network, 5) == evaluate_model(network, 5)
