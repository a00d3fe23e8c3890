"""Tournaments between Hearts players, used to evaluate trained advantage models."""

import abc
import logging
import time
from typing import Dict, List, Optional

import numpy as np
import torch
from tqdm import tqdm

from .constants import NUM_SEATS, Seat
from .cfr.inference import ModelStrategyProvider
from .game import Card, InformationSet, OpenDeal, Score, deal_random, try_get_score, zero_sum_payoff
from .strategy import sample_action

logger = logging.getLogger(__name__)

# Seat occupied by the challenger in a tournament
CHALLENGER_SEAT = Seat.SOUTH


class Player(abc.ABC):
    """Chooses a card to play from an information set."""

    @abc.abstractmethod
    def choose_play(self, info_set: InformationSet, rng: np.random.Generator) -> Card:
        pass


class RandomPlayer(Player):
    """Plays a uniformly random legal card."""

    def choose_play(self, info_set: InformationSet, rng: np.random.Generator) -> Card:
        legal = info_set.legal_actions
        return legal[int(rng.integers(len(legal)))]

    def __repr__(self) -> str:
        return "RandomPlayer()"


class ModelPlayer(Player):
    """Samples a card from the regret-matched advantages of a trained network."""

    def __init__(self, network: torch.nn.Module, device: torch.device = torch.device("cpu")):
        self.provider = ModelStrategyProvider(network, device, batch_size=1)

    def choose_play(self, info_set: InformationSet, rng: np.random.Generator) -> Card:
        legal = info_set.legal_actions
        if len(legal) == 1:
            return legal[0]
        (strategy,) = self.provider([info_set])
        return legal[sample_action(rng, strategy)]

    def __repr__(self) -> str:
        return f"ModelPlayer(device={self.provider.device})"


def play_deal(
    rng: np.random.Generator, deal: OpenDeal, players: Dict[Seat, Player]
) -> Score:
    """Plays the given deal to completion and returns its final score."""
    while True:
        score = try_get_score(deal)
        if score is not None:
            return score
        info_set = deal.current_info_set()
        card = players[info_set.player].choose_play(info_set, rng)
        deal = deal.add_play(card)


def run_tournament(
    rng: np.random.Generator,
    num_deals: int,
    champion: Player,
    challenger: Player,
    show_progress: bool = False,
) -> float:
    """
    Plays the challenger in the South seat against three copies of the
    champion.

    Returns:
        The challenger's mean zero-sum payoff per deal.
    """
    if num_deals <= 0:
        raise ValueError(f"Number of deals must be positive, got {num_deals}")
    players = {
        seat: challenger if seat == CHALLENGER_SEAT else champion for seat in Seat
    }
    logger.info("--- Starting tournament: %r vs %r, %d deals ---", challenger, champion, num_deals)

    start_time = time.perf_counter()
    total_points = np.zeros(NUM_SEATS, dtype=np.int64)
    payoffs: List[float] = []
    deals = range(num_deals)
    if show_progress:
        deals = tqdm(deals, desc="Simulating Deals", unit="deal")
    for i_deal in deals:
        deal = deal_random(rng, Seat(i_deal % NUM_SEATS))
        score = play_deal(rng, deal, players)
        total_points += np.asarray(score)
        payoffs.append(float(zero_sum_payoff(score)[CHALLENGER_SEAT]))

    elapsed = time.perf_counter() - start_time
    for seat in Seat:
        logger.info("  %s: %d points", seat.name, total_points[seat])
    avg_payoff = float(np.mean(payoffs))
    logger.info(
        "Tournament finished in %.1fs: challenger average payoff %.4f",
        elapsed,
        avg_payoff,
    )
    return avg_payoff


def evaluate_model(
    network: torch.nn.Module,
    num_deals: int,
    device: torch.device = torch.device("cpu"),
    seed: Optional[int] = 0,
) -> float:
    """
    Evaluates a trained network against random players.

    The default seed plays the same deals every time, so results are
    comparable across iterations.
    """
    rng = np.random.default_rng(seed)
    return run_tournament(rng, num_deals, RandomPlayer(), ModelPlayer(network, device))
