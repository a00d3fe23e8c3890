"""
hearts_cfr/cfr/traversal.py

External-sampling CFR traversal expressed as a resumable computation.

Instead of querying a strategy function directly, ``traverse`` returns a node
that states what it needs next:

  - GetStrategy: a strategy for ``info_set`` is required to continue.
  - GetUtility: the node branched into ``children`` and is waiting for all of
    them to complete.
  - Complete: per-seat utilities plus the advantage samples harvested in the
    subtree.

A driver (see ``inference.complete``) resolves nodes by batching strategy
queries. Each continuation may be resumed exactly once.

At strategy depth k a node is fully expanded with probability D / (D + k),
where D is the sample decay. Otherwise a single action is sampled from the
strategy and no advantage sample is produced at that node. Forced moves (one
legal action) are played immediately and do not count as depth.
"""

from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Sequence

import numpy as np

from ..constants import NUM_SEATS
from ..game import Card, InformationSet, OpenDeal, terminal_payoff
from ..sample import AdvantageSample
from ..strategy import sample_action, to_wide
from .exceptions import TraversalError


class Continuation:
    """Wraps a resume function so that it can be invoked only once."""

    __slots__ = ("_fn", "_used")

    def __init__(self, fn: Callable):
        self._fn = fn
        self._used = False

    @property
    def used(self) -> bool:
        return self._used

    def __call__(self, *args) -> "Node":
        if self._used:
            raise TraversalError("Continuation has already been resumed")
        self._used = True
        fn, self._fn = self._fn, None
        return fn(*args)


class Node:
    """Base class of traversal nodes."""

    __slots__ = ()


@dataclass(eq=False)
class GetStrategy(Node):
    """Waiting for a strategy over the legal actions of ``info_set``."""

    info_set: InformationSet
    continuation: Continuation = field(repr=False)
    depth: int = 0

    def resume(self, strategy: np.ndarray) -> Node:
        return self.continuation(strategy)


@dataclass(eq=False)
class GetUtility(Node):
    """Waiting for every child to complete."""

    info_set: InformationSet
    children: List[Node]
    continuation: Continuation = field(repr=False)

    def resume(
        self, utilities: Sequence[np.ndarray], samples: Sequence[List[AdvantageSample]]
    ) -> Node:
        return self.continuation(utilities, samples)


@dataclass(eq=False)
class Complete(Node):
    """Terminal result of a subtree."""

    utilities: np.ndarray  # (NUM_SEATS,) float32
    samples: List[AdvantageSample] = field(default_factory=list)


def exact_expansion_probability(sample_decay: float, depth: int) -> float:
    """Probability of fully expanding a node at the given strategy depth."""
    if depth < 0:
        raise ValueError(f"Depth must be non-negative, got {depth}")
    if depth == 0:
        return 1.0
    return sample_decay / (sample_decay + depth)


def traverse(
    iteration: int,
    deal: OpenDeal,
    rng: np.random.Generator,
    sample_decay: float,
) -> Node:
    """
    Starts a traversal of the given deal.

    Args:
        iteration: 1-based CFR iteration, used to weight samples.
        deal: Deal in progress, usually at its first play.
        rng: Random source owned by this traversal.
        sample_decay: Decay constant D of the exact expansion probability.
    """
    if iteration < 1:
        raise TraversalError(f"Iteration must be 1-based, got {iteration}")
    return _Traversal(iteration, sample_decay).visit(deal, rng, 0)


class _Traversal:
    __slots__ = ("iteration", "sample_decay")

    def __init__(self, iteration: int, sample_decay: float):
        self.iteration = iteration
        self.sample_decay = sample_decay

    def visit(self, deal: OpenDeal, rng: np.random.Generator, depth: int) -> Node:
        # play forced moves without consulting a strategy
        while True:
            payoff = terminal_payoff(deal)
            if payoff is not None:
                return Complete(payoff, [])
            info_set = deal.current_info_set()
            legal = info_set.legal_actions
            if not legal:
                raise TraversalError("Empty legal action set at a non-terminal deal")
            if len(legal) > 1:
                break
            deal = deal.add_play(legal[0])

        exact = rng.random() < exact_expansion_probability(self.sample_decay, depth)
        resume = self._expand if exact else self._sample
        return GetStrategy(
            info_set, Continuation(partial(resume, deal, info_set, rng, depth)), depth
        )

    def _check_strategy(self, info_set: InformationSet, strategy: np.ndarray) -> np.ndarray:
        strategy = np.asarray(strategy, dtype=np.float32)
        n = len(info_set.legal_actions)
        if strategy.shape != (n,):
            raise TraversalError(
                f"Strategy shape {strategy.shape} does not match {n} legal actions"
            )
        return strategy

    def _sample(
        self,
        deal: OpenDeal,
        info_set: InformationSet,
        rng: np.random.Generator,
        depth: int,
        strategy: np.ndarray,
    ) -> Node:
        strategy = self._check_strategy(info_set, strategy)
        card = info_set.legal_actions[sample_action(rng, strategy)]
        return self.visit(deal.add_play(card), rng, depth + 1)

    def _expand(
        self,
        deal: OpenDeal,
        info_set: InformationSet,
        rng: np.random.Generator,
        depth: int,
        strategy: np.ndarray,
    ) -> Node:
        strategy = self._check_strategy(info_set, strategy)
        legal = info_set.legal_actions
        child_rngs = rng.spawn(len(legal))
        children = [
            self.visit(deal.add_play(card), child_rng, depth + 1)
            for card, child_rng in zip(legal, child_rngs)
        ]
        resume = partial(self._aggregate, info_set, legal, strategy)
        return GetUtility(info_set, children, Continuation(resume))

    def _aggregate(
        self,
        info_set: InformationSet,
        legal: List[Card],
        strategy: np.ndarray,
        utilities: Sequence[np.ndarray],
        samples: Sequence[List[AdvantageSample]],
    ) -> Complete:
        if len(utilities) != len(legal) or len(samples) != len(legal):
            raise TraversalError(
                f"Expected {len(legal)} child results, got {len(utilities)} utilities "
                f"and {len(samples)} sample lists"
            )
        # one column per action
        matrix = np.stack(utilities, axis=1).astype(np.float32)
        if matrix.shape != (NUM_SEATS, len(legal)):
            raise TraversalError(f"Unexpected child utility shape {matrix.shape}")
        utility = matrix @ strategy

        player = info_set.player
        regrets = matrix[player] - utility[player]
        sample = AdvantageSample.create(info_set, to_wide(legal, regrets), self.iteration)

        harvested = [s for child_samples in samples for s in child_samples]
        harvested.append(sample)
        return Complete(utility, harvested)
