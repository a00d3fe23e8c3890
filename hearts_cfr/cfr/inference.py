"""
hearts_cfr/cfr/inference.py

Resolves traversal nodes with one batched strategy query per tree depth.

The driver keeps a frontier of sibling groups: initially a single group
holding the roots, plus one group per GetUtility node whose children are still
in progress. Each step gathers every GetStrategy node across all groups,
calls the strategy provider once for the whole batch, and resumes each node.
Groups that have fully completed are then folded into their parent's
continuation, most recent group first, so completion cascades toward the
roots. Every node resumed in step s sits at strategy depth s.

Strategy providers:
  - UniformStrategyProvider: uniform over legal actions (before any model exists)
  - ModelStrategyProvider: regret matching on advantage network outputs
"""

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import torch

from ..encoding import encode_batch
from ..game import InformationSet
from ..sample import AdvantageSample
from ..strategy import regret_match, to_narrow, uniform
from .exceptions import InferenceError, TraversalError
from .traversal import Complete, GetStrategy, GetUtility, Node

logger = logging.getLogger(__name__)

StrategyProvider = Callable[[Sequence[InformationSet]], Sequence[np.ndarray]]
StepCallback = Callable[[int, int], None]


class UniformStrategyProvider:
    """Plays uniformly at random over the legal actions."""

    def __call__(self, info_sets: Sequence[InformationSet]) -> List[np.ndarray]:
        return [uniform(len(info_set.legal_actions)) for info_set in info_sets]

    def __repr__(self) -> str:
        return "UniformStrategyProvider()"


class ModelStrategyProvider:
    """
    Computes strategies from a trained advantage network.

    Information sets are encoded and evaluated in chunks of ``batch_size``.
    The predicted advantages of the legal cards are regret-matched into a
    strategy.
    """

    def __init__(
        self,
        network: torch.nn.Module,
        device: torch.device = torch.device("cpu"),
        batch_size: int = 50_000,
    ):
        if batch_size <= 0:
            raise ValueError(f"Inference batch size must be positive, got {batch_size}")
        self.network = network
        self.device = torch.device(device)
        self.batch_size = batch_size

    def advantages(self, info_sets: Sequence[InformationSet]) -> np.ndarray:
        """Raw (N, NUM_ACTIONS) network outputs for the given information sets."""
        features = encode_batch(info_sets)
        self.network.eval()
        chunks = []
        with torch.inference_mode():
            for start in range(0, len(features), self.batch_size):
                batch = torch.from_numpy(features[start : start + self.batch_size])
                output = self.network(batch.to(self.device))
                chunks.append(output.float().cpu().numpy())
        if not chunks:
            return np.empty((0, 0), dtype=np.float32)
        return np.concatenate(chunks)

    def __call__(self, info_sets: Sequence[InformationSet]) -> List[np.ndarray]:
        try:
            advantages = self.advantages(info_sets)
            return [
                regret_match(to_narrow(info_set.legal_actions, advantages[i]))
                for i, info_set in enumerate(info_sets)
            ]
        except Exception as e:
            raise InferenceError(f"Model inference failed: {e}") from e

    def __repr__(self) -> str:
        return f"ModelStrategyProvider(device={self.device}, batch_size={self.batch_size})"


def _infer(
    provider: StrategyProvider, info_sets: List[InformationSet]
) -> List[np.ndarray]:
    """Calls the provider once and validates its output."""
    try:
        strategies = list(provider(info_sets))
    except InferenceError:
        raise
    except Exception as e:
        raise InferenceError(f"Strategy provider failed: {e}") from e

    if len(strategies) != len(info_sets):
        raise InferenceError(
            f"Strategy provider returned {len(strategies)} strategies "
            f"for {len(info_sets)} information sets"
        )
    for info_set, strategy in zip(info_sets, strategies):
        n = len(info_set.legal_actions)
        if np.shape(strategy) != (n,):
            raise InferenceError(
                f"Strategy of shape {np.shape(strategy)} for {n} legal actions"
            )
    return strategies


@dataclass(eq=False)
class _Group:
    """Sibling nodes, optionally owned by a GetUtility node of a parent group."""

    nodes: List[Node]
    parent: Optional[Tuple["_Group", int]] = None
    folded: bool = False

    @property
    def is_complete(self) -> bool:
        return all(isinstance(node, Complete) for node in self.nodes)


def _register(group: _Group, groups: List[_Group], indices: Sequence[int]):
    """Opens a child group for every GetUtility node at the given indices."""
    for i in indices:
        node = group.nodes[i]
        if isinstance(node, GetUtility):
            child = _Group(list(node.children), parent=(group, i))
            groups.append(child)
            _register(child, groups, range(len(child.nodes)))


def _fold(groups: List[_Group]):
    """Feeds completed groups into their parents' continuations."""
    for group in reversed(groups):
        if group.folded or group.parent is None or not group.is_complete:
            continue
        parent_group, i = group.parent
        owner = parent_group.nodes[i]
        if not isinstance(owner, GetUtility):
            raise TraversalError(f"Group owner is {type(owner).__name__}, not GetUtility")
        parent_group.nodes[i] = owner.resume(
            [node.utilities for node in group.nodes],
            [node.samples for node in group.nodes],
        )
        group.folded = True


def complete(
    roots: Sequence[Node],
    provider: StrategyProvider,
    executor: Optional[Executor] = None,
    on_step: Optional[StepCallback] = None,
) -> List[Complete]:
    """
    Resolves the given nodes to Complete results.

    Args:
        roots: One traversal node per deal.
        provider: Batched strategy function, called once per step.
        executor: Optional pool used to apply continuations concurrently.
        on_step: Optional callback receiving (depth, batch size) per step.

    Returns:
        Complete nodes aligned with ``roots``.

    Raises:
        InferenceError: If the provider fails; the whole batch is abandoned.
    """
    root_group = _Group(list(roots))
    groups = [root_group]
    _register(root_group, groups, range(len(root_group.nodes)))
    _fold(groups)

    depth = 0
    while True:
        pending = [
            (group, i)
            for group in groups
            if not group.folded
            for i, node in enumerate(group.nodes)
            if isinstance(node, GetStrategy)
        ]
        if not pending:
            break

        nodes: List[GetStrategy] = [group.nodes[i] for group, i in pending]
        strategies = _infer(provider, [node.info_set for node in nodes])
        if on_step is not None:
            on_step(depth, len(nodes))
        logger.debug("Inference step %d: %d information sets", depth, len(nodes))

        if executor is None:
            resumed = [node.resume(s) for node, s in zip(nodes, strategies)]
        else:
            resumed = list(executor.map(_resume, nodes, strategies))

        touched = {}
        for (group, i), node in zip(pending, resumed):
            group.nodes[i] = node
            touched.setdefault(id(group), (group, []))[1].append(i)
        for group, indices in touched.values():
            _register(group, groups, indices)

        _fold(groups)
        groups = [group for group in groups if not group.folded]
        depth += 1

    if not root_group.is_complete:
        raise TraversalError("Traversal stalled without pending strategy queries")
    return list(root_group.nodes)


def _resume(node: GetStrategy, strategy: np.ndarray) -> Node:
    return node.resume(strategy)


def harvest_samples(results: Sequence[Complete]) -> List[AdvantageSample]:
    """Concatenates the samples of the given results, in order."""
    return [sample for result in results for sample in result.samples]
