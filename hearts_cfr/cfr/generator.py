"""
hearts_cfr/cfr/generator.py

Generates advantage samples for one training iteration.

Deals are processed in batches of ``deal_batch_size``. Each deal owns a
random generator seeded from (seed, iteration, batch index, deal index), so
generation is reproducible regardless of thread scheduling. A batch is
traversed, resolved by the inference driver with one strategy query per
depth, and then ingested into the sample store and the reservoir on the
calling thread.
"""

import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import List, Optional

import numpy as np
from tqdm import tqdm

from ..config import Config
from ..constants import NUM_SEATS, Seat
from ..game import OpenDeal, deal_random
from ..reservoir import Reservoir
from ..sample import AdvantageSample
from ..sample_store import AdvantageSampleStore
from .inference import StrategyProvider, complete, harvest_samples
from .traversal import traverse

logger = logging.getLogger(__name__)


def deal_rng(seed: int, iteration: int, batch_index: int, deal_index: int) -> np.random.Generator:
    """Independent random source for one deal."""
    return np.random.default_rng(
        np.random.SeedSequence([seed, iteration, batch_index, deal_index])
    )


def create_deal(rng: np.random.Generator, deal_number: int) -> OpenDeal:
    """Deals random hands; the dealer rotates with the deal number."""
    return deal_random(rng, Seat(deal_number % NUM_SEATS))


def batch_sizes(num_deals: int, batch_size: int) -> List[int]:
    """Splits deals into full batches plus a smaller final batch if needed."""
    full, runt = divmod(num_deals, batch_size)
    return [batch_size] * full + ([runt] if runt else [])


def generate_batch(
    iteration: int,
    batch_index: int,
    num_deals: int,
    first_deal_number: int,
    sample_decay: float,
    seed: int,
    provider: StrategyProvider,
    executor: Optional[Executor] = None,
) -> List[AdvantageSample]:
    """
    Traverses one batch of deals and returns their samples, in deal order.

    Raises:
        InferenceError: If the provider fails; no samples are returned.
    """
    roots = []
    for deal_index in range(num_deals):
        rng = deal_rng(seed, iteration, batch_index, deal_index)
        deal = create_deal(rng, first_deal_number + deal_index)
        roots.append(traverse(iteration, deal, rng, sample_decay))

    def on_step(depth: int, size: int):
        logger.debug("Batch %d, depth %d: %d strategy queries", batch_index, depth, size)

    results = complete(roots, provider, executor=executor, on_step=on_step)
    return harvest_samples(results)


def generate_samples(
    cfg: Config,
    iteration: int,
    provider: StrategyProvider,
    store: AdvantageSampleStore,
    reservoir: Optional[Reservoir] = None,
) -> int:
    """
    Generates samples for the given 1-based iteration.

    Samples are appended to ``store`` and added to ``reservoir`` after each
    batch completes.

    Returns:
        Number of samples generated.
    """
    gen_cfg = cfg.generation
    sizes = batch_sizes(gen_cfg.num_deals_per_iteration, gen_cfg.deal_batch_size)
    logger.info(
        "Generating samples for iteration %d: %d deals in %d batches using %r",
        iteration,
        gen_cfg.num_deals_per_iteration,
        len(sizes),
        provider,
    )

    executor = (
        ThreadPoolExecutor(max_workers=gen_cfg.num_threads, thread_name_prefix="traverse")
        if gen_cfg.num_threads > 1
        else None
    )
    start_time = time.time()
    num_samples = 0
    deal_number = 0
    try:
        for batch_index, size in enumerate(tqdm(sizes, desc=f"Iteration {iteration}", unit="batch")):
            samples = generate_batch(
                iteration,
                batch_index,
                size,
                deal_number,
                gen_cfg.sample_decay,
                gen_cfg.seed,
                provider,
                executor=executor,
            )
            store.append_samples(samples)
            if reservoir is not None:
                reservoir.add_many(samples)
            num_samples += len(samples)
            deal_number += size
            logger.debug(
                "Batch %d: %d deals, %d samples (%d total)",
                batch_index,
                size,
                len(samples),
                num_samples,
            )
    finally:
        if executor is not None:
            executor.shutdown(wait=True)

    elapsed = time.time() - start_time
    logger.info(
        "Generated %d samples from %d deals in %.1fs",
        num_samples,
        deal_number,
        elapsed,
    )
    return num_samples
