# SPDX-License-Identifier: AGPL-3.0-or-later
"""Reseed-per-step random number discipline.

Every stochastic draw in the pipeline builds a fresh generator from
``seed_for(kind, index, offset)`` immediately before drawing. ``kind`` is the
base seed of a pipeline stage, ``index`` a stable entity index (species id,
community id) and ``offset`` a fixed per-step constant. No generator outlives
the single draw it was built for, so results never depend on loop order.
"""
import numpy as np

# Stage-level draws (index 0 unless noted)
POOL_OFFSET = 1
RICHNESS_OFFSET = 2
ASSIGN_OFFSET = 3          # index = species id
COVER_OFFSET = 4           # index = community id
COVER_BREAKS_OFFSET = 5    # index = community id, "random" broken stick only

# Turnover draws, index = community id
SELECT_OFFSET = 11
SPLIT_OFFSET = 12
DECREASER_OFFSET = 13
COLONIZE_OFFSET = 14
PERMUTE_OFFSET = 16
RESIDENT_OFFSET = 17
REBALANCE_OFFSET = 10_000  # + rebalance step number

# Bootstrap draws, index = aggregation/side code
BOOTSTRAP_OFFSET = 21


def seed_for(kind, index, offset):
    """Derive a 32-bit seed from a stage base seed, entity index and step offset."""
    if kind < 0 or index < 0 or offset < 0:
        raise ValueError(f"seed components must be non-negative: {(kind, index, offset)}")
    state = np.random.SeedSequence([int(kind), int(index), int(offset)]).generate_state(1)
    return int(state[0])


def rng_for(kind, index, offset):
    """Fresh generator for exactly one logical draw."""
    return np.random.RandomState(seed_for(kind, index, offset))
