# SPDX-License-Identifier: AGPL-3.0-or-later
"""Species pool: log-normal frequency weights rounded up to whole occurrences."""
import logging
from dataclasses import dataclass

import numpy as np

from nullturnover.seeding import POOL_OFFSET, rng_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Species:
    species_id: int
    weight: int


class SpeciesPool:
    """Fixed catalog of species ids 1..N with their occurrence counts."""

    def __init__(self, species):
        self.species = tuple(species)
        self._weights = {sp.species_id: sp.weight for sp in self.species}

    def __len__(self):
        return len(self.species)

    def __iter__(self):
        return iter(self.species)

    @property
    def ids(self):
        return [sp.species_id for sp in self.species]

    @property
    def total_occurrences(self):
        return sum(self._weights.values())

    def weight_of(self, species_id):
        return self._weights[species_id]

    def by_frequency(self):
        """Species in decreasing weight order, ties broken by id."""
        return sorted(self.species, key=lambda sp: (-sp.weight, sp.species_id))


def generate_pool(size, meanlog, sdlog, seed):
    """Draw ``size`` species weights as ceil(lognormal(meanlog, sdlog))."""
    rng = rng_for(seed, 0, POOL_OFFSET)
    draws = rng.lognormal(mean=meanlog, sigma=sdlog, size=size)
    weights = np.maximum(np.ceil(draws), 1).astype(int)
    pool = SpeciesPool(
        Species(species_id=i + 1, weight=int(w)) for i, w in enumerate(weights)
    )
    logger.info(
        "Generated pool of %d species, %d total occurrences, max weight %d",
        len(pool), pool.total_occurrences, int(weights.max()),
    )
    return pool
