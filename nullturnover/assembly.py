# SPDX-License-Identifier: AGPL-3.0-or-later
"""Community assembly.

Richness targets come from a rounded normal draw; species occurrences are then
dealt out heaviest species first. Each species samples distinct communities
without replacement, weighted by the slots each community still has open, so
communities fill proportionally and the pool frequencies are reproduced
exactly.
"""
import logging
from collections import Counter
from dataclasses import dataclass

import numpy as np

from nullturnover.errors import ConfigurationError
from nullturnover.seeding import ASSIGN_OFFSET, RICHNESS_OFFSET, rng_for

logger = logging.getLogger(__name__)

CALIBRATION_STEPS = 200


@dataclass(frozen=True)
class Community:
    community_id: int
    richness: int


@dataclass
class Assemblage:
    communities: tuple
    members: dict  # community id -> sorted tuple of species ids

    @property
    def total_occurrences(self):
        return sum(len(species) for species in self.members.values())

    def species_frequencies(self):
        """Number of communities each species occurs in."""
        return Counter(sid for species in self.members.values() for sid in species)


def _richness_deviates(n_communities, seed):
    return rng_for(seed, 0, RICHNESS_OFFSET).standard_normal(n_communities)


def _richness_from(deviates, mean, sd):
    return np.maximum(np.rint(mean + sd * deviates), 0).astype(int)


def draw_richness(n_communities, mean, sd, seed):
    """Richness targets: normal draws rounded to integers, negatives clipped to 0."""
    return _richness_from(_richness_deviates(n_communities, seed), mean, sd)


def calibrate_richness_mean(total, n_communities, sd, seed):
    """Find a richness mean whose drawn targets sum to exactly ``total``.

    The deviates are fixed by ``seed``, so the clipped, rounded sum is a
    non-decreasing step function of the mean and bisection converges onto a
    step that equals ``total`` when one exists.
    """
    deviates = _richness_deviates(n_communities, seed)
    spread = sd * float(np.abs(deviates).max()) + 1.0
    lo, hi = -spread, float(total) + spread
    for _ in range(CALIBRATION_STEPS):
        mid = (lo + hi) / 2.0
        drawn = int(_richness_from(deviates, mid, sd).sum())
        if drawn == total:
            logger.info("Calibrated richness mean %.6f for %d occurrences", mid, total)
            return mid
        if drawn < total:
            lo = mid
        else:
            hi = mid
    raise ConfigurationError(
        f"no richness mean with sd={sd} and seed={seed} sums to {total} occurrences"
    )


def assemble_communities(pool, targets, seed):
    """Deal every species occurrence in ``pool`` into communities sized by ``targets``."""
    targets = [int(t) for t in targets]
    if any(t < 0 for t in targets):
        raise ConfigurationError("richness targets must be non-negative")
    if sum(targets) != pool.total_occurrences:
        raise ConfigurationError(
            f"richness targets sum to {sum(targets)} but the pool holds "
            f"{pool.total_occurrences} occurrences"
        )

    communities = tuple(
        Community(community_id=i + 1, richness=t) for i, t in enumerate(targets)
    )
    remaining = {c.community_id: c.richness for c in communities if c.richness > 0}
    members = {c.community_id: [] for c in communities}

    for sp in pool.by_frequency():
        eligible = sorted(remaining)
        if len(eligible) < sp.weight:
            raise ConfigurationError(
                f"species {sp.species_id} needs {sp.weight} communities but only "
                f"{len(eligible)} have open slots"
            )
        slots = np.array([remaining[cid] for cid in eligible], dtype=float)
        rng = rng_for(seed, sp.species_id, ASSIGN_OFFSET)
        chosen = rng.choice(eligible, size=sp.weight, replace=False, p=slots / slots.sum())
        for cid in chosen:
            cid = int(cid)
            members[cid].append(sp.species_id)
            remaining[cid] -= 1
            if remaining[cid] == 0:
                del remaining[cid]

    assemblage = Assemblage(
        communities=communities,
        members={cid: tuple(sorted(species)) for cid, species in members.items()},
    )
    logger.info(
        "Assembled %d communities (%d empty) from %d occurrences",
        len(communities),
        sum(1 for c in communities if c.richness == 0),
        assemblage.total_occurrences,
    )
    return assemblage
