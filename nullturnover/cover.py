# SPDX-License-Identifier: AGPL-3.0-or-later
"""Broken-stick cover allocation for the time-1 snapshot."""
import logging
from dataclasses import dataclass

import numpy as np

from nullturnover.errors import ConfigurationError, InvariantViolation
from nullturnover.seeding import COVER_BREAKS_OFFSET, COVER_OFFSET, rng_for

logger = logging.getLogger(__name__)

COVER_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Occurrence:
    community_id: int
    species_id: int
    cover: float
    time: int


def expected_broken_stick(r):
    """MacArthur expected fragment sizes b_i = (1/r) * sum_{k=i..r} 1/k."""
    inverse = 1.0 / np.arange(1, r + 1)
    return np.cumsum(inverse[::-1])[::-1] / r


def random_broken_stick(r, rng):
    """Spacings of r-1 uniform breaks on the unit stick."""
    breaks = np.sort(rng.random_sample(r - 1))
    return np.diff(np.concatenate(([0.0], breaks, [1.0])))


def broken_stick(r, community_id, seed, method="expected"):
    """Permuted r-fragment partition of 1 for one community."""
    if r < 1:
        return np.empty(0)
    if method == "expected":
        parts = expected_broken_stick(r)
    elif method == "random":
        parts = random_broken_stick(r, rng_for(seed, community_id, COVER_BREAKS_OFFSET))
    else:
        raise ConfigurationError(f"unknown broken-stick method {method!r}")
    return rng_for(seed, community_id, COVER_OFFSET).permutation(parts)


def check_cover_sum(community_id, occurrences):
    if not occurrences:
        return
    total = sum(occ.cover for occ in occurrences)
    if abs(total - 1.0) > COVER_TOLERANCE:
        raise InvariantViolation(community_id, f"cover sums to {total!r}, expected 1")


def allocate_cover(assemblage, seed, method="expected"):
    """Time-1 occurrences per community; cover is assigned by position, not species."""
    snapshot = {}
    for community in assemblage.communities:
        cid = community.community_id
        species = assemblage.members[cid]
        parts = broken_stick(len(species), cid, seed, method)
        occurrences = tuple(
            Occurrence(community_id=cid, species_id=sid, cover=float(value), time=1)
            for sid, value in zip(species, parts)
        )
        check_cover_sum(cid, occurrences)
        snapshot[cid] = occurrences
    logger.debug("Allocated %s broken-stick cover to %d communities", method, len(snapshot))
    return snapshot
