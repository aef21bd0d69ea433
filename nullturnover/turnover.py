# SPDX-License-Identifier: AGPL-3.0-or-later
"""Turnover engine: builds the time-2 snapshot from the time-1 snapshot.

Per community a share of residents changes. Decreasers lose cover on a
geometric schedule (some go extinct), extinct slots are refilled by
frequency-weighted colonists from the pool, and the freed cover is handed
to resident increasers and colonists so that richness and total cover are
both conserved.
"""
import logging
import math
from dataclasses import dataclass

import numpy as np

from nullturnover.cover import COVER_TOLERANCE, Occurrence
from nullturnover.errors import InsufficientPoolError, InvariantViolation
from nullturnover.seeding import (
    COLONIZE_OFFSET,
    DECREASER_OFFSET,
    PERMUTE_OFFSET,
    REBALANCE_OFFSET,
    RESIDENT_OFFSET,
    SELECT_OFFSET,
    SPLIT_OFFSET,
    rng_for,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommunityTurnover:
    community_id: int
    richness: int
    n_change: int
    decreasers: tuple
    increasers: tuple
    extinct: tuple
    colonizers: tuple
    resident_gainers: tuple
    freed_cover: float
    occurrences: tuple


@dataclass
class TurnoverRun:
    records: dict  # community id -> CommunityTurnover, non-empty communities only
    community_ids: tuple

    def snapshot(self):
        """Time-2 occurrences per community; empty communities map to ()."""
        return {
            cid: self.records[cid].occurrences if cid in self.records else ()
            for cid in self.community_ids
        }

    @property
    def total_decreasing(self):
        return sum(len(rec.decreasers) for rec in self.records.values())

    @property
    def total_increasing(self):
        return sum(len(rec.increasers) for rec in self.records.values())

    @property
    def total_extinct(self):
        return sum(len(rec.extinct) for rec in self.records.values())

    @property
    def total_colonized(self):
        return sum(len(rec.colonizers) for rec in self.records.values())

    @property
    def total_cover(self):
        return sum(
            occ.cover for rec in self.records.values() for occ in rec.occurrences
        )


def change_count(richness, p_change):
    """Even number of changing species, at least one and at most ``richness``."""
    n_change = int(round(richness * p_change / 2.0)) * 2
    return min(max(n_change, 1), richness)


def decreaser_count(n_change, p_increase, use_ceiling):
    # rounded first so 5 * (1 - 0.4) does not ceil to 4
    raw = round(n_change * (1.0 - p_increase), 9)
    n_dec = math.ceil(raw) if use_ceiling else math.floor(raw)
    return max(n_dec, 1)


def geometric_schedule(n):
    """Shares of the removed total per cover rank: 1/2, 1/4, ..., last two equal."""
    if n == 1:
        return [1.0]
    shares = [0.5 ** k for k in range(1, n)]
    shares.append(shares[-1])
    return shares


def rebalance(increments, target, community_id, seed):
    """Merge or split increments until there are exactly ``target`` of them."""
    increments = list(increments)
    if target == 1:
        return [float(sum(increments))]
    step = 0
    while len(increments) > target:
        rng = rng_for(seed, community_id, REBALANCE_OFFSET + step)
        i, j = sorted(int(k) for k in rng.choice(len(increments), size=2, replace=False))
        merged = increments[i] + increments[j]
        del increments[j]
        del increments[i]
        increments.append(merged)
        step += 1
    while len(increments) < target:
        rng = rng_for(seed, community_id, REBALANCE_OFFSET + step)
        k = int(rng.randint(len(increments)))
        half = increments[k] / 2.0
        increments[k] = half
        increments.append(half)
        step += 1
    return increments


def draw_colonizers(pool, present, n, community_id, seed):
    """Pool species not in ``present``, drawn without replacement by weight."""
    if n == 0:
        return []
    eligible = [sp for sp in pool if sp.species_id not in present]
    if len(eligible) < n:
        raise InsufficientPoolError(community_id, n, len(eligible))
    weights = np.array([sp.weight for sp in eligible], dtype=float)
    picked = rng_for(seed, community_id, COLONIZE_OFFSET).choice(
        [sp.species_id for sp in eligible], size=n, replace=False, p=weights / weights.sum()
    )
    return [int(s) for s in picked]


def _split_changing(residents, n_change, p_increase, weighted_decline, community_id, seed):
    if weighted_decline:
        candidates = residents[-n_change:]
    else:
        picked = rng_for(seed, community_id, SELECT_OFFSET).choice(
            residents, size=n_change, replace=False
        )
        candidates = sorted(int(s) for s in picked)

    use_ceiling = rng_for(seed, community_id, SPLIT_OFFSET).random_sample() < 0.5
    n_dec = decreaser_count(n_change, p_increase, use_ceiling)
    n_inc = n_change - n_dec

    if weighted_decline:
        decreasers = candidates[-n_dec:]
        rest = [s for s in residents if s not in decreasers]
        increasers = rest[len(rest) - n_inc:] if n_inc > 0 else []
    else:
        # floor branch draws again from the coin-flip seed
        offset = DECREASER_OFFSET if use_ceiling else SPLIT_OFFSET
        picked = rng_for(seed, community_id, offset).choice(candidates, size=n_dec, replace=False)
        decreasers = sorted(int(s) for s in picked)
        increasers = [s for s in candidates if s not in decreasers]
    return n_change, decreasers, increasers


def turnover_community(occurrences, pool, p_change, p_increase, weighted_decline, seed):
    """Time-2 state for one non-empty community."""
    cid = occurrences[0].community_id
    cover = {occ.species_id: occ.cover for occ in occurrences}
    residents = sorted(cover)
    richness = len(residents)

    n_change, decreasers, increasers = _split_changing(
        residents, change_count(richness, p_change), p_increase, weighted_decline, cid, seed
    )

    ranked = sorted(decreasers, key=lambda s: (-cover[s], s))
    removable = sum(cover[s] for s in ranked)
    new_cover = dict(cover)
    freed = []
    for sid, share in zip(ranked, geometric_schedule(len(ranked))):
        after = cover[sid] - share * removable
        if after <= COVER_TOLERANCE:
            after = 0.0
        new_cover[sid] = after
        freed.append(cover[sid] - after)
    extinct = [s for s in ranked if new_cover[s] == 0.0]
    n_ext = len(extinct)

    colonizers = draw_colonizers(pool, cover, n_ext, cid, seed)

    n_resident_gain = 0 if len(increasers) < n_ext else len(increasers) - n_ext
    if n_resident_gain + n_ext == 0:
        raise InvariantViolation(cid, "freed cover has no increaser or colonizer to receive it")

    increments = rebalance(freed, n_resident_gain + n_ext, cid, seed)
    order = rng_for(seed, cid, PERMUTE_OFFSET).permutation(len(increments))
    increments = [increments[i] for i in order]

    n_resident_slots = len(increments) - n_ext
    gainers = []
    if n_resident_slots > 0:
        picked = rng_for(seed, cid, RESIDENT_OFFSET).choice(
            increasers, size=n_resident_slots, replace=False
        )
        gainers = [int(s) for s in picked]
        for sid, increment in zip(gainers, increments[:n_resident_slots]):
            new_cover[sid] += increment
    for sid, increment in zip(colonizers, increments[max(n_resident_slots, 0):]):
        new_cover[sid] = increment

    gone = set(extinct)
    survivors = sorted(s for s in new_cover if s not in gone)
    time2 = tuple(
        Occurrence(community_id=cid, species_id=sid, cover=new_cover[sid], time=2)
        for sid in survivors
    )

    if len(time2) != richness:
        raise InvariantViolation(cid, f"richness changed from {richness} to {len(time2)}")
    total = sum(occ.cover for occ in time2)
    if abs(total - 1.0) > COVER_TOLERANCE:
        raise InvariantViolation(cid, f"time-2 cover sums to {total!r}, expected 1")

    logger.debug(
        "Community %d: %d changing, %d down (%d extinct), %d up, %d colonizers",
        cid, n_change, len(decreasers), n_ext, len(increasers), len(colonizers),
    )
    return CommunityTurnover(
        community_id=cid,
        richness=richness,
        n_change=n_change,
        decreasers=tuple(ranked),
        increasers=tuple(increasers),
        extinct=tuple(extinct),
        colonizers=tuple(colonizers),
        resident_gainers=tuple(gainers),
        freed_cover=float(sum(freed)),
        occurrences=time2,
    )


def simulate_turnover(snapshot, pool, p_change, p_increase, weighted_decline, seed):
    """Run the turnover step over every community of a time-1 snapshot."""
    records = {}
    for cid in sorted(snapshot):
        occurrences = snapshot[cid]
        if not occurrences:
            continue
        records[cid] = turnover_community(
            occurrences, pool, p_change, p_increase, weighted_decline, seed
        )
    run = TurnoverRun(records=records, community_ids=tuple(sorted(snapshot)))
    logger.info(
        "Turnover: %d decreasing, %d increasing, %d extinct, %d colonized",
        run.total_decreasing, run.total_increasing, run.total_extinct, run.total_colonized,
    )
    return run
