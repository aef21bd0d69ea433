# SPDX-License-Identifier: AGPL-3.0-or-later
"""End-to-end scenario run: pool -> communities -> cover -> turnover -> ledger -> statistics."""
import logging
from dataclasses import dataclass

import pandas as pd
from scipy.stats import mannwhitneyu, rankdata

from nullturnover.assembly import (
    Assemblage,
    assemble_communities,
    calibrate_richness_mean,
    draw_richness,
)
from nullturnover.config import ScenarioConfig
from nullturnover.cover import allocate_cover
from nullturnover.errors import ConfigurationError
from nullturnover.inequality import (
    OCCURRENCE_LEVEL,
    SPECIES_LEVEL,
    InequalityProfile,
    inequality_profile,
    occurrence_changes,
    species_mean_changes,
)
from nullturnover.ledger import build_ledger, ledger_frame, species_summary
from nullturnover.pool import SpeciesPool, generate_pool
from nullturnover.turnover import TurnoverRun, simulate_turnover

logger = logging.getLogger(__name__)

OCCURRENCE_COLUMNS = ["community", "species", "cover", "time"]


@dataclass(frozen=True)
class InequalityReport:
    occurrence: InequalityProfile  # over every ledger record
    species: InequalityProfile     # over per-species mean changes


@dataclass
class ScenarioResult:
    config: ScenarioConfig
    pool: SpeciesPool
    richness_mean: float
    assemblage: Assemblage
    time1: dict
    turnover: TurnoverRun
    time2: dict
    ledger: list
    species_summary: pd.DataFrame
    inequality: InequalityReport

    def occurrence_frame(self):
        rows = [
            (occ.community_id, occ.species_id, occ.cover, occ.time)
            for snapshot in (self.time1, self.time2)
            for cid in sorted(snapshot)
            for occ in snapshot[cid]
        ]
        return pd.DataFrame(rows, columns=OCCURRENCE_COLUMNS)

    def ledger_frame(self):
        return ledger_frame(self.ledger)

    def totals(self):
        return {
            "richness_mean": self.richness_mean,
            "total_occurrences": sum(len(occ) for occ in self.time1.values()),
            "total_decreasing": self.turnover.total_decreasing,
            "total_increasing": self.turnover.total_increasing,
            "total_extinct": self.turnover.total_extinct,
            "total_colonized": self.turnover.total_colonized,
            "total_cover_time1": sum(o.cover for occ in self.time1.values() for o in occ),
            "total_cover_time2": self.turnover.total_cover,
            "ledger_records": len(self.ledger),
        }


def draw_scenario(config):
    """Pool, richness mean and per-community richness targets for ``config``."""
    pool = generate_pool(config.pool_size, config.pool_meanlog, config.pool_sdlog, config.pool_seed)
    richness_mean = config.richness_mean
    if richness_mean is None:
        richness_mean = calibrate_richness_mean(
            pool.total_occurrences, config.n_communities, config.richness_sd, config.richness_seed
        )
    targets = draw_richness(
        config.n_communities, richness_mean, config.richness_sd, config.richness_seed
    )
    return pool, richness_mean, targets


def _simulate(config, pool, richness_mean, assemblage):
    time1 = allocate_cover(assemblage, config.cover_seed, config.cover_method)

    turnover = simulate_turnover(
        time1, pool, config.p_change, config.p_increase, config.weighted_decline,
        config.turnover_seed,
    )
    time2 = turnover.snapshot()

    ledger = build_ledger(time1, time2)
    summary = species_summary(ledger, pool.ids, config.n_communities)
    inequality = InequalityReport(
        occurrence=inequality_profile(
            occurrence_changes(ledger), config.n_resamples, config.confidence_level,
            config.bootstrap_seed, level=OCCURRENCE_LEVEL,
        ),
        species=inequality_profile(
            species_mean_changes(summary), config.n_resamples, config.confidence_level,
            config.bootstrap_seed, level=SPECIES_LEVEL,
        ),
    )
    logger.info("Scenario finished with %d ledger records", len(ledger))
    return ScenarioResult(
        config=config,
        pool=pool,
        richness_mean=richness_mean,
        assemblage=assemblage,
        time1=time1,
        turnover=turnover,
        time2=time2,
        ledger=ledger,
        species_summary=summary,
        inequality=inequality,
    )


def run_scenario(config):
    """Run the whole pipeline for one configuration and return every output in memory."""
    pool, richness_mean, targets = draw_scenario(config)
    assemblage = assemble_communities(pool, targets, config.assembly_seed)
    return _simulate(config, pool, richness_mean, assemblage)


def run_first_feasible(config, pool_seeds, richness_seeds=None, min_richness=0):
    """Run with the first pool and richness seed pair whose pool can be dealt out.

    Pool seeds are tried in order and, for each, every richness seed in
    ``richness_seeds`` (only ``config.richness_seed`` by default). A pair is
    skipped when any community would hold fewer than ``min_richness``
    species, or when its pool cannot be placed into the communities. Errors
    from later stages propagate.
    """
    if richness_seeds is None:
        richness_seeds = [config.richness_seed]
    rejected = []
    for pool_seed in pool_seeds:
        for richness_seed in richness_seeds:
            candidate = config.replace(pool_seed=pool_seed, richness_seed=richness_seed)
            try:
                pool, richness_mean, targets = draw_scenario(candidate)
                if targets.min() < min_richness:
                    logger.debug(
                        "Seeds (%d, %d) rejected: a community holds %d species",
                        pool_seed, richness_seed, int(targets.min()),
                    )
                    continue
                assemblage = assemble_communities(pool, targets, candidate.assembly_seed)
            except ConfigurationError as exc:
                logger.info("Seeds (%d, %d) rejected: %s", pool_seed, richness_seed, exc)
                continue
            return _simulate(candidate, pool, richness_mean, assemblage)
        rejected.append(pool_seed)
    raise ConfigurationError(f"no feasible pool seed among {rejected}")


@dataclass(frozen=True)
class DeclineBias:
    statistic: float
    pvalue: float
    weighted_mean_rank: float
    unweighted_mean_rank: float


def decreaser_ids(turnover):
    return [sid for rec in turnover.records.values() for sid in rec.decreasers]


def decline_bias(unweighted, weighted):
    """One-sided Mann-Whitney U: are weighted-run decreasers higher-id than unweighted ones?"""
    plain = decreaser_ids(unweighted.turnover)
    biased = decreaser_ids(weighted.turnover)
    result = mannwhitneyu(biased, plain, alternative="greater")
    ranks = rankdata(biased + plain)
    return DeclineBias(
        statistic=float(result.statistic),
        pvalue=float(result.pvalue),
        weighted_mean_rank=float(ranks[: len(biased)].mean()),
        unweighted_mean_rank=float(ranks[len(biased):].mean()),
    )
