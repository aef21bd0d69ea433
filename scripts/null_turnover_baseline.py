#!/usr/bin/env python3
# SPDX-License-Identifier: AGPL-3.0-or-later
# Date: 2026-10-19
"""Null-model turnover baseline — synthetic community change dataset.

Builds a log-normal species pool, deals it into communities, allocates
broken-stick cover and simulates one round of compositional turnover. The
resulting gain/loss ledger is summarised with Gini coefficients (bootstrap
percentile intervals) and Lorenz curves at occurrence and species level,
as the null baseline for an empirical biodiversity-change comparison.

Scenarios:
  - random:    40% of residents change, half of them increase
  - weighted:  as random, but high-id species are the ones that decline
  - loss_bias: 40% change, only 20% of changing species increase

Usage:
    python scripts/null_turnover_baseline.py [scenario ...]

Outputs:
    experiments/results/null_turnover/<scenario>_python_baseline.json

Requires: pip install numpy scipy pandas
"""
import json
import sys
import time
from pathlib import Path

from nullturnover import ScenarioConfig
from nullturnover.pipeline import decline_bias, run_first_feasible

WORKSPACE = Path(__file__).resolve().parent.parent
OUT_DIR = WORKSPACE / "experiments/results/null_turnover"

POOL_SEEDS = range(1, 101)
RICHNESS_SEEDS = range(1, 501)
MIN_RICHNESS = 3
COVER_TOLERANCE = 1e-9

SCENARIOS = {
    "random": {"p_change": 0.4, "p_increase": 0.5, "weighted_decline": False},
    "weighted": {"p_change": 0.4, "p_increase": 0.5, "weighted_decline": True},
    "loss_bias": {"p_change": 0.4, "p_increase": 0.2, "weighted_decline": False},
}


def gini_dict(estimate):
    return {
        "gini": estimate.gini,
        "ci_lower": estimate.lower,
        "ci_upper": estimate.upper,
        "n": estimate.n,
    }


def profile_dict(profile):
    return {
        side: {
            "gini": gini_dict(stats.gini),
            "lorenz_x": stats.lorenz.x.tolist(),
            "lorenz_y": stats.lorenz.y.tolist(),
        }
        for side, stats in (("losses", profile.losses), ("gains", profile.gains))
    }


def run(name, params):
    print("=" * 70)
    print(f"  Null turnover baseline — scenario '{name}'")
    print("=" * 70)

    t0 = time.time()
    config = ScenarioConfig.from_dict(params)
    result = run_first_feasible(config, POOL_SEEDS, RICHNESS_SEEDS, min_richness=MIN_RICHNESS)
    totals = result.totals()

    print(f"\n  Pool seed:           {result.config.pool_seed}")
    print(f"  Richness seed:       {result.config.richness_seed}")
    print(f"  Richness mean:       {totals['richness_mean']:.4f}")
    print(f"  Occurrences (t1):    {totals['total_occurrences']}")
    print(f"  Decreasing species:  {totals['total_decreasing']}")
    print(f"  Increasing species:  {totals['total_increasing']}")
    print(f"  Extinct/colonized:   {totals['total_extinct']}/{totals['total_colonized']}")
    print(f"  Total cover (t2):    {totals['total_cover_time2']:.9f}")

    for level, profile in (("occurrence", result.inequality.occurrence),
                           ("species", result.inequality.species)):
        for side, stats in (("losses", profile.losses), ("gains", profile.gains)):
            g = stats.gini
            print(f"  Gini {level:<10} {side:<6}: {g.gini:.4f} "
                  f"[{g.lower:.4f}, {g.upper:.4f}] n={g.n}")

    checks = []

    def check(label, condition):
        status = "PASS" if condition else "FAIL"
        checks.append({"label": label, "status": status})
        print(f"  [{status}] {label}")
        return condition

    print()
    nonempty = [cid for cid, occ in result.time1.items() if occ]
    check("Cover sums to 1 in every community at t1 and t2",
          all(abs(sum(o.cover for o in snap[cid]) - 1.0) <= COVER_TOLERANCE
              for snap in (result.time1, result.time2) for cid in nonempty))
    check("Richness identical at t1 and t2",
          all(len(result.time1[cid]) == len(result.time2[cid]) for cid in result.time1))
    frequencies = result.assemblage.species_frequencies()
    check("Species frequencies match the pool",
          all(frequencies[sp.species_id] == sp.weight for sp in result.pool))
    check(f"Total t2 cover equals {config.n_communities} communities",
          abs(totals["total_cover_time2"] - config.n_communities) < 1e-6)
    for profile in (result.inequality.occurrence, result.inequality.species):
        for stats in (profile.losses, profile.gains):
            if stats.gini.n:
                check("Lorenz curve ends at (1, 1)",
                      stats.lorenz.x[-1] == 1.0 and stats.lorenz.y[-1] == 1.0)

    elapsed = time.time() - t0
    n_pass = sum(1 for c in checks if c["status"] == "PASS")

    output = {
        "scenario": name,
        "parameters": result.config.to_dict(),
        "totals": totals,
        "occurrence_level": profile_dict(result.inequality.occurrence),
        "species_level": profile_dict(result.inequality.species),
        "checks": checks,
        "total_pass": n_pass,
        "total_checks": len(checks),
        "elapsed_seconds": round(elapsed, 4),
        "python_version": sys.version.split()[0],
    }

    OUT_DIR.mkdir(parents=True, exist_ok=True)
    out_path = OUT_DIR / f"{name}_python_baseline.json"
    with open(out_path, "w") as f:
        json.dump(output, f, indent=2)

    print(f"\n  SUMMARY: {n_pass}/{len(checks)} PASS")
    print(f"  Results: {out_path}")
    print(f"  Elapsed: {elapsed:.3f}s")
    return result, n_pass == len(checks)


def main():
    names = sys.argv[1:] or list(SCENARIOS)
    unknown = [n for n in names if n not in SCENARIOS]
    if unknown:
        print(f"Unknown scenario(s): {', '.join(unknown)}; choose from {', '.join(SCENARIOS)}")
        return 2

    results = {}
    ok = True
    for name in names:
        results[name], passed = run(name, SCENARIOS[name])
        ok = ok and passed

    if "random" in results and "weighted" in results:
        bias = decline_bias(results["random"], results["weighted"])
        print(f"\n  Decline bias (weighted vs random decreaser ids): "
              f"U={bias.statistic:.1f}, p={bias.pvalue:.3g}, "
              f"mean rank {bias.weighted_mean_rank:.1f} vs {bias.unweighted_mean_rank:.1f}")

    print(f"\n{'=' * 70}")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
