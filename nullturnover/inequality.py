# SPDX-License-Identifier: AGPL-3.0-or-later
"""Gini coefficients and Lorenz curves for losses and gains of cover.

Two aggregations are profiled: every ledger record on its own (occurrence
level) and the mean signed change of each species (species level). Each is
split into strictly negative and strictly positive changes; exact zeros
belong to neither side.
"""
from dataclasses import dataclass

import numpy as np
from scipy.integrate import trapezoid

from nullturnover.seeding import BOOTSTRAP_OFFSET, rng_for

OCCURRENCE_LEVEL = 0
SPECIES_LEVEL = 1


@dataclass(frozen=True)
class GiniEstimate:
    gini: float
    lower: float
    upper: float
    n: int


@dataclass(frozen=True)
class LorenzCurve:
    x: np.ndarray
    y: np.ndarray

    def points(self):
        return list(zip(self.x.tolist(), self.y.tolist()))


@dataclass(frozen=True)
class SideStatistics:
    gini: GiniEstimate
    lorenz: LorenzCurve


@dataclass(frozen=True)
class InequalityProfile:
    losses: SideStatistics
    gains: SideStatistics


def _gini_rows(samples):
    """Gini of each row of a 2-D array of non-negative magnitudes."""
    ordered = np.sort(samples, axis=1)
    n = ordered.shape[1]
    ranks = np.arange(1, n + 1)
    totals = ordered.sum(axis=1)
    return 2.0 * (ordered * ranks).sum(axis=1) / (n * totals) - (n + 1.0) / n


def gini(values):
    """Gini coefficient of the absolute magnitudes; NaN when empty."""
    magnitudes = np.abs(np.asarray(values, dtype=float))
    if magnitudes.size == 0:
        return float("nan")
    if magnitudes.sum() == 0:
        return 0.0
    return float(_gini_rows(magnitudes[np.newaxis, :])[0])


def bootstrap_gini(values, n_resamples, confidence_level, seed, index=0):
    """Gini with a percentile bootstrap interval (resampling with replacement)."""
    magnitudes = np.abs(np.asarray(values, dtype=float))
    n = magnitudes.size
    if n == 0:
        nan = float("nan")
        return GiniEstimate(gini=nan, lower=nan, upper=nan, n=0)
    rng = rng_for(seed, index, BOOTSTRAP_OFFSET)
    draws = rng.randint(0, n, size=(n_resamples, n))
    estimates = _gini_rows(magnitudes[draws])
    alpha = (1.0 - confidence_level) / 2.0
    lower, upper = np.percentile(estimates, [100.0 * alpha, 100.0 * (1.0 - alpha)])
    return GiniEstimate(gini=gini(magnitudes), lower=float(lower), upper=float(upper), n=n)


def lorenz_curve(values, descending=False):
    """Cumulative share of units against cumulative share of magnitude, from (0, 0) to (1, 1)."""
    magnitudes = np.sort(np.abs(np.asarray(values, dtype=float)))
    if descending:
        magnitudes = magnitudes[::-1]
    n = magnitudes.size
    if n == 0:
        return LorenzCurve(x=np.zeros(1), y=np.zeros(1))
    cumulative = np.cumsum(magnitudes)
    x = np.concatenate(([0.0], np.arange(1, n + 1) / n))
    y = np.concatenate(([0.0], cumulative / cumulative[-1]))
    return LorenzCurve(x=x, y=y)


def lorenz_gini(curve):
    """Gini recovered from the area under a Lorenz curve of either ordering."""
    return float(abs(1.0 - 2.0 * trapezoid(curve.y, curve.x)))


def split_signed(values):
    """(loss magnitudes, gain magnitudes); exact zeros are dropped."""
    values = np.asarray(values, dtype=float)
    return -values[values < 0], values[values > 0]


def inequality_profile(values, n_resamples, confidence_level, seed, level=OCCURRENCE_LEVEL):
    """Gini and Lorenz curve for both sides of a set of signed changes.

    Losses are ordered largest first and gains smallest first, so both curves
    read as "losers" against "winners" on the same axes.
    """
    losses, gains = split_signed(values)
    return InequalityProfile(
        losses=SideStatistics(
            gini=bootstrap_gini(losses, n_resamples, confidence_level, seed, index=2 * level),
            lorenz=lorenz_curve(losses, descending=True),
        ),
        gains=SideStatistics(
            gini=bootstrap_gini(gains, n_resamples, confidence_level, seed, index=2 * level + 1),
            lorenz=lorenz_curve(gains, descending=False),
        ),
    )


def occurrence_changes(records):
    return np.array([rec.change for rec in records], dtype=float)


def species_mean_changes(summary):
    return summary["mean_change"].dropna().to_numpy(dtype=float)
