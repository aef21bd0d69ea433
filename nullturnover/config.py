# SPDX-License-Identifier: AGPL-3.0-or-later
"""Flat scenario configuration record."""
import dataclasses
from dataclasses import dataclass

from nullturnover.errors import ConfigurationError

COVER_METHODS = ("expected", "random")


@dataclass(frozen=True)
class ScenarioConfig:
    # Species pool (log-normal frequency weights)
    pool_size: int = 200
    pool_meanlog: float = 1.5
    pool_sdlog: float = 1.2
    # Communities; richness_mean=None calibrates the mean to the pool total
    n_communities: int = 100
    richness_mean: float | None = None
    richness_sd: float = 9.0
    # Turnover scenario knobs
    p_change: float = 0.4
    p_increase: float = 0.5
    weighted_decline: bool = False
    # Base seed per stochastic stage
    pool_seed: int = 3
    richness_seed: int = 2
    assembly_seed: int = 3
    cover_seed: int = 4
    turnover_seed: int = 5
    bootstrap_seed: int = 6
    # Inequality statistics
    n_resamples: int = 1000
    confidence_level: float = 0.95
    cover_method: str = "expected"

    def __post_init__(self):
        if self.pool_size < 1:
            raise ConfigurationError(f"pool_size must be >= 1, got {self.pool_size}")
        if self.n_communities < 1:
            raise ConfigurationError(f"n_communities must be >= 1, got {self.n_communities}")
        if self.pool_sdlog < 0 or self.richness_sd < 0:
            raise ConfigurationError("standard deviations must be non-negative")
        for name in ("p_change", "p_increase"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1], got {value}")
        if self.n_resamples < 1:
            raise ConfigurationError(f"n_resamples must be >= 1, got {self.n_resamples}")
        if not 0.0 < self.confidence_level < 1.0:
            raise ConfigurationError(
                f"confidence_level must lie in (0, 1), got {self.confidence_level}"
            )
        if self.cover_method not in COVER_METHODS:
            raise ConfigurationError(
                f"cover_method must be one of {COVER_METHODS}, got {self.cover_method!r}"
            )
        for field in dataclasses.fields(self):
            if field.name.endswith("_seed") and getattr(self, field.name) < 0:
                raise ConfigurationError(f"{field.name} must be non-negative")

    @classmethod
    def from_dict(cls, params):
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {field.name for field in dataclasses.fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")
        return cls(**params)

    def replace(self, **changes):
        return dataclasses.replace(self, **changes)

    def to_dict(self):
        return dataclasses.asdict(self)
