# SPDX-License-Identifier: AGPL-3.0-or-later
"""Null-model turnover simulation and gain/loss inequality statistics."""

from nullturnover.config import ScenarioConfig
from nullturnover.errors import (
    ConfigurationError,
    InsufficientPoolError,
    InvariantViolation,
    SimulationError,
)
from nullturnover.pipeline import ScenarioResult, run_scenario

__all__ = [
    "ConfigurationError",
    "InsufficientPoolError",
    "InvariantViolation",
    "ScenarioConfig",
    "ScenarioResult",
    "SimulationError",
    "run_scenario",
]
