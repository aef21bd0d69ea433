# SPDX-License-Identifier: AGPL-3.0-or-later
import pytest

from nullturnover import ScenarioConfig
from nullturnover.pipeline import run_first_feasible

POOL_SEEDS = range(1, 101)
RICHNESS_SEEDS = range(1, 501)


@pytest.fixture(scope="session")
def scenario_config():
    """Reference scenario: 200 species, 100 communities, 40% change, half increasing."""
    return ScenarioConfig(
        pool_size=200,
        pool_meanlog=1.5,
        pool_sdlog=1.2,
        n_communities=100,
        richness_sd=9.0,
        p_change=0.4,
        p_increase=0.5,
        weighted_decline=False,
        n_resamples=200,
    )


@pytest.fixture(scope="session")
def scenario_result(scenario_config):
    """Reference scenario on the first seed pair giving every community at least 3 species."""
    return run_first_feasible(scenario_config, POOL_SEEDS, RICHNESS_SEEDS, min_richness=3)


@pytest.fixture(scope="session")
def small_config():
    """Small, light-tailed configuration that assembles quickly."""
    return ScenarioConfig(
        pool_size=60,
        pool_meanlog=1.0,
        pool_sdlog=0.6,
        n_communities=40,
        richness_sd=3.0,
        n_resamples=100,
    )


@pytest.fixture(scope="session")
def small_result(small_config):
    return run_first_feasible(small_config, POOL_SEEDS)
