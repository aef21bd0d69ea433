# SPDX-License-Identifier: AGPL-3.0-or-later
"""Exception taxonomy. Every error here is fatal; nothing is retried."""


class SimulationError(Exception):
    """Base class for all simulation failures."""


class ConfigurationError(SimulationError):
    """Inputs are inconsistent before the simulation starts."""


class InvariantViolation(SimulationError):
    """A community failed a cover-sum or richness postcondition."""

    def __init__(self, community_id, message):
        self.community_id = community_id
        super().__init__(f"community {community_id}: {message}")


class InsufficientPoolError(SimulationError):
    """Colonization needs more eligible species than the pool offers."""

    def __init__(self, community_id, needed, available):
        self.community_id = community_id
        self.needed = needed
        self.available = available
        super().__init__(
            f"community {community_id}: needs {needed} colonizers, "
            f"only {available} eligible species in pool"
        )
