"""
===============================================================================
DC-SMC CONFIGURATION — Run Settings
===============================================================================

Settings for one divide-and-conquer SMC pass:
    - Particle count N (identical at every node)
    - Level cutoff for summary-statistic reporting
    - Exponential prior rate on branch variances
    - Optional logit transform of leaf success probabilities
    - Number of summary points drawn per reported node
    - Seed of the single random stream
"""

import sys
from dataclasses import dataclass, asdict
from typing import Any, Dict

from .errors import ConfigurationError


@dataclass
class DCSMCConfig:
    """
    Configuration for a DC-SMC run.

    Attributes:
        n_particles: Particle-set size N at every node
        level_cutoff_for_output: Nodes with level >= cutoff skip summary reporting
        variance_prior_rate: Rate of the Exponential prior/proposal on branch variance
        use_transform: Map success probabilities through logit/expit
        n_summary_samples: Points drawn for the summary of a reported node
        seed: Seed for the random stream
    """
    n_particles: int = 1000
    level_cutoff_for_output: int = sys.maxsize
    variance_prior_rate: float = 10.0
    use_transform: bool = False
    n_summary_samples: int = 10000
    seed: int = 1

    def validate(self) -> bool:
        """Validate configuration."""
        if self.n_particles <= 0:
            raise ConfigurationError(f"n_particles must be > 0, got {self.n_particles}")
        if not self.variance_prior_rate > 0:
            raise ConfigurationError(
                f"variance_prior_rate must be > 0, got {self.variance_prior_rate}"
            )
        if self.n_summary_samples <= 0:
            raise ConfigurationError(
                f"n_summary_samples must be > 0, got {self.n_summary_samples}"
            )
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


# Default configuration
DEFAULT_DCSMC_CONFIG = DCSMCConfig()
