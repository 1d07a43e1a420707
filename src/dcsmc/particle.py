"""
===============================================================================
PARTICLE — Particle Data Structures for DC-SMC
===============================================================================

A particle is one joint sample for a subtree:
    - The Gaussian message summarizing the subtree at its root
    - The branch variance sampled to build that message (NaN for leaves)

A ParticleApproximation is a fixed-size array of N particles with an
equal-length probability array. The array holds log-weights right after
construction, normalized probabilities after normalize(), and exactly 1/N
after resampling.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .brownian import Message
from .resampling import effective_sample_size, exp_normalize


@dataclass(frozen=True)
class Particle:
    """
    A single particle.

    Attributes:
        message: Gaussian message for the subtree
        variance: Branch variance used to produce the message (NaN at leaves)
    """
    message: Message
    variance: float = math.nan

    @property
    def is_leaf(self) -> bool:
        return math.isnan(self.variance)


@dataclass
class ParticleApproximation:
    """
    Weighted particle set at one node.

    Attributes:
        particles: N particles
        probabilities: N log-weights or probabilities, see module docstring
        normalized: Whether probabilities currently sum to 1
    """
    particles: List[Particle]
    probabilities: np.ndarray
    normalized: bool = False

    def __post_init__(self):
        self.probabilities = np.asarray(self.probabilities, dtype=float)
        if len(self.particles) != len(self.probabilities):
            raise ValueError(
                f"{len(self.particles)} particles but {len(self.probabilities)} weights"
            )

    def __len__(self) -> int:
        return len(self.particles)

    @property
    def n_particles(self) -> int:
        return len(self.particles)

    @classmethod
    def uniform(cls, particles: List[Particle]) -> 'ParticleApproximation':
        """Equal weights 1/N."""
        n = len(particles)
        return cls(particles=particles, probabilities=np.full(n, 1.0 / n), normalized=True)

    def normalize(self) -> None:
        """Exponentiate log-weights and normalize in place."""
        if not self.normalized:
            self.probabilities = exp_normalize(self.probabilities)
            self.normalized = True

    def effective_sample_size(self) -> float:
        """ESS = 1 / Σ p_k²; requires normalized probabilities."""
        if not self.normalized:
            raise ValueError("effective_sample_size() needs normalized probabilities")
        return effective_sample_size(self.probabilities)

    def sample(self, rng: np.random.Generator) -> Particle:
        """Draw one particle according to the probabilities."""
        if not self.normalized:
            raise ValueError("sample() needs normalized probabilities")
        index = rng.choice(len(self.particles), p=self.probabilities)
        return self.particles[index]

    def means(self) -> np.ndarray:
        return np.array([p.message.mean for p in self.particles])

    def variances(self) -> np.ndarray:
        return np.array([p.variance for p in self.particles])

    def weighted_mean(self) -> float:
        """Probability-weighted average of the message means."""
        if not self.normalized:
            raise ValueError("weighted_mean() needs normalized probabilities")
        return float(np.dot(self.probabilities, self.means()))
