"""
===============================================================================
RESAMPLING — Weight Normalization and Multinomial Resampling
===============================================================================

1. exp_normalize
   - Turns log-weights into probabilities
   - Subtracts the maximum first so exp() cannot underflow to all zeros

2. effective_sample_size
   - ESS = 1 / Σ w_i²
   - N for uniform weights, 1 for full degeneracy

3. Multinomial resampling
   - Counts ~ Multinomial(N, p), so E[count_i] = N p_i
   - Counts always sum to exactly N
   - Output weights are exactly 1/N

Reference: Douc & Cappe (2005) "Comparison of Resampling Schemes"
"""

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .particle import ParticleApproximation


def exp_normalize(log_weights: np.ndarray) -> np.ndarray:
    """
    Numerically stable exponentiate-and-normalize.

    Args:
        log_weights: Unnormalized log-weights

    Returns:
        Probabilities summing to 1

    Raises:
        ValueError: NaN or +inf entries, or every entry equal to -inf
    """
    log_weights = np.asarray(log_weights, dtype=float)
    if log_weights.size == 0:
        raise ValueError("cannot normalize an empty weight array")
    if np.any(np.isnan(log_weights)) or np.any(np.isposinf(log_weights)):
        raise ValueError("log-weights contain NaN or +inf")
    max_log_weight = np.max(log_weights)
    if np.isneginf(max_log_weight):
        raise ValueError("all log-weights are -inf")

    weights = np.exp(log_weights - max_log_weight)
    return weights / np.sum(weights)


def effective_sample_size(weights: np.ndarray) -> float:
    """
    Compute effective sample size from normalized weights.

    ESS = 1 / Σ w_i²

    Args:
        weights: Normalized particle weights (sum to 1)

    Returns:
        Effective sample size
    """
    weights = np.asarray(weights, dtype=float).flatten()
    return float(1.0 / np.sum(weights ** 2))


def multinomial_counts(
    probabilities: np.ndarray,
    n_samples: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Number of copies of each index under multinomial resampling.

    Args:
        probabilities: Normalized weights
        n_samples: Total number of draws
        rng: Random source

    Returns:
        Integer array, same length as probabilities, summing to n_samples
    """
    probabilities = np.asarray(probabilities, dtype=float)
    # rng.multinomial rejects sums that drift above 1 by rounding
    probabilities = probabilities / np.sum(probabilities)
    return rng.multinomial(n_samples, probabilities)


def multinomial_resample(
    probabilities: np.ndarray,
    n_samples: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Selected source indices, grouped and in ascending order.

    Returns:
        Array of n_samples indices
    """
    counts = multinomial_counts(probabilities, n_samples, rng)
    return np.repeat(np.arange(len(counts)), counts)


def resample(
    approximation: 'ParticleApproximation',
    n_particles: int,
    rng: np.random.Generator,
) -> 'ParticleApproximation':
    """
    Multinomial resampling to a uniform-weight approximation.

    Particles are shared by reference; messages are immutable.

    Args:
        approximation: Normalized approximation
        n_particles: Output size
        rng: Random source

    Returns:
        New approximation with n_particles particles, each weighted 1/n_particles
    """
    from .particle import ParticleApproximation

    indices = multinomial_resample(approximation.probabilities, n_particles, rng)
    particles = [approximation.particles[i] for i in indices]
    return ParticleApproximation.uniform(particles)
