"""
===============================================================================
BROWNIAN MESSAGES — Gaussian Sufficient Statistics Along Tree Edges
===============================================================================

A message summarizes the belief about the latent real value of a node given
its subtree:

    Message = (mean, variance, log_likelihood)

Leaves contribute exact observations (variance 0). A parent combines its
children by treating every child mean as a noisy observation of the shared
parent value, with noise variance

    child.variance + branch_variance

The product of these Gaussians is again Gaussian. Its normalizing constant is
the marginal likelihood of the child means, which is accumulated into the
parent's log_likelihood and later used as an importance-weight term.

Children are folded in pairwise:

    v12 = v1 * v2 / (v1 + v2)
    m12 = (m1 * v2 + m2 * v1) / (v1 + v2)
    ll += log N(m1 - m2; 0, v1 + v2)

which is the same as the precision-weighted formula but tolerates children
with zero variance.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

LOG_2PI = math.log(2.0 * math.pi)


@dataclass(frozen=True)
class Message:
    """
    Gaussian belief about a node's latent value.

    Attributes:
        mean: Posterior mean
        variance: Posterior variance (0 for an exact observation)
        log_likelihood: Accumulated log marginal likelihood of the subtree
    """
    mean: float
    variance: float
    log_likelihood: float = 0.0

    def sample(self, rng: np.random.Generator) -> float:
        """Draw one realization from N(mean, variance)."""
        if self.variance == 0.0:
            return self.mean
        return float(rng.normal(self.mean, math.sqrt(self.variance)))


def observation(value: float, count: int = 1) -> Message:
    """
    Leaf message for an already-known latent value.

    Args:
        value: The (possibly transformed) latent value
        count: Number of observations the value stands for
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    return Message(mean=float(value), variance=0.0, log_likelihood=0.0)


def _normal_log_density(x: float, variance: float) -> float:
    return -0.5 * (LOG_2PI + math.log(variance) + x * x / variance)


def combine(messages: Sequence[Message], branch_variance: float) -> Message:
    """
    Conjugate Gaussian posterior of a parent given its children's messages.

    Args:
        messages: Child messages, one per child (order does not change the result)
        branch_variance: Variance added on every parent-to-child edge

    Returns:
        Message whose log_likelihood is the children's accumulated
        log-likelihoods plus the log-normalizing constant of the product
    """
    if not messages:
        raise ValueError("combine() needs at least one message")
    if not (branch_variance >= 0.0 and math.isfinite(branch_variance)):
        raise ValueError(f"branch_variance must be finite and >= 0, got {branch_variance}")

    if len(messages) == 1 and branch_variance == 0.0:
        return messages[0]

    first = messages[0]
    mean = first.mean
    variance = first.variance + branch_variance
    log_likelihood = first.log_likelihood

    for child in messages[1:]:
        child_variance = child.variance + branch_variance
        total = variance + child_variance
        if total <= 0.0:
            raise ValueError("cannot combine two messages that both have zero variance")
        log_likelihood += child.log_likelihood + _normal_log_density(mean - child.mean, total)
        mean = (mean * child_variance + child.mean * variance) / total
        variance = variance * child_variance / total

    return Message(mean=mean, variance=variance, log_likelihood=log_likelihood)
