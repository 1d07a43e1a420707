"""
===============================================================================
LEAF PROPOSAL — Beta Importance Proposal for Binomial Leaves
===============================================================================

For a leaf with n trials and s successes the success probability is proposed
from its exact posterior under a flat Beta(1, 1) prior:

    p ~ Beta(1 + s, 1 + n - s)

    logPi       = log C(n, s) + s log p + (n - s) log(1 - p)
    logProposal = log Beta(1 + s, 1 + n - s).pdf(p)
    logWeight   = logPi - logProposal

The proposed p is mapped to the real line (logit, if enabled) and becomes the
mean of a zero-variance leaf message.
"""

from typing import List, Tuple, Union

import numpy as np
from scipy import stats
from scipy.special import expit, gammaln, logit, xlog1py, xlogy

from .brownian import Message, observation
from .errors import InvalidBinomialParameters
from .tree import Datum

ArrayLike = Union[float, np.ndarray]


def log_binomial_coefficient(n_trials: int, n_successes: int) -> float:
    """log C(n, s) via log-gamma."""
    return float(gammaln(n_trials + 1) - gammaln(n_successes + 1) - gammaln(n_trials - n_successes + 1))


def log_binomial_pr(n_trials: int, n_successes: int, pr_of_success: ArrayLike) -> ArrayLike:
    """
    Log binomial probability mass.

    Boundary terms use xlogy/xlog1py, so 0 * log(0) evaluates to 0 and the
    result is finite for s = 0 and s = n whenever p is in (0, 1).

    Raises:
        InvalidBinomialParameters: n < 0, s < 0, s > n or p outside [0, 1]
    """
    if n_trials < 0 or n_successes < 0 or n_successes > n_trials:
        raise InvalidBinomialParameters(
            f"invalid binomial counts: trials={n_trials}, successes={n_successes}"
        )
    p = np.asarray(pr_of_success, dtype=float)
    if np.any(np.isnan(p)) or np.any(p < 0.0) or np.any(p > 1.0):
        raise InvalidBinomialParameters(f"probability outside [0, 1]: {pr_of_success}")

    result = (
        log_binomial_coefficient(n_trials, n_successes)
        + xlogy(n_successes, p)
        + xlog1py(n_trials - n_successes, -p)
    )
    if np.ndim(result) == 0:
        return float(result)
    return result


def transform(number_on_simplex: ArrayLike, use_transform: bool) -> ArrayLike:
    """Map a probability to message space (logit when enabled)."""
    if use_transform:
        return logit(number_on_simplex)
    return number_on_simplex


def inverse_transform(real_number: ArrayLike, use_transform: bool) -> ArrayLike:
    """Map a message-space value back to a probability (expit when enabled)."""
    if use_transform:
        return expit(real_number)
    return real_number


class LeafProposal:
    """
    Beta proposal for one binomial leaf.

    Attributes:
        datum: Observed counts for the leaf
        use_transform: Whether leaf message means live on the logit scale
    """

    def __init__(self, datum: Datum, use_transform: bool = False):
        self.datum = datum
        self.use_transform = use_transform
        self.alpha = 1.0 + datum.number_of_successes
        self.beta = 1.0 + (datum.number_of_trials - datum.number_of_successes)
        self._distribution = stats.beta(self.alpha, self.beta)

    def log_weights(self, proposed: np.ndarray) -> np.ndarray:
        """logPi - logProposal for an array of proposed probabilities."""
        log_pi = log_binomial_pr(
            self.datum.number_of_trials,
            self.datum.number_of_successes,
            proposed,
        )
        log_proposed = self._distribution.logpdf(proposed)
        return np.asarray(log_pi - log_proposed, dtype=float)

    def propose(self, rng: np.random.Generator) -> Tuple[Message, float]:
        """Draw a single leaf message and its log-weight."""
        proposed = float(rng.beta(self.alpha, self.beta))
        log_weight = float(self.log_weights(np.array([proposed]))[0])
        return observation(transform(proposed, self.use_transform), 1), log_weight

    def propose_many(self, rng: np.random.Generator, n: int) -> Tuple[List[Message], np.ndarray]:
        """
        Draw n leaf messages in one call.

        Returns:
            (messages, log_weights) with len(messages) == len(log_weights) == n
        """
        proposed = rng.beta(self.alpha, self.beta, size=n)
        log_weights = self.log_weights(proposed)
        values = transform(proposed, self.use_transform)
        messages = [observation(v, 1) for v in values]
        return messages, log_weights
