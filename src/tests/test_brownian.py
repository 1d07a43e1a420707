#!/usr/bin/env python3
"""
test_brownian.py — Gaussian message construction and combination
"""
import itertools
import math
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest
from scipy import integrate, stats

from dcsmc.brownian import Message, combine, observation


class TestObservation:
    """Leaf messages."""

    def test_observation_is_exact(self):
        m = observation(0.37, 1)
        assert m.mean == 0.37
        assert m.variance == 0.0
        assert m.log_likelihood == 0.0

    def test_observation_rejects_zero_count(self):
        with pytest.raises(ValueError):
            observation(0.5, 0)

    def test_message_is_immutable(self):
        m = observation(0.1)
        with pytest.raises(AttributeError):
            m.mean = 0.2

    def test_sample_zero_variance_returns_mean(self):
        rng = np.random.default_rng(0)
        assert observation(1.25).sample(rng) == 1.25

    def test_sample_uses_variance(self):
        rng = np.random.default_rng(0)
        m = Message(mean=2.0, variance=0.25)
        draws = np.array([m.sample(rng) for _ in range(4000)])
        assert abs(draws.mean() - 2.0) < 0.05
        assert abs(draws.std() - 0.5) < 0.05


class TestCombine:
    """Conjugate Gaussian combination of child messages."""

    @pytest.mark.parametrize("message", [
        observation(0.3),
        Message(mean=-1.5, variance=0.2, log_likelihood=-3.1),
        Message(mean=4.0, variance=0.0, log_likelihood=2.0),
    ])
    def test_single_child_zero_variance_is_identity(self, message):
        assert combine([message], 0.0) == message

    def test_single_child_adds_branch_variance(self):
        m = Message(mean=0.5, variance=0.2, log_likelihood=-1.0)
        combined = combine([m], 0.3)
        assert combined.mean == pytest.approx(0.5)
        assert combined.variance == pytest.approx(0.5)
        assert combined.log_likelihood == pytest.approx(-1.0)

    def test_two_exact_children(self):
        b = 0.1
        combined = combine([observation(0.8), observation(0.2)], b)
        assert combined.mean == pytest.approx(0.5)
        assert combined.variance == pytest.approx(b / 2)
        expected_ll = stats.norm.logpdf(0.6, loc=0.0, scale=math.sqrt(2 * b))
        assert combined.log_likelihood == pytest.approx(expected_ll)

    def test_precision_weighted_posterior(self):
        b = 0.1
        children = [
            Message(0.1, 0.3, -0.5),
            Message(0.4, 0.5, -1.0),
            Message(-0.2, 0.2, 0.25),
        ]
        combined = combine(children, b)

        precisions = np.array([1.0 / (c.variance + b) for c in children])
        means = np.array([c.mean for c in children])
        assert combined.variance == pytest.approx(1.0 / precisions.sum())
        assert combined.mean == pytest.approx(np.dot(precisions, means) / precisions.sum())

    def test_log_likelihood_is_normalizing_constant(self):
        b = 0.1
        children = [
            Message(0.1, 0.3, -0.5),
            Message(0.4, 0.5, -1.0),
            Message(-0.2, 0.2, 0.25),
        ]
        combined = combine(children, b)

        def integrand(x):
            return np.prod([
                stats.norm.pdf(c.mean, loc=x, scale=math.sqrt(c.variance + b)) for c in children
            ])

        value, _ = integrate.quad(integrand, -np.inf, np.inf)
        accumulated = sum(c.log_likelihood for c in children)
        assert combined.log_likelihood == pytest.approx(accumulated + math.log(value), abs=1e-6)

    def test_order_does_not_matter(self):
        children = [Message(0.1, 0.3), Message(0.4, 0.0), Message(-0.2, 0.2)]
        reference = combine(children, 0.05)
        for permutation in itertools.permutations(children):
            combined = combine(list(permutation), 0.05)
            assert combined.mean == pytest.approx(reference.mean)
            assert combined.variance == pytest.approx(reference.variance)
            assert combined.log_likelihood == pytest.approx(reference.log_likelihood)

    def test_exact_child_pins_the_mean(self):
        combined = combine([observation(0.7), Message(0.1, 0.4)], 0.0)
        assert combined.mean == pytest.approx(0.7)
        assert combined.variance == 0.0

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            combine([], 0.1)

    @pytest.mark.parametrize("branch_variance", [-0.1, float("nan"), float("inf")])
    def test_invalid_branch_variance_raises(self, branch_variance):
        with pytest.raises(ValueError):
            combine([observation(0.1)], branch_variance)

    def test_two_exact_children_without_branch_variance_raises(self):
        with pytest.raises(ValueError):
            combine([observation(0.1), observation(0.2)], 0.0)
