"""
===============================================================================
DC-SMC ENGINE — Divide-and-Conquer Sequential Monte Carlo
===============================================================================

Builds a weighted sample of the posterior at every tree node from its
children's samples, bottom-up.

Workflow per node (children always finished first):
    1. Leaf:     N Beta proposals, weight = logPi - logProposal
       Internal: for each particle index k
           a. sample branch variance v_k from its Exponential prior
           b. take the index-k message of every child
           c. combine them under v_k
           d. weight = Σ log child weights at k
                       + combined.log_likelihood
                       - Σ child log-likelihoods
                       + variance_proposal_correction(v_k)
    2. Exp-normalize the N log-weights (max subtracted)
    3. Report ESS and relative ESS
    4. Multinomial resampling to N uniform-weight particles
    5. Summary samples for nodes above the level cutoff

Index coupling: output particle k combines only the index-k particles of the
children. Each child was resampled independently, so index k across children
is a draw from the product of the child approximations.

Randomness comes from one numpy Generator consumed in a fixed order, so the
same seed, N and tree reproduce the same output exactly.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from .brownian import combine
from .config import DCSMCConfig
from .diagnostics import DiagnosticsSink, MemoryDiagnostics
from .errors import TreeStructureError
from .leaf_proposal import LeafProposal, inverse_transform
from .particle import Particle, ParticleApproximation
from .resampling import resample
from .tree import Node, TreeProvider

logger = logging.getLogger(__name__)

# Relative ESS below this is logged as a warning
DEGENERACY_WARNING_RATIO = 0.01


@dataclass
class NodeReport:
    """ESS of one node, measured after normalization and before resampling."""
    level: int
    label: str
    path: str
    ess: float
    relative_ess: float
    is_leaf: bool


@dataclass
class DCSMCResult:
    """
    Result of one DC-SMC pass.

    Attributes:
        root: Resampled approximation at the root
        node_reports: One entry per node, in processing order
        runtime_sec: Wall-clock time of the pass
        config: Settings used for the run
    """
    root: ParticleApproximation
    node_reports: List[NodeReport]
    runtime_sec: float
    config: DCSMCConfig
    use_transform: bool = False

    @property
    def root_report(self) -> NodeReport:
        return self.node_reports[-1]

    def root_mean(self) -> float:
        """Average root message mean, mapped back to probability scale."""
        means = inverse_transform(self.root.means(), self.use_transform)
        return float(np.mean(means))

    def lowest_ess(self, n: int = 5) -> List[NodeReport]:
        return sorted(self.node_reports, key=lambda r: r.relative_ess)[:n]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "root_mean": self.root_mean(),
            "root_relative_ess": self.root_report.relative_ess,
            "n_nodes": len(self.node_reports),
            "runtime_sec": self.runtime_sec,
            "config": self.config.to_dict(),
        }


class DCSMCEngine:
    """
    Divide-and-conquer SMC over a tree of binomial leaves.

    The tree and the diagnostics sink are injected; the random source is passed
    to each call so that a run is fully determined by its Generator.
    """

    def __init__(
        self,
        tree: TreeProvider,
        config: Optional[DCSMCConfig] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ):
        self.tree = tree
        self.config = config if config is not None else DCSMCConfig()
        self.config.validate()
        self.diagnostics = diagnostics if diagnostics is not None else MemoryDiagnostics()
        self.n_particles = self.config.n_particles
        self.node_reports: List[NodeReport] = []

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def process(self, node: Node, rng: np.random.Generator) -> ParticleApproximation:
        """
        Run DC-SMC on the subtree rooted at node.

        Post-order with an explicit stack; each child's approximation is
        dropped as soon as its parent has consumed it.

        Returns:
            Resampled approximation of size N with uniform weights
        """
        finished: Dict[int, ParticleApproximation] = {}
        stack = [(node, False)]
        while stack:
            current, expanded = stack.pop()
            children = self.tree.children(current)
            if expanded or not children:
                child_approximations = [finished.pop(c.index) for c in children]
                finished[current.index] = self._process_node(current, children, child_approximations, rng)
                continue
            stack.append((current, True))
            for child in reversed(children):
                stack.append((child, False))
        return finished[node.index]

    def _process_node(
        self,
        node: Node,
        children: List[Node],
        child_approximations: List[ParticleApproximation],
        rng: np.random.Generator,
    ) -> ParticleApproximation:
        if children:
            if self.tree.has_datum(node):
                raise TreeStructureError(f"internal node {node.label!r} carries leaf data")
            result = self._combine_children(child_approximations, rng)
        else:
            result = self._leaf_approximation(node, rng)

        result.normalize()

        ess = result.effective_sample_size()
        relative_ess = ess / self.n_particles
        path = "-".join(self.tree.path(node))
        self.node_reports.append(
            NodeReport(node.level, node.label, path, ess, relative_ess, not children)
        )
        if relative_ess < DEGENERACY_WARNING_RATIO:
            logger.warning(
                "Weight degeneracy at %s (level %d): ESS=%.2f (%.4f of N)",
                path, node.level, ess, relative_ess,
            )
        self._emit(self.diagnostics.record_ess, node.level, node.label, ess, relative_ess)
        self._emit(self.diagnostics.flush)

        result = resample(result, self.n_particles, rng)

        if node.level < self.config.level_cutoff_for_output:
            self._report_summary(path, result, is_leaf=not children, rng=rng)

        logger.debug("Processed %s: ESS=%.1f relative=%.3f", path, ess, relative_ess)
        return result

    # ------------------------------------------------------------------
    # Proposals and weighting
    # ------------------------------------------------------------------

    def _leaf_approximation(self, node: Node, rng: np.random.Generator) -> ParticleApproximation:
        datum = self.tree.datum(node)
        proposal = LeafProposal(datum, use_transform=self.config.use_transform)
        messages, log_weights = proposal.propose_many(rng, self.n_particles)
        particles = [Particle(message) for message in messages]
        return ParticleApproximation(particles=particles, probabilities=log_weights)

    def _combine_children(
        self,
        child_approximations: List[ParticleApproximation],
        rng: np.random.Generator,
    ) -> ParticleApproximation:
        n = self.n_particles
        variances = self.sample_variances(rng, n)
        # Children arrive resampled, so this is the constant k*log(1/N)
        log_child_weights = sum(np.log(c.probabilities) for c in child_approximations)

        particles: List[Particle] = []
        log_weights = np.empty(n)
        for k in range(n):
            variance = float(variances[k])
            messages = [c.particles[k].message for c in child_approximations]
            combined = combine(messages, variance)

            weight = log_child_weights[k] + combined.log_likelihood
            for message in messages:
                weight -= message.log_likelihood
            weight += self.variance_proposal_correction(variance)

            particles.append(Particle(combined, variance))
            log_weights[k] = weight

        return ParticleApproximation(particles=particles, probabilities=log_weights)

    def sample_variances(self, rng: np.random.Generator, n: int) -> np.ndarray:
        """Branch variances from the Exponential(rate) prior."""
        return rng.exponential(scale=1.0 / self.config.variance_prior_rate, size=n)

    def variance_proposal_correction(self, variance: float) -> float:
        """
        log prior(v) - log proposal(v) for a sampled branch variance.

        Zero while variances are proposed from their own prior. A different
        variance proposal needs the real density ratio here.
        """
        return 0.0

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _report_summary(
        self,
        path: str,
        approximation: ParticleApproximation,
        is_leaf: bool,
        rng: np.random.Generator,
    ) -> None:
        n_points = self.config.n_summary_samples
        indices = np.arange(n_points) % self.n_particles
        means = approximation.means()[indices]
        message_variances = np.array(
            [p.message.variance for p in approximation.particles]
        )[indices]
        mean_samples = inverse_transform(
            rng.normal(means, np.sqrt(message_variances)),
            self.config.use_transform,
        )
        variance_samples = None if is_leaf else approximation.variances()[indices]

        self._emit(self.diagnostics.record_summary, path, mean_samples, variance_samples)
        self._emit(self.diagnostics.flush)

    def _emit(self, method, *args) -> None:
        try:
            method(*args)
        except OSError as e:
            logger.warning("Diagnostics write failed: %s", e)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, rng: Optional[np.random.Generator] = None) -> DCSMCResult:
        """Process the whole tree once, starting at the root."""
        if rng is None:
            rng = np.random.default_rng(self.config.seed)
        validate = getattr(self.tree, "validate", None)
        if validate is not None:
            validate()

        self.node_reports = []
        root = self.tree.root()
        logger.info("Starting DC-SMC with N=%d particles from %s", self.n_particles, root.label)

        t_start = time.time()
        approximation = self.process(root, rng)
        t_elapsed = time.time() - t_start

        logger.info("Finished %d nodes in %.1fs", len(self.node_reports), t_elapsed)
        return DCSMCResult(
            root=approximation,
            node_reports=list(self.node_reports),
            runtime_sec=t_elapsed,
            config=self.config,
            use_transform=self.config.use_transform,
        )


def run_dcsmc(
    tree: TreeProvider,
    config: Optional[DCSMCConfig] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
    rng: Optional[np.random.Generator] = None,
) -> DCSMCResult:
    """
    One DC-SMC pass over the whole tree.

    Args:
        tree: Hierarchy with binomial leaf data
        config: Run settings (defaults if None)
        diagnostics: Sink for ESS and summary records (in-memory if None)
        rng: Random source (seeded from config.seed if None)
    """
    engine = DCSMCEngine(tree, config=config, diagnostics=diagnostics)
    return engine.run(rng)
