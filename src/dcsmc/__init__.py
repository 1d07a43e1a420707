"""
===============================================================================
DCSMC — Divide-and-Conquer Sequential Monte Carlo for Hierarchical Counts
===============================================================================

Posterior inference for a tree of binomial observations linked by a latent
Brownian motion.

Architecture:
    Leaf     = Beta proposal for its success probability
    Internal = Gaussian combination of its children's messages under a
               sampled branch variance

    For each node, children first:
    1. Propose: leaf draws or index-coupled child combinations
    2. Weight: importance log-weights, exp-normalized
    3. Report: ESS and summary statistics to the diagnostics sink
    4. Resample: multinomial, back to N uniform particles

Reference: Lindsten et al. (2017) "Divide-and-Conquer with Sequential Monte Carlo"
"""

from .brownian import Message, combine, observation
from .config import DCSMCConfig, DEFAULT_DCSMC_CONFIG
from .dataset import load_dataset, tree_from_frame
from .diagnostics import (
    CsvDiagnostics,
    DiagnosticsSink,
    MemoryDiagnostics,
)
from .errors import (
    ConfigurationError,
    DCSMCError,
    InvalidBinomialParameters,
    TreeStructureError,
)
from .leaf_proposal import (
    LeafProposal,
    inverse_transform,
    log_binomial_pr,
    transform,
)
from .particle import Particle, ParticleApproximation
from .resampling import (
    effective_sample_size,
    exp_normalize,
    multinomial_resample,
    resample,
)
from .smc_engine import DCSMCEngine, DCSMCResult, NodeReport, run_dcsmc
from .tree import Datum, Node, Tree, TreeProvider

__version__ = "0.1.0"

__all__ = [
    # Messages
    'Message',
    'combine',
    'observation',
    # Configuration
    'DCSMCConfig',
    'DEFAULT_DCSMC_CONFIG',
    # Data
    'Datum',
    'Node',
    'Tree',
    'TreeProvider',
    'load_dataset',
    'tree_from_frame',
    # Diagnostics
    'CsvDiagnostics',
    'DiagnosticsSink',
    'MemoryDiagnostics',
    # Errors
    'ConfigurationError',
    'DCSMCError',
    'InvalidBinomialParameters',
    'TreeStructureError',
    # Leaf proposal
    'LeafProposal',
    'inverse_transform',
    'log_binomial_pr',
    'transform',
    # Particles
    'Particle',
    'ParticleApproximation',
    # Resampling
    'effective_sample_size',
    'exp_normalize',
    'multinomial_resample',
    'resample',
    # Engine
    'DCSMCEngine',
    'DCSMCResult',
    'NodeReport',
    'run_dcsmc',
]
