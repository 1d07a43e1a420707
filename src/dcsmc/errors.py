"""
Exceptions raised by the DC-SMC package.

All of them abort the run: there is no recovery path inside the engine.
"""


class DCSMCError(Exception):
    """Base class for every error raised by dcsmc."""


class InvalidBinomialParameters(DCSMCError, ValueError):
    """Raised for negative counts, successes > trials, or p outside [0, 1]."""


class TreeStructureError(DCSMCError):
    """Raised when the tree and its leaf data disagree."""


class ConfigurationError(DCSMCError, ValueError):
    """Raised by DCSMCConfig.validate()."""
