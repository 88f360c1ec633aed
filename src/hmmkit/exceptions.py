"""
Exception hierarchy for hmmkit.
"""


class HMMError(ValueError):
    """Base exception for hmmkit."""
    pass


class DimensionMismatch(HMMError):
    """Shapes of parameters or observations do not agree."""
    pass


class InvalidModel(HMMError):
    """Model parameters are empty or not valid probabilities."""
    pass


class InvalidObservation(HMMError):
    """Observation outside the emission distribution's support."""
    pass


class InvalidState(HMMError):
    """Hidden-state index outside [0, N)."""
    pass


class EmptySequence(HMMError):
    """Zero-length sequence, or no sequences at all."""
    pass


class ZeroLikelihood(HMMError):
    """Sequence has probability zero under the model."""
    pass
