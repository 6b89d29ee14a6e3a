"""Exception types raised by the analysis core."""


class AnalysisError(Exception):
    """Base class for analysis failures."""


class InvalidInputError(AnalysisError, ValueError):
    """Raised when a buffer, sample rate or configuration value is unusable."""


class AnalysisTimeout(AnalysisError):
    """Raised inside a stage when its wall-clock budget is exhausted."""


class AnalysisCancelled(AnalysisError):
    """Raised when the caller cancels a running analysis."""
