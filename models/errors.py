"""
Benchmark Errors

Exception taxonomy shared by the partitioner, the model strategies and the
harness. Configuration and partition errors abort a run; degenerate inputs
are scoped to a single model variant.
"""


class BenchmarkError(Exception):
    """Base class for all benchmark errors."""
    pass


class InsufficientDataError(BenchmarkError):
    """A class has too few records to stratify or fit."""
    pass


class DegenerateInputError(BenchmarkError):
    """A training slice is missing classes or cannot support the model."""
    pass


class UnfittedModelError(BenchmarkError):
    """Prediction was requested before the model was fitted."""
    pass


class InvalidConfigurationError(BenchmarkError, ValueError):
    """Malformed configuration or hyperparameter grid."""
    pass
