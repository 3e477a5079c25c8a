"""Models Package - Model strategies, density estimation, selection and scoring"""

from .errors import (
    BenchmarkError,
    InsufficientDataError,
    DegenerateInputError,
    UnfittedModelError,
    InvalidConfigurationError
)
from .scoring import ConfusionMatrix, score
from .density import BANDWIDTH_RULES, select_bandwidth, log_density
from .kernel_discriminant import KernelDiscriminantAnalysis
from .classifiers import (
    FittedModel,
    ModelStrategy,
    KernelDiscriminantStrategy,
    NearestNeighborStrategy,
    RandomForestStrategy
)
from .evaluation import HyperparameterSelector, ModelEvaluator, SelectionResult

__all__ = [
    # Errors
    'BenchmarkError',
    'InsufficientDataError',
    'DegenerateInputError',
    'UnfittedModelError',
    'InvalidConfigurationError',

    # Scoring
    'ConfusionMatrix',
    'score',

    # Density estimation
    'BANDWIDTH_RULES',
    'select_bandwidth',
    'log_density',
    'KernelDiscriminantAnalysis',

    # Strategies
    'FittedModel',
    'ModelStrategy',
    'KernelDiscriminantStrategy',
    'NearestNeighborStrategy',
    'RandomForestStrategy',

    # Selection / evaluation
    'HyperparameterSelector',
    'ModelEvaluator',
    'SelectionResult',
]
