"""
Model Evaluation and Tuning

Hyperparameter selection driven by internal validation error, and held-out
evaluation of a fitted model.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple
import numpy as np
import pandas as pd

from .classifiers import FittedModel, ModelStrategy
from .errors import InvalidConfigurationError
from .scoring import ConfusionMatrix, score


class SelectionResult(NamedTuple):
    """Outcome of a hyperparameter search."""
    best_hyperparameters: Dict[str, Any]
    best_error: float
    cv_results: pd.DataFrame


class HyperparameterSelector:
    """Pick the candidate with the lowest internal validation error."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def select_best(
            self,
            strategy: ModelStrategy,
            X: np.ndarray,
            y: np.ndarray,
            candidate_grid: Sequence[Dict[str, Any]],
            classes: Optional[Sequence[Any]] = None,
            random_state: Optional[int] = None
    ) -> SelectionResult:
        """
        Evaluate every candidate and return the best one.

        Every candidate is scored with the same random_state, so CV-based
        strategies compare candidates on identical folds. Ties go to the
        first candidate in grid order.

        Args:
            strategy: Model strategy to tune
            X: Training predictors
            y: Training labels
            candidate_grid: Hyperparameter dicts to try (e.g. [{'n_neighbors': 3}, ...])
            classes: Full class set, used to detect degenerate folds
            random_state: Seed for the strategy's internal validation

        Returns:
            SelectionResult(best_hyperparameters, best_error, cv_results)
        """
        candidates = list(candidate_grid)
        if not candidates:
            raise InvalidConfigurationError(f"Empty candidate grid for {strategy.name}")

        if self.verbose and len(candidates) > 1:
            print(f"Tuning {strategy.name} over {len(candidates)} candidates...")

        records: List[Dict[str, Any]] = []
        best_index = 0
        best_error = np.inf

        for i, params in enumerate(candidates):
            error = strategy.internal_validation_error(
                X, y, params, classes=classes, random_state=random_state
            )
            records.append({**params, 'cv_error': error})
            if error < best_error:
                best_error = error
                best_index = i

        cv_results = pd.DataFrame(records)
        cv_results['rank'] = cv_results['cv_error'].rank(method='first').astype(int)

        best = dict(candidates[best_index])
        if self.verbose:
            print(f"  {strategy.name}: best {best} (internal error {best_error:.4f})")

        return SelectionResult(best, float(best_error), cv_results)


class ModelEvaluator:
    """Held-out evaluation of a fitted model."""

    def evaluate(
            self,
            strategy: ModelStrategy,
            fitted: FittedModel,
            X_test: np.ndarray,
            y_test: np.ndarray,
            classes: Optional[Sequence[Any]] = None
    ) -> Tuple[ConfusionMatrix, float]:
        """
        Predict the test predictors and score against the test labels.

        Labels are only used for scoring, never passed to the model.
        """
        predicted = strategy.predict(X_test, fitted)
        return score(predicted, y_test, classes=classes if classes is not None else fitted.classes)
