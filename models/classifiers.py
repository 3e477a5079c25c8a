"""
Model Strategies

One strategy per model family, all behind the same interface:

- fit(X, y, hyperparameters) -> FittedModel
- predict(X, fitted) -> labels
- internal_validation_error(X, y, hyperparameters) -> float

The internal validation error only ever sees training data. How it is
computed depends on the family: stratified k-fold CV for kernel discriminant
analysis, repeated stratified k-fold CV for nearest neighbours, out-of-bag
error for the random forest.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import warnings
import numpy as np
from joblib import Parallel, delayed, hash as joblib_hash
from sklearn.base import BaseEstimator
from sklearn.ensemble import RandomForestClassifier as SkRandomForestClassifier
from sklearn.model_selection import RepeatedStratifiedKFold, StratifiedKFold
from sklearn.neighbors import KNeighborsClassifier
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler

from .density import BANDWIDTH_RULES
from .errors import DegenerateInputError, InvalidConfigurationError, UnfittedModelError
from .kernel_discriminant import KernelDiscriminantAnalysis, PRIOR_MODES


@dataclass(frozen=True)
class FittedModel:
    """A trained decision boundary for one model variant."""
    name: str
    hyperparameters: Dict[str, Any]
    estimator: BaseEstimator = field(repr=False)
    classes: tuple = ()

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.estimator.predict(np.asarray(X, dtype=float))


def effective_folds(y: np.ndarray, requested: int, warn: bool = True) -> int:
    """Number of CV folds, capped by the size of the smallest class."""
    _, counts = np.unique(y, return_counts=True)
    n_folds = max(2, min(requested, int(counts.min())))
    if warn and n_folds < requested:
        warnings.warn(
            f"Smallest class has {counts.min()} training records; "
            f"using {n_folds} CV folds instead of {requested}"
        )
    return n_folds


def _fold_error(strategy, X, y, train_idx, test_idx, hyperparameters, classes, random_state) -> float:
    estimator = strategy._fit_estimator(X[train_idx], y[train_idx], hyperparameters, classes, random_state)
    predicted = estimator.predict(X[test_idx])
    return float(np.mean(predicted != y[test_idx]))


class ModelStrategy(ABC):
    """Abstract base class for all model strategies."""

    family = ''

    def __init__(self, name: str, n_jobs: int = 1):
        self.name = name
        self.n_jobs = n_jobs
        self.fitted_model: Optional[FittedModel] = None

    @abstractmethod
    def candidate_grid(self, n_samples: int, y: Optional[np.ndarray] = None) -> List[Dict[str, Any]]:
        """Hyperparameter candidates to search, in tie-break order."""
        pass

    @abstractmethod
    def _build_estimator(self, hyperparameters: Dict[str, Any], random_state: Optional[int]) -> BaseEstimator:
        pass

    @abstractmethod
    def internal_validation_error(
            self,
            X: np.ndarray,
            y: np.ndarray,
            hyperparameters: Dict[str, Any],
            classes: Optional[Sequence[Any]] = None,
            random_state: Optional[int] = None
    ) -> float:
        """Generalisation error estimated from training data only."""
        pass

    def validate(self, n_features: int) -> None:
        """Check configuration against the data shape before any fitting."""
        pass

    def _fit_estimator(self, X, y, hyperparameters, classes=None, random_state=None) -> BaseEstimator:
        X = np.asarray(X, dtype=float)
        y = np.asarray(y)
        if len(y) == 0:
            raise DegenerateInputError(f"{self.name}: empty training set")

        if classes is not None:
            missing = [c for c in classes if not np.any(y == c)]
            if missing:
                raise DegenerateInputError(
                    f"{self.name}: no training records for class(es) {missing}"
                )

        estimator = self._build_estimator(hyperparameters, random_state)
        estimator.fit(X, y)
        return estimator

    def fit(
            self,
            X: np.ndarray,
            y: np.ndarray,
            hyperparameters: Dict[str, Any],
            classes: Optional[Sequence[Any]] = None,
            random_state: Optional[int] = None
    ) -> FittedModel:
        """Train one decision boundary with the given hyperparameters."""
        estimator = self._fit_estimator(X, y, hyperparameters, classes, random_state)
        if classes is None:
            classes = np.unique(y)
        self.fitted_model = FittedModel(
            name=self.name,
            hyperparameters=dict(hyperparameters),
            estimator=estimator,
            classes=tuple(classes)
        )
        return self.fitted_model

    def predict(self, X: np.ndarray, fitted: Optional[FittedModel] = None) -> np.ndarray:
        """Predict one label per record."""
        fitted = fitted if fitted is not None else self.fitted_model
        if fitted is None:
            raise UnfittedModelError(f"{self.name} is not fitted.")
        return fitted.predict(X)

    def _cross_validated_error(self, X, y, hyperparameters, classes, splitter, random_state) -> float:
        X = np.asarray(X, dtype=float)
        y = np.asarray(y)
        folds = list(splitter.split(X, y))

        errors = Parallel(n_jobs=self.n_jobs)(
            delayed(_fold_error)(self, X, y, train_idx, test_idx, hyperparameters, classes, random_state)
            for train_idx, test_idx in folds
        )
        return float(np.mean(errors))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name='{self.name}')"


class KernelDiscriminantStrategy(ModelStrategy):
    """Kernel discriminant analysis with a fixed bandwidth selection rule."""

    family = 'kda'
    _labels = {'plugin': 'plugin', 'lscv': 'LSCV', 'scv': 'SCV'}

    def __init__(self, bandwidth_rule: str = 'plugin', cv_folds: int = 10, priors: str = 'equal', n_jobs: int = 1):
        super().__init__(f"KDA-{self._labels.get(bandwidth_rule, bandwidth_rule)}", n_jobs=n_jobs)
        self.bandwidth_rule = bandwidth_rule
        self.cv_folds = cv_folds
        self.priors = priors

    def validate(self, n_features: int) -> None:
        if self.bandwidth_rule not in BANDWIDTH_RULES:
            raise InvalidConfigurationError(
                f"Unknown bandwidth rule '{self.bandwidth_rule}'. Choose from {BANDWIDTH_RULES}"
            )
        if self.priors not in PRIOR_MODES:
            raise InvalidConfigurationError(f"Unknown priors mode '{self.priors}'")
        if self.cv_folds < 2:
            raise InvalidConfigurationError(f"cv_folds must be >= 2, got {self.cv_folds}")

    def candidate_grid(self, n_samples: int, y: Optional[np.ndarray] = None) -> List[Dict[str, Any]]:
        return [{'bandwidth_rule': self.bandwidth_rule}]

    def _build_estimator(self, hyperparameters, random_state):
        return KernelDiscriminantAnalysis(
            bandwidth_rule=hyperparameters.get('bandwidth_rule', self.bandwidth_rule),
            priors=self.priors
        )

    def internal_validation_error(self, X, y, hyperparameters, classes=None, random_state=None) -> float:
        splitter = StratifiedKFold(
            n_splits=effective_folds(np.asarray(y), self.cv_folds),
            shuffle=True,
            random_state=random_state
        )
        return self._cross_validated_error(X, y, hyperparameters, classes, splitter, random_state)


class NearestNeighborStrategy(ModelStrategy):
    """K-nearest neighbours, k tuned by repeated stratified k-fold CV."""

    family = 'knn'

    def __init__(
            self,
            k_grid: Sequence[int] = tuple(range(1, 51)),
            cv_folds: int = 10,
            cv_repeats: int = 3,
            standardize: bool = False,
            n_jobs: int = 1
    ):
        super().__init__("KNN", n_jobs=n_jobs)
        self.k_grid = list(k_grid)
        self.cv_folds = cv_folds
        self.cv_repeats = cv_repeats
        self.standardize = standardize

    def validate(self, n_features: int) -> None:
        if not self.k_grid:
            raise InvalidConfigurationError("k candidate grid is empty")
        bad = [k for k in self.k_grid if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1]
        if bad:
            raise InvalidConfigurationError(f"k candidates must be positive integers, got {bad}")
        if self.cv_folds < 2:
            raise InvalidConfigurationError(f"cv_folds must be >= 2, got {self.cv_folds}")
        if self.cv_repeats < 1:
            raise InvalidConfigurationError(f"cv_repeats must be >= 1, got {self.cv_repeats}")

    def candidate_grid(self, n_samples: int, y: Optional[np.ndarray] = None) -> List[Dict[str, Any]]:
        """
        Sorted, de-duplicated k values that fit inside every CV training fold.

        Ascending order makes the selector's first-minimum rule prefer the
        smaller k on ties.

        With training labels `y`, the bound uses the fold count that
        internal_validation_error will actually run with, and the largest
        stratified test fold (at most ceil(n_c / folds) records per class).
        """
        k_values = sorted(set(int(k) for k in self.k_grid))
        if y is not None:
            _, counts = np.unique(np.asarray(y), return_counts=True)
            n_folds = effective_folds(y, self.cv_folds, warn=False)
            largest_fold = int(np.ceil(counts / n_folds).sum())
        else:
            largest_fold = int(np.ceil(n_samples / self.cv_folds))
        max_k = n_samples - largest_fold

        usable = [k for k in k_values if k <= max_k]
        if not usable:
            raise DegenerateInputError(
                f"{self.name}: no k candidate fits a CV training fold of {max_k} records"
            )
        if len(usable) < len(k_values):
            warnings.warn(
                f"{self.name}: dropping k > {max_k} (too large for {n_samples} training records)"
            )
        return [{'n_neighbors': k} for k in usable]

    def _build_estimator(self, hyperparameters, random_state):
        knn = KNeighborsClassifier(n_neighbors=int(hyperparameters['n_neighbors']))
        if self.standardize:
            return make_pipeline(StandardScaler(), knn)
        return knn

    def internal_validation_error(self, X, y, hyperparameters, classes=None, random_state=None) -> float:
        splitter = RepeatedStratifiedKFold(
            n_splits=effective_folds(np.asarray(y), self.cv_folds),
            n_repeats=self.cv_repeats,
            random_state=random_state
        )
        return self._cross_validated_error(X, y, hyperparameters, classes, splitter, random_state)


class RandomForestStrategy(ModelStrategy):
    """Random forest with fixed size; validated by its out-of-bag error."""

    family = 'random_forest'

    def __init__(self, n_trees: int = 500, mtry: int = 2, n_jobs: int = 1):
        super().__init__("RandomForest", n_jobs=n_jobs)
        self.n_trees = n_trees
        self.mtry = mtry
        # (key, estimator) of the last seeded forest, shared by OOB scoring and fit
        self._last_forest: Optional[tuple] = None

    def validate(self, n_features: int) -> None:
        if self.n_trees < 1:
            raise InvalidConfigurationError(f"Tree count must be >= 1, got {self.n_trees}")
        if not 1 <= self.mtry <= n_features:
            raise InvalidConfigurationError(
                f"mtry must be between 1 and the number of predictors ({n_features}), got {self.mtry}"
            )

    def candidate_grid(self, n_samples: int, y: Optional[np.ndarray] = None) -> List[Dict[str, Any]]:
        return [{'n_estimators': self.n_trees, 'max_features': self.mtry}]

    def _build_estimator(self, hyperparameters, random_state):
        return SkRandomForestClassifier(
            n_estimators=int(hyperparameters['n_estimators']),
            max_features=int(hyperparameters['max_features']),
            bootstrap=True,
            oob_score=True,
            random_state=random_state,
            n_jobs=self.n_jobs
        )

    def _fit_estimator(self, X, y, hyperparameters, classes=None, random_state=None) -> BaseEstimator:
        """Fit a forest, reusing the last one when data, settings and seed match."""
        if random_state is None:
            return super()._fit_estimator(X, y, hyperparameters, classes, random_state)

        key = joblib_hash((
            np.asarray(X, dtype=float),
            np.asarray(y),
            sorted(hyperparameters.items()),
            None if classes is None else list(classes),
            random_state
        ))
        if self._last_forest is not None and self._last_forest[0] == key:
            return self._last_forest[1]

        estimator = super()._fit_estimator(X, y, hyperparameters, classes, random_state)
        self._last_forest = (key, estimator)
        return estimator

    def internal_validation_error(self, X, y, hyperparameters, classes=None, random_state=None) -> float:
        # Out-of-bag predictions need no extra fold splitting
        with warnings.catch_warnings():
            warnings.filterwarnings('ignore', message='Some inputs do not have OOB scores')
            estimator = self._fit_estimator(X, y, hyperparameters, classes, random_state)
        return float(1.0 - estimator.oob_score_)

    def get_feature_importance(self, fitted: Optional[FittedModel] = None) -> np.ndarray:
        """Feature importances of the fitted forest."""
        fitted = fitted if fitted is not None else self.fitted_model
        if fitted is None:
            raise UnfittedModelError(f"{self.name} is not fitted.")
        return fitted.estimator.feature_importances_
