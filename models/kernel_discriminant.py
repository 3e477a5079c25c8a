"""
Kernel Discriminant Analysis

Classifier that estimates one Gaussian kernel density per class (each with its
own bandwidth matrix) and assigns a point to the class whose density is
highest there.
"""

from typing import Dict, Optional
import numpy as np
from scipy.special import logsumexp
from sklearn.base import BaseEstimator, ClassifierMixin

from .density import BANDWIDTH_RULES, log_density, select_bandwidth
from .errors import InvalidConfigurationError, UnfittedModelError


PRIOR_MODES = ('equal', 'proportional')


class KernelDiscriminantAnalysis(BaseEstimator, ClassifierMixin):
    """
    Kernel discriminant analysis with per-class bandwidth matrices.

    Args:
        bandwidth_rule: 'plugin', 'lscv' or 'scv'
        priors: 'equal' compares raw class densities; 'proportional' weights
            each density by the class share of the training data
    """

    def __init__(self, bandwidth_rule: str = 'plugin', priors: str = 'equal'):
        self.bandwidth_rule = bandwidth_rule
        self.priors = priors

    def fit(self, X: np.ndarray, y: np.ndarray) -> 'KernelDiscriminantAnalysis':
        if self.bandwidth_rule not in BANDWIDTH_RULES:
            raise InvalidConfigurationError(f"Unknown bandwidth rule '{self.bandwidth_rule}'")
        if self.priors not in PRIOR_MODES:
            raise InvalidConfigurationError(f"Unknown priors mode '{self.priors}'")

        X = np.asarray(X, dtype=float)
        y = np.asarray(y)

        self.classes_ = np.unique(y)
        self.samples_: Dict[object, np.ndarray] = {}
        self.bandwidths_: Dict[object, np.ndarray] = {}

        for cls in self.classes_:
            X_cls = X[y == cls]
            self.samples_[cls] = X_cls
            self.bandwidths_[cls] = select_bandwidth(X_cls, self.bandwidth_rule)

        if self.priors == 'proportional':
            counts = np.array([len(self.samples_[c]) for c in self.classes_], dtype=float)
            self.log_priors_ = np.log(counts / counts.sum())
        else:
            self.log_priors_ = np.zeros(len(self.classes_))

        self.n_features_in_ = X.shape[1]
        return self

    def _check_fitted(self) -> None:
        if not hasattr(self, 'classes_'):
            raise UnfittedModelError("KernelDiscriminantAnalysis is not fitted.")

    def predict_log_density(self, X: np.ndarray) -> np.ndarray:
        """Log density of each point under each class estimate, shape (n, n_classes)."""
        self._check_fitted()
        X = np.asarray(X, dtype=float)
        return np.column_stack([
            log_density(X, self.samples_[cls], self.bandwidths_[cls])
            for cls in self.classes_
        ])

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        scores = self.predict_log_density(X) + self.log_priors_
        return np.exp(scores - logsumexp(scores, axis=1, keepdims=True))

    def predict(self, X: np.ndarray) -> np.ndarray:
        scores = self.predict_log_density(X) + self.log_priors_
        return self.classes_[np.argmax(scores, axis=1)]

    def get_bandwidth(self, cls: object) -> Optional[np.ndarray]:
        """Bandwidth matrix selected for a class."""
        self._check_fitted()
        return self.bandwidths_.get(cls)
