"""
Misclassification Scoring

Confusion matrix and misclassification rate for predicted vs. true labels.
This is the single accuracy metric every model variant is compared on.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple
import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix


@dataclass(frozen=True, eq=False)
class ConfusionMatrix:
    """
    Counts of (predicted class, true class) pairs.

    Attributes:
        classes: Class labels, in row/column order
        counts: Integer array, rows = predicted class, columns = true class
    """
    classes: Tuple[Any, ...]
    counts: np.ndarray

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    @property
    def correct(self) -> int:
        return int(np.trace(self.counts))

    @property
    def error_rate(self) -> float:
        """Fraction of records where predicted != true."""
        if self.total == 0:
            return float('nan')
        return 1.0 - self.correct / self.total

    def count(self, predicted: Any, true: Any) -> int:
        """Number of records of class `true` predicted as `predicted`."""
        i = self.classes.index(predicted)
        j = self.classes.index(true)
        return int(self.counts[i, j])

    def to_frame(self) -> pd.DataFrame:
        """Confusion matrix as a labelled DataFrame (predicted x true)."""
        return pd.DataFrame(
            self.counts,
            index=pd.Index(self.classes, name='predicted'),
            columns=pd.Index(self.classes, name='true')
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfusionMatrix):
            return NotImplemented
        return self.classes == other.classes and np.array_equal(self.counts, other.counts)

    def __repr__(self) -> str:
        return (
            f"ConfusionMatrix(n_classes={len(self.classes)}, "
            f"total={self.total}, error_rate={self.error_rate:.4f})"
        )


def score(
        predicted_labels: Sequence[Any],
        true_labels: Sequence[Any],
        classes: Optional[Sequence[Any]] = None
) -> Tuple[ConfusionMatrix, float]:
    """
    Build the confusion matrix and misclassification rate.

    Args:
        predicted_labels: Predicted class per record
        true_labels: True class per record
        classes: Class set (default: sorted union of both label sequences)

    Returns:
        Tuple of (ConfusionMatrix, error_rate)
    """
    predicted = np.asarray(predicted_labels)
    true = np.asarray(true_labels)

    if predicted.shape != true.shape or predicted.ndim != 1:
        raise ValueError(
            f"predicted and true labels must be 1-D and equal length, "
            f"got {predicted.shape} and {true.shape}"
        )
    if len(true) == 0:
        raise ValueError("Cannot score an empty set of predictions")

    if classes is None:
        classes = np.unique(np.concatenate([predicted, true]))
    classes = tuple(classes)

    unknown = set(np.unique(predicted)).union(np.unique(true)) - set(classes)
    if unknown:
        raise ValueError(f"Labels outside the class set: {sorted(map(str, unknown))}")

    # sklearn orders rows by true class; transpose to predicted x true
    counts = confusion_matrix(true, predicted, labels=list(classes)).T.astype(int)
    counts.setflags(write=False)

    cm = ConfusionMatrix(classes=classes, counts=counts)
    return cm, cm.error_rate
