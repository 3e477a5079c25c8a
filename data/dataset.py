"""
Labeled Dataset

Core data structure holding numeric predictors, one categorical label per
record and the class set the labels are drawn from.
"""

from typing import Any, Dict, List, Optional, Sequence
import numpy as np
import pandas as pd


class LabeledDataset:
    """
    Immutable table of labeled records.

    Attributes:
        X (np.ndarray): Predictors, shape (n_records, n_features), read-only
        y (np.ndarray): Labels, shape (n_records,), read-only
        feature_names (List[str]): Predictor names
        record_ids (np.ndarray): Row identifiers, read-only
        classes (tuple): Class set; every label is a member
    """

    def __init__(
        self,
        X: np.ndarray,
        y: Sequence[Any],
        feature_names: Optional[List[str]] = None,
        record_ids: Optional[Sequence[Any]] = None,
        classes: Optional[Sequence[Any]] = None
    ):
        """
        Initialize a dataset.

        Args:
            X: Predictor matrix
            y: Label per record
            feature_names: Predictor names (default: x0, x1, ...)
            record_ids: Row identifiers (default: 0..n-1)
            classes: Class set (default: sorted distinct labels observed)
        """
        X = np.array(X, dtype=float)
        y = np.array(y)

        if X.ndim != 2:
            raise ValueError(f"X must be 2-D, got shape {X.shape}")
        if y.ndim != 1 or len(y) != len(X):
            raise ValueError(f"y must be 1-D with {len(X)} labels, got shape {y.shape}")
        if len(X) == 0:
            raise ValueError("Dataset cannot be empty")
        if not np.all(np.isfinite(X)):
            raise ValueError("Predictors contain NaN or infinite values")

        observed = np.unique(y)
        if classes is None:
            classes = observed
        classes = tuple(classes)
        if len(set(classes)) != len(classes):
            raise ValueError(f"Duplicate entries in class set: {classes}")

        unknown = set(observed) - set(classes)
        if unknown:
            raise ValueError(f"Labels not in class set: {sorted(map(str, unknown))}")

        if feature_names is None:
            feature_names = [f"x{i}" for i in range(X.shape[1])]
        if len(feature_names) != X.shape[1]:
            raise ValueError("feature_names length must match number of columns")

        if record_ids is None:
            record_ids = np.arange(len(X))
        record_ids = np.array(record_ids)
        if len(record_ids) != len(X):
            raise ValueError("record_ids length must match number of records")

        for arr in (X, y, record_ids):
            arr.setflags(write=False)

        self._X = X
        self._y = y
        self._record_ids = record_ids
        self._feature_names = list(feature_names)
        self._classes = classes

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        label_column: str,
        feature_columns: Optional[List[str]] = None,
        id_column: Optional[str] = None,
        class_names: Optional[Dict[Any, str]] = None
    ) -> 'LabeledDataset':
        """
        Build a dataset from a DataFrame.

        Args:
            df: Source table, one row per record
            label_column: Column holding the class label
            feature_columns: Predictor columns (default: all except id/label)
            id_column: Optional row identifier column
            class_names: Optional mapping of raw label codes to class names

        Returns:
            LabeledDataset instance
        """
        for col in [label_column] + ([id_column] if id_column else []):
            if col not in df.columns:
                raise ValueError(f"Column '{col}' not found. Available: {list(df.columns)}")

        if feature_columns is None:
            feature_columns = [c for c in df.columns if c not in (label_column, id_column)]
        missing = [c for c in feature_columns if c not in df.columns]
        if missing:
            raise ValueError(f"Feature columns not found: {missing}")
        if not feature_columns:
            raise ValueError("No predictor columns")

        non_numeric = [c for c in feature_columns if not pd.api.types.is_numeric_dtype(df[c])]
        if non_numeric:
            raise ValueError(f"Predictor columns must be numeric: {non_numeric}")

        if df[feature_columns + [label_column]].isnull().any().any():
            raise ValueError("Missing values in predictor or label columns")

        raw_labels = df[label_column].tolist()
        classes = None
        if class_names:
            labels = [_map_label(raw, class_names) for raw in raw_labels]
            classes = list(dict.fromkeys(class_names.values()))
        else:
            labels = raw_labels

        record_ids = df[id_column].to_numpy() if id_column else None

        return cls(
            df[feature_columns].to_numpy(dtype=float),
            labels,
            feature_names=list(feature_columns),
            record_ids=record_ids,
            classes=classes
        )

    @property
    def X(self) -> np.ndarray:
        return self._X

    @property
    def y(self) -> np.ndarray:
        return self._y

    @property
    def record_ids(self) -> np.ndarray:
        return self._record_ids

    @property
    def feature_names(self) -> List[str]:
        return list(self._feature_names)

    @property
    def classes(self) -> tuple:
        return self._classes

    @property
    def n_records(self) -> int:
        return len(self._y)

    @property
    def n_features(self) -> int:
        return self._X.shape[1]

    def class_counts(self) -> pd.Series:
        """Number of records per class, in class order (zero for unobserved classes)."""
        counts = pd.Series(self._y).value_counts()
        return pd.Series(
            [int(counts.get(c, 0)) for c in self._classes],
            index=pd.Index(self._classes, name='class'),
            name='count'
        )

    def subset(self, indices: Sequence[int]) -> 'LabeledDataset':
        """New dataset with the given records, keeping this class set."""
        indices = np.asarray(indices, dtype=int)
        return LabeledDataset(
            self._X[indices],
            self._y[indices],
            feature_names=self._feature_names,
            record_ids=self._record_ids[indices],
            classes=self._classes
        )

    def to_frame(self) -> pd.DataFrame:
        """Dataset as a DataFrame indexed by record id."""
        df = pd.DataFrame(self._X, columns=self._feature_names, index=pd.Index(self._record_ids, name='id'))
        df['class'] = self._y
        return df

    def __len__(self) -> int:
        return self.n_records

    def __repr__(self) -> str:
        return (
            f"LabeledDataset(n_records={self.n_records}, "
            f"n_features={self.n_features}, "
            f"classes={list(self._classes)})"
        )


def _map_label(raw: Any, class_names: Dict[Any, str]) -> str:
    """Map a raw label code to its class name (YAML keys may be strings)."""
    if raw in class_names:
        return class_names[raw]
    if str(raw) in class_names:
        return class_names[str(raw)]
    raise ValueError(f"Label value {raw!r} has no entry in class_names")
