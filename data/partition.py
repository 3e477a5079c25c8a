"""
Stratified Partitioning

Split a labeled dataset into train/test subsets, applying the split fraction
to each class independently so class proportions survive any global
imbalance.
"""

from dataclasses import dataclass
import numpy as np
import pandas as pd

from models.errors import InsufficientDataError, InvalidConfigurationError
from .dataset import LabeledDataset


@dataclass(frozen=True)
class Partition:
    """
    Disjoint, exhaustive train/test split of a source dataset.

    Attributes:
        train: Training subset
        test: Held-out test subset
        train_indices: Source row indices in train
        test_indices: Source row indices in test
        train_fraction: Requested fraction of each class placed in train
        seed: Seed the split was drawn with
    """
    train: LabeledDataset
    test: LabeledDataset
    train_indices: np.ndarray
    test_indices: np.ndarray
    train_fraction: float
    seed: int

    def summary(self) -> pd.DataFrame:
        """Per-class record counts for train, test and total."""
        train = self.train.class_counts()
        test = self.test.class_counts()
        return pd.DataFrame({'train': train, 'test': test, 'total': train + test})


class StratifiedPartitioner:
    """
    Per-class random train/test splitter.

    Usage:
        partitioner = StratifiedPartitioner(train_fraction=0.7, random_state=42)
        partition = partitioner.split(dataset)
    """

    def __init__(self, train_fraction: float = 0.7, random_state: int = 42):
        """
        Args:
            train_fraction: Share of each class placed in train, in (0, 1)
            random_state: Seed for reproducibility
        """
        if not 0.0 < train_fraction < 1.0:
            raise InvalidConfigurationError(
                f"train_fraction must be in (0, 1), got {train_fraction}"
            )
        self.train_fraction = float(train_fraction)
        self.random_state = random_state

    def n_train(self, n_class: int) -> int:
        """Train records for a class of n_class records (half-up rounding, at least one per side)."""
        n = int(np.floor(n_class * self.train_fraction + 0.5))
        return min(max(n, 1), n_class - 1)

    def split(self, dataset: LabeledDataset) -> Partition:
        """
        Perform the stratified split.

        Args:
            dataset: Source dataset

        Returns:
            Partition of the dataset
        """
        counts = dataset.class_counts()
        too_small = counts[counts < 2]
        if len(too_small) > 0:
            raise InsufficientDataError(
                f"Every class needs at least 2 records to stratify; "
                f"too few for: {too_small.to_dict()}"
            )

        rng = np.random.RandomState(self.random_state)
        y = dataset.y
        train_parts = []
        test_parts = []

        for cls in dataset.classes:
            idx = np.flatnonzero(y == cls)
            shuffled = rng.permutation(idx)
            n_train = self.n_train(len(idx))
            train_parts.append(np.sort(shuffled[:n_train]))
            test_parts.append(np.sort(shuffled[n_train:]))

        train_idx = np.concatenate(train_parts)
        test_idx = np.concatenate(test_parts)
        train_idx.setflags(write=False)
        test_idx.setflags(write=False)

        return Partition(
            train=dataset.subset(train_idx),
            test=dataset.subset(test_idx),
            train_indices=train_idx,
            test_indices=test_idx,
            train_fraction=self.train_fraction,
            seed=self.random_state
        )


def stratified_split(dataset: LabeledDataset, train_fraction: float = 0.7, random_seed: int = 42) -> Partition:
    """Functional shortcut for StratifiedPartitioner(train_fraction, random_seed).split(dataset)."""
    return StratifiedPartitioner(train_fraction, random_seed).split(dataset)
