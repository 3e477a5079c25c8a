import numpy as np

from data.dataset import LabeledDataset


def make_gaussian_dataset(counts=(80, 80, 80), n_features=3, separation=4.0, seed=0, classes=None):
    """Well-separated Gaussian blobs, one per class, shifted along one axis each."""
    rng = np.random.RandomState(seed)
    classes = classes or ['class_a', 'class_b', 'class_c', 'class_d'][:len(counts)]

    X_parts, y_parts = [], []
    for i, (cls, n) in enumerate(zip(classes, counts)):
        mean = np.zeros(n_features)
        mean[i % n_features] = separation * (1 + i // n_features)
        X_parts.append(rng.normal(mean, 1.0, size=(n, n_features)))
        y_parts.extend([cls] * n)

    X = np.vstack(X_parts)
    y = np.array(y_parts)
    idx = rng.permutation(len(y))
    return LabeledDataset(X[idx], y[idx], feature_names=[f"x{i}" for i in range(n_features)])
