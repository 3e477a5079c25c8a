import os
import tempfile
import unittest
import numpy as np
import pandas as pd

from data.dataset import LabeledDataset
from data.loaders import CSVDatasetLoader
from data.partition import StratifiedPartitioner, stratified_split
from models.errors import InsufficientDataError, InvalidConfigurationError
from helpers import make_gaussian_dataset


class TestLabeledDataset(unittest.TestCase):

    def setUp(self):
        self.dataset = make_gaussian_dataset(counts=(10, 12, 8))

    def test_classes_default_to_observed_labels(self):
        self.assertEqual(self.dataset.classes, ('class_a', 'class_b', 'class_c'))
        self.assertEqual(len(self.dataset), 30)
        self.assertEqual(self.dataset.n_features, 3)

    def test_arrays_are_read_only(self):
        with self.assertRaises(ValueError):
            self.dataset.X[0, 0] = 99.0
        with self.assertRaises(ValueError):
            self.dataset.y[0] = 'class_b'

    def test_label_outside_class_set_rejected(self):
        with self.assertRaises(ValueError):
            LabeledDataset(np.zeros((3, 2)), ['a', 'b', 'z'], classes=['a', 'b'])

    def test_class_counts_include_declared_but_unobserved(self):
        ds = LabeledDataset(np.zeros((4, 2)), ['a', 'a', 'b', 'b'], classes=['a', 'b', 'c'])
        counts = ds.class_counts()
        self.assertEqual(counts.to_dict(), {'a': 2, 'b': 2, 'c': 0})

    def test_non_finite_predictors_rejected(self):
        X = np.ones((3, 2))
        X[1, 1] = np.nan
        with self.assertRaises(ValueError):
            LabeledDataset(X, ['a', 'b', 'a'])

    def test_subset_keeps_class_set(self):
        idx = np.flatnonzero(self.dataset.y == 'class_a')
        sub = self.dataset.subset(idx)
        self.assertEqual(sub.classes, self.dataset.classes)
        self.assertEqual(sub.class_counts()['class_b'], 0)

    def test_from_frame_maps_class_codes(self):
        df = pd.DataFrame({
            'id': [10, 11, 12, 13],
            'f1': [0.1, 0.2, 0.3, 0.4],
            'f2': [1.0, 2.0, 3.0, 4.0],
            'code': [1, 2, 2, 3]
        })
        ds = LabeledDataset.from_frame(
            df, label_column='code', id_column='id',
            class_names={1: 'low', 2: 'mid', '3': 'high'}
        )
        self.assertEqual(ds.classes, ('low', 'mid', 'high'))
        self.assertEqual(list(ds.y), ['low', 'mid', 'mid', 'high'])
        self.assertEqual(ds.feature_names, ['f1', 'f2'])
        self.assertEqual(list(ds.record_ids), [10, 11, 12, 13])

    def test_from_frame_rejects_unknown_code(self):
        df = pd.DataFrame({'f1': [0.1, 0.2], 'code': [1, 4]})
        with self.assertRaises(ValueError):
            LabeledDataset.from_frame(df, label_column='code', class_names={1: 'low'})

    def test_from_frame_rejects_non_numeric_predictors(self):
        df = pd.DataFrame({'f1': ['x', 'y'], 'code': [1, 2]})
        with self.assertRaises(ValueError):
            LabeledDataset.from_frame(df, label_column='code')


class TestStratifiedPartitioner(unittest.TestCase):

    def setUp(self):
        self.dataset = make_gaussian_dataset(counts=(50, 23, 7), seed=3)

    def test_stratification_within_one_record(self):
        source_counts = self.dataset.class_counts()
        n_source = len(self.dataset)

        for fraction in (0.3, 0.5, 0.7, 0.8):
            for seed in range(5):
                partition = stratified_split(self.dataset, fraction, seed)
                train_counts = partition.train.class_counts()
                n_train = len(partition.train)
                for cls in self.dataset.classes:
                    diff = abs(train_counts[cls] / n_train - source_counts[cls] / n_source)
                    self.assertLessEqual(diff, 1.0 / n_train + 1e-12, f"{cls} at f={fraction}, seed={seed}")

    def test_partition_is_exhaustive_and_disjoint(self):
        for seed in range(5):
            partition = stratified_split(self.dataset, 0.7, seed)
            train_idx = set(partition.train_indices.tolist())
            test_idx = set(partition.test_indices.tolist())

            self.assertEqual(len(train_idx & test_idx), 0)
            self.assertEqual(train_idx | test_idx, set(range(len(self.dataset))))

            ids = np.concatenate([partition.train.record_ids, partition.test.record_ids])
            self.assertEqual(sorted(ids.tolist()), sorted(self.dataset.record_ids.tolist()))

    def test_every_class_on_both_sides(self):
        partition = stratified_split(self.dataset, 0.95, 1)
        self.assertTrue((partition.test.class_counts() >= 1).all())
        partition = stratified_split(self.dataset, 0.05, 1)
        self.assertTrue((partition.train.class_counts() >= 1).all())

    def test_same_seed_same_partition(self):
        a = StratifiedPartitioner(0.7, random_state=11).split(self.dataset)
        b = StratifiedPartitioner(0.7, random_state=11).split(self.dataset)
        np.testing.assert_array_equal(a.train_indices, b.train_indices)
        np.testing.assert_array_equal(a.test_indices, b.test_indices)

    def test_different_seeds_differ(self):
        a = stratified_split(self.dataset, 0.7, 1)
        b = stratified_split(self.dataset, 0.7, 2)
        self.assertFalse(np.array_equal(a.train_indices, b.train_indices))

    def test_test_size_matches_fraction(self):
        dataset = make_gaussian_dataset(counts=(80, 80, 80))
        partition = stratified_split(dataset, 0.7, 42)
        self.assertEqual(len(partition.test), round(0.3 * 240))
        self.assertEqual(partition.summary()['test'].tolist(), [24, 24, 24])

    def test_class_with_single_record_is_insufficient(self):
        dataset = make_gaussian_dataset(counts=(10, 10, 1))
        with self.assertRaises(InsufficientDataError):
            stratified_split(dataset, 0.7, 0)

    def test_declared_empty_class_is_insufficient(self):
        ds = LabeledDataset(np.random.RandomState(0).normal(size=(6, 2)), ['a'] * 3 + ['b'] * 3, classes=['a', 'b', 'c'])
        with self.assertRaises(InsufficientDataError):
            stratified_split(ds, 0.5, 0)

    def test_invalid_fraction(self):
        for fraction in (0.0, 1.0, -0.2, 1.5):
            with self.assertRaises(InvalidConfigurationError):
                StratifiedPartitioner(fraction)


class TestCSVDatasetLoader(unittest.TestCase):

    def test_load_csv_with_class_names(self):
        df = pd.DataFrame({
            'id': range(6),
            'a': [0.1, 0.5, 0.9, 1.3, 1.7, 2.1],
            'b': [2.0, 1.0, 0.0, 2.0, 1.0, 0.0],
            'group': [1, 1, 2, 2, 3, 3]
        })
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'obs.csv')
            df.to_csv(path, index=False)
            loader = CSVDatasetLoader(label_column='group', id_column='id',
                                      class_names={1: 'one', 2: 'two', 3: 'three'})
            ds = loader.load(path)

        self.assertEqual(ds.classes, ('one', 'two', 'three'))
        self.assertEqual(ds.feature_names, ['a', 'b'])
        self.assertEqual(ds.n_records, 6)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            CSVDatasetLoader().load('/nonexistent/observations.csv')

    def test_missing_id_column(self):
        df = pd.DataFrame({'a': [1.0, 2.0], 'class': ['x', 'y']})
        with self.assertRaises(ValueError):
            CSVDatasetLoader(id_column='id').from_frame(df)


if __name__ == '__main__':
    unittest.main()
