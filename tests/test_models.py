import unittest
import warnings
import numpy as np
from scipy.stats import multivariate_normal
from sklearn.dummy import DummyClassifier

from models.classifiers import (
    FittedModel,
    KernelDiscriminantStrategy,
    ModelStrategy,
    NearestNeighborStrategy,
    RandomForestStrategy,
    effective_folds
)
from models.density import BANDWIDTH_RULES, log_density, select_bandwidth
from models.errors import DegenerateInputError, InvalidConfigurationError, UnfittedModelError
from models.evaluation import HyperparameterSelector, ModelEvaluator
from models.kernel_discriminant import KernelDiscriminantAnalysis
from models.scoring import score
from helpers import make_gaussian_dataset


class TestScorer(unittest.TestCase):

    def test_perfect_predictions(self):
        labels = ['a', 'b', 'c', 'a', 'b']
        cm, error = score(labels, labels)
        self.assertEqual(error, 0.0)
        self.assertEqual(cm.correct, 5)

    def test_always_wrong_binary(self):
        true = ['a', 'b', 'a', 'b']
        predicted = ['b', 'a', 'b', 'a']
        _, error = score(predicted, true)
        self.assertEqual(error, 1.0)

    def test_rows_are_predicted_columns_are_true(self):
        cm, error = score(['a', 'a', 'b'], ['a', 'b', 'b'])
        self.assertEqual(cm.count('a', 'b'), 1)
        self.assertEqual(cm.count('b', 'a'), 0)
        self.assertAlmostEqual(error, 1 / 3)
        self.assertEqual(cm.to_frame().loc['a', 'b'], 1)

    def test_never_predicted_class_is_zero_row(self):
        cm, error = score(['a', 'a', 'a'], ['a', 'a', 'b'], classes=['a', 'b', 'c'])
        self.assertEqual(cm.counts.shape, (3, 3))
        self.assertEqual(cm.counts[2].sum(), 0)
        self.assertAlmostEqual(error, 1 / 3)

    def test_length_mismatch(self):
        with self.assertRaises(ValueError):
            score(['a', 'b'], ['a'])

    def test_empty_input(self):
        with self.assertRaises(ValueError):
            score([], [])

    def test_equality(self):
        a, _ = score(['a', 'b'], ['a', 'a'])
        b, _ = score(['a', 'b'], ['a', 'a'])
        self.assertEqual(a, b)


class TestDensity(unittest.TestCase):

    def setUp(self):
        rng = np.random.RandomState(0)
        self.X = rng.multivariate_normal([0, 0, 0], [[1, 0.3, 0], [0.3, 2, 0], [0, 0, 0.5]], size=60)

    def test_rules_give_positive_definite_matrices(self):
        for rule in BANDWIDTH_RULES:
            H = select_bandwidth(self.X, rule)
            self.assertEqual(H.shape, (3, 3))
            np.testing.assert_allclose(H, H.T)
            self.assertTrue(np.all(np.linalg.eigvalsh(H) > 0), rule)

    def test_bandwidth_shrinks_with_sample_size(self):
        rng = np.random.RandomState(1)
        small = rng.normal(size=(30, 2))
        large = rng.normal(size=(600, 2))
        self.assertLess(np.trace(select_bandwidth(large, 'plugin')), np.trace(select_bandwidth(small, 'plugin')))

    def test_too_few_records(self):
        with self.assertRaises(DegenerateInputError):
            select_bandwidth(self.X[:3], 'lscv')

    def test_unknown_rule(self):
        with self.assertRaises(InvalidConfigurationError):
            select_bandwidth(self.X, 'silverman')

    def test_single_point_density_is_gaussian(self):
        H = np.array([[1.0, 0.2], [0.2, 0.5]])
        center = np.array([[0.5, -1.0]])
        points = np.array([[0.0, 0.0], [1.0, -1.0]])
        expected = multivariate_normal(mean=center[0], cov=H).logpdf(points)
        np.testing.assert_allclose(log_density(points, center, H), expected, rtol=1e-8)

    def test_density_is_mean_of_kernels(self):
        H = np.array([[0.6, -0.1], [-0.1, 0.3]])
        data = np.random.RandomState(1).normal(size=(25, 2))
        points = np.array([[0.0, 0.0], [1.5, -0.5], [-2.0, 1.0]])
        kernels = np.array([multivariate_normal(mean=x, cov=H).pdf(points) for x in data])
        expected = np.log(kernels.mean(axis=0))
        np.testing.assert_allclose(log_density(points, data, H), expected, rtol=1e-8)


class TestKernelDiscriminantAnalysis(unittest.TestCase):

    def setUp(self):
        self.dataset = make_gaussian_dataset(counts=(40, 40, 40))

    def test_separated_classes(self):
        for rule in BANDWIDTH_RULES:
            kda = KernelDiscriminantAnalysis(bandwidth_rule=rule).fit(self.dataset.X, self.dataset.y)
            accuracy = np.mean(kda.predict(self.dataset.X) == self.dataset.y)
            self.assertGreater(accuracy, 0.9, rule)

    def test_probabilities_sum_to_one(self):
        kda = KernelDiscriminantAnalysis(priors='proportional').fit(self.dataset.X, self.dataset.y)
        proba = kda.predict_proba(self.dataset.X[:10])
        np.testing.assert_allclose(proba.sum(axis=1), 1.0)

    def test_unfitted(self):
        with self.assertRaises(UnfittedModelError):
            KernelDiscriminantAnalysis().predict(self.dataset.X)


class TestModelStrategies(unittest.TestCase):

    def setUp(self):
        self.dataset = make_gaussian_dataset(counts=(40, 40, 40))
        self.X, self.y = self.dataset.X, self.dataset.y
        self.classes = self.dataset.classes
        self.strategies = [
            KernelDiscriminantStrategy('plugin', cv_folds=5),
            NearestNeighborStrategy(k_grid=[1, 3, 5], cv_folds=5, cv_repeats=2),
            RandomForestStrategy(n_trees=50, mtry=2)
        ]

    def test_fit_and_predict(self):
        for strategy in self.strategies:
            params = strategy.candidate_grid(len(self.y))[0]
            fitted = strategy.fit(self.X, self.y, params, classes=self.classes, random_state=0)
            self.assertIsInstance(fitted, FittedModel)
            predicted = strategy.predict(self.X, fitted)
            self.assertEqual(len(predicted), len(self.y))
            self.assertGreater(np.mean(predicted == self.y), 0.8, strategy.name)

    def test_predict_before_fit(self):
        for strategy in self.strategies:
            with self.assertRaises(UnfittedModelError):
                strategy.predict(self.X)

    def test_missing_class_is_degenerate(self):
        keep = self.y != 'class_c'
        for strategy in self.strategies:
            params = strategy.candidate_grid(len(self.y))[0]
            with self.assertRaises(DegenerateInputError):
                strategy.fit(self.X[keep], self.y[keep], params, classes=self.classes)

    def test_internal_error_is_a_rate_and_reproducible(self):
        for strategy in self.strategies:
            params = strategy.candidate_grid(len(self.y))[0]
            first = strategy.internal_validation_error(self.X, self.y, params, classes=self.classes, random_state=7)
            second = strategy.internal_validation_error(self.X, self.y, params, classes=self.classes, random_state=7)
            self.assertGreaterEqual(first, 0.0)
            self.assertLessEqual(first, 1.0)
            self.assertEqual(first, second, strategy.name)

    def test_internal_error_does_not_set_fitted_model(self):
        knn = self.strategies[1]
        knn.internal_validation_error(self.X, self.y, {'n_neighbors': 3}, random_state=0)
        self.assertIsNone(knn.fitted_model)

    def test_variant_names(self):
        names = [KernelDiscriminantStrategy(r).name for r in BANDWIDTH_RULES]
        self.assertEqual(names, ['KDA-plugin', 'KDA-LSCV', 'KDA-SCV'])
        self.assertEqual(self.strategies[1].name, 'KNN')
        self.assertEqual(self.strategies[2].name, 'RandomForest')

    def test_knn_grid_sorted_and_trimmed(self):
        knn = NearestNeighborStrategy(k_grid=[9, 3, 3, 1, 200], cv_folds=10)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            grid = knn.candidate_grid(100)
        self.assertEqual([g['n_neighbors'] for g in grid], [1, 3, 9])
        self.assertTrue(any('dropping' in str(w.message) for w in caught))

    def test_knn_grid_follows_reduced_fold_count(self):
        # 4 records in the smallest class: CV runs with 4 folds, not 10
        y = np.array(['a'] * 28 + ['b'] * 28 + ['c'] * 4)
        X = np.random.RandomState(0).normal(size=(60, 2)) + np.repeat(np.eye(3, 2) * 5, [28, 28, 4], axis=0)
        knn = NearestNeighborStrategy(cv_folds=10, cv_repeats=1)
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            grid = knn.candidate_grid(len(y), y)
            largest = grid[-1]
            error = knn.internal_validation_error(X, y, largest, classes=['a', 'b', 'c'], random_state=0)

        self.assertEqual(largest['n_neighbors'], 45)
        self.assertGreaterEqual(error, 0.0)
        self.assertLessEqual(error, 1.0)

    def test_knn_grid_with_nothing_usable(self):
        knn = NearestNeighborStrategy(k_grid=[50], cv_folds=10)
        with self.assertRaises(DegenerateInputError):
            knn.candidate_grid(20)

    def test_knn_validation(self):
        with self.assertRaises(InvalidConfigurationError):
            NearestNeighborStrategy(k_grid=[]).validate(3)
        with self.assertRaises(InvalidConfigurationError):
            NearestNeighborStrategy(k_grid=[1, 0]).validate(3)

    def test_forest_mtry_validation(self):
        with self.assertRaises(InvalidConfigurationError):
            RandomForestStrategy(mtry=4).validate(3)
        RandomForestStrategy(mtry=3).validate(3)

    def test_forest_feature_importance(self):
        forest = self.strategies[2]
        forest.fit(self.X, self.y, forest.candidate_grid(len(self.y))[0], random_state=0)
        importance = forest.get_feature_importance()
        self.assertEqual(len(importance), 3)
        self.assertAlmostEqual(importance.sum(), 1.0)

    def test_forest_fit_reuses_oob_forest(self):
        forest = self.strategies[2]
        params = forest.candidate_grid(len(self.y))[0]
        error = forest.internal_validation_error(self.X, self.y, params, classes=self.classes, random_state=5)
        fitted = forest.fit(self.X, self.y, params, classes=self.classes, random_state=5)

        self.assertEqual(1.0 - fitted.estimator.oob_score_, error)
        self.assertIs(forest.fit(self.X, self.y, params, classes=self.classes, random_state=5).estimator,
                      fitted.estimator)
        self.assertIsNot(forest.fit(self.X, self.y, params, classes=self.classes, random_state=6).estimator,
                         fitted.estimator)

    def test_effective_folds_capped_by_smallest_class(self):
        y = np.array(['a'] * 20 + ['b'] * 4)
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            self.assertEqual(effective_folds(y, 10), 4)
        self.assertEqual(effective_folds(y, 3), 3)


class FixedErrorStrategy(ModelStrategy):
    """Strategy whose internal error is read from a lookup table."""

    family = 'fixed'

    def __init__(self, errors):
        super().__init__("Fixed")
        self.errors = errors
        self.seen_states = []

    def candidate_grid(self, n_samples, y=None):
        return [{'p': p} for p in self.errors]

    def _build_estimator(self, hyperparameters, random_state):
        return DummyClassifier(strategy='most_frequent')

    def internal_validation_error(self, X, y, hyperparameters, classes=None, random_state=None):
        self.seen_states.append(random_state)
        return self.errors[hyperparameters['p']]


class TestHyperparameterSelector(unittest.TestCase):

    def setUp(self):
        self.X = np.zeros((10, 2))
        self.y = np.array(['a', 'b'] * 5)

    def test_selects_known_minimum(self):
        strategy = FixedErrorStrategy({'p1': 0.4, 'p2': 0.3, 'p3': 0.05, 'p4': 0.2})
        result = HyperparameterSelector().select_best(
            strategy, self.X, self.y, strategy.candidate_grid(10), random_state=3
        )
        self.assertEqual(result.best_hyperparameters, {'p': 'p3'})
        self.assertEqual(result.best_error, 0.05)
        self.assertEqual(len(result.cv_results), 4)
        self.assertEqual(strategy.seen_states, [3, 3, 3, 3])

    def test_ties_go_to_first_candidate(self):
        strategy = FixedErrorStrategy({'first': 0.1, 'second': 0.1, 'third': 0.5})
        result = HyperparameterSelector().select_best(strategy, self.X, self.y, strategy.candidate_grid(10))
        self.assertEqual(result.best_hyperparameters, {'p': 'first'})
        self.assertEqual(result.cv_results['rank'].tolist(), [1, 2, 3])

    def test_empty_grid(self):
        strategy = FixedErrorStrategy({})
        with self.assertRaises(InvalidConfigurationError):
            HyperparameterSelector().select_best(strategy, self.X, self.y, [])

    def test_knn_selection_prefers_smaller_k_on_ties(self):
        dataset = make_gaussian_dataset(counts=(30, 30, 30), separation=12.0)
        knn = NearestNeighborStrategy(k_grid=[5, 3, 1], cv_folds=5, cv_repeats=1)
        result = HyperparameterSelector().select_best(
            knn, dataset.X, dataset.y, knn.candidate_grid(len(dataset)), random_state=0
        )
        # Perfectly separated: every k has zero error
        self.assertEqual(result.best_error, 0.0)
        self.assertEqual(result.best_hyperparameters, {'n_neighbors': 1})


class TestModelEvaluator(unittest.TestCase):

    def test_evaluate_uses_fitted_classes(self):
        dataset = make_gaussian_dataset(counts=(20, 20, 20))
        forest = RandomForestStrategy(n_trees=20, mtry=1)
        fitted = forest.fit(dataset.X, dataset.y, forest.candidate_grid(60)[0], random_state=0)
        cm, error = ModelEvaluator().evaluate(forest, fitted, dataset.X, dataset.y)
        self.assertEqual(cm.classes, dataset.classes)
        self.assertLess(error, 0.2)


if __name__ == '__main__':
    unittest.main()
