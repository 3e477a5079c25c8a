"""
Benchmark Harness

Drives the evaluation: one shared stratified partition, then for every model
variant hyperparameter selection on train, a final fit on the full train set,
prediction on test and scoring. Produces one ResultRow per variant, in input
order.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import warnings
import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from data.dataset import LabeledDataset
from data.partition import Partition, StratifiedPartitioner
from models.classifiers import ModelStrategy
from models.errors import InsufficientDataError, InvalidConfigurationError, UnfittedModelError
from models.evaluation import HyperparameterSelector, ModelEvaluator, SelectionResult
from models.scoring import ConfusionMatrix
from .config import BenchmarkConfig, build_strategies


@dataclass(frozen=True)
class ModelVariant:
    """A model strategy with its resolved hyperparameters."""
    name: str
    hyperparameters: Dict[str, Any]
    internal_error: float


@dataclass(frozen=True)
class ResultRow:
    """One line of the comparison table."""
    variant: str
    cv_error: float
    test_error: float
    hyperparameters: Dict[str, Any] = field(default_factory=dict)
    confusion_matrix: Optional[ConfusionMatrix] = None
    status: str = 'ok'
    error_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == 'failed'


def _failed_row(name: str, exc: Exception) -> ResultRow:
    return ResultRow(
        variant=name,
        cv_error=float('nan'),
        test_error=float('nan'),
        status='failed',
        error_type=type(exc).__name__,
        error=str(exc)
    )


def _evaluate_variant(
        strategy: ModelStrategy,
        partition: Partition,
        seed: int,
        verbose: bool = False
) -> Tuple[ResultRow, Optional[SelectionResult]]:
    """Select, fit, predict and score one variant on the shared partition."""
    train, test = partition.train, partition.test
    classes = train.classes

    try:
        selector = HyperparameterSelector(verbose=verbose)
        selection = selector.select_best(
            strategy,
            train.X,
            train.y,
            strategy.candidate_grid(len(train), train.y),
            classes=classes,
            random_state=seed
        )
        variant = ModelVariant(strategy.name, selection.best_hyperparameters, selection.best_error)

        fitted = strategy.fit(train.X, train.y, variant.hyperparameters, classes=classes, random_state=seed)
        cm, test_error = ModelEvaluator().evaluate(strategy, fitted, test.X, test.y, classes=classes)

    except (InvalidConfigurationError, InsufficientDataError, UnfittedModelError):
        raise
    except Exception as e:
        warnings.warn(f"Variant '{strategy.name}' failed: {type(e).__name__}: {e}")
        return _failed_row(strategy.name, e), None

    row = ResultRow(
        variant=variant.name,
        cv_error=variant.internal_error,
        test_error=float(test_error),
        hyperparameters=dict(variant.hyperparameters),
        confusion_matrix=cm
    )
    return row, selection


class BenchmarkHarness:
    """
    Runs a set of model strategies on one shared train/test partition.

    Usage:
        harness = BenchmarkHarness()
        rows = harness.run(dataset, strategies, train_fraction=0.7, seed=42)
        print(results_table(rows))

    Variant i is evaluated with seed `seed + i`, so sequential and parallel
    runs (n_jobs != 1) give identical numbers.
    """

    def __init__(self, n_jobs: int = 1, verbose: bool = False):
        self.n_jobs = n_jobs
        self.verbose = verbose
        self.partition_: Optional[Partition] = None
        self.results_: List[ResultRow] = []
        self.selections_: Dict[str, SelectionResult] = {}
        self.repeated_runs_: Optional[pd.DataFrame] = None

    def _check_strategies(self, strategies: List[ModelStrategy], dataset: LabeledDataset) -> None:
        if not strategies:
            raise InvalidConfigurationError("No model variants to evaluate")

        names = [s.name for s in strategies]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidConfigurationError(f"Duplicate variant names: {duplicates}")

        for strategy in strategies:
            strategy.validate(dataset.n_features)

    def run(
            self,
            dataset: LabeledDataset,
            strategies: Sequence[ModelStrategy],
            train_fraction: float = 0.7,
            seed: int = 42
    ) -> List[ResultRow]:
        """
        Evaluate every strategy on one shared partition.

        Args:
            dataset: Source dataset
            strategies: Model strategies, in table order
            train_fraction: Share of each class used for training
            seed: Base seed for the partition and each variant

        Returns:
            One ResultRow per strategy, in input order
        """
        strategies = list(strategies)
        self._check_strategies(strategies, dataset)

        partition = StratifiedPartitioner(train_fraction, seed).split(dataset)
        self.partition_ = partition

        if self.verbose:
            print(f"Partition (seed={seed}): {len(partition.train)} train / {len(partition.test)} test records")

        if self.n_jobs == 1:
            outcomes = [
                _evaluate_variant(strategy, partition, seed + i, self.verbose)
                for i, strategy in enumerate(tqdm(strategies, desc="Evaluating", disable=not self.verbose))
            ]
        else:
            outcomes = Parallel(n_jobs=self.n_jobs)(
                delayed(_evaluate_variant)(strategy, partition, seed + i, False)
                for i, strategy in enumerate(strategies)
            )

        self.results_ = [row for row, _ in outcomes]
        self.selections_ = {row.variant: sel for row, sel in outcomes if sel is not None}

        if self.verbose:
            for row in self.results_:
                if row.failed:
                    print(f"    ❌ {row.variant} failed: {row.error_type}: {row.error}")
                else:
                    print(f"    ✅ {row.variant}: cv_error={row.cv_error:.4f} test_error={row.test_error:.4f}")

        return list(self.results_)

    def run_repeated(
            self,
            dataset: LabeledDataset,
            strategies: Sequence[ModelStrategy],
            train_fraction: float = 0.7,
            seeds: Sequence[int] = (1, 2, 3, 4, 5)
    ) -> pd.DataFrame:
        """
        Repeat the benchmark over several partition seeds.

        Returns:
            DataFrame indexed by variant with mean, std and 95% interval of
            the test and CV errors, plus run and failure counts
        """
        strategies = list(strategies)
        if not seeds:
            raise InvalidConfigurationError("No seeds given for repeated runs")

        records = []
        for seed in seeds:
            for row in self.run(dataset, strategies, train_fraction, seed):
                records.append({
                    'seed': seed,
                    'variant': row.variant,
                    'cv_error': row.cv_error,
                    'test_error': row.test_error,
                    'failed': row.failed
                })

        runs = pd.DataFrame(records)
        self.repeated_runs_ = runs
        return summarize_runs(runs, [s.name for s in strategies])


def summarize_runs(runs: pd.DataFrame, order: List[str]) -> pd.DataFrame:
    """Mean, std and 95% percentile interval of errors per variant."""
    summary = []
    for name in order:
        group = runs[runs['variant'] == name]
        entry: Dict[str, Any] = {'variant': name, 'n_runs': len(group), 'n_failed': int(group['failed'].sum())}

        for col in ('test_error', 'cv_error'):
            values = group[col].dropna()
            if len(values) == 0:
                entry.update({f'{col}_mean': np.nan, f'{col}_std': np.nan,
                              f'{col}_ci_lower_95': np.nan, f'{col}_ci_upper_95': np.nan})
                continue
            entry[f'{col}_mean'] = np.mean(values)
            entry[f'{col}_std'] = np.std(values)
            entry[f'{col}_ci_lower_95'] = np.percentile(values, 2.5)
            entry[f'{col}_ci_upper_95'] = np.percentile(values, 97.5)

        summary.append(entry)

    return pd.DataFrame(summary).set_index('variant')


def results_table(rows: Sequence[ResultRow]) -> pd.DataFrame:
    """
    Comparison table: one row per variant with CV error, test error and status.

    Failed variants keep their row with NaN errors and status 'failed'.
    """
    return pd.DataFrame(
        [{'variant': r.variant, 'cv_error': r.cv_error, 'test_error': r.test_error, 'status': r.status}
         for r in rows],
        columns=['variant', 'cv_error', 'test_error', 'status']
    ).set_index('variant')


def run_benchmark(dataset: LabeledDataset, config: BenchmarkConfig) -> List[ResultRow]:
    """Run the harness with the strategies and options of a config."""
    harness = BenchmarkHarness(n_jobs=config.n_jobs, verbose=config.verbose)
    return harness.run(dataset, build_strategies(config), config.train_fraction, config.random_seed)
