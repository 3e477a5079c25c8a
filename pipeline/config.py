"""
Benchmark Configuration

All run options in one explicit object: no process-wide state, all
randomness derived from `random_seed`.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional
from pathlib import Path
import yaml

from models.classifiers import (
    KernelDiscriminantStrategy,
    ModelStrategy,
    NearestNeighborStrategy,
    RandomForestStrategy
)
from models.density import BANDWIDTH_RULES
from models.errors import InvalidConfigurationError
from models.kernel_discriminant import PRIOR_MODES


MODEL_FAMILIES = ('kda', 'knn', 'random_forest')


@dataclass
class BenchmarkConfig:
    """Configuration for a benchmark run."""

    # Data
    data_file: Optional[str] = None
    id_column: Optional[str] = 'id'
    label_column: str = 'class'
    feature_columns: Optional[List[str]] = None
    class_names: Optional[Dict[Any, str]] = None

    # Output
    output_dir: str = 'results'
    export_format: str = 'csv'  # or 'excel'

    # Partition
    train_fraction: float = 0.7
    random_seed: int = 42

    # Models
    models: List[str] = field(default_factory=lambda: list(MODEL_FAMILIES))

    # Kernel discriminant analysis
    bandwidth_rules: List[str] = field(default_factory=lambda: list(BANDWIDTH_RULES))
    kda_cv_folds: int = 10
    kda_priors: str = 'equal'

    # Nearest neighbours
    k_candidate_grid: List[int] = field(default_factory=lambda: list(range(1, 51)))
    cv_folds: int = 10
    cv_repeats: int = 3
    knn_standardize: bool = False

    # Random forest
    forest_tree_count: int = 500
    forest_mtry: int = 2

    # Execution
    n_jobs: int = 1
    robustness_seeds: List[int] = field(default_factory=list)
    verbose: bool = True

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'BenchmarkConfig':
        """Build a config from a flat dict; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise InvalidConfigurationError(f"Unknown configuration keys: {unknown}")
        config = cls(**values)
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, filepath: str) -> 'BenchmarkConfig':
        """Load configuration from YAML file."""
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Config not found: {filepath}")

        with open(filepath, 'r') as f:
            values = yaml.safe_load(f) or {}

        if not isinstance(values, dict):
            raise InvalidConfigurationError(f"Config file must contain a mapping, got {type(values).__name__}")
        return cls.from_dict(values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, filepath: str) -> None:
        """Save configuration to YAML file."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    def validate(self) -> None:
        """Validate configuration parameters; fails fast before any fitting."""
        if not 0.0 < self.train_fraction < 1.0:
            raise InvalidConfigurationError(f"train_fraction must be in (0, 1), got {self.train_fraction}")

        if not self.models:
            raise InvalidConfigurationError("No models selected")
        unknown = [m for m in self.models if m not in MODEL_FAMILIES]
        if unknown:
            raise InvalidConfigurationError(f"Unknown models {unknown}. Choose from {MODEL_FAMILIES}")

        if 'kda' in self.models:
            if not self.bandwidth_rules:
                raise InvalidConfigurationError("bandwidth_rules is empty")
            bad_rules = [r for r in self.bandwidth_rules if r not in BANDWIDTH_RULES]
            if bad_rules:
                raise InvalidConfigurationError(f"Unknown bandwidth rules {bad_rules}. Choose from {BANDWIDTH_RULES}")
            if self.kda_priors not in PRIOR_MODES:
                raise InvalidConfigurationError(f"kda_priors must be one of {PRIOR_MODES}, got '{self.kda_priors}'")
            if self.kda_cv_folds < 2:
                raise InvalidConfigurationError(f"kda_cv_folds must be >= 2, got {self.kda_cv_folds}")

        if 'knn' in self.models:
            if not self.k_candidate_grid:
                raise InvalidConfigurationError("k_candidate_grid is empty")
            bad_k = [k for k in self.k_candidate_grid if isinstance(k, bool) or not isinstance(k, int) or k < 1]
            if bad_k:
                raise InvalidConfigurationError(f"k candidates must be positive integers, got {bad_k}")
            if self.cv_folds < 2:
                raise InvalidConfigurationError(f"cv_folds must be >= 2, got {self.cv_folds}")
            if self.cv_repeats < 1:
                raise InvalidConfigurationError(f"cv_repeats must be >= 1, got {self.cv_repeats}")

        if 'random_forest' in self.models:
            if self.forest_tree_count < 1:
                raise InvalidConfigurationError(f"forest_tree_count must be >= 1, got {self.forest_tree_count}")
            if self.forest_mtry < 1:
                raise InvalidConfigurationError(f"forest_mtry must be >= 1, got {self.forest_mtry}")

        if self.export_format not in ('csv', 'excel'):
            raise InvalidConfigurationError(f"export_format must be 'csv' or 'excel', got '{self.export_format}'")
        if self.n_jobs == 0:
            raise InvalidConfigurationError("n_jobs cannot be 0")


def build_strategies(config: BenchmarkConfig) -> List[ModelStrategy]:
    """
    Model strategies for a config, in table order: KDA rules, KNN, RandomForest.

    Args:
        config: Validated benchmark configuration

    Returns:
        List of ModelStrategy instances
    """
    config.validate()
    strategies: List[ModelStrategy] = []

    if 'kda' in config.models:
        for rule in config.bandwidth_rules:
            strategies.append(KernelDiscriminantStrategy(
                bandwidth_rule=rule,
                cv_folds=config.kda_cv_folds,
                priors=config.kda_priors
            ))

    if 'knn' in config.models:
        strategies.append(NearestNeighborStrategy(
            k_grid=config.k_candidate_grid,
            cv_folds=config.cv_folds,
            cv_repeats=config.cv_repeats,
            standardize=config.knn_standardize
        ))

    if 'random_forest' in config.models:
        strategies.append(RandomForestStrategy(
            n_trees=config.forest_tree_count,
            mtry=config.forest_mtry
        ))

    return strategies
