"""Pipeline Package - Configuration and benchmark orchestration"""

from .config import BenchmarkConfig, MODEL_FAMILIES, build_strategies
from .harness import (
    BenchmarkHarness,
    ModelVariant,
    ResultRow,
    results_table,
    run_benchmark,
    summarize_runs
)

__all__ = [
    'BenchmarkConfig',
    'MODEL_FAMILIES',
    'build_strategies',
    'BenchmarkHarness',
    'ModelVariant',
    'ResultRow',
    'results_table',
    'run_benchmark',
    'summarize_runs',
]
