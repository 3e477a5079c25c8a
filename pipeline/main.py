"""
Command-line entry point.

    classifier-benchmark --config config.yaml --data observations.csv
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from data.exporters import ResultsExporter
from data.loaders import CSVDatasetLoader
from models.errors import BenchmarkError
from pipeline.config import BenchmarkConfig, build_strategies
from pipeline.harness import BenchmarkHarness, results_table


def load_config(config_path: Optional[str]) -> BenchmarkConfig:
    """Config from YAML, or defaults when no path is given."""
    if config_path is None:
        default = Path('config.yaml')
        if not default.exists():
            return BenchmarkConfig()
        config_path = str(default)
    print(f"    Found config at: {Path(config_path).absolute()}")
    return BenchmarkConfig.from_yaml(config_path)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare classifiers on a held-out test partition.")
    parser.add_argument('--config', type=str, help='Path to config.yaml')
    parser.add_argument('--data', type=str, help='CSV dataset (overrides data_file)')
    parser.add_argument('--output-dir', type=str, help='Output directory (overrides output_dir)')
    parser.add_argument('--seed', type=int, help='Random seed (overrides random_seed)')
    parser.add_argument('--quiet', action='store_true', help='Only print the results table')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
        if args.data:
            config.data_file = args.data
        if args.output_dir:
            config.output_dir = args.output_dir
        if args.seed is not None:
            config.random_seed = args.seed
        if args.quiet:
            config.verbose = False
        config.validate()
    except (BenchmarkError, FileNotFoundError, ValueError) as e:
        print(f"❌ CONFIG ERROR: {e}", file=sys.stderr)
        return 2

    if not config.data_file:
        print("❌ No dataset given (use --data or data_file in the config)", file=sys.stderr)
        return 2

    try:
        loader = CSVDatasetLoader(
            label_column=config.label_column,
            id_column=config.id_column,
            feature_columns=config.feature_columns,
            class_names=config.class_names
        )
        dataset = loader.load(config.data_file)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ DATA ERROR: {e}", file=sys.stderr)
        return 2

    if config.verbose:
        print(f"🚀 Benchmarking on {dataset}")

    harness = BenchmarkHarness(n_jobs=config.n_jobs, verbose=config.verbose)
    try:
        rows = harness.run(dataset, build_strategies(config), config.train_fraction, config.random_seed)
    except BenchmarkError as e:
        print(f"❌ RUN ABORTED: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    table = results_table(rows)
    partition_summary = harness.partition_.summary()

    if config.verbose:
        print("\nPartition:")
        print(partition_summary.to_string())
    print("\nResults:")
    print(table.to_string(float_format=lambda v: f"{v:.4f}"))

    robustness = None
    if config.robustness_seeds:
        if config.verbose:
            print(f"\nRobustness check over seeds {config.robustness_seeds}...")
        repeat_harness = BenchmarkHarness(n_jobs=config.n_jobs, verbose=False)
        try:
            robustness = repeat_harness.run_repeated(
                dataset, build_strategies(config), config.train_fraction, config.robustness_seeds
            )
        except BenchmarkError as e:
            print(f"⚠️ Robustness check aborted: {e}", file=sys.stderr)
        else:
            print(robustness.to_string(float_format=lambda v: f"{v:.4f}"))

    confusion = {
        row.variant: row.confusion_matrix.to_frame()
        for row in rows if row.confusion_matrix is not None
    }
    exporter = ResultsExporter(
        str(Path(config.output_dir) / ('benchmark' if config.export_format == 'excel' else '')),
        format=config.export_format
    )
    out_path = exporter.export_benchmark(
        table,
        partition_summary=partition_summary,
        confusion_matrices=confusion,
        robustness=robustness,
        metadata={
            'data_file': config.data_file,
            'n_records': dataset.n_records,
            'train_fraction': config.train_fraction,
            'random_seed': config.random_seed,
            'hyperparameters': str({r.variant: r.hyperparameters for r in rows}),
            'generated': pd.Timestamp.now().isoformat(timespec='seconds')
        }
    )

    if config.verbose:
        print(f"\n✅ Results written to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
