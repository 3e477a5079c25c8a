"""
Data Layer

Labeled datasets, stratified partitioning, loading and result export.
"""

from .dataset import LabeledDataset
from .partition import Partition, StratifiedPartitioner, stratified_split
from .loaders import CSVDatasetLoader
from .exporters import (
    ExcelExporter,
    CSVExporter,
    ResultsExporter
)

__all__ = [
    # Core data structures
    'LabeledDataset',

    # Partitioning
    'Partition',
    'StratifiedPartitioner',
    'stratified_split',

    # Loaders
    'CSVDatasetLoader',

    # Exporters
    'ExcelExporter',
    'CSVExporter',
    'ResultsExporter',
]
