"""
Data Loaders

Read labeled tables from disk into LabeledDataset objects.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path
import pandas as pd

from .dataset import LabeledDataset


class CSVDatasetLoader:
    """
    Loader for CSV tables with one labeled observation per row.

    Expected layout: an optional row identifier column, N numeric predictor
    columns and one categorical label column. Raw label codes can be mapped
    to readable class names.

    Attributes:
        label_column (str): Name of the label column
        id_column (str): Name of the row identifier column, or None
        feature_columns (List[str]): Predictor columns, or None for all others
        class_names (Dict): Raw label code -> class name, or None
    """

    def __init__(
        self,
        label_column: str = 'class',
        id_column: Optional[str] = None,
        feature_columns: Optional[List[str]] = None,
        class_names: Optional[Dict[Any, str]] = None,
        sep: str = ','
    ):
        self.label_column = label_column
        self.id_column = id_column
        self.feature_columns = feature_columns
        self.class_names = class_names
        self.sep = sep

    def load(self, filepath: str) -> LabeledDataset:
        """
        Load a dataset from a CSV file.

        Args:
            filepath: Path to the CSV file

        Returns:
            LabeledDataset

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If columns are missing or malformed
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        try:
            df = pd.read_csv(filepath, sep=self.sep)
        except Exception as e:
            raise ValueError(f"Failed to load CSV file {filepath}: {e}") from e

        return self.from_frame(df)

    def from_frame(self, df: pd.DataFrame) -> LabeledDataset:
        """Build a dataset from an in-memory table with the configured layout."""
        id_column = self.id_column if self.id_column in df.columns else None
        if self.id_column and id_column is None:
            raise ValueError(f"Id column '{self.id_column}' not found. Available: {list(df.columns)}")

        return LabeledDataset.from_frame(
            df,
            label_column=self.label_column,
            feature_columns=self.feature_columns,
            id_column=id_column,
            class_names=self.class_names
        )
