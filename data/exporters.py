"""
Data Exporters

Export benchmark results to Excel or CSV.
"""

from typing import Any, Dict, Optional
from pathlib import Path
from datetime import datetime
import warnings
import pandas as pd


class ExcelExporter:
    """
    Export tables to an Excel workbook, one sheet per table.

    Attributes:
        filepath (Path): Output Excel file path
        sheets (Dict[str, Dict]): sheet_name -> {'data': DataFrame, 'index': bool}
    """

    def __init__(self, filepath: str):
        self.filepath = Path(filepath)
        self.sheets: Dict[str, Dict[str, Any]] = {}

    def add_sheet(self, sheet_name: str, data: pd.DataFrame, index: bool = True) -> None:
        """
        Add a sheet to the workbook.

        Args:
            sheet_name: Name of the sheet
            data: DataFrame to export
            index: Whether to include DataFrame index
        """
        if not isinstance(data, pd.DataFrame):
            raise ValueError(f"Data must be a pandas DataFrame, got {type(data)}")

        # Excel limit is 31 characters
        if len(sheet_name) > 31:
            original_name = sheet_name
            sheet_name = sheet_name[:31]
            warnings.warn(
                f"Sheet name '{original_name}' truncated to '{sheet_name}' "
                f"(Excel limit: 31 characters)"
            )

        self.sheets[sheet_name] = {'data': data, 'index': index}

    def write(self) -> None:
        """Write all sheets to the Excel file."""
        if not self.sheets:
            warnings.warn("No sheets to write")
            return

        self.filepath.parent.mkdir(parents=True, exist_ok=True)

        with pd.ExcelWriter(self.filepath, engine='openpyxl') as writer:
            for sheet_name, sheet_info in self.sheets.items():
                sheet_info['data'].to_excel(writer, sheet_name=sheet_name, index=sheet_info['index'])

                worksheet = writer.sheets[sheet_name]
                for column in worksheet.columns:
                    max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
                    worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

    def clear(self) -> None:
        """Clear all sheets."""
        self.sheets.clear()


class CSVExporter:
    """Export tables as individual CSV files in one directory."""

    def __init__(self, output_directory: str):
        self.output_directory = Path(output_directory)
        self.output_directory.mkdir(parents=True, exist_ok=True)

    def export(self, data: pd.DataFrame, filename: str, index: bool = True) -> Path:
        """
        Export a table to CSV.

        Args:
            data: DataFrame to export
            filename: Output filename
            index: Whether to include DataFrame index

        Returns:
            Path of the written file
        """
        filepath = self.output_directory / filename
        try:
            data.to_csv(filepath, index=index)
        except OSError as e:
            raise ValueError(f"Failed to export {filename}: {e}") from e
        return filepath


class ResultsExporter:
    """
    High-level exporter for a benchmark run.

    Creates either a single Excel file with one sheet per table, or a
    directory of CSV files.
    """

    def __init__(self, output_path: str, format: str = 'csv', include_timestamp: bool = False):
        """
        Args:
            output_path: Output file path (Excel) or directory (CSV)
            format: 'excel' or 'csv'
            include_timestamp: Add timestamp to filename / directory
        """
        if format not in ['excel', 'csv']:
            raise ValueError(f"Format must be 'excel' or 'csv', got '{format}'")

        self.output_path = Path(output_path)
        self.format = format

        if include_timestamp:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            if format == 'excel':
                self.output_path = self.output_path.parent / f"{self.output_path.stem}_{timestamp}.xlsx"
            else:
                self.output_path = self.output_path / timestamp

        if format == 'excel' and self.output_path.suffix != '.xlsx':
            self.output_path = self.output_path.with_suffix('.xlsx')

    def export_benchmark(
        self,
        results: pd.DataFrame,
        partition_summary: Optional[pd.DataFrame] = None,
        confusion_matrices: Optional[Dict[str, pd.DataFrame]] = None,
        robustness: Optional[pd.DataFrame] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Export a benchmark run.

        Args:
            results: Results table (one row per variant)
            partition_summary: Per-class train/test counts
            confusion_matrices: Variant name -> confusion matrix table
            robustness: Multi-seed summary table
            metadata: Run metadata (seed, fraction, ...)

        Returns:
            Path to exported file or directory
        """
        tables = [('Results', results, True)]
        if partition_summary is not None:
            tables.append(('Partition', partition_summary, True))
        for name, cm in (confusion_matrices or {}).items():
            tables.append((f"CM_{name}", cm, True))
        if robustness is not None:
            tables.append(('Robustness', robustness, True))
        if metadata:
            tables.append(('Metadata', pd.DataFrame([metadata]), False))

        if self.format == 'excel':
            exporter = ExcelExporter(str(self.output_path))
            for name, table, index in tables:
                exporter.add_sheet(name, table, index=index)
            exporter.write()
        else:
            exporter = CSVExporter(str(self.output_path))
            for name, table, index in tables:
                exporter.export(table, f"{name.lower()}.csv", index=index)

        return str(self.output_path)
