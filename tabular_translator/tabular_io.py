import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

import jsonlines
import pandas as pd

from .errors import DatasetReadError, UnsupportedFormatError

logger = logging.getLogger(__name__)

FileFormat = Literal["csv", "parquet", "jsonl", "xlsx"]
Row = Dict[str, Any]

EXCEL_SHEET_NAME = "Translated"


def detect_file_format(file_path: Path) -> FileFormat:
    """Detect the file format based on the file extension."""
    suffix = file_path.suffix.lower()
    if suffix == ".csv":
        return "csv"
    if suffix in (".parquet", ".pq"):
        return "parquet"
    if suffix == ".jsonl":
        return "jsonl"
    if suffix in (".xlsx", ".xlsm"):
        return "xlsx"
    raise UnsupportedFormatError(f"Unsupported file format: {file_path.suffix}")


def _resolve_format(file_path: Path, file_format: Optional[str]) -> str:
    if file_format is None or file_format == "auto":
        return detect_file_format(file_path)
    return file_format


def load_tabular_dataset(
    file_path: Path, file_format: Optional[str] = None
) -> pd.DataFrame:
    """Load dataset from CSV, Parquet, JSONL or Excel file."""
    file_format = _resolve_format(file_path, file_format)
    if file_format == "jsonl":
        with jsonlines.open(file_path, "r") as reader:
            return pd.DataFrame(list(reader))
    if file_format == "csv":
        return pd.read_csv(file_path, dtype=object, keep_default_na=False)
    if file_format == "parquet":
        return pd.read_parquet(file_path)
    if file_format == "xlsx":
        # Only the first sheet is translated.
        return pd.read_excel(file_path, sheet_name=0, dtype=object)
    raise UnsupportedFormatError(f"Unsupported file format: {file_format}")


def save_dataset(
    df: pd.DataFrame, file_path: Path, file_format: Optional[str] = None
) -> None:
    """Save dataset to CSV, Parquet, JSONL or Excel file."""
    file_format = _resolve_format(file_path, file_format)
    if file_format == "csv":
        df.to_csv(file_path, index=False)
    elif file_format == "parquet":
        df.to_parquet(file_path, index=False)
    elif file_format == "jsonl":
        with jsonlines.open(file_path, "w") as writer:
            for record in df.to_dict(orient="records"):
                writer.write(record)
    elif file_format == "xlsx":
        df.to_excel(file_path, index=False, sheet_name=EXCEL_SHEET_NAME)
    else:
        raise UnsupportedFormatError(f"Unsupported file format: {file_format}")


def _clean_value(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        # list-like cells
        return value
    return value


def read_rows(
    file_path: Path, file_format: Optional[str] = None
) -> Tuple[List[Row], List[str]]:
    """Read a dataset as homogeneous row dicts plus its ordered column names."""
    try:
        df = load_tabular_dataset(file_path, file_format)
    except (OSError, ValueError) as exc:
        raise DatasetReadError(f"Could not read {file_path}: {exc}") from exc
    columns = [str(col) for col in df.columns]
    df.columns = columns
    rows = [
        {col: _clean_value(value) for col, value in record.items()}
        for record in df.to_dict(orient="records")
    ]
    logger.info("Read %d rows and %d columns from %s", len(rows), len(columns), file_path)
    return rows, columns


def write_rows(
    rows: Sequence[Row],
    file_path: Path,
    columns: Optional[Sequence[str]] = None,
    file_format: Optional[str] = None,
) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(list(rows), columns=list(columns) if columns else None)
    save_dataset(df, file_path, file_format)
    logger.info("Wrote %d rows to %s", len(df), file_path)


def translated_output_path(
    input_path: Path, output_dir: Optional[Path] = None, suffix: str = "_translated"
) -> Path:
    """`data/report.xlsx` -> `<output_dir>/report_translated.xlsx`."""
    directory = output_dir if output_dir is not None else input_path.parent
    return directory / f"{input_path.stem}{suffix}{input_path.suffix}"
