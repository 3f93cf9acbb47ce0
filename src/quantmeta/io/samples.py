"""
Sample table (column data) handling.

The sample table drives the whole import: one row per sequenced sample,
a `names` column that matches the quantification output directories, and
experimental factors such as cell line and condition.

Example sample table:
```
names,line,condition
SAMEA103885102,diku_A,naive
SAMEA103885347,diku_A,IFNg
SAMEA103885043,eiwy_H,naive
```

With the conventional layout every sample's salmon output lives at
`<dir>/quants/<names>/quant.sf.gz`.

Examples:
    >>> from quantmeta.io.samples import (
    ...     resolve_data_dir, read_sample_table, set_reference_level,
    ...     annotate_quant_paths, check_files_exist,
    ... )
    >>> data_dir = resolve_data_dir("~/data/macrophage")
    >>> coldata = read_sample_table(data_dir / "coldata.csv", factors=["line"])
    >>> coldata = set_reference_level(coldata, "condition", "naive")
    >>> coldata = annotate_quant_paths(coldata, data_dir)
    >>> check_files_exist(coldata)
    True
"""

from __future__ import annotations

import logging
import string
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

__all__ = [
    'DEFAULT_LAYOUT',
    'MissingQuantFilesError',
    'resolve_data_dir',
    'read_sample_table',
    'set_reference_level',
    'annotate_quant_paths',
    'check_files_exist',
    'require_files_exist',
]

logger = logging.getLogger(__name__)

DEFAULT_LAYOUT = "quants/{name}/quant.sf.gz"


class MissingQuantFilesError(FileNotFoundError):
    """Raised when one or more quantification files referenced by the sample table do not exist."""

    def __init__(self, missing: list[Path]):
        self.missing = list(missing)
        preview = "\n".join(f"  - {p}" for p in self.missing[:10])
        more = f"\n  ... and {len(self.missing) - 10} more" if len(self.missing) > 10 else ""
        super().__init__(
            f"{len(self.missing)} quantification file(s) not found:\n{preview}{more}"
        )


def resolve_data_dir(path: str | Path) -> Path:
    """
    Resolve the directory holding the sample table and quantifications.

    Raises:
        FileNotFoundError: If the directory does not exist
        NotADirectoryError: If the path exists but is a file
    """
    path = Path(path).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"Data directory not found: {path}")
    if not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {path}")
    return path


def read_sample_table(
    path: str | Path,
    names_column: str = "names",
    factors: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Read the sample table from CSV.

    Args:
        path: CSV file, one row per sample
        names_column: Column holding sample names (renamed to 'names')
        factors: Columns to convert to categoricals with sorted levels

    Returns:
        DataFrame indexed by sample name, with a 'names' column kept for
        path construction

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the table is empty, lacks the names column or has
            duplicated/empty names
        KeyError: If a requested factor column is absent
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sample table not found: {path}")

    try:
        table = pd.read_csv(path, dtype={names_column: str})
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"Sample table is empty: {path}") from e

    if table.empty:
        raise ValueError(f"Sample table contains no samples: {path}")

    if names_column not in table.columns:
        raise ValueError(
            f"Sample table {path} has no '{names_column}' column. "
            f"Columns: {list(table.columns)}"
        )
    if names_column != "names":
        if "names" in table.columns:
            raise ValueError(
                f"Sample table {path} has both '{names_column}' and 'names' columns"
            )
        table = table.rename(columns={names_column: "names"})

    if table["names"].isna().any():
        raise ValueError(f"Sample table {path} has empty sample names")
    table["names"] = table["names"].astype(str).str.strip()
    names = table["names"]
    if (names == "").any():
        raise ValueError(f"Sample table {path} has empty sample names")
    if names.duplicated().any():
        dupes = sorted(names[names.duplicated()].unique())
        raise ValueError(f"Sample table {path} has duplicated sample names: {dupes}")

    table.index = pd.Index(names, name=None)

    for column in factors or []:
        if column not in table.columns:
            raise KeyError(f"Factor column '{column}' not in sample table")
        table[column] = pd.Categorical(table[column])

    logger.info(f"Read sample table: {len(table)} samples, columns {list(table.columns)}")
    return table


def set_reference_level(table: pd.DataFrame, column: str, reference: str) -> pd.DataFrame:
    """
    Make `reference` the first level of a categorical column.

    Non-categorical columns are converted first, with levels sorted. Other
    levels keep their relative order. Applying the same call twice gives
    the same ordering.

    Raises:
        KeyError: If column is not in the table
        ValueError: If reference is not one of the column's values
    """
    if column not in table.columns:
        raise KeyError(f"Column '{column}' not in sample table")

    values = table[column]
    if isinstance(values.dtype, pd.CategoricalDtype):
        levels = list(values.cat.categories)
    else:
        levels = sorted(values.dropna().unique())

    if reference not in levels:
        raise ValueError(
            f"Reference level '{reference}' not found in column '{column}'. "
            f"Levels: {levels}"
        )

    ordered = [reference] + [level for level in levels if level != reference]
    result = table.copy()
    result[column] = pd.Categorical(values, categories=ordered)
    return result


def annotate_quant_paths(
    table: pd.DataFrame,
    data_dir: str | Path,
    layout: str = DEFAULT_LAYOUT,
) -> pd.DataFrame:
    """
    Add a 'files' column with each sample's quantification file path.

    Args:
        table: Sample table from read_sample_table
        data_dir: Base directory of the layout
        layout: Format string relative to data_dir. '{name}' is the sample
            name; any other placeholder is filled from the column of the
            same name.

    Raises:
        KeyError: If the layout references a column the table lacks
    """
    data_dir = Path(data_dir)
    fields = {f for _, f, _, _ in string.Formatter().parse(layout) if f}
    unknown = [f for f in fields if f != "name" and f not in table.columns]
    if unknown:
        raise KeyError(f"Layout '{layout}' references unknown columns: {unknown}")

    files = []
    for _, row in table.iterrows():
        values = {f: row[f] for f in fields if f != "name"}
        files.append(data_dir / layout.format(name=row["names"], **values))

    result = table.copy()
    result["files"] = files
    return result


def check_files_exist(table: pd.DataFrame) -> bool:
    """True iff every path in the 'files' column exists."""
    if "files" not in table.columns:
        raise KeyError("Sample table has no 'files' column; call annotate_quant_paths first")
    return all(Path(f).exists() for f in table["files"])


def require_files_exist(table: pd.DataFrame) -> None:
    """
    Raise if any quantification file is missing.

    Raises:
        MissingQuantFilesError: Listing every missing path
    """
    if "files" not in table.columns:
        raise KeyError("Sample table has no 'files' column; call annotate_quant_paths first")
    missing = [Path(f) for f in table["files"] if not Path(f).exists()]
    if missing:
        raise MissingQuantFilesError(missing)
