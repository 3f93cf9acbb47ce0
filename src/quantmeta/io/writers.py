"""
CSV/JSON writer for imported experiments.

Writes a QuantExperiment as a set of plain files sharing one prefix, readable
from R, Excel or pandas without this package.

Output Files:
    {prefix}.counts.csv      one file per assay (features x samples)
    {prefix}.abundance.csv
    {prefix}.length.csv
    {prefix}.coldata.csv     sample table (first column: sample names)
    {prefix}.rowdata.csv     row ranges and annotation (ranged experiments only)
    {prefix}.metadata.json   provenance, assay names, factor levels, text columns

Examples:
    >>> from pathlib import Path
    >>> from quantmeta.io.writers import write_experiment
    >>>
    >>> write_experiment(gene_level, Path("results/gse"))
    Wrote counts to results/gse.counts.csv
    Wrote abundance to results/gse.abundance.csv
    Wrote length to results/gse.length.csv
    Wrote column data to results/gse.coldata.csv
    Wrote row data to results/gse.rowdata.csv
    Wrote metadata to results/gse.metadata.json
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from quantmeta.core.experiment import QuantExperiment
from quantmeta.utils.fileio import atomic_write_json

__all__ = ['write_experiment', 'prefixed_path']


def prefixed_path(prefix: str | Path, suffix: str) -> Path:
    """`{prefix}.{suffix}` as a Path."""
    return Path(f"{prefix}.{suffix}")


def _factor_levels(table: pd.DataFrame) -> dict[str, list]:
    return {
        column: [str(level) for level in table[column].cat.categories]
        for column in table.columns
        if isinstance(table[column].dtype, pd.CategoricalDtype)
    }


def _text_columns(table: Optional[pd.DataFrame]) -> list[str]:
    """Columns to read back as strings, so values like '01' keep their form."""
    if table is None:
        return []
    return [
        str(column) for column in table.columns
        if table[column].dtype == object
        or pd.api.types.is_string_dtype(table[column].dtype)
        or isinstance(table[column].dtype, pd.CategoricalDtype)
    ]


def write_experiment(experiment: QuantExperiment, prefix: str | Path) -> list[Path]:
    """
    Write an experiment to `{prefix}.*` files.

    Args:
        experiment: Experiment to write
        prefix: Output path prefix (parent directories are created)

    Returns:
        Paths written, in order

    Raises:
        TypeError: If experiment is not a QuantExperiment
        ValueError: If the experiment is empty
        OSError: If a file cannot be written
    """
    if not isinstance(experiment, QuantExperiment):
        raise TypeError(f"experiment must be QuantExperiment, got {type(experiment)}")
    if experiment.n_features == 0 or experiment.n_samples == 0:
        raise ValueError("Cannot write empty experiment")

    prefix = Path(prefix)
    if prefix.parent != Path('.') and not prefix.parent.exists():
        prefix.parent.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []

    for name in experiment.assay_names:
        path = prefixed_path(prefix, f"{name}.csv")
        try:
            experiment.assay_frame(name).to_csv(path, index_label='feature_id')
        except OSError as e:
            raise OSError(f"Failed to write assay file {path}: {e}") from e
        print(f"Wrote {name} to {path}")
        written.append(path)

    coldata_path = prefixed_path(prefix, "coldata.csv")
    experiment.sample_metadata.to_csv(coldata_path, index_label='sample_id')
    print(f"Wrote column data to {coldata_path}")
    written.append(coldata_path)

    if experiment.row_ranges is not None:
        rowdata_path = prefixed_path(prefix, "rowdata.csv")
        experiment.row_ranges.to_csv(rowdata_path, index_label='feature_id')
        print(f"Wrote row data to {rowdata_path}")
        written.append(rowdata_path)

    metadata = dict(experiment.metadata)
    metadata['assays'] = experiment.assay_names
    metadata['column_levels'] = _factor_levels(experiment.sample_metadata)
    metadata['ranged'] = experiment.row_ranges is not None
    metadata['text_columns'] = {
        'coldata': _text_columns(experiment.sample_metadata),
        'rowdata': _text_columns(experiment.row_ranges),
    }
    metadata_path = prefixed_path(prefix, "metadata.json")
    atomic_write_json(metadata_path, metadata)
    print(f"Wrote metadata to {metadata_path}")
    written.append(metadata_path)

    return written
