"""
Loader for experiments written by write_experiment.

Reads `{prefix}.metadata.json` first: it lists the assays to read, whether
row data was written, the level order of every categorical column and which
columns hold text, so that releveled factors and IDs such as "001" survive the
round trip through CSV.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

import pandas as pd

from quantmeta.core.experiment import QuantExperiment
from quantmeta.io.writers import prefixed_path

__all__ = ['load_experiment']

logger = logging.getLogger(__name__)

_WRITER_KEYS = ('assays', 'column_levels', 'ranged', 'text_columns')


def _read_table(path: Path, index_label: str, text_columns: Iterable[str] = ()) -> pd.DataFrame:
    """Read a written table; the index and `text_columns` stay strings."""
    if not path.exists():
        raise FileNotFoundError(f"Experiment file not found: {path}")
    try:
        header = pd.read_csv(path, nrows=0).columns
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"CSV file is empty: {path}") from e
    if index_label not in header:
        raise ValueError(f"{path} has no '{index_label}' column")

    dtype = {column: str for column in text_columns if column in header}
    dtype[index_label] = str
    df = pd.read_csv(path, dtype=dtype).set_index(index_label)
    df.index.name = None
    return df


def load_experiment(prefix: str | Path) -> QuantExperiment:
    """
    Load an experiment from `{prefix}.*` files.

    Raises:
        FileNotFoundError: If the metadata or any listed file is missing
        ValueError: If files disagree on feature or sample IDs
    """
    metadata_path = prefixed_path(prefix, "metadata.json")
    if not metadata_path.exists():
        raise FileNotFoundError(f"Experiment metadata not found: {metadata_path}")
    with open(metadata_path, 'r') as f:
        metadata = json.load(f)

    assay_names = metadata.get('assays') or []
    if not assay_names:
        raise ValueError(f"{metadata_path} lists no assays")

    frames = {
        name: _read_table(prefixed_path(prefix, f"{name}.csv"), 'feature_id')
        for name in assay_names
    }
    first = frames[assay_names[0]]
    feature_ids = pd.Index(first.index)
    sample_ids = pd.Index(first.columns.astype(str))

    assays = {}
    for name, frame in frames.items():
        frame.columns = frame.columns.astype(str)
        if not frame.index.equals(feature_ids) or not frame.columns.equals(sample_ids):
            raise ValueError(f"Assay '{name}' does not match the feature/sample IDs of '{assay_names[0]}'")
        assays[name] = frame.to_numpy(dtype=float)

    text_columns = metadata.get('text_columns') or {}
    coldata = _read_table(
        prefixed_path(prefix, "coldata.csv"), 'sample_id',
        text_columns.get('coldata', []),
    )
    for column, levels in metadata.get('column_levels', {}).items():
        if column in coldata.columns:
            coldata[column] = pd.Categorical(coldata[column].astype(str), categories=levels)
    coldata = coldata.reindex(sample_ids)

    row_ranges = None
    if metadata.get('ranged'):
        row_ranges = _read_table(
            prefixed_path(prefix, "rowdata.csv"), 'feature_id',
            ['chrom', *text_columns.get('rowdata', [])],
        ).reindex(feature_ids)

    for key in _WRITER_KEYS:
        metadata.pop(key, None)

    experiment = QuantExperiment(
        assays=assays,
        feature_ids=feature_ids,
        sample_ids=sample_ids,
        sample_metadata=coldata,
        row_ranges=row_ranges,
        metadata=metadata,
    )
    logger.info(f"Loaded {experiment.n_features:,} {experiment.level}s x {experiment.n_samples} samples")
    return experiment
