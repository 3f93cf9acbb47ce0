"""
Reader for salmon quantification output.

Each sample directory produced by `salmon quant` contains:
```
<sample>/
    quant.sf(.gz)            Name  Length  EffectiveLength  TPM  NumReads
    aux_info/meta_info.json  run information incl. index_seq_hash
    cmd_info.json            command line
```

Only the per-transcript table and the run information are read here. The
effective length already carries salmon's sequence/GC bias model, so it is
imported as-is. Bootstrap or Gibbs draws under aux_info/bootstrap are not
read.

Examples:
    >>> from quantmeta.io.salmon import read_quant_file, read_meta_info, index_digest
    >>> quant = read_quant_file("quants/SAMEA103885102/quant.sf.gz")
    >>> info = read_meta_info("quants/SAMEA103885102/quant.sf.gz")
    >>> index_digest(info)
    '4c3b6e8d...'
"""

from __future__ import annotations

import json
import logging
import warnings
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np
import pandas as pd

__all__ = [
    'QUANT_COLUMNS',
    'read_quant_file',
    'read_meta_info',
    'index_digest',
    'read_quants',
]

logger = logging.getLogger(__name__)

QUANT_COLUMNS = ['Name', 'Length', 'EffectiveLength', 'TPM', 'NumReads']


def read_quant_file(path: str | Path) -> pd.DataFrame:
    """
    Read one salmon quant.sf file (plain or gzip-compressed).

    Returns:
        DataFrame with the quant.sf columns, in file order

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file lacks quant.sf columns or repeats a transcript
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Quantification file not found: {path}")

    try:
        df = pd.read_csv(path, sep='\t', dtype={'Name': str})
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"Quantification file is empty: {path}") from e

    missing = [c for c in QUANT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(
            f"{path} does not look like salmon quant.sf, missing columns: {missing}"
        )

    if df['Name'].duplicated().any():
        n_duplicates = df['Name'].duplicated().sum()
        raise ValueError(f"{path} lists {n_duplicates} transcript names more than once")

    return df[QUANT_COLUMNS]


def read_meta_info(quant_path: str | Path) -> dict[str, Any]:
    """
    Read aux_info/meta_info.json that salmon writes next to quant.sf.

    Returns an empty dict (with a warning) when the file is absent, which
    happens for quantifications copied without their auxiliary output.
    """
    meta_path = Path(quant_path).parent / 'aux_info' / 'meta_info.json'
    if not meta_path.exists():
        warnings.warn(
            f"No meta_info.json found for {quant_path}; "
            "the reference transcriptome cannot be identified for this sample.",
            UserWarning
        )
        return {}

    with open(meta_path, 'r') as f:
        return json.load(f)


def index_digest(meta_info: dict[str, Any]) -> Optional[str]:
    """Sequence digest of the salmon index a sample was quantified against."""
    return meta_info.get('index_seq_hash') or meta_info.get('index_seq_hash512')


def read_quants(
    files: Sequence[str | Path],
    sample_names: Optional[Sequence[str]] = None,
) -> tuple[pd.Index, np.ndarray, np.ndarray, np.ndarray]:
    """
    Read all samples into transcript x sample matrices.

    Args:
        files: One quant.sf path per sample
        sample_names: Labels for error messages (default: file paths)

    Returns:
        (transcript_ids, counts, abundance, length) where counts is NumReads,
        abundance is TPM and length is EffectiveLength

    Raises:
        ValueError: If no files are given or samples disagree on transcripts
    """
    if len(files) == 0:
        raise ValueError("No quantification files to read")
    if sample_names is None:
        sample_names = [str(f) for f in files]

    transcript_ids: Optional[pd.Index] = None
    counts, abundance, length = [], [], []

    for i, (path, name) in enumerate(zip(files, sample_names)):
        logger.debug(f"Reading quantification {i + 1}/{len(files)}: {path}")
        df = read_quant_file(path)

        ids = pd.Index(df['Name'])
        if transcript_ids is None:
            transcript_ids = ids
        elif not ids.equals(transcript_ids):
            raise ValueError(
                f"Sample '{name}' lists different transcripts than the first sample "
                f"({len(ids)} vs {len(transcript_ids)}). All samples must be "
                "quantified against the same index."
            )

        counts.append(df['NumReads'].to_numpy(dtype=float))
        abundance.append(df['TPM'].to_numpy(dtype=float))
        length.append(df['EffectiveLength'].to_numpy(dtype=float))

    logger.info(f"Read {len(files)} samples x {len(transcript_ids):,} transcripts")

    return (
        transcript_ids,
        np.column_stack(counts),
        np.column_stack(abundance),
        np.column_stack(length),
    )
