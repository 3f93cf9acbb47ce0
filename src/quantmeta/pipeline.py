"""
Reference-aware import of salmon quantifications.

`import_quants` turns a sample table with a `files` column into a
transcript-level QuantExperiment:

1. Every quantification file must exist.
2. All samples are read and stacked (counts, abundance, length).
3. The index digest recorded by salmon identifies the transcriptome; all
   samples must share it.
4. The digest is looked up in the registry of linked transcriptomes. When
   found, transcript ranges from its GTF become the row ranges; when not,
   an unranged experiment is returned with a warning.

Examples:
    >>> from quantmeta.io.samples import read_sample_table, annotate_quant_paths
    >>> from quantmeta.pipeline import import_quants
    >>> coldata = annotate_quant_paths(read_sample_table("coldata.csv"), "data")
    >>> se = import_quants(coldata)
    >>> se
    QuantExperiment(205870 transcripts × 24 samples)
    ...
"""

from __future__ import annotations

import logging
import re
import warnings
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pandas as pd

import quantmeta
from quantmeta.core.experiment import QuantExperiment
from quantmeta.io.salmon import read_quants, read_meta_info, index_digest
from quantmeta.io.samples import require_files_exist
from quantmeta.reference.gtf import TranscriptAnnotation, load_annotation
from quantmeta.reference.registry import TranscriptomeRegistry
from quantmeta.summarize import counts_from_abundance as scale_counts

__all__ = ['import_quants', 'clean_transcript_ids']

logger = logging.getLogger(__name__)

_VERSION_SUFFIX = re.compile(r'\.\d+$')


def clean_transcript_ids(
    ids: pd.Index,
    ignore_after_bar: bool = True,
    ignore_tx_version: bool = False,
) -> pd.Index:
    """
    Normalize transcript identifiers from quant.sf.

    GENCODE FASTA headers look like 'ENST00000456328.2|ENSG00000223972.5|...';
    salmon keeps the whole header unless run with --gencode.
    """
    cleaned = pd.Index(ids.astype(str))
    if ignore_after_bar:
        cleaned = cleaned.str.split('|').str[0]
    if ignore_tx_version:
        cleaned = cleaned.str.replace(_VERSION_SUFFIX, '', regex=True)
    cleaned = pd.Index(cleaned)
    if cleaned.has_duplicates:
        raise ValueError(
            f"Transcript IDs are not unique after cleaning "
            f"({cleaned.duplicated().sum()} duplicates); "
            "try ignore_tx_version=False"
        )
    return cleaned


def _shared_digest(quant_info: dict[str, dict[str, Any]]) -> Optional[str]:
    digests = {name: index_digest(info) for name, info in quant_info.items()}
    distinct = {d for d in digests.values() if d}
    if len(distinct) > 1:
        summary = ", ".join(f"{name}: {(d or 'none')[:12]}" for name, d in digests.items())
        raise ValueError(
            "Samples were quantified against different indices "
            f"({len(distinct)} distinct digests): {summary}"
        )
    return distinct.pop() if distinct else None


def _align_row_ranges(
    transcript_ids: pd.Index,
    annotation: TranscriptAnnotation,
    ignore_tx_version: bool,
) -> pd.DataFrame:
    """Transcript annotation reindexed to transcript_ids (NaN rows where absent)."""
    table = annotation.transcripts.copy()
    if ignore_tx_version:
        table['tx_id'] = table['tx_id'].astype(str).str.replace(_VERSION_SUFFIX, '', regex=True)
    table = table.drop_duplicates(subset=['tx_id']).set_index('tx_id', drop=False)
    ranges = table.reindex(transcript_ids)
    ranges.index.name = None
    return ranges


def import_quants(
    sample_table: pd.DataFrame,
    counts_from_abundance: str = 'no',
    registry: Optional[TranscriptomeRegistry] = None,
    ignore_tx_version: bool = False,
    ignore_after_bar: bool = True,
    skip_ranges: bool = False,
    annotation: Optional[TranscriptAnnotation] = None,
) -> QuantExperiment:
    """
    Import salmon quantifications into a transcript-level QuantExperiment.

    Args:
        sample_table: Sample table with 'names' and 'files' columns
        counts_from_abundance: 'no', 'scaledTPM' or 'lengthScaledTPM'
        registry: Linked transcriptome registry (default cache location)
        ignore_tx_version: Strip '.N' versions from transcript IDs before
            matching against the annotation
        ignore_after_bar: Cut transcript IDs at the first '|'
        skip_ranges: Do not look up the transcriptome; return unranged
        annotation: Use these ranges instead of the linked GTF

    Returns:
        QuantExperiment with assays counts/abundance/length, column data from
        the sample table and, when the transcriptome is known, row ranges

    Raises:
        MissingQuantFilesError: If any file is missing
        ValueError: If samples disagree on transcripts or digest, or no
            transcript matches the linked annotation
    """
    require_files_exist(sample_table)

    names = list(sample_table['names'])
    files = [Path(f) for f in sample_table['files']]
    logger.info(f"Importing {len(files)} salmon quantifications")

    transcript_ids, counts, abundance, length = read_quants(files, sample_names=names)
    transcript_ids = clean_transcript_ids(
        transcript_ids,
        ignore_after_bar=ignore_after_bar,
        ignore_tx_version=ignore_tx_version,
    )

    quant_info = {name: read_meta_info(path) for name, path in zip(names, files)}
    digest = _shared_digest(quant_info)

    counts = scale_counts(counts, abundance, length, counts_from_abundance)

    metadata: dict[str, Any] = {
        'level': 'transcript',
        'counts_from_abundance': counts_from_abundance,
        'quant_info': quant_info,
        'index_digest': digest,
        'import_info': {
            'version': quantmeta.__version__,
            'import_time': datetime.now().isoformat(),
        },
    }
    sample_metadata = sample_table.copy()
    sample_metadata['files'] = sample_metadata['files'].astype(str)

    experiment = QuantExperiment(
        assays={'counts': counts, 'abundance': abundance, 'length': length},
        feature_ids=transcript_ids,
        sample_ids=pd.Index(names),
        sample_metadata=sample_metadata,
        metadata=metadata,
    )

    if skip_ranges:
        logger.info("Skipping transcriptome lookup; returning unranged experiment")
        return experiment

    if annotation is None:
        registry = registry or TranscriptomeRegistry()
        txome = registry.lookup(digest)
        if txome is None:
            message = (
                "Could not find a linked transcriptome for digest "
                f"{digest[:12] + '...' if digest else '(none recorded)'}; "
                "returning an experiment without row ranges. "
                "Use link_transcriptome() to register the index."
            )
            warnings.warn(message, UserWarning)
            logger.warning(message)
            return experiment

        logger.info(
            f"Found matching transcriptome: {txome.source} {txome.organism} "
            f"release {txome.release} ({txome.genome})"
        )
        annotation = load_annotation(txome, registry.cache_dir)
        experiment = experiment.with_metadata(
            txome_info=txome.to_dict(),
            annotation_cache=str(registry.cache_dir),
        )

    row_ranges = _align_row_ranges(transcript_ids, annotation, ignore_tx_version)
    present = row_ranges['tx_id'].notna().to_numpy()

    if not present.any():
        raise ValueError(
            "None of the quantified transcripts are present in the annotation. "
            f"First quantified IDs: {list(transcript_ids[:3])}, "
            f"first annotated IDs: {list(annotation.transcripts['tx_id'][:3])}. "
            "Check ignore_tx_version / ignore_after_bar."
        )

    if not present.all():
        n_missing = int((~present).sum())
        message = (
            f"{n_missing} of {len(present):,} quantified transcripts are missing "
            "from the annotation and are dropped"
        )
        warnings.warn(message, UserWarning)
        logger.warning(message)
        experiment = experiment.select_features(present)

    row_ranges = row_ranges[present].astype({'start': np.int64, 'end': np.int64})
    experiment = experiment.with_row_ranges(row_ranges)

    logger.info(f"Imported {experiment.n_features:,} transcripts x {experiment.n_samples} samples")
    return experiment
