"""
Transcript-to-gene summarization.

Gene-level counts, abundance and length are derived from transcript-level
estimates the way tximport defines them:

    counts[g, j]    = sum of transcript counts of gene g in sample j
    abundance[g, j] = sum of transcript TPM of gene g in sample j
    length[g, j]    = sum(TPM * effective length) / sum(TPM)

The length is the abundance-weighted average over the gene's isoforms, so a
sample that switches to a longer isoform gets a longer gene length. When a
gene has zero abundance in a sample the weights are undefined; the length
then falls back to the mean across the gene's transcripts of each
transcript's average length over samples.

Counts-from-abundance modes produce count matrices that already absorb the
length differences:

    no               estimated counts unchanged
    scaledTPM        TPM scaled up to each sample's library size
    lengthScaledTPM  TPM x average feature length, scaled to library size

Examples:
    >>> from quantmeta.summarize import summarize_to_gene
    >>> gene_level = summarize_to_gene(transcript_level)
    >>> gene_level.level
    'gene'
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Mapping, Optional

import numpy as np
import pandas as pd

from quantmeta.core.experiment import QuantExperiment, RANGE_COLUMNS
from quantmeta.core.transform import Transform
from quantmeta.reference.gtf import TranscriptAnnotation, gene_spans, load_annotation
from quantmeta.reference.registry import LinkedTranscriptome

__all__ = [
    'COUNTS_FROM_ABUNDANCE',
    'counts_from_abundance',
    'summarize_to_gene',
    'GeneSummarizer',
]

logger = logging.getLogger(__name__)

COUNTS_FROM_ABUNDANCE = ('no', 'scaledTPM', 'lengthScaledTPM')


def counts_from_abundance(
    counts: np.ndarray,
    abundance: np.ndarray,
    length: np.ndarray,
    method: str = 'no',
) -> np.ndarray:
    """
    Derive a count matrix from abundance.

    Args:
        counts: Estimated counts (features x samples)
        abundance: TPM (features x samples)
        length: Effective length (features x samples)
        method: One of 'no', 'scaledTPM', 'lengthScaledTPM'

    Returns:
        New count matrix; column sums equal those of `counts` for the
        scaled methods

    Raises:
        ValueError: For an unknown method
    """
    if method not in COUNTS_FROM_ABUNDANCE:
        raise ValueError(
            f"Unknown counts_from_abundance method '{method}'. "
            f"Choose from: {', '.join(COUNTS_FROM_ABUNDANCE)}"
        )
    if method == 'no':
        return counts.copy()

    if method == 'scaledTPM':
        new_counts = abundance.copy()
    else:
        new_counts = abundance * np.nanmean(length, axis=1, keepdims=True)

    library_size = counts.sum(axis=0)
    new_total = new_counts.sum(axis=0)
    with np.errstate(divide='ignore', invalid='ignore'):
        scale = np.where(new_total > 0, library_size / new_total, 0.0)
    return new_counts * scale


_scale_counts = counts_from_abundance


def _gene_map(
    experiment: QuantExperiment,
    tx2gene: Optional[pd.DataFrame | Mapping[str, str]],
) -> pd.Series:
    """Gene ID per transcript, aligned to experiment.feature_ids (NaN if unknown)."""
    if tx2gene is None:
        if experiment.row_ranges is None or 'gene_id' not in experiment.row_ranges.columns:
            raise ValueError(
                "No tx2gene given and the experiment has no gene_id row annotation. "
                "Link the transcriptome or pass tx2gene."
            )
        return experiment.row_ranges['gene_id']

    if isinstance(tx2gene, pd.DataFrame):
        if tx2gene.shape[1] < 2:
            raise ValueError("tx2gene DataFrame needs transcript and gene columns")
        # first column transcripts, second column genes
        mapping = pd.Series(
            tx2gene.iloc[:, 1].values, index=tx2gene.iloc[:, 0].astype(str).values
        )
    else:
        mapping = pd.Series(dict(tx2gene))

    mapping = mapping[~mapping.index.duplicated(keep='first')]
    return mapping.reindex(experiment.feature_ids)


def summarize_to_gene(
    experiment: QuantExperiment,
    tx2gene: Optional[pd.DataFrame | Mapping[str, str] | TranscriptAnnotation] = None,
    counts_from_abundance: Optional[str] = None,
    gene_table: Optional[pd.DataFrame] = None,
) -> QuantExperiment:
    """
    Summarize a transcript-level experiment to gene level.

    Args:
        experiment: Transcript-level experiment with counts, abundance and
            length assays
        tx2gene: Optional transcript -> gene map (two-column DataFrame,
            mapping or a TranscriptAnnotation, whose gene table then also
            serves as gene_table). Defaults to row_ranges['gene_id'].
        counts_from_abundance: Override the mode recorded at import
        gene_table: Optional gene ranges (from the linked annotation). Genes
            missing from it get the span of their transcripts.

    Returns:
        Gene-level QuantExperiment (metadata['level'] == 'gene')

    Raises:
        ValueError: If already gene-level, assays are missing, or no
            transcript maps to a gene
    """
    if experiment.level == 'gene':
        raise ValueError("Experiment is already at gene level")
    for name in ('counts', 'abundance', 'length'):
        if name not in experiment.assays:
            raise ValueError(f"summarize_to_gene requires a '{name}' assay")

    if isinstance(tx2gene, TranscriptAnnotation):
        if gene_table is None:
            gene_table = tx2gene.genes
        tx2gene = tx2gene.tx2gene

    genes = _gene_map(experiment, tx2gene)
    mapped = genes.notna().to_numpy()
    if not mapped.any():
        raise ValueError("None of the transcripts could be assigned to a gene")
    if not mapped.all():
        n_missing = int((~mapped).sum())
        warnings.warn(
            f"{n_missing} transcripts have no gene assignment and are dropped "
            "from the gene-level summary.",
            UserWarning
        )
        logger.warning(f"Dropping {n_missing} transcripts without gene assignment")

    gene_ids = genes.to_numpy()[mapped].astype(str)
    counts = experiment.assay('counts')[mapped]
    abundance = experiment.assay('abundance')[mapped]
    length = experiment.assay('length')[mapped]

    codes, unique_genes = pd.factorize(gene_ids, sort=True)
    n_genes = len(unique_genes)

    def rowsum(values: np.ndarray) -> np.ndarray:
        out = np.zeros((n_genes, values.shape[1]))
        np.add.at(out, codes, values)
        return out

    gene_counts = rowsum(counts)
    gene_abundance = rowsum(abundance)
    weighted_length = rowsum(abundance * length)

    with np.errstate(divide='ignore', invalid='ignore'):
        gene_length = weighted_length / gene_abundance

    # fallback for zero-abundance genes: mean over isoforms of per-transcript mean length
    tx_mean_length = np.nanmean(length, axis=1)
    isoform_count = np.bincount(codes, minlength=n_genes)
    fallback = np.bincount(codes, weights=tx_mean_length, minlength=n_genes) / isoform_count
    missing = ~np.isfinite(gene_length)
    if missing.any():
        gene_length[missing] = np.broadcast_to(fallback[:, None], gene_length.shape)[missing]

    mode = counts_from_abundance or experiment.metadata.get('counts_from_abundance', 'no')
    if mode != 'no':
        # rescale from gene abundance and gene length
        gene_counts = _scale_counts(gene_counts, gene_abundance, gene_length, mode)

    if gene_table is None:
        gene_table = _linked_gene_table(experiment)
    feature_ids = pd.Index(unique_genes)
    row_ranges = _gene_row_ranges(experiment, feature_ids, gene_ids, mapped, gene_table)

    logger.info(
        f"Summarized {int(mapped.sum()):,} transcripts to {n_genes:,} genes"
    )

    metadata = dict(experiment.metadata)
    metadata['level'] = 'gene'
    metadata['counts_from_abundance'] = mode

    return QuantExperiment(
        assays={
            'counts': gene_counts,
            'abundance': gene_abundance,
            'length': gene_length,
        },
        feature_ids=feature_ids,
        sample_ids=experiment.sample_ids,
        sample_metadata=experiment.sample_metadata,
        row_ranges=row_ranges,
        metadata=metadata,
    )


def _linked_gene_table(experiment: QuantExperiment) -> Optional[pd.DataFrame]:
    """Gene ranges of the linked transcriptome, read from the annotation cache."""
    txome_info = experiment.metadata.get('txome_info')
    cache_dir = experiment.metadata.get('annotation_cache')
    if not txome_info or not cache_dir:
        return None
    txome = LinkedTranscriptome.from_dict(txome_info)
    return load_annotation(txome, Path(cache_dir)).genes


def _gene_row_ranges(
    experiment: QuantExperiment,
    feature_ids: pd.Index,
    gene_ids: np.ndarray,
    mapped: np.ndarray,
    gene_table: Optional[pd.DataFrame],
) -> Optional[pd.DataFrame]:
    if experiment.row_ranges is None and gene_table is None:
        return None

    ranges = pd.DataFrame(index=feature_ids)
    if gene_table is not None:
        table = gene_table.drop_duplicates(subset=['gene_id']).set_index('gene_id')
        ranges = table.reindex(feature_ids)

    if experiment.row_ranges is not None:
        tx = experiment.row_ranges[mapped].copy()
        tx['gene_id'] = gene_ids
        if 'gene_name' not in tx.columns:
            tx['gene_name'] = np.nan
        spans = gene_spans(tx).set_index('gene_id').reindex(feature_ids)
        if ranges.columns.empty:
            ranges = spans
        else:
            # annotated values win; transcript spans fill what the gene table lacks
            columns = list(ranges.columns) + [c for c in spans.columns if c not in ranges.columns]
            ranges = ranges.astype(object).combine_first(spans.astype(object))[columns]
            for column in ('start', 'end'):
                ranges[column] = pd.to_numeric(ranges[column])

    for column in RANGE_COLUMNS:
        if column not in ranges.columns:
            ranges[column] = np.nan
    for column in ('start', 'end'):
        if ranges[column].notna().all():
            ranges[column] = ranges[column].astype(np.int64)
    ranges = ranges.reindex(feature_ids)
    ranges.index.name = None
    return ranges


class GeneSummarizer(Transform):
    """Transform wrapper around summarize_to_gene."""

    def __init__(
        self,
        tx2gene: Optional[pd.DataFrame | Mapping[str, str] | TranscriptAnnotation] = None,
        counts_from_abundance: Optional[str] = None,
        gene_table: Optional[pd.DataFrame] = None,
    ):
        super().__init__(
            name="GeneSummarizer",
            params={"counts_from_abundance": counts_from_abundance},
        )
        self.tx2gene = tx2gene
        self.counts_from_abundance = counts_from_abundance
        self.gene_table = gene_table

    def validate(self, experiment: QuantExperiment) -> list[str]:
        errors = super().validate(experiment)
        if experiment.level == 'gene':
            errors.append("Experiment is already at gene level")
        return errors

    def apply(self, experiment: QuantExperiment) -> QuantExperiment:
        return summarize_to_gene(
            experiment,
            tx2gene=self.tx2gene,
            counts_from_abundance=self.counts_from_abundance,
            gene_table=self.gene_table,
        )
