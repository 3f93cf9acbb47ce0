"""
Subset experiments by genomic coordinates.

Row ranges and query ranges are bioframe-style DataFrames (chrom, start, end,
optionally strand; 0-based half-open). Overlap detection is delegated to
bioframe.overlap; features whose coordinates are unknown never overlap.

Examples:
    >>> from quantmeta.ranges import make_ranges, subset_by_overlaps
    >>> query = make_ranges(["chr1:10,000,000-11,000,000"])
    >>> subset_by_overlaps(gene_level, query)
    QuantExperiment(96 genes × 24 samples)
    ...
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Union

import numpy as np
import pandas as pd
import bioframe as bf

from quantmeta.core.experiment import QuantExperiment

__all__ = ['parse_region', 'make_ranges', 'overlaps_mask', 'subset_by_overlaps']

logger = logging.getLogger(__name__)

# end used for whole-chromosome regions ("chr1") when no chromsizes are known
_OPEN_END = np.iinfo(np.int64).max // 2

RegionLike = Union[str, tuple]

_STRAND_SUFFIX = re.compile(r'^(.+):([+-])$')


def parse_region(text: str) -> tuple[str, int, int]:
    """
    Parse a UCSC-style region string.

    >>> parse_region("chr1:10,000,000-11,000,000")
    ('chr1', 10000000, 11000000)
    """
    chrom, start, end = bf.parse_region(text)
    start = 0 if start is None else int(start)
    end = _OPEN_END if end is None else int(end)
    return chrom, start, end


def make_ranges(regions: Iterable[RegionLike]) -> pd.DataFrame:
    """
    Build a query range table.

    Each region is a region string or a tuple (chrom, start, end[, strand]).
    A region string may end in ':+' or ':-' to give a strand
    ("chr1:1,000-2,000:-"). Strand defaults to '.', which matches either strand.
    """
    rows = []
    for region in regions:
        if isinstance(region, str):
            strand = '.'
            text = region.strip()
            stranded = _STRAND_SUFFIX.match(text)
            if stranded:
                text, strand = stranded.groups()
            chrom, start, end = parse_region(text)
        else:
            if len(region) not in (3, 4):
                raise ValueError(
                    f"Region tuples need (chrom, start, end[, strand]), got {region!r}"
                )
            chrom, start, end = region[0], int(region[1]), int(region[2])
            strand = region[3] if len(region) == 4 else '.'
        if end < start:
            raise ValueError(f"Region end precedes start: {region!r}")
        rows.append({'chrom': str(chrom), 'start': start, 'end': end, 'strand': strand})

    if not rows:
        raise ValueError("At least one region is required")
    df = pd.DataFrame(rows)
    df['start'] = df['start'].astype(np.int64)
    df['end'] = df['end'].astype(np.int64)
    return df


def _located(row_ranges: pd.DataFrame) -> pd.DataFrame:
    """Rows with coordinates, positional index in `_row`."""
    df = row_ranges[['chrom', 'start', 'end', 'strand']].copy()
    df['_row'] = np.arange(len(df))
    df = df.dropna(subset=['chrom', 'start', 'end'])
    df['chrom'] = df['chrom'].astype(str)
    df['start'] = df['start'].astype(np.int64)
    df['end'] = df['end'].astype(np.int64)
    return df.reset_index(drop=True)


def overlaps_mask(
    row_ranges: pd.DataFrame,
    ranges: pd.DataFrame,
    ignore_strand: bool = True,
) -> np.ndarray:
    """
    Boolean mask over row_ranges: True where a row overlaps any query range.

    With ignore_strand=False a stranded query only matches features on the
    same strand; queries with strand '.' match both.
    """
    mask = np.zeros(len(row_ranges), dtype=bool)
    features = _located(row_ranges)
    if features.empty or ranges.empty:
        return mask

    query = ranges.copy()
    query['chrom'] = query['chrom'].astype(str)
    if 'strand' not in query.columns:
        query['strand'] = '.'

    if ignore_strand:
        hits = bf.overlap(features, query[['chrom', 'start', 'end']], how='inner')
        mask[hits['_row'].to_numpy(dtype=np.int64)] = True
        return mask

    unstranded = query[~query['strand'].isin(['+', '-'])]
    stranded = query[query['strand'].isin(['+', '-'])]
    if not unstranded.empty:
        hits = bf.overlap(features, unstranded[['chrom', 'start', 'end']], how='inner')
        mask[hits['_row'].to_numpy(dtype=np.int64)] = True
    if not stranded.empty:
        hits = bf.overlap(
            features, stranded[['chrom', 'start', 'end', 'strand']],
            how='inner', on=['strand'],
        )
        mask[hits['_row'].to_numpy(dtype=np.int64)] = True
    return mask


def subset_by_overlaps(
    experiment: QuantExperiment,
    ranges: Union[pd.DataFrame, Iterable[RegionLike]],
    ignore_strand: bool = True,
) -> QuantExperiment:
    """
    Keep features overlapping any of the query ranges.

    Args:
        experiment: Ranged experiment (transcript or gene level)
        ranges: Query DataFrame, or regions accepted by make_ranges
        ignore_strand: Match features on either strand

    Raises:
        ValueError: If the experiment has no row ranges
    """
    if not experiment.has_ranges:
        raise ValueError(
            "Experiment has no row ranges; link the transcriptome before "
            "subsetting by genomic coordinates"
        )
    if not isinstance(ranges, pd.DataFrame):
        ranges = make_ranges(ranges)

    mask = overlaps_mask(experiment.row_ranges, ranges, ignore_strand=ignore_strand)
    logger.info(
        f"{int(mask.sum()):,} of {experiment.n_features:,} features overlap "
        f"{len(ranges)} quer{'y' if len(ranges) == 1 else 'ies'}"
    )
    return experiment.select_features(mask)
