"""
Transcript and gene ranges from GTF annotation.

GTF files are 1-based and closed; every table returned here uses bioframe's
0-based half-open convention (start - 1, end unchanged), so they can be
passed directly to bioframe overlap operations.

Parsed tables are cached per transcriptome digest, since a full GENCODE
GTF takes far longer to parse than a typical import.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TYPE_CHECKING

import numpy as np
import pandas as pd
import bioframe as bf

if TYPE_CHECKING:
    from quantmeta.reference.registry import LinkedTranscriptome

__all__ = [
    'GTF_COLUMNS',
    'TranscriptAnnotation',
    'read_gtf',
    'parse_gtf_attributes',
    'transcript_ranges',
    'gene_ranges',
    'load_annotation',
]

logger = logging.getLogger(__name__)

GTF_COLUMNS = [
    "chrom", "source", "feature", "start", "end",
    "score", "strand", "frame", "attributes",
]

TRANSCRIPT_COLUMNS = [
    "chrom", "start", "end", "strand",
    "tx_id", "gene_id", "tx_name", "gene_name", "tx_biotype",
]
GENE_COLUMNS = ["chrom", "start", "end", "strand", "gene_id", "gene_name", "gene_biotype"]


@dataclass(frozen=True)
class TranscriptAnnotation:
    """Transcript and gene range tables for one transcriptome."""
    transcripts: pd.DataFrame
    genes: pd.DataFrame

    @property
    def tx2gene(self) -> pd.DataFrame:
        """Two-column (tx_id, gene_id) table accepted by summarize_to_gene."""
        return self.transcripts[["tx_id", "gene_id"]]


def read_gtf(path: str | Path) -> pd.DataFrame:
    """
    Read a GTF file (local path or URL, optionally gzipped).

    Returns the nine GTF columns with 0-based starts. Download and parse
    errors from pandas/bioframe propagate unchanged.
    """
    logger.info(f"Reading GTF: {path}")
    df = bf.read_table(
        str(path),
        names=GTF_COLUMNS,
        sep="\t",
        comment="#",
        dtype={"chrom": str},
    )
    df["start"] = df["start"].astype(np.int64) - 1
    df["end"] = df["end"].astype(np.int64)
    logger.info(f"Read {len(df):,} GTF records")
    return df


def parse_gtf_attributes(attributes: pd.Series, keys: list[str]) -> pd.DataFrame:
    """
    Extract attribute values for the requested keys.

    Attribute strings look like: gene_id "ENSG..."; transcript_id "ENST...";
    Keys absent from a record yield NaN.
    """
    attributes = attributes.fillna("").astype(str)
    parsed = {
        key: attributes.str.extract(rf'(?:^|;)\s*{key}\s+"([^"]*)"', expand=False)
        for key in keys
    }
    return pd.DataFrame(parsed, index=attributes.index)


def _first_present(attrs: pd.DataFrame, keys: list[str]) -> pd.Series:
    # GENCODE and Ensembl name the same attribute differently
    result = pd.Series(np.nan, index=attrs.index, dtype=object)
    for key in keys:
        result = result.fillna(attrs[key])
    return result


def transcript_ranges(gtf: pd.DataFrame) -> pd.DataFrame:
    """One row per 'transcript' record, sorted by position."""
    records = gtf[gtf["feature"] == "transcript"]
    attrs = parse_gtf_attributes(
        records["attributes"],
        ["transcript_id", "gene_id", "transcript_name", "gene_name",
         "transcript_type", "transcript_biotype"],
    )
    if attrs["transcript_id"].isna().all():
        raise ValueError("GTF contains no transcript records with a transcript_id attribute")

    tx = records[["chrom", "start", "end", "strand"]].copy()
    tx["tx_id"] = attrs["transcript_id"]
    tx["gene_id"] = attrs["gene_id"]
    tx["tx_name"] = attrs["transcript_name"].fillna(attrs["transcript_id"])
    tx["gene_name"] = attrs["gene_name"]
    tx["tx_biotype"] = _first_present(attrs, ["transcript_type", "transcript_biotype"])
    tx = tx.dropna(subset=["tx_id"]).drop_duplicates(subset=["tx_id"])
    return bf.sort_bedframe(tx)[TRANSCRIPT_COLUMNS].reset_index(drop=True)


def gene_ranges(gtf: pd.DataFrame, transcripts: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    One row per gene, sorted by position.

    Genes with a 'gene' record use its coordinates. Genes referenced only by
    transcripts get the span of their transcripts.
    """
    records = gtf[gtf["feature"] == "gene"]
    attrs = parse_gtf_attributes(
        records["attributes"], ["gene_id", "gene_name", "gene_type", "gene_biotype"]
    )
    genes = records[["chrom", "start", "end", "strand"]].copy()
    genes["gene_id"] = attrs["gene_id"]
    genes["gene_name"] = attrs["gene_name"]
    genes["gene_biotype"] = _first_present(attrs, ["gene_type", "gene_biotype"])
    genes = genes.dropna(subset=["gene_id"]).drop_duplicates(subset=["gene_id"])

    if transcripts is None:
        transcripts = transcript_ranges(gtf)
    spans = gene_spans(transcripts[~transcripts["gene_id"].isin(genes["gene_id"])])
    if len(spans):
        logger.debug(f"{len(spans)} genes have no gene record; using transcript spans")
        genes = pd.concat([genes, spans], ignore_index=True)

    return bf.sort_bedframe(genes)[GENE_COLUMNS].reset_index(drop=True)


def gene_spans(transcripts: pd.DataFrame) -> pd.DataFrame:
    """Gene ranges spanning all member transcripts."""
    tx = transcripts.dropna(subset=["gene_id", "chrom"])
    if tx.empty:
        return pd.DataFrame(columns=GENE_COLUMNS)
    grouped = tx.groupby("gene_id", sort=False)
    spans = grouped.agg(
        chrom=("chrom", "first"),
        start=("start", "min"),
        end=("end", "max"),
        strand=("strand", "first"),
        gene_name=("gene_name", "first"),
    ).reset_index()
    spans["gene_biotype"] = np.nan
    return spans[GENE_COLUMNS]


def _cache_paths(cache_dir: Path, digest: str) -> tuple[Path, Path]:
    base = cache_dir / "annotation"
    return base / f"{digest}.transcripts.tsv.gz", base / f"{digest}.genes.tsv.gz"


def load_annotation(
    txome: LinkedTranscriptome,
    cache_dir: Path,
    refresh: bool = False,
) -> TranscriptAnnotation:
    """
    Transcript and gene ranges for a linked transcriptome, cached by digest.

    Args:
        txome: Linked transcriptome whose GTF to read
        cache_dir: Cache root (annotation tables go under cache_dir/annotation)
        refresh: Re-read the GTF even if a cached copy exists
    """
    tx_path, gene_path = _cache_paths(Path(cache_dir), txome.digest)

    if not refresh and tx_path.exists() and gene_path.exists():
        logger.info(f"Using cached annotation for {txome.source} release {txome.release}")
        transcripts = pd.read_csv(tx_path, sep="\t", dtype={"chrom": str})
        genes = pd.read_csv(gene_path, sep="\t", dtype={"chrom": str})
        return TranscriptAnnotation(transcripts=transcripts, genes=genes)

    gtf = read_gtf(txome.gtf)
    transcripts = transcript_ranges(gtf)
    genes = gene_ranges(gtf, transcripts)

    tx_path.parent.mkdir(parents=True, exist_ok=True)
    transcripts.to_csv(tx_path, sep="\t", index=False)
    genes.to_csv(gene_path, sep="\t", index=False)
    logger.info(
        f"Cached annotation: {len(transcripts):,} transcripts, {len(genes):,} genes"
    )
    return TranscriptAnnotation(transcripts=transcripts, genes=genes)
