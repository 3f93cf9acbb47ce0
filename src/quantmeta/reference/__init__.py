"""
Reference transcriptome provenance and genomic ranges.

A salmon index is identified by the digest of its transcript sequences. The
registry links digests to their source annotation; the GTF of a linked
transcriptome supplies transcript and gene ranges.
"""

from quantmeta.reference.registry import (
    DEFAULT_CACHE_DIR,
    LinkedTranscriptome,
    TranscriptomeRegistry,
    read_index_digest,
    link_transcriptome,
)
from quantmeta.reference.gtf import (
    TranscriptAnnotation,
    read_gtf,
    transcript_ranges,
    gene_ranges,
    load_annotation,
)

__all__ = [
    'DEFAULT_CACHE_DIR',
    'LinkedTranscriptome',
    'TranscriptomeRegistry',
    'read_index_digest',
    'link_transcriptome',
    'TranscriptAnnotation',
    'read_gtf',
    'transcript_ranges',
    'gene_ranges',
    'load_annotation',
]
