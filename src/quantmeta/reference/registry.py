"""
Registry of linked transcriptomes, keyed by sequence digest.

Salmon records a digest of the indexed transcript sequences in every
sample's meta_info.json (`index_seq_hash`). Two indices built from the same
sequences share the digest regardless of file names, so the digest
identifies the reference unambiguously. Linking a digest to its source
(GENCODE/Ensembl, release, organism, genome build, FASTA, GTF) lets
`import_quants` attach genomic ranges without the user naming the GTF.

Examples:
    >>> from quantmeta.reference.registry import link_transcriptome, TranscriptomeRegistry
    >>> link_transcriptome(
    ...     index_dir="gencode.v29_salmon_0.12.0",
    ...     source="GENCODE", organism="Homo sapiens", release="29",
    ...     genome="GRCh38", fasta="gencode.v29.transcripts.fa.gz",
    ...     gtf="gencode.v29.annotation.gtf.gz",
    ...     json_file="gencode.v29.json",
    ... )
    >>> TranscriptomeRegistry().lookup(digest).release
    '29'
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from quantmeta.utils.fileio import atomic_write_json

__all__ = [
    'DEFAULT_CACHE_DIR',
    'LinkedTranscriptome',
    'TranscriptomeRegistry',
    'read_index_digest',
    'link_transcriptome',
]

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / '.cache' / 'quantmeta'
REGISTRY_FILE = 'linked_transcriptomes.json'


@dataclass(frozen=True)
class LinkedTranscriptome:
    """
    Provenance of one transcriptome index.

    Attributes:
        digest: Sequence digest of the indexed transcripts
        source: Annotation source, e.g. 'GENCODE', 'Ensembl', 'RefSeq'
        organism: Latin name, e.g. 'Homo sapiens'
        release: Annotation release, e.g. '29'
        genome: Genome build, e.g. 'GRCh38'
        fasta: Transcript FASTA location(s) the index was built from
        gtf: GTF location (path or URL) describing the transcripts
    """
    digest: str
    source: str
    organism: str
    release: str
    genome: str
    fasta: str
    gtf: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> LinkedTranscriptome:
        missing = [f for f in cls.__dataclass_fields__ if f not in data]
        if missing:
            raise ValueError(f"Linked transcriptome record is missing fields: {missing}")
        return cls(**{f: str(data[f]) for f in cls.__dataclass_fields__})


class TranscriptomeRegistry:
    """
    JSON-backed store of LinkedTranscriptome records.

    The store lives at `<cache_dir>/linked_transcriptomes.json` and is
    rewritten atomically on every change.
    """

    def __init__(self, cache_dir: Optional[Path] = None):
        self.cache_dir = Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.cache_dir / REGISTRY_FILE

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupted transcriptome registry {self.path}: {e}") from e

    def _save(self, records: dict[str, dict]) -> None:
        atomic_write_json(self.path, records)

    def register(self, txome: LinkedTranscriptome) -> None:
        records = self._load()
        if txome.digest in records:
            logger.info(f"Replacing linked transcriptome for digest {txome.digest[:12]}...")
        records[txome.digest] = txome.to_dict()
        self._save(records)
        logger.info(
            f"Linked {txome.source} {txome.organism} release {txome.release} "
            f"({txome.genome}) to digest {txome.digest[:12]}..."
        )

    def lookup(self, digest: Optional[str]) -> Optional[LinkedTranscriptome]:
        """Linked transcriptome for a digest, or None when unknown."""
        if not digest:
            return None
        record = self._load().get(digest)
        return LinkedTranscriptome.from_dict(record) if record else None

    def remove(self, digest: str) -> bool:
        records = self._load()
        if digest not in records:
            return False
        del records[digest]
        self._save(records)
        return True

    def all(self) -> list[LinkedTranscriptome]:
        return [LinkedTranscriptome.from_dict(r) for r in self._load().values()]

    def export_json(self, digest: str, path: str | Path) -> Path:
        """Write one record as a standalone JSON file for sharing."""
        txome = self.lookup(digest)
        if txome is None:
            raise KeyError(f"No linked transcriptome with digest {digest}")
        path = Path(path)
        atomic_write_json(path, txome.to_dict())
        return path

    def import_json(self, path: str | Path) -> LinkedTranscriptome:
        """Register a record previously written by export_json."""
        with open(path, 'r') as f:
            txome = LinkedTranscriptome.from_dict(json.load(f))
        self.register(txome)
        return txome


def read_index_digest(index_dir: str | Path) -> str:
    """
    Read the sequence digest stored in a salmon index directory.

    Salmon >= 1.0 writes it as `SeqHash` in info.json; some versions keep
    it in versionInfo.json.

    Raises:
        FileNotFoundError: If neither file exists
        ValueError: If no digest is recorded
    """
    index_dir = Path(index_dir)
    candidates = [index_dir / 'info.json', index_dir / 'versionInfo.json']
    found = [p for p in candidates if p.exists()]
    if not found:
        raise FileNotFoundError(
            f"No info.json or versionInfo.json in salmon index directory {index_dir}"
        )
    for path in found:
        with open(path, 'r') as f:
            info = json.load(f)
        digest = info.get('SeqHash') or info.get('seq_hash')
        if digest:
            return digest
    raise ValueError(f"Salmon index {index_dir} does not record a sequence digest")


def link_transcriptome(
    source: str,
    organism: str,
    release: str,
    genome: str,
    fasta: str,
    gtf: str,
    index_dir: Optional[str | Path] = None,
    digest: Optional[str] = None,
    registry: Optional[TranscriptomeRegistry] = None,
    json_file: Optional[str | Path] = None,
) -> LinkedTranscriptome:
    """
    Link a salmon index digest to its reference files and register it.

    Exactly one of `index_dir` (digest read from the index) or `digest`
    must be given. When `json_file` is set the record is also written there.
    """
    if (index_dir is None) == (digest is None):
        raise ValueError("Provide exactly one of index_dir or digest")
    if index_dir is not None:
        digest = read_index_digest(index_dir)

    txome = LinkedTranscriptome(
        digest=digest,
        source=source,
        organism=organism,
        release=str(release),
        genome=genome,
        fasta=str(fasta),
        gtf=str(gtf),
    )
    registry = registry or TranscriptomeRegistry()
    registry.register(txome)
    if json_file is not None:
        registry.export_json(txome.digest, json_file)
    return txome
