"""
Pytest configuration and shared fixtures.

Fixtures synthesize a miniature salmon run in tmp_path: four samples
(two lines x two conditions) quantified against five transcripts, the
matching meta_info.json files, a GENCODE-style GTF and a registry with the
transcriptome linked.

Transcript layout (GTF, 1-based):
    ENST...01  GENE1  chr1  101-200   +
    ENST...02  GENE1  chr1  151-300   +
    ENST...03  GENE2  chr1  1001-1500 -
    ENST...04  GENE3  chr2  501-900   +   (no gene record)
    ENST...05  not annotated (present in quant.sf only)
"""

import json
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from quantmeta.core.experiment import QuantExperiment
from quantmeta.reference.registry import LinkedTranscriptome, TranscriptomeRegistry

DIGEST = "7b5c3f3a9e1d4c2b8a6f0e9d8c7b6a5f4e3d2c1b0a9f8e7d6c5b4a3f2e1d0c9b"

SAMPLES = pd.DataFrame({
    "names": ["SAMP1", "SAMP2", "SAMP3", "SAMP4"],
    "line": ["lineA", "lineA", "lineB", "lineB"],
    "condition": ["naive", "IFNg", "naive", "IFNg"],
})

TX_IDS = [f"ENST0000000000{i}.1" for i in range(1, 6)]
GENE_IDS = ["ENSG00000000001.2", "ENSG00000000001.2", "ENSG00000000002.1", "ENSG00000000003.1", None]
GENE_NAMES = ["GENE1", "GENE1", "GENE2", "GENE3", None]

# transcripts x samples
COUNTS = np.array([
    [10.0, 20.0, 30.0, 40.0],
    [0.0, 5.0, 0.0, 5.0],
    [100.0, 100.0, 100.0, 100.0],
    [7.0, 0.0, 3.0, 1.0],
    [1.0, 1.0, 1.0, 1.0],
])
TPM = COUNTS * 10.0
EFFECTIVE_LENGTH = np.array([
    [100.0, 110.0, 120.0, 130.0],
    [200.0, 200.0, 200.0, 200.0],
    [500.0, 500.0, 500.0, 500.0],
    [300.0, 310.0, 320.0, 330.0],
    [50.0, 50.0, 50.0, 50.0],
])

GTF_TEXT = """##description: synthetic annotation for tests
##format: gtf
chr1\tHAVANA\tgene\t101\t300\t.\t+\t.\tgene_id "ENSG00000000001.2"; gene_type "protein_coding"; gene_name "GENE1";
chr1\tHAVANA\ttranscript\t101\t200\t.\t+\t.\tgene_id "ENSG00000000001.2"; transcript_id "ENST00000000001.1"; gene_type "protein_coding"; gene_name "GENE1"; transcript_type "protein_coding"; transcript_name "GENE1-201";
chr1\tHAVANA\texon\t101\t200\t.\t+\t.\tgene_id "ENSG00000000001.2"; transcript_id "ENST00000000001.1"; exon_number 1;
chr1\tHAVANA\ttranscript\t151\t300\t.\t+\t.\tgene_id "ENSG00000000001.2"; transcript_id "ENST00000000002.1"; gene_type "protein_coding"; gene_name "GENE1"; transcript_type "retained_intron"; transcript_name "GENE1-202";
chr1\tHAVANA\tgene\t1001\t1500\t.\t-\t.\tgene_id "ENSG00000000002.1"; gene_type "lncRNA"; gene_name "GENE2";
chr1\tHAVANA\ttranscript\t1001\t1500\t.\t-\t.\tgene_id "ENSG00000000002.1"; transcript_id "ENST00000000003.1"; gene_type "lncRNA"; gene_name "GENE2"; transcript_type "lncRNA"; transcript_name "GENE2-201";
chr2\tENSEMBL\ttranscript\t501\t900\t.\t+\t.\tgene_id "ENSG00000000003.1"; transcript_id "ENST00000000004.1"; gene_type "protein_coding"; gene_name "GENE3"; transcript_type "protein_coding"; transcript_name "GENE3-201";
"""


def _gencode_header(i: int) -> str:
    """quant.sf Name as salmon writes it for GENCODE FASTA without --gencode."""
    tx = TX_IDS[i]
    gene = GENE_IDS[i] or "ENSG00000000099.1"
    name = GENE_NAMES[i] or "NOVEL"
    return f"{tx}|{gene}|OTTHUMG0000000{i}|OTTHUMT0000000{i}|{name}-201|{name}|{int(EFFECTIVE_LENGTH[i, 0]) + 50}|protein_coding|"


def write_salmon_sample(
    sample_dir: Path,
    column: int,
    digest: str = DIGEST,
    names: list[str] | None = None,
    with_meta: bool = True,
) -> Path:
    """Write quant.sf.gz (+ aux_info/meta_info.json) for one sample column."""
    sample_dir.mkdir(parents=True, exist_ok=True)
    quant = pd.DataFrame({
        "Name": names or [_gencode_header(i) for i in range(len(TX_IDS))],
        "Length": EFFECTIVE_LENGTH[:, column] + 50,
        "EffectiveLength": EFFECTIVE_LENGTH[:, column],
        "TPM": TPM[:, column],
        "NumReads": COUNTS[:, column],
    })
    path = sample_dir / "quant.sf.gz"
    quant.to_csv(path, sep="\t", index=False)

    if with_meta:
        aux = sample_dir / "aux_info"
        aux.mkdir(exist_ok=True)
        meta = {
            "salmon_version": "1.10.1",
            "index_seq_hash": digest,
            "num_processed": 1000,
            "num_mapped": 900 - 10 * column,
            "percent_mapped": 90.0 - column,
            "library_types": ["A"],
        }
        (aux / "meta_info.json").write_text(json.dumps(meta))
    return path


@pytest.fixture
def data_dir(tmp_path):
    """Data directory with coldata.csv and quants/<name>/quant.sf.gz."""
    root = tmp_path / "data"
    root.mkdir()
    SAMPLES.to_csv(root / "coldata.csv", index=False)
    for j, name in enumerate(SAMPLES["names"]):
        write_salmon_sample(root / "quants" / name, j)
    return root


@pytest.fixture
def gtf_path(tmp_path):
    path = tmp_path / "annotation.gtf"
    path.write_text(GTF_TEXT)
    return path


@pytest.fixture
def linked_txome(gtf_path):
    return LinkedTranscriptome(
        digest=DIGEST,
        source="GENCODE",
        organism="Homo sapiens",
        release="99",
        genome="GRCh38",
        fasta="transcripts.fa.gz",
        gtf=str(gtf_path),
    )


@pytest.fixture
def empty_registry(tmp_path):
    return TranscriptomeRegistry(tmp_path / "cache")


@pytest.fixture
def registry(empty_registry, linked_txome):
    """Registry with the test transcriptome linked."""
    empty_registry.register(linked_txome)
    return empty_registry


@pytest.fixture
def sample_table(data_dir):
    """Sample table with 'files' annotated."""
    from quantmeta.io.samples import read_sample_table, annotate_quant_paths

    table = read_sample_table(data_dir / "coldata.csv", factors=["line", "condition"])
    return annotate_quant_paths(table, data_dir)


@pytest.fixture
def small_experiment():
    """Transcript-level experiment with ranges, no files involved."""
    feature_ids = pd.Index(TX_IDS[:4])
    sample_ids = pd.Index(list(SAMPLES["names"]))
    row_ranges = pd.DataFrame({
        "chrom": ["chr1", "chr1", "chr1", "chr2"],
        "start": [100, 150, 1000, 500],
        "end": [200, 300, 1500, 900],
        "strand": ["+", "+", "-", "+"],
        "tx_id": TX_IDS[:4],
        "gene_id": GENE_IDS[:4],
        "gene_name": GENE_NAMES[:4],
    }, index=feature_ids)
    sample_metadata = SAMPLES.set_index(pd.Index(list(SAMPLES["names"])))
    return QuantExperiment(
        assays={
            "counts": COUNTS[:4].copy(),
            "abundance": TPM[:4].copy(),
            "length": EFFECTIVE_LENGTH[:4].copy(),
        },
        feature_ids=feature_ids,
        sample_ids=sample_ids,
        sample_metadata=sample_metadata,
        row_ranges=row_ranges,
        metadata={"level": "transcript", "counts_from_abundance": "no"},
    )


class FakeMapper:
    """IDMapper stand-in that records queries."""

    def __init__(self, mapping: dict[str, str]):
        self.mapping = mapping
        self.calls = []

    def map_ids(self, source_ids, source_type="ensembl_gene", target_type="symbol", species="human"):
        self.calls.append((list(source_ids), source_type, target_type, species))
        return {i: self.mapping[i] for i in source_ids if i in self.mapping}


@pytest.fixture
def fake_mapper():
    return FakeMapper({
        "ENSG00000000001": "GENE1",
        "ENSG00000000002": "GENE2",
    })
