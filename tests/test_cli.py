"""
End-to-end tests for the quantmeta command line.
"""

import json

import pandas as pd
import pytest

from quantmeta.cli import main
from quantmeta.cli import import_quants as import_command
from quantmeta.reference.registry import TranscriptomeRegistry

from conftest import DIGEST


@pytest.fixture
def import_args(data_dir, registry, tmp_path):
    return [
        "import",
        "-i", str(data_dir / "coldata.csv"),
        "-o", str(tmp_path / "out" / "gse"),
        "--cache-dir", str(registry.cache_dir),
    ]


class TestMain:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: quantmeta" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert "quantmeta" in capsys.readouterr().out


class TestLinkCommand:

    def test_link_by_digest(self, tmp_path, capsys):
        cache = tmp_path / "cache"
        code = main([
            "link", "--digest", DIGEST, "--source", "GENCODE", "--organism", "Homo sapiens",
            "--release", "99", "--genome", "GRCh38", "--fasta", "tx.fa.gz", "--gtf", "a.gtf",
            "--json", str(tmp_path / "txome.json"), "--cache-dir", str(cache),
        ])
        assert code == 0
        assert TranscriptomeRegistry(cache).lookup(DIGEST).release == "99"
        assert json.loads((tmp_path / "txome.json").read_text())["digest"] == DIGEST
        assert "Linked GENCODE Homo sapiens release 99" in capsys.readouterr().out

    def test_missing_arguments(self, tmp_path, capsys):
        code = main(["link", "--digest", DIGEST, "--cache-dir", str(tmp_path)])
        assert code == 1
        out = capsys.readouterr().out
        assert "ERROR: Missing required arguments" in out
        assert "--gtf" in out

    def test_list_and_remove(self, registry, capsys):
        assert main(["link", "--list", "--cache-dir", str(registry.cache_dir)]) == 0
        assert DIGEST[:16] in capsys.readouterr().out

        assert main(["link", "--remove", DIGEST, "--cache-dir", str(registry.cache_dir)]) == 0
        assert TranscriptomeRegistry(registry.cache_dir).lookup(DIGEST) is None
        assert main(["link", "--remove", DIGEST, "--cache-dir", str(registry.cache_dir)]) == 1

    def test_import_json(self, registry, tmp_path):
        exported = registry.export_json(DIGEST, tmp_path / "txome.json")
        other = tmp_path / "other_cache"
        assert main(["link", "--import-json", str(exported), "--cache-dir", str(other)]) == 0
        assert TranscriptomeRegistry(other).lookup(DIGEST) is not None


class TestImportCommand:
    """quantmeta import against the synthetic run."""

    def test_transcript_level(self, import_args, tmp_path):
        assert main(import_args) == 0
        counts = pd.read_csv(tmp_path / "out" / "gse.counts.csv", index_col=0)
        assert counts.shape == (4, 4)
        record = json.loads((tmp_path / "out" / "gse.config.json").read_text())
        assert record["level"] == "transcript"
        assert record["digest"] == DIGEST

    def test_gene_level_with_factors(self, import_args, tmp_path):
        args = import_args + [
            "--gene", "--factors", "line", "condition", "--reference-level", "condition=naive",
        ]
        assert main(args) == 0
        metadata = json.loads((tmp_path / "out" / "gse.metadata.json").read_text())
        assert metadata["level"] == "gene"
        assert metadata["column_levels"]["condition"] == ["naive", "IFNg"]
        rowdata = pd.read_csv(tmp_path / "out" / "gse.rowdata.csv", index_col=0)
        assert len(rowdata) == 3

    def test_ids(self, import_args, tmp_path, fake_mapper, monkeypatch):
        monkeypatch.setattr(import_command, "MyGeneInfoMapper", lambda **kwargs: fake_mapper)
        assert main(import_args + ["--gene", "--ids", "SYMBOL"]) == 0
        rowdata = pd.read_csv(tmp_path / "out" / "gse.rowdata.csv", index_col=0)
        assert rowdata.loc["ENSG00000000002.1", "SYMBOL"] == "GENE2"

    def test_region(self, import_args, tmp_path):
        assert main(import_args + ["--gene", "--region", "chr2"]) == 0
        counts = pd.read_csv(tmp_path / "out" / "gse.counts.csv", index_col=0)
        assert list(counts.index) == ["ENSG00000000003.1"]

    def test_region_without_hits(self, import_args, capsys):
        assert main(import_args + ["--region", "chrX:1-100"]) == 1
        assert "No features overlap" in capsys.readouterr().out

    def test_config_file(self, data_dir, registry, tmp_path):
        config = tmp_path / "import.yaml"
        config.write_text(
            f"coldata: {data_dir / 'coldata.csv'}\n"
            f"output: {tmp_path / 'cfg' / 'gse'}\n"
            f"cache_dir: {registry.cache_dir}\n"
            "gene: true\n"
            "samples:\n"
            "  factors: [condition]\n"
        )
        assert main(["import", "--config", str(config)]) == 0
        record = json.loads((tmp_path / "cfg" / "gse.config.json").read_text())
        assert record["gene"] is True
        assert record["factors"] == ["condition"]

    def test_no_ignore_after_bar(self, import_args, tmp_path):
        assert main(import_args + ["--no-ignore-after-bar"]) == 0
        record = json.loads((tmp_path / "out" / "gse.config.json").read_text())
        assert record["ignore_after_bar"] is False

    def test_figures(self, import_args, tmp_path):
        assert main(import_args + ["--factors", "condition", "--figures"]) == 0
        assert (tmp_path / "out" / "gse.library_sizes.png").exists()
        assert (tmp_path / "out" / "gse.mapping_rates.png").exists()

    def test_missing_coldata(self, tmp_path, capsys):
        assert main(["import", "-o", str(tmp_path / "gse")]) == 1
        assert "--coldata is required" in capsys.readouterr().out

    def test_missing_quant_file(self, import_args, data_dir, capsys):
        (data_dir / "quants" / "SAMP3" / "quant.sf.gz").unlink()
        assert main(import_args) == 1
        assert "ERROR:" in capsys.readouterr().out


class TestSubsetCommand:

    @pytest.fixture
    def written(self, import_args, tmp_path):
        assert main(import_args + ["--gene", "--factors", "condition"]) == 0
        return tmp_path / "out" / "gse"

    def test_where(self, written, tmp_path):
        out = tmp_path / "naive"
        assert main(["subset", "-i", str(written), "-o", str(out), "--where", "condition=naive"]) == 0
        coldata = pd.read_csv(f"{out}.coldata.csv", index_col=0)
        assert list(coldata.index) == ["SAMP1", "SAMP3"]

    def test_region(self, written, tmp_path):
        out = tmp_path / "chr1"
        assert main(["subset", "-i", str(written), "-o", str(out), "--region", "chr1"]) == 0
        counts = pd.read_csv(f"{out}.counts.csv", index_col=0)
        assert len(counts) == 2

    def test_strand_aware_region(self, written, tmp_path):
        """A stranded region keeps only same-strand genes with --strand-aware."""
        both = tmp_path / "both"
        minus = tmp_path / "minus"
        assert main(["subset", "-i", str(written), "-o", str(both), "--region", "chr1:0-2000:-"]) == 0
        assert main([
            "subset", "-i", str(written), "-o", str(minus), "--region", "chr1:0-2000:-", "--strand-aware",
        ]) == 0
        assert len(pd.read_csv(f"{both}.counts.csv", index_col=0)) == 2
        counts = pd.read_csv(f"{minus}.counts.csv", index_col=0)
        assert list(counts.index) == ["ENSG00000000002.1"]

    def test_bad_region(self, written, tmp_path):
        with pytest.raises(SystemExit):
            main(["subset", "-i", str(written), "-o", str(tmp_path / "x"), "--region", "chr1:2000-0:-"])

    def test_unknown_column(self, written, tmp_path, capsys):
        assert main(["subset", "-i", str(written), "-o", str(tmp_path / "x"), "--where", "batch=1"]) == 1
        assert "not in sample metadata" in capsys.readouterr().out

    def test_requires_criteria(self, written, tmp_path, capsys):
        assert main(["subset", "-i", str(written), "-o", str(tmp_path / "x")]) == 1
        assert "at least one --region or --where" in capsys.readouterr().out
