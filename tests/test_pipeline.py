"""
Integration tests for import_quants: salmon output + sample table + registry.
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from quantmeta.io.samples import MissingQuantFilesError
from quantmeta.pipeline import clean_transcript_ids, import_quants
from quantmeta.reference.gtf import load_annotation

from conftest import COUNTS, DIGEST, write_salmon_sample


class TestCleanTranscriptIds:

    def test_cut_at_bar(self):
        ids = pd.Index(["ENST1.2|ENSG1.1|x|", "ENST2.1|ENSG2.1|y|"])
        assert list(clean_transcript_ids(ids)) == ["ENST1.2", "ENST2.1"]

    def test_strip_version(self):
        ids = pd.Index(["ENST1.2", "ENST2.11"])
        assert list(clean_transcript_ids(ids, ignore_tx_version=True)) == ["ENST1", "ENST2"]

    def test_keep_bar(self):
        ids = pd.Index(["a|b"])
        assert list(clean_transcript_ids(ids, ignore_after_bar=False)) == ["a|b"]

    def test_duplicates_after_cleaning(self):
        with pytest.raises(ValueError, match="not unique"):
            clean_transcript_ids(pd.Index(["ENST1.1", "ENST1.2"]), ignore_tx_version=True)


class TestImportLinked:
    """Import against a linked transcriptome."""

    def test_ranged_transcript_level(self, sample_table, registry):
        with pytest.warns(UserWarning, match="1 of 5 quantified transcripts are missing"):
            se = import_quants(sample_table, registry=registry)

        assert se.level == "transcript"
        assert list(se.feature_ids) == [f"ENST0000000000{i}.1" for i in range(1, 5)]
        assert list(se.sample_ids) == ["SAMP1", "SAMP2", "SAMP3", "SAMP4"]
        assert se.has_ranges
        assert se.row_ranges.loc["ENST00000000001.1", "start"] == 100
        assert se.row_ranges.loc["ENST00000000003.1", "strand"] == "-"
        assert se.row_ranges["start"].dtype == np.int64
        np.testing.assert_allclose(se.assay("counts"), COUNTS[:4])

    def test_metadata(self, sample_table, registry):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            se = import_quants(sample_table, registry=registry)

        assert se.metadata["txome_info"]["genome"] == "GRCh38"
        assert se.metadata["index_digest"] == DIGEST
        assert se.metadata["counts_from_abundance"] == "no"
        assert set(se.metadata["quant_info"]) == {"SAMP1", "SAMP2", "SAMP3", "SAMP4"}
        assert "import_time" in se.metadata["import_info"]
        assert se.metadata["annotation_cache"] == str(registry.cache_dir)
        assert "GRCh38" in repr(se)

    def test_column_data_kept(self, sample_table, registry):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            se = import_quants(sample_table, registry=registry)
        assert list(se.sample_metadata["condition"]) == ["naive", "IFNg", "naive", "IFNg"]
        assert se.sample_metadata["files"].iloc[0].endswith("quant.sf.gz")

    def test_ignore_tx_version(self, sample_table, registry):
        with pytest.warns(UserWarning):
            se = import_quants(sample_table, registry=registry, ignore_tx_version=True)
        assert "ENST00000000001" in se.feature_ids
        assert se.n_features == 4

    def test_no_transcript_matches(self, sample_table, registry):
        with pytest.raises(ValueError, match="None of the quantified transcripts"):
            import_quants(sample_table, registry=registry, ignore_after_bar=False)

    def test_explicit_annotation(self, sample_table, empty_registry, linked_txome, tmp_path):
        annotation = load_annotation(linked_txome, tmp_path / "other_cache")
        with pytest.warns(UserWarning, match="missing from the annotation"):
            se = import_quants(sample_table, registry=empty_registry, annotation=annotation)
        assert se.has_ranges
        assert "txome_info" not in se.metadata


class TestImportUnlinked:
    """Import when the transcriptome cannot be identified."""

    def test_unknown_digest_returns_unranged(self, sample_table, empty_registry):
        with pytest.warns(UserWarning, match="Could not find a linked transcriptome"):
            se = import_quants(sample_table, registry=empty_registry)
        assert not se.has_ranges
        assert se.n_features == 5

    def test_skip_ranges(self, sample_table, registry):
        se = import_quants(sample_table, registry=registry, skip_ranges=True)
        assert not se.has_ranges
        assert "txome_info" not in se.metadata

    def test_scaled_tpm_preserves_library_size(self, sample_table, registry):
        se = import_quants(sample_table, registry=registry, skip_ranges=True,
                           counts_from_abundance="scaledTPM")
        np.testing.assert_allclose(se.assay("counts").sum(axis=0), COUNTS.sum(axis=0))
        assert se.metadata["counts_from_abundance"] == "scaledTPM"


class TestImportErrors:

    def test_missing_file(self, sample_table, data_dir, registry):
        (data_dir / "quants" / "SAMP2" / "quant.sf.gz").unlink()
        with pytest.raises(MissingQuantFilesError):
            import_quants(sample_table, registry=registry)

    def test_mixed_indices(self, sample_table, data_dir, registry):
        write_salmon_sample(data_dir / "quants" / "SAMP4", 3, digest="f" * 64)
        with pytest.raises(ValueError, match="different indices"):
            import_quants(sample_table, registry=registry)

    def test_unknown_counts_from_abundance(self, sample_table, registry):
        with pytest.raises(ValueError, match="Unknown counts_from_abundance"):
            import_quants(sample_table, registry=registry, counts_from_abundance="TPM")
