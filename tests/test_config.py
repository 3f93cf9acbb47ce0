"""
Tests for config file loading and CLI override.
"""

from argparse import Namespace
from pathlib import Path

import pytest

from quantmeta.cli.config import load_config, merge_config_with_args, validate_config


def _defaults(**overrides):
    values = dict(
        coldata=None, dir=None, output=None, cache_dir=None, gene=False, ids=None,
        region=None, layout="quants/{name}/quant.sf.gz", names_column="names",
        factors=None, reference_level=None, counts_from_abundance="no",
        ignore_tx_version=False, ignore_after_bar=True, skip_ranges=False,
    )
    values.update(overrides)
    return Namespace(**values)


class TestLoadConfig:

    def test_yaml(self, tmp_path):
        path = tmp_path / "import.yaml"
        path.write_text("coldata: data/coldata.csv\ngene: true\nids: [SYMBOL]\n")
        assert load_config(path) == {"coldata": "data/coldata.csv", "gene": True, "ids": ["SYMBOL"]}

    def test_json(self, tmp_path):
        path = tmp_path / "import.json"
        path.write_text('{"output": "results/gse"}')
        assert load_config(path) == {"output": "results/gse"}

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(path) == {}

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "import.toml"
        path.write_text("x = 1")
        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("coldata: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(path)

    def test_top_level_list(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="dictionary/mapping"):
            load_config(path)


class TestMergeConfig:
    """CLI > config > defaults."""

    CONFIG = {
        "coldata": "data/coldata.csv",
        "output": "results/gse",
        "gene": True,
        "region": "chr1:1-1000",
        "samples": {"factors": ["line", "condition"], "reference_levels": {"condition": "naive"}},
        "import": {"counts_from_abundance": "scaledTPM"},
    }

    def test_config_fills_defaults(self):
        merged = merge_config_with_args(self.CONFIG, _defaults(), [])
        assert merged.coldata == Path("data/coldata.csv")
        assert merged.gene is True
        assert merged.factors == ["line", "condition"]
        assert merged.counts_from_abundance == "scaledTPM"
        assert merged.region == ["chr1:1-1000"]
        assert merged.reference_level == [("condition", "naive")]

    def test_explicit_cli_wins(self):
        args = _defaults(output=Path("elsewhere"), counts_from_abundance="no")
        merged = merge_config_with_args(
            self.CONFIG, args, ["-o", "elsewhere", "--counts-from-abundance=no"]
        )
        assert merged.output == Path("elsewhere")
        assert merged.counts_from_abundance == "no"
        assert merged.coldata == Path("data/coldata.csv")

    def test_reference_levels_merge_per_column(self):
        args = _defaults(reference_level=[("condition", "IFNg"), ("line", "lineB")])
        merged = merge_config_with_args(self.CONFIG, args, ["--reference-level", "condition=IFNg"])
        assert dict(merged.reference_level) == {"condition": "IFNg", "line": "lineB"}

    def test_ignore_after_bar_from_config(self):
        merged = merge_config_with_args({"import": {"ignore_after_bar": False}}, _defaults(), [])
        assert merged.ignore_after_bar is False

    def test_negated_flag_is_explicit(self):
        """--ignore-after-bar given on the command line beats the config value."""
        config = {"import": {"ignore_after_bar": False}}
        merged = merge_config_with_args(config, _defaults(ignore_after_bar=True), ["--ignore-after-bar"])
        assert merged.ignore_after_bar is True
        merged = merge_config_with_args(
            {"import": {"ignore_after_bar": True}}, _defaults(ignore_after_bar=False), ["--no-ignore-after-bar"]
        )
        assert merged.ignore_after_bar is False

    def test_input_namespace_unchanged(self):
        args = _defaults()
        merge_config_with_args(self.CONFIG, args, [])
        assert args.coldata is None


class TestValidateConfig:

    def test_valid(self):
        validate_config(TestMergeConfig.CONFIG)

    @pytest.mark.parametrize("config,message", [
        ({"import": {"counts_from_abundance": "TPM"}}, "Invalid counts_from_abundance"),
        ({"ids": "SYMBOL"}, "must be a list"),
        ({"ids": ["SYMBOL", "REFSEQ"]}, "Invalid identifier columns"),
        ({"samples": {"factors": "condition"}}, "samples.factors must be a list"),
        ({"samples": {"reference_levels": ["condition"]}}, "must be a mapping"),
        ({"samples": ["a"]}, "must be a mapping"),
        ({"gene": "yes"}, "'gene' must be true or false"),
        ({"import": {"ignore_after_bar": "no"}}, "import.ignore_after_bar must be true or false"),
    ])
    def test_invalid(self, config, message):
        with pytest.raises(ValueError, match=message):
            validate_config(config)
