"""
Configuration file support for the quantmeta import command.

Values given explicitly on the command line win over the config file, which
wins over argparse defaults.

Example (import.yaml):

    coldata: data/coldata.csv
    dir: data
    output: results/gse
    samples:
      layout: quants/{name}/quant.sf.gz
      factors: [line, condition]
      reference_levels:
        condition: naive
    import:
      counts_from_abundance: lengthScaledTPM
      ignore_tx_version: false
    gene: true
    ids: [SYMBOL]
"""

import json
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from quantmeta.summarize import COUNTS_FROM_ABUNDANCE
from quantmeta.annotation.add_ids import ID_COLUMNS


_PARSERS = {
    '.yaml': yaml.safe_load,
    '.yml': yaml.safe_load,
    '.json': json.load,
}


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Read an import config (.yaml, .yml or .json) into a dict.

    An empty file gives an empty dict.

    Raises:
        FileNotFoundError: If the file is missing
        ValueError: For an unknown suffix, a parse error, or a top level
            that is not a mapping
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    parse = _PARSERS.get(config_path.suffix.lower())
    if parse is None:
        raise ValueError(
            f"Unsupported config format: {config_path.suffix}. Use .yaml, .yml, or .json"
        )

    with open(config_path, 'r') as f:
        try:
            config = parse(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")
    return config


def _merge_value(cli_value: Any, config_value: Any, explicit: bool) -> Any:
    """Explicit CLI value, else config value, else the CLI default."""
    if explicit or config_value is None:
        return cli_value
    return config_value


_SHORT_TO_LONG = {
    'i': 'coldata',
    'd': 'dir',
    'o': 'output',
    'c': 'config',
}

_PATH_ARGS = ('coldata', 'dir', 'output', 'cache_dir')

_NEGATABLE = ('ignore_after_bar',)

# (config section or None for top level, config key) -> argparse dest
_MAPPINGS = {
    (None, 'coldata'): 'coldata',
    (None, 'dir'): 'dir',
    (None, 'output'): 'output',
    (None, 'cache_dir'): 'cache_dir',
    (None, 'gene'): 'gene',
    (None, 'ids'): 'ids',
    (None, 'region'): 'region',
    ('samples', 'layout'): 'layout',
    ('samples', 'names_column'): 'names_column',
    ('samples', 'factors'): 'factors',
    ('import', 'counts_from_abundance'): 'counts_from_abundance',
    ('import', 'ignore_tx_version'): 'ignore_tx_version',
    ('import', 'ignore_after_bar'): 'ignore_after_bar',
    ('import', 'skip_ranges'): 'skip_ranges',
}


def _explicit_args(cli_args: Optional[List[str]]) -> set:
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            name = arg[2:].split('=', 1)[0].replace('-', '_')
            # --no-X negates the boolean option X
            explicit.add(name[3:] if name.startswith('no_') and name[3:] in _NEGATABLE else name)
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in _SHORT_TO_LONG:
            explicit.add(_SHORT_TO_LONG[arg[1]])
    return explicit


def merge_config_with_args(config: Dict[str, Any], args: Namespace, cli_args: Optional[List[str]] = None) -> Namespace:
    """
    Overlay config values onto parsed import arguments.

    `cli_args` is the raw argument list after the subcommand; an option that
    appears in it counts as explicit and keeps its CLI value. Without it every
    option is treated as a default. `samples.reference_levels` and
    `--reference-level` pairs are merged per column, CLI pairs winning.

    Returns a new Namespace; `args` is not modified.
    """
    explicit_args = _explicit_args(cli_args)
    merged = Namespace(**vars(args))

    for (section, key), arg_name in _MAPPINGS.items():
        source = config if section is None else config.get(section) or {}
        if key not in source:
            continue
        config_value = source[key]
        if config_value is not None and arg_name in _PATH_ARGS:
            config_value = Path(config_value)
        if config_value is not None and arg_name == 'region' and isinstance(config_value, str):
            config_value = [config_value]
        setattr(merged, arg_name, _merge_value(
            getattr(merged, arg_name, None), config_value, arg_name in explicit_args
        ))

    # reference levels: config mapping, CLI COLUMN=LEVEL pairs win per column
    config_levels = (config.get('samples') or {}).get('reference_levels') or {}
    levels = {str(k): str(v) for k, v in config_levels.items()}
    for column, level in getattr(args, 'reference_level', None) or []:
        levels[column] = level
    merged.reference_level = list(levels.items())

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Check section types and enumerated values before merging.

    Raises:
        ValueError: If configuration is invalid
    """
    for section in ('samples', 'import'):
        if section in config and not isinstance(config[section], dict):
            raise ValueError(f"Config section '{section}' must be a mapping")

    mode = (config.get('import') or {}).get('counts_from_abundance')
    if mode is not None and mode not in COUNTS_FROM_ABUNDANCE:
        raise ValueError(
            f"Invalid counts_from_abundance '{mode}'. "
            f"Choose from: {', '.join(COUNTS_FROM_ABUNDANCE)}"
        )

    ids = config.get('ids')
    if ids is not None:
        if not isinstance(ids, list):
            raise ValueError(f"'ids' must be a list, got: {ids!r}")
        unknown = [c for c in ids if c not in ID_COLUMNS]
        if unknown:
            raise ValueError(
                f"Invalid identifier columns {unknown}. Choose from: {', '.join(ID_COLUMNS)}"
            )

    samples = config.get('samples') or {}
    factors = samples.get('factors')
    if factors is not None and not isinstance(factors, list):
        raise ValueError(f"samples.factors must be a list, got: {factors!r}")

    levels = samples.get('reference_levels')
    if levels is not None and not isinstance(levels, dict):
        raise ValueError(f"samples.reference_levels must be a mapping, got: {levels!r}")

    if 'gene' in config and not isinstance(config['gene'], bool):
        raise ValueError(f"'gene' must be true or false, got: {config['gene']!r}")

    for key in ('ignore_tx_version', 'ignore_after_bar', 'skip_ranges'):
        value = (config.get('import') or {}).get(key)
        if value is not None and not isinstance(value, bool):
            raise ValueError(f"import.{key} must be true or false, got: {value!r}")
