"""
quantmeta import command - Sample table to annotated experiment.

Usage:
    quantmeta import --coldata data/coldata.csv --dir data --output results/gse --gene --ids SYMBOL
    quantmeta import --config import.yaml
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

import quantmeta
from quantmeta.annotation import MyGeneInfoMapper, add_ids, ID_COLUMNS
from quantmeta.io.samples import (
    DEFAULT_LAYOUT,
    annotate_quant_paths,
    read_sample_table,
    resolve_data_dir,
    set_reference_level,
)
from quantmeta.io.writers import prefixed_path, write_experiment
from quantmeta.pipeline import import_quants
from quantmeta.ranges import subset_by_overlaps
from quantmeta.reference.registry import TranscriptomeRegistry
from quantmeta.summarize import COUNTS_FROM_ABUNDANCE, summarize_to_gene
from quantmeta.utils.fileio import atomic_write_json
from quantmeta.cli._validators import _key_value, _positive_int, _region

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the import subcommand."""
    parser = subparsers.add_parser(
        "import",
        help="Import salmon quantifications into an annotated experiment",
        description="Read a sample table, import salmon output, identify the reference "
                    "transcriptome by digest, optionally summarize to genes and add IDs"
    )

    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (optional, CLI args override config values)")

    parser.add_argument("--coldata", "-i", type=Path, required=False,
                        help="Sample table CSV with a 'names' column")
    parser.add_argument("--dir", "-d", type=Path, default=None,
                        help="Data directory holding the quantifications (default: coldata's directory)")
    parser.add_argument("--output", "-o", type=Path, required=False,
                        help="Output base path (without extension)")
    parser.add_argument("--layout", default=DEFAULT_LAYOUT,
                        help=f"Quantification path relative to --dir (default: {DEFAULT_LAYOUT})")
    parser.add_argument("--names-column", default="names",
                        help="Sample table column holding sample names (default: names)")
    parser.add_argument("--factors", nargs="+", default=None,
                        help="Columns to treat as experimental factors (e.g. line condition)")
    parser.add_argument("--reference-level", type=_key_value, action="append", default=None,
                        metavar="COLUMN=LEVEL",
                        help="Reference level for a factor, e.g. condition=naive (repeatable)")
    parser.add_argument("--counts-from-abundance", choices=list(COUNTS_FROM_ABUNDANCE), default="no",
                        help="Derive counts from abundance (default: no)")
    parser.add_argument("--ignore-tx-version", action="store_true", default=False,
                        help="Strip transcript version suffixes before matching the annotation")
    parser.add_argument("--ignore-after-bar", action=argparse.BooleanOptionalAction, default=True,
                        help="Drop everything after the first | in transcript IDs (default: on)")
    parser.add_argument("--skip-ranges", action="store_true", default=False,
                        help="Do not look up the reference transcriptome")
    parser.add_argument("--gene", action="store_true", default=False,
                        help="Summarize to gene level")
    parser.add_argument("--ids", nargs="+", choices=list(ID_COLUMNS), default=None,
                        help="Identifier columns to add via mygene.info")
    parser.add_argument("--region", type=_region, action="append", default=None,
                        help="Keep only features overlapping this region (repeatable)")
    parser.add_argument("--cache-dir", type=Path, default=None,
                        help="Cache for linked transcriptomes and annotation (default: ~/.cache/quantmeta)")
    parser.add_argument("--workers", type=_positive_int, default=8,
                        help="Concurrent mygene.info requests (default: 8)")
    parser.add_argument("--figures", action="store_true", default=False,
                        help="Write QC figures next to the output")
    parser.add_argument("--verbose", "-v", action="store_true", default=False,
                        help="Debug logging")

    parser.set_defaults(func=run_import)


def _write_figures(experiment, output: Path, color_by) -> list[Path]:
    from quantmeta.viz import QCVisualizer

    viz = QCVisualizer()
    figures = {
        "library_sizes": lambda: viz.plot_library_sizes(experiment, color_by=color_by),
        "sample_correlation": lambda: viz.plot_sample_correlation(experiment, annotate_by=color_by),
        "mapping_rates": lambda: viz.plot_mapping_rates(experiment),
    }
    written = []
    for key, make in figures.items():
        try:
            figure = make()
        except ValueError as e:
            logger.warning(f"Skipping {key} figure: {e}")
            continue
        path = figure.save(prefixed_path(output, f"{key}.png"))
        figure.close()
        print(f"Wrote {key} figure to {path}")
        written.append(path)
    return written


def run_import(args: argparse.Namespace) -> int:
    """Execute the import command."""
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.config:
        from quantmeta.cli.config import load_config, merge_config_with_args, validate_config

        print(f"Loading configuration from: {args.config}")
        try:
            config = load_config(args.config)
            validate_config(config)
            cli_args = getattr(args, 'cli_args', None)
            if cli_args is None:
                cli_args = sys.argv[2:]
            args = merge_config_with_args(config, args, cli_args)
            print("  Configuration loaded successfully")
        except (FileNotFoundError, ValueError) as e:
            print(f"ERROR: Config file error: {e}")
            return 1

    if not args.coldata:
        print("ERROR: --coldata is required (via CLI or config file)")
        return 1
    if not args.output:
        print("ERROR: --output is required (via CLI or config file)")
        return 1

    start_time = datetime.now()
    print(f"\n{'='*70}")
    print("  quantmeta import")
    print(f"{'='*70}")
    print(f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}\n")

    try:
        data_dir = resolve_data_dir(args.dir if args.dir else Path(args.coldata).parent)
        coldata = read_sample_table(args.coldata, names_column=args.names_column, factors=args.factors)
        for column, level in args.reference_level or []:
            coldata = set_reference_level(coldata, column, level)
        coldata = annotate_quant_paths(coldata, data_dir, layout=args.layout)
        print(f"Samples: {len(coldata)} from {args.coldata}")

        registry = TranscriptomeRegistry(args.cache_dir)
        experiment = import_quants(
            coldata,
            counts_from_abundance=args.counts_from_abundance,
            registry=registry,
            ignore_tx_version=args.ignore_tx_version,
            ignore_after_bar=args.ignore_after_bar,
            skip_ranges=args.skip_ranges,
        )
        print(f"Imported: {experiment.n_features:,} transcripts x {experiment.n_samples} samples")

        if args.gene:
            experiment = summarize_to_gene(experiment)
            print(f"Summarized: {experiment.n_features:,} genes")

        if args.ids:
            mapper = MyGeneInfoMapper(cache_dir=registry.cache_dir / 'id_mapping', max_workers=args.workers)
            for column in args.ids:
                experiment = add_ids(experiment, column=column, mapper=mapper)
                print(f"Added identifiers: {column}")

        if args.region:
            experiment = subset_by_overlaps(experiment, args.region)
            print(f"Region subset: {experiment.n_features:,} {experiment.level}s")
            if experiment.n_features == 0:
                print("ERROR: No features overlap the requested region(s)")
                return 1

        output = Path(args.output)
        write_experiment(experiment, output)

        color_by = args.factors[-1] if args.factors else None
        if args.figures:
            _write_figures(experiment, output, color_by)
    except (FileNotFoundError, NotADirectoryError, ValueError, KeyError) as e:
        print(f"ERROR: {e}")
        return 1

    run_record = {
        'version': quantmeta.__version__,
        'started': start_time.isoformat(),
        'finished': datetime.now().isoformat(),
        'coldata': str(args.coldata),
        'dir': str(data_dir),
        'output': str(output),
        'layout': args.layout,
        'names_column': args.names_column,
        'factors': args.factors,
        'reference_levels': dict(args.reference_level or []),
        'counts_from_abundance': args.counts_from_abundance,
        'ignore_tx_version': args.ignore_tx_version,
        'ignore_after_bar': args.ignore_after_bar,
        'skip_ranges': args.skip_ranges,
        'gene': args.gene,
        'ids': args.ids,
        'region': args.region,
        'cache_dir': str(registry.cache_dir),
        'level': experiment.level,
        'n_features': experiment.n_features,
        'n_samples': experiment.n_samples,
        'digest': experiment.metadata.get('index_digest'),
    }
    config_path = prefixed_path(output, "config.json")
    atomic_write_json(config_path, run_record)
    print(f"Run record: {config_path}")

    elapsed = datetime.now() - start_time
    print(f"\nCompleted in {elapsed.total_seconds():.1f}s")
    return 0
