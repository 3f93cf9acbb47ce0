"""
quantmeta subset command - Subset a written experiment.

Usage:
    quantmeta subset --input results/gse --output results/gse_chr1 --region chr1:10,000,000-11,000,000
    quantmeta subset --input results/gse --output results/gse_naive --where condition=naive
"""

import argparse
import logging
from pathlib import Path

import numpy as np

from quantmeta.io.loaders import load_experiment
from quantmeta.io.writers import write_experiment
from quantmeta.ranges import subset_by_overlaps
from quantmeta.cli._validators import _key_value, _region


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the subset subcommand."""
    parser = subparsers.add_parser(
        "subset",
        help="Subset a written experiment by region and/or sample attributes",
        description="Keep features overlapping genomic regions and samples matching "
                    "column=value criteria, then write the result"
    )
    parser.add_argument("--input", "-i", type=Path, required=True,
                        help="Input experiment prefix (as written by 'quantmeta import')")
    parser.add_argument("--output", "-o", type=Path, required=True,
                        help="Output experiment prefix")
    parser.add_argument("--region", type=_region, action="append", default=None,
                        help="Keep features overlapping this region, e.g. chr1:1,000-2,000 or "
                             "chr1:1,000-2,000:- with a strand (repeatable)")
    parser.add_argument("--where", type=_key_value, action="append", default=None,
                        metavar="COLUMN=VALUE",
                        help="Keep samples whose column equals value (repeatable, all must hold)")
    parser.add_argument("--strand-aware", action="store_true", default=False,
                        help="Require strand agreement for regions ending in :+ or :-")

    parser.set_defaults(func=run_subset)


def run_subset(args: argparse.Namespace) -> int:
    """Execute the subset command."""
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if not args.region and not args.where:
        print("ERROR: Provide at least one --region or --where")
        return 1

    try:
        experiment = load_experiment(args.input)
        print(f"Loaded: {experiment.n_features:,} {experiment.level}s x {experiment.n_samples} samples")

        if args.where:
            keep = np.ones(experiment.n_samples, dtype=bool)
            for column, value in args.where:
                if column not in experiment.sample_metadata.columns:
                    raise KeyError(
                        f"Column '{column}' not in sample metadata: "
                        f"{list(experiment.sample_metadata.columns)}"
                    )
                keep &= (experiment.sample_metadata[column].astype(str) == value).to_numpy()
            experiment = experiment.select_samples(keep)
            print(f"Samples kept: {experiment.n_samples}")

        if args.region:
            experiment = subset_by_overlaps(experiment, args.region, ignore_strand=not args.strand_aware)
            print(f"Features kept: {experiment.n_features:,}")

        write_experiment(experiment, args.output)
    except (FileNotFoundError, ValueError, KeyError) as e:
        print(f"ERROR: {e}")
        return 1

    return 0
