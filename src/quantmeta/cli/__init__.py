"""
quantmeta CLI - Command-line interface for reference-aware quantification import.

Commands:
    quantmeta import   - Import salmon quantifications into an annotated experiment
    quantmeta link     - Link a salmon index digest to its reference annotation
    quantmeta subset   - Subset a written experiment by region or sample attributes
"""

import argparse
import sys
from typing import Optional, List

import quantmeta


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for quantmeta."""
    parser = argparse.ArgumentParser(
        prog="quantmeta",
        description="Reference-aware import of RNA-seq transcript quantifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  import   Import salmon quantifications into an annotated experiment
  link     Link a salmon index digest to its reference annotation
  subset   Subset a written experiment by region or sample attributes

Examples:
  quantmeta link --index-dir gencode.v29_salmon --source GENCODE --organism "Homo sapiens" \\
      --release 29 --genome GRCh38 --fasta gencode.v29.transcripts.fa.gz \\
      --gtf gencode.v29.annotation.gtf.gz
  quantmeta import --coldata data/coldata.csv --output results/gse --gene --ids SYMBOL
  quantmeta subset --input results/gse --output results/chr1 --region chr1:10,000,000-11,000,000
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {quantmeta.__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from quantmeta.cli import import_quants, link, subset
    import_quants.register_parser(subparsers)
    link.register_parser(subparsers)
    subset.register_parser(subparsers)

    raw_args = list(args) if args is not None else sys.argv[1:]
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # raw subcommand arguments, for config override detection
    parsed_args.cli_args = raw_args[1:]
    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
