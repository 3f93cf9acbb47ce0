"""
quantmeta link command - Register a linked transcriptome.

Usage:
    quantmeta link --index-dir gencode.v29_salmon --source GENCODE --organism "Homo sapiens" \\
        --release 29 --genome GRCh38 --fasta gencode.v29.transcripts.fa.gz \\
        --gtf gencode.v29.annotation.gtf.gz --json gencode.v29.json
    quantmeta link --import-json gencode.v29.json
    quantmeta link --list
"""

import argparse
import logging
from pathlib import Path

from quantmeta.reference.registry import TranscriptomeRegistry, link_transcriptome

_REQUIRED = ("source", "organism", "release", "genome", "fasta", "gtf")


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the link subcommand."""
    parser = subparsers.add_parser(
        "link",
        help="Link a salmon index digest to its reference annotation",
        description="Record which transcriptome (source, release, genome, FASTA, GTF) a "
                    "salmon index was built from, keyed by the index sequence digest"
    )

    action = parser.add_mutually_exclusive_group()
    action.add_argument("--list", action="store_true", default=False,
                        help="List registered transcriptomes")
    action.add_argument("--import-json", type=Path, default=None,
                        help="Register a transcriptome from a JSON file written by --json")
    action.add_argument("--remove", default=None, metavar="DIGEST",
                        help="Remove a registered transcriptome")

    digest = parser.add_mutually_exclusive_group()
    digest.add_argument("--index-dir", type=Path, default=None,
                        help="Salmon index directory (digest read from info.json)")
    digest.add_argument("--digest", default=None,
                        help="Index sequence digest, if the index itself is not at hand")

    parser.add_argument("--source", help="Annotation source (GENCODE, Ensembl, RefSeq)")
    parser.add_argument("--organism", help="Organism, e.g. 'Homo sapiens'")
    parser.add_argument("--release", help="Annotation release, e.g. 29")
    parser.add_argument("--genome", help="Genome build, e.g. GRCh38")
    parser.add_argument("--fasta", help="Transcript FASTA path or URL")
    parser.add_argument("--gtf", help="GTF path or URL")
    parser.add_argument("--json", type=Path, default=None,
                        help="Also write the linked transcriptome to this JSON file")
    parser.add_argument("--cache-dir", type=Path, default=None,
                        help="Registry location (default: ~/.cache/quantmeta)")

    parser.set_defaults(func=run_link)


def run_link(args: argparse.Namespace) -> int:
    """Execute the link command."""
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    registry = TranscriptomeRegistry(args.cache_dir)

    try:
        if args.list:
            records = registry.all()
            if not records:
                print(f"No linked transcriptomes in {registry.path}")
            for txome in records:
                print(f"{txome.digest[:16]}  {txome.source} {txome.release}  "
                      f"{txome.organism}  {txome.genome}  {txome.gtf}")
            return 0

        if args.import_json:
            txome = registry.import_json(args.import_json)
            print(f"Registered {txome.source} release {txome.release} from {args.import_json}")
            return 0

        if args.remove:
            if not registry.remove(args.remove):
                print(f"ERROR: No linked transcriptome with digest {args.remove}")
                return 1
            print(f"Removed {args.remove}")
            return 0

        missing = [f"--{name}" for name in _REQUIRED if not getattr(args, name)]
        if args.index_dir is None and args.digest is None:
            missing.insert(0, "--index-dir or --digest")
        if missing:
            print(f"ERROR: Missing required arguments: {', '.join(missing)}")
            return 1

        txome = link_transcriptome(
            source=args.source,
            organism=args.organism,
            release=args.release,
            genome=args.genome,
            fasta=args.fasta,
            gtf=args.gtf,
            index_dir=args.index_dir,
            digest=args.digest,
            registry=registry,
            json_file=args.json,
        )
    except (FileNotFoundError, ValueError, KeyError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Linked {txome.source} {txome.organism} release {txome.release} ({txome.genome})")
    print(f"  digest: {txome.digest}")
    if args.json:
        print(f"Wrote linked transcriptome to {args.json}")
    return 0
