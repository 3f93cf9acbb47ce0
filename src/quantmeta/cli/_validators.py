"""Shared argparse type validators for CLI parameters.

These validators produce clear error messages when users pass malformed
values (e.g., ``--workers 0``, ``--where condition``). They are intended to
be used as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    """argparse type for positive integers (> 0)."""
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def _key_value(value: str) -> tuple[str, str]:
    """argparse type for KEY=VALUE pairs, e.g. ``condition=naive``."""
    key, sep, val = value.partition("=")
    if not sep or not key.strip() or not val.strip():
        raise argparse.ArgumentTypeError(
            f"{value!r} is not of the form COLUMN=VALUE"
        )
    return key.strip(), val.strip()


def _region(value: str) -> str:
    """argparse type for UCSC-style regions (chr1:10,000,000-11,000,000, optional :+ or :-)."""
    from quantmeta.ranges import make_ranges

    try:
        make_ranges([value])
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"{value!r} is not a valid region: {e}")
    return value
