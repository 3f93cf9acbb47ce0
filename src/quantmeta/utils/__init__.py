"""Utility modules for quantification import."""

from quantmeta.utils.fileio import atomic_write_json

__all__ = ['atomic_write_json']
