"""
I/O for sample tables, salmon quantifications and written experiments.

Key Functions:
    - read_sample_table / annotate_quant_paths: describe the samples
    - read_quants: stack salmon quant.sf files into matrices
    - write_experiment / load_experiment: persist an experiment as CSV + JSON

Examples:
    >>> from quantmeta.io import read_sample_table, annotate_quant_paths, check_files_exist
    >>>
    >>> coldata = read_sample_table("coldata.csv", factors=["line", "condition"])
    >>> coldata = annotate_quant_paths(coldata, "data")
    >>> check_files_exist(coldata)
    True
"""

from quantmeta.io.samples import (
    MissingQuantFilesError,
    resolve_data_dir,
    read_sample_table,
    set_reference_level,
    annotate_quant_paths,
    check_files_exist,
    require_files_exist,
)
from quantmeta.io.salmon import read_quant_file, read_meta_info, index_digest, read_quants
from quantmeta.io.writers import write_experiment
from quantmeta.io.loaders import load_experiment

__all__ = [
    'MissingQuantFilesError',
    'resolve_data_dir',
    'read_sample_table',
    'set_reference_level',
    'annotate_quant_paths',
    'check_files_exist',
    'require_files_exist',
    'read_quant_file',
    'read_meta_info',
    'index_digest',
    'read_quants',
    'write_experiment',
    'load_experiment',
]
