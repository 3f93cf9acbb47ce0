"""
Core data structures for imported quantification experiments.

1. QuantExperiment: assays + column data + row ranges + provenance metadata
2. Transform: abstract base class for immutable experiment transformations
"""

from quantmeta.core.experiment import QuantExperiment, RANGE_COLUMNS
from quantmeta.core.transform import Transform

__all__ = [
    'QuantExperiment',
    'RANGE_COLUMNS',
    'Transform',
]
