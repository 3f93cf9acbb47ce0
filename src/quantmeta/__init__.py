"""
quantmeta - Reference-aware import of RNA-seq transcript quantifications

Reads a sample table, locates per-sample salmon output, identifies the
reference transcriptome by its sequence digest and returns an annotated
feature x sample experiment that can be summarized to genes, subset by
genomic ranges and decorated with alternate gene identifiers.
"""

__version__ = "0.1.0"

from quantmeta.core.experiment import QuantExperiment
from quantmeta.core.transform import Transform

__all__ = [
    "QuantExperiment",
    "Transform",
]
