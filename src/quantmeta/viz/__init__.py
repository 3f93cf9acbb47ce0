"""
QC figures for imported experiments.

Examples:
    >>> from quantmeta.viz import QCVisualizer
    >>> viz = QCVisualizer()
    >>> viz.plot_sample_correlation(gene_level, annotate_by="condition").save("corr.pdf")
"""

from quantmeta.viz.core import Figure
from quantmeta.viz.styles import Palette, PALETTES, configure_style
from quantmeta.viz.qc import QCVisualizer

__all__ = ['Figure', 'Palette', 'PALETTES', 'configure_style', 'QCVisualizer']
