"""
Quality control visualizations for imported quantifications.

Each plot answers one question an analyst asks right after import:

    - Did every library yield a comparable number of reads?   plot_library_sizes
    - Do replicates resemble each other more than other groups? plot_sample_correlation
    - Did reads map to the transcriptome at similar rates?     plot_mapping_rates

Sample-level views are appropriate here: RNA-seq experiments at this stage
have tens of samples, not hundreds.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import seaborn as sns
from scipy import stats

from quantmeta.core.experiment import QuantExperiment
from quantmeta.viz.core import Figure
from quantmeta.viz.styles import Palette, PALETTES, configure_style

logger = logging.getLogger(__name__)


def fmt_num(n: float) -> str:
    """Format number with scientific notation for large values."""
    if abs(n) >= 1e6:
        return f'{n:.2e}'
    elif abs(n) >= 1000:
        return f'{n:,.0f}'
    else:
        return f'{n:.1f}'


class QCVisualizer:
    """
    Post-import QC figures for a QuantExperiment.
    """

    def __init__(
        self,
        palette: str | Palette = "default",
        style: Literal["paper", "notebook"] = "paper"
    ):
        if isinstance(palette, str):
            self.palette = PALETTES.get(palette, PALETTES["default"])
        else:
            self.palette = palette
        self.style = style
        configure_style(style=style, palette=self.palette)

    def _group_colors(self, experiment: QuantExperiment, column: str) -> tuple[list[str], dict[str, str]]:
        if column not in experiment.sample_metadata.columns:
            raise KeyError(
                f"Column '{column}' not in sample metadata: "
                f"{list(experiment.sample_metadata.columns)}"
            )
        values = experiment.sample_metadata[column].astype(str)
        levels = list(dict.fromkeys(values))
        color_map = dict(zip(levels, self.palette.for_groups(levels)))
        return [color_map[v] for v in values], color_map

    def plot_library_sizes(
        self,
        experiment: QuantExperiment,
        color_by: Optional[str] = None,
        figsize: tuple[float, float] = (8, 4)
    ) -> Figure:
        """
        Bar chart of total estimated counts per sample.

        A dashed line marks the median; bars are colored by `color_by`.
        """
        totals = experiment.assay('counts').sum(axis=0)
        labels = [str(s) for s in experiment.sample_ids]

        fig, ax = plt.subplots(figsize=figsize)
        if color_by is not None:
            colors, color_map = self._group_colors(experiment, color_by)
        else:
            colors, color_map = [self.palette.neutral] * len(labels), {}

        ax.bar(np.arange(len(labels)), totals, color=colors, edgecolor='white')
        median = float(np.median(totals))
        ax.axhline(median, color=self.palette.highlight, linestyle='--', linewidth=1,
                   label=f'Median: {fmt_num(median)}')

        ax.set_xticks(np.arange(len(labels)))
        ax.set_xticklabels(labels, rotation=90)
        ax.set_ylabel("Estimated counts")
        ax.set_title(f"Library sizes ({len(labels)} samples)")

        handles = [mpatches.Patch(color=c, label=level) for level, c in color_map.items()]
        ax.legend(handles=handles + ax.get_legend_handles_labels()[0], loc='upper right', fontsize=8)

        return Figure(
            fig=fig,
            title="Library sizes",
            description="Total estimated counts per sample",
            metadata={"color_by": color_by, "median": median},
        )

    def plot_sample_correlation(
        self,
        experiment: QuantExperiment,
        assay: str = "abundance",
        annotate_by: Optional[str] = None,
        figsize: tuple[float, float] = (8, 8)
    ) -> Figure:
        """
        Clustered heatmap of Spearman correlation between samples.

        Values are log1p-transformed first; features with zero variance
        across samples are excluded.
        """
        if experiment.n_samples < 2:
            raise ValueError("Sample correlation needs at least 2 samples")

        values = np.log1p(experiment.assay(assay))
        variable = np.nanstd(values, axis=1) > 0
        values = values[variable]
        if values.shape[0] < 2:
            raise ValueError(f"Assay '{assay}' has fewer than 2 variable features")

        rho, _ = stats.spearmanr(values)
        if np.ndim(rho) == 0:
            # spearmanr returns a scalar for two samples
            rho = np.array([[1.0, rho], [rho, 1.0]])
        labels = [str(s) for s in experiment.sample_ids]
        corr = pd.DataFrame(rho, index=labels, columns=labels).fillna(0.0)

        kwargs = {}
        color_map: dict[str, str] = {}
        if annotate_by is not None:
            colors, color_map = self._group_colors(experiment, annotate_by)
            kwargs["col_colors"] = colors
            kwargs["row_colors"] = colors

        grid = sns.clustermap(
            corr,
            cmap=self.palette.sequential,
            figsize=figsize,
            xticklabels=True,
            yticklabels=True,
            **kwargs
        )
        grid.ax_heatmap.set_title(f"Spearman correlation, log1p({assay})", pad=40)
        if color_map:
            handles = [mpatches.Patch(color=c, label=level) for level, c in color_map.items()]
            grid.ax_heatmap.legend(handles=handles, title=annotate_by,
                                   bbox_to_anchor=(1.25, 1.2), loc='upper left', fontsize=8)

        logger.debug(f"Sample correlation range: {np.nanmin(rho):.3f} - {np.nanmax(rho):.3f}")

        return Figure(
            fig=grid.fig,
            title="Sample correlation",
            description=f"Spearman correlation of log1p({assay}), hierarchically clustered",
            metadata={"assay": assay, "annotate_by": annotate_by,
                      "n_features": int(values.shape[0])},
        )

    def plot_mapping_rates(
        self,
        experiment: QuantExperiment,
        figsize: tuple[float, float] = (8, 4)
    ) -> Figure:
        """
        Percent of reads mapped per sample, from salmon's meta_info.json.

        Raises:
            ValueError: If no sample recorded a mapping rate
        """
        quant_info = experiment.metadata.get('quant_info', {})
        rates = pd.Series(
            [quant_info.get(str(s), {}).get('percent_mapped', np.nan) for s in experiment.sample_ids],
            index=[str(s) for s in experiment.sample_ids],
            dtype=float,
        )
        if rates.isna().all():
            raise ValueError("No mapping rates recorded in quant_info")

        fig, ax = plt.subplots(figsize=figsize)
        ax.bar(np.arange(len(rates)), rates.fillna(0).to_numpy(), color=self.palette.treated,
               edgecolor='white')
        ax.set_xticks(np.arange(len(rates)))
        ax.set_xticklabels(rates.index, rotation=90)
        ax.set_ylim(0, 100)
        ax.set_ylabel("Mapped reads (%)")
        ax.set_title(f"Mapping rate (median {rates.median():.1f}%)")

        return Figure(
            fig=fig,
            title="Mapping rates",
            description="Percent of processed reads assigned to transcripts by salmon",
            metadata={"missing": rates.index[rates.isna()].tolist()},
        )
