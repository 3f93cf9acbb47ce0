"""
Colors and matplotlib settings for QC figures.

Sample groups are colored by meaning rather than position: a level that
looks like a control (naive, mock, vehicle, ...) is always gray, the first
other level is blue, further levels come from seaborn's colorblind-safe
Set2.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import matplotlib.pyplot as plt
import seaborn as sns

_CONTROL_LABELS = {"naive", "control", "ctrl", "untreated", "mock", "wt", "vehicle"}

# context -> (base font size, save dpi)
_CONTEXTS = {
    "paper": (10, 300),
    "notebook": (11, 150),
}


@dataclass(frozen=True)
class Palette:
    """
    Named colors for QC figures.

    Attributes:
        control: Control-like group levels
        treated: First non-control level
        highlight: Reference lines and thresholds
        neutral: Bars when no grouping column is given
        sequential: Colormap for correlation heatmaps
    """
    control: str = "#6b7280"
    treated: str = "#2563eb"
    highlight: str = "#ef4444"
    neutral: str = "#9ca3af"
    sequential: str = "viridis"

    def for_groups(self, groups: list[str]) -> list[str]:
        """One color per group label, in order."""
        extra = iter(sns.color_palette("Set2", 8).as_hex() * 4)
        treated_used = False
        colors = []
        for group in groups:
            if str(group).lower() in _CONTROL_LABELS:
                colors.append(self.control)
            elif not treated_used:
                colors.append(self.treated)
                treated_used = True
            else:
                colors.append(next(extra))
        return colors


PALETTES = {
    "default": Palette(),
    "colorblind": Palette(
        control="#bbbbbb",
        treated="#0077bb",
        highlight="#cc3311",
        neutral="#999999",
    ),
}


def configure_style(
    style: Literal["paper", "notebook"] = "paper",
    palette: str | Palette = "default",
    font_scale: float = 1.0
) -> Palette:
    """Apply the seaborn theme and rcParams for `style`; returns the resolved palette."""
    if isinstance(palette, str):
        palette = PALETTES.get(palette, PALETTES["default"])

    base, dpi = _CONTEXTS.get(style, _CONTEXTS["paper"])
    sns.set_theme(style="whitegrid", context=style if style in _CONTEXTS else "paper",
                  font_scale=font_scale)

    ink = "#333333"
    plt.rcParams.update({
        "figure.facecolor": "white",
        "axes.facecolor": "white",
        "axes.edgecolor": ink,
        "axes.labelcolor": ink,
        "text.color": ink,
        "xtick.color": ink,
        "ytick.color": ink,
        "axes.spines.top": False,
        "axes.spines.right": False,
        "legend.frameon": False,
        "font.size": base * font_scale,
        "axes.titlesize": (base + 1) * font_scale,
        "axes.labelsize": base * font_scale,
        "xtick.labelsize": (base - 2) * font_scale,
        "ytick.labelsize": (base - 2) * font_scale,
        "legend.fontsize": (base - 1) * font_scale,
        "savefig.dpi": dpi,
    })
    return palette
