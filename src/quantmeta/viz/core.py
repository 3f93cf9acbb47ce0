"""
Figure wrapper shared by the QC plots.

Plots return a Figure rather than a bare matplotlib figure so that callers
(the import command in particular) can save and close them uniformly and
keep the parameters a plot was drawn with.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

import matplotlib.figure
import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)

OutputFormat = Literal["png", "pdf", "svg"]
SAVE_FORMATS = ("png", "pdf", "svg")


@dataclass
class Figure:
    """
    A rendered QC plot.

    Attributes:
        fig: matplotlib figure (for clustermaps, the grid's figure)
        title: Short title, also used in log messages
        description: One sentence on what the plot shows
        metadata: Plot parameters; `created_at` is filled in on creation
    """
    fig: matplotlib.figure.Figure
    title: str
    description: str
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        self.metadata.setdefault("created_at", datetime.now().isoformat())

    def save(
        self,
        path: Path | str,
        format: Optional[OutputFormat] = None,
        dpi: int = 300,
        **kwargs
    ) -> Path:
        """
        Write the figure to `path`, creating parent directories.

        The format comes from the file suffix unless given; suffixes other
        than png, pdf and svg are written as png.
        """
        path = Path(path)
        fmt = format or path.suffix.lstrip(".").lower()
        if fmt not in SAVE_FORMATS:
            fmt = "png"

        path.parent.mkdir(parents=True, exist_ok=True)
        self.fig.savefig(path, format=fmt, dpi=dpi, bbox_inches="tight", facecolor="white", **kwargs)
        logger.debug(f"Saved '{self.title}' to {path}")
        return path

    def close(self) -> None:
        plt.close(self.fig)
