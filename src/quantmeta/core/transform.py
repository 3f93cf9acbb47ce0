"""
Base transformation framework for immutable experiment operations.

Import pipelines apply a short chain of steps to the imported experiment:
summarize transcripts to genes, attach alternate identifiers, subset.
Every step takes an experiment and returns a new one, so the transcript-level
object stays available next to the gene-level one.

Examples:
    >>> from quantmeta.summarize import GeneSummarizer
    >>> from quantmeta.annotation import IdAnnotator
    >>>
    >>> steps = [GeneSummarizer(), IdAnnotator(column="SYMBOL")]
    >>> print(" -> ".join(str(s) for s in steps))
    GeneSummarizer(counts_from_abundance=None) -> IdAnnotator(column=SYMBOL, gene=None, species=None)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING
from datetime import datetime

if TYPE_CHECKING:
    from quantmeta.core.experiment import QuantExperiment

__all__ = ['Transform']


class Transform(ABC):
    """
    Abstract base class for experiment transformations.

    Attributes:
        name: Human-readable transformation name (e.g., "GeneSummarizer")
        params: Parameters used for this transformation (JSON-serializable)
        timestamp: When this transform instance was created
    """

    def __init__(self, name: str, params: dict[str, Any]) -> None:
        self.name = name
        self.params = params
        self.timestamp = datetime.now()

    @abstractmethod
    def apply(self, experiment: QuantExperiment) -> QuantExperiment:
        """
        Execute transformation and return a new experiment.

        Must never modify the input experiment.
        """
        pass

    def validate(self, experiment: QuantExperiment) -> list[str]:
        """
        Check preconditions before applying transformation.

        Subclasses should override and call super().validate() first.

        Returns:
            List of error messages (empty list = valid)
        """
        errors: list[str] = []

        if experiment.n_features == 0 or experiment.n_samples == 0:
            errors.append("Cannot process empty experiment")

        return errors

    def __call__(self, experiment: QuantExperiment) -> QuantExperiment:
        errors = self.validate(experiment)
        if errors:
            raise ValueError(f"{self.name} cannot be applied: " + "; ".join(errors))
        return self.apply(experiment)

    def __repr__(self) -> str:
        """String like "GeneSummarizer(counts_from_abundance=no)"."""
        params_str = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.name}({params_str})"
