"""
Core data structure for imported quantification experiments.

QuantExperiment unifies the numerical assays produced by a transcript
quantifier (estimated counts, abundance, effective length) with the sample
table the experiment was described by and, when the reference transcriptome
could be identified, the genomic coordinates of every feature.

Biological Context:
    After quantification each sample yields one table of transcripts. Stacking
    them gives a set of parallel matrices:
    - Rows = features (transcripts, or genes after summarization)
    - Columns = samples (cell lines x conditions)
    - Assays = counts, abundance (TPM) and effective length

    Downstream tools need the matrices together with:
    - Column data: line, condition and other experimental factors
    - Row ranges: chromosome, start, end and strand of every feature
    - Provenance: which transcriptome the reads were quantified against

Engineering Design:
    - Immutable: operations return new instances
    - NumPy arrays for assays, pandas for metadata and ranges
    - Row ranges use bioframe conventions (chrom/start/end, 0-based half-open)
    - Constructor validates every shape and index

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from quantmeta.core.experiment import QuantExperiment
    >>>
    >>> counts = np.array([[10.0, 20.0], [30.0, 40.0]])
    >>> experiment = QuantExperiment(
    ...     assays={'counts': counts},
    ...     feature_ids=pd.Index(["ENST001", "ENST002"]),
    ...     sample_ids=pd.Index(["s1", "s2"]),
    ...     sample_metadata=pd.DataFrame({'condition': ['naive', 'IFNg']},
    ...                                  index=pd.Index(["s1", "s2"])),
    ... )
    >>> treated = experiment.select_samples(experiment.sample_metadata['condition'] == 'IFNg')
"""

from __future__ import annotations

from typing import Any, Optional
import numpy as np
import pandas as pd

__all__ = ['QuantExperiment', 'RANGE_COLUMNS']

RANGE_COLUMNS = ['chrom', 'start', 'end', 'strand']


class QuantExperiment:
    """
    Immutable container for assays + column data + row ranges + metadata.

    Attributes:
        assays: Named matrices (features x samples), all the same shape
        feature_ids: Row identifiers (transcript or gene IDs)
        sample_ids: Column identifiers (sample names)
        sample_metadata: Column data, indexed by sample_ids
        row_ranges: Optional per-feature coordinates and annotation,
            indexed by feature_ids
        metadata: Free-form provenance (quant info, transcriptome, level)

    Shape rules:
        - every assay has shape (len(feature_ids), len(sample_ids))
        - sample_metadata.index equals sample_ids
        - row_ranges.index equals feature_ids when row_ranges is present
    """

    def __init__(
        self,
        assays: dict[str, np.ndarray],
        feature_ids: pd.Index,
        sample_ids: pd.Index,
        sample_metadata: pd.DataFrame,
        row_ranges: Optional[pd.DataFrame] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        """
        Initialize QuantExperiment with validation.

        Args:
            assays: Mapping of assay name to 2D array (features x samples)
            feature_ids: Row identifiers, must be unique
            sample_ids: Column identifiers, must be unique
            sample_metadata: Column data with index matching sample_ids
            row_ranges: Optional DataFrame with index matching feature_ids.
                Must contain chrom, start, end and strand columns.
            metadata: Optional provenance dictionary

        Raises:
            TypeError: If components have the wrong type
            ValueError: If shapes or indices are inconsistent
        """
        if not isinstance(assays, dict) or not assays:
            raise TypeError("assays must be a non-empty dict of name -> np.ndarray")
        if not isinstance(feature_ids, pd.Index):
            raise TypeError(f"feature_ids must be pd.Index, got {type(feature_ids)}")
        if not isinstance(sample_ids, pd.Index):
            raise TypeError(f"sample_ids must be pd.Index, got {type(sample_ids)}")
        if not isinstance(sample_metadata, pd.DataFrame):
            raise TypeError(f"sample_metadata must be pd.DataFrame, got {type(sample_metadata)}")
        if row_ranges is not None and not isinstance(row_ranges, pd.DataFrame):
            raise TypeError(f"row_ranges must be pd.DataFrame or None, got {type(row_ranges)}")

        shape = (len(feature_ids), len(sample_ids))
        for name, values in assays.items():
            if not isinstance(values, np.ndarray):
                raise TypeError(f"assay '{name}' must be np.ndarray, got {type(values)}")
            if values.ndim != 2:
                raise ValueError(f"assay '{name}' must be 2D, got shape {values.shape}")
            if values.shape != shape:
                raise ValueError(
                    f"assay '{name}' shape {values.shape} must match "
                    f"(n_features, n_samples) = {shape}"
                )

        if feature_ids.has_duplicates:
            raise ValueError(
                f"feature_ids must be unique, found {feature_ids.duplicated().sum()} duplicates"
            )
        if sample_ids.has_duplicates:
            raise ValueError(
                f"sample_ids must be unique, found {sample_ids.duplicated().sum()} duplicates"
            )

        if not sample_metadata.index.equals(sample_ids):
            raise ValueError(
                "sample_metadata.index must match sample_ids exactly. "
                f"Got {len(sample_metadata.index)} metadata rows for {len(sample_ids)} samples."
            )

        if row_ranges is not None:
            missing = [c for c in RANGE_COLUMNS if c not in row_ranges.columns]
            if missing:
                raise ValueError(f"row_ranges is missing required columns: {missing}")
            if not row_ranges.index.equals(feature_ids):
                raise ValueError(
                    "row_ranges.index must match feature_ids exactly. "
                    f"Got {len(row_ranges.index)} range rows for {len(feature_ids)} features."
                )

        self._assays = dict(assays)
        self._feature_ids = feature_ids
        self._sample_ids = sample_ids
        self._sample_metadata = sample_metadata
        self._row_ranges = row_ranges
        self._metadata = dict(metadata) if metadata else {}

    @property
    def assays(self) -> dict[str, np.ndarray]:
        """Named assay matrices (features x samples)."""
        return self._assays

    @property
    def assay_names(self) -> list[str]:
        return list(self._assays)

    @property
    def feature_ids(self) -> pd.Index:
        """Row identifiers (transcripts or genes)."""
        return self._feature_ids

    @property
    def sample_ids(self) -> pd.Index:
        """Column identifiers (sample names)."""
        return self._sample_ids

    @property
    def sample_metadata(self) -> pd.DataFrame:
        """Column data: experimental factors and file paths."""
        return self._sample_metadata

    @property
    def row_ranges(self) -> Optional[pd.DataFrame]:
        """Per-feature coordinates and annotation, or None if unranged."""
        return self._row_ranges

    @property
    def metadata(self) -> dict[str, Any]:
        return self._metadata

    @property
    def has_ranges(self) -> bool:
        """True when some feature has genomic coordinates (or there are no features)."""
        if self._row_ranges is None:
            return False
        return self._row_ranges.empty or bool(self._row_ranges['chrom'].notna().any())

    @property
    def level(self) -> str:
        """Feature level, 'transcript' or 'gene'."""
        return self._metadata.get('level', 'transcript')

    @property
    def shape(self) -> tuple[int, int]:
        """Experiment dimensions (n_features, n_samples)."""
        return (len(self._feature_ids), len(self._sample_ids))

    @property
    def n_features(self) -> int:
        return len(self._feature_ids)

    @property
    def n_samples(self) -> int:
        return len(self._sample_ids)

    def assay(self, name: str = 'counts') -> np.ndarray:
        """
        Get an assay matrix by name.

        Raises:
            KeyError: If no assay with that name exists
        """
        if name not in self._assays:
            raise KeyError(f"No assay named '{name}'. Available: {self.assay_names}")
        return self._assays[name]

    def assay_frame(self, name: str = 'counts') -> pd.DataFrame:
        """Assay as a DataFrame labelled with feature and sample IDs."""
        return pd.DataFrame(self.assay(name), index=self._feature_ids, columns=self._sample_ids)

    def with_assays(self, assays: dict[str, np.ndarray]) -> QuantExperiment:
        """New experiment with the given assays replacing the current ones."""
        return QuantExperiment(
            assays=assays,
            feature_ids=self._feature_ids,
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
            row_ranges=self._row_ranges,
            metadata=self._metadata,
        )

    def with_sample_metadata(self, sample_metadata: pd.DataFrame) -> QuantExperiment:
        """New experiment with replaced column data."""
        return QuantExperiment(
            assays=self._assays,
            feature_ids=self._feature_ids,
            sample_ids=self._sample_ids,
            sample_metadata=sample_metadata,
            row_ranges=self._row_ranges,
            metadata=self._metadata,
        )

    def with_row_ranges(self, row_ranges: Optional[pd.DataFrame]) -> QuantExperiment:
        """New experiment with replaced (or removed) row ranges."""
        return QuantExperiment(
            assays=self._assays,
            feature_ids=self._feature_ids,
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
            row_ranges=row_ranges,
            metadata=self._metadata,
        )

    def with_metadata(self, **updates: Any) -> QuantExperiment:
        """New experiment with metadata keys added or overwritten."""
        metadata = dict(self._metadata)
        metadata.update(updates)
        return QuantExperiment(
            assays=self._assays,
            feature_ids=self._feature_ids,
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
            row_ranges=self._row_ranges,
            metadata=metadata,
        )

    def select_samples(self, mask: np.ndarray | pd.Series) -> QuantExperiment:
        """
        Subset experiment by samples (columns).

        Args:
            mask: Boolean array/Series indicating which samples to keep.
                If Series, uses values and ignores index.

        Returns:
            New QuantExperiment with the selected samples

        Raises:
            ValueError: If mask length doesn't match n_samples

        Examples:
            >>> treated = experiment.select_samples(
            ...     experiment.sample_metadata['condition'] == 'IFNg'
            ... )
        """
        mask = _as_bool_mask(mask)

        if len(mask) != self.n_samples:
            raise ValueError(
                f"mask length ({len(mask)}) must match n_samples ({self.n_samples})"
            )

        kept = self._sample_ids[mask]
        return QuantExperiment(
            assays={name: values[:, mask] for name, values in self._assays.items()},
            feature_ids=self._feature_ids,
            sample_ids=kept,
            sample_metadata=self._sample_metadata.loc[kept],
            row_ranges=self._row_ranges,
            metadata=self._metadata,
        )

    def select_features(self, mask: np.ndarray | pd.Series) -> QuantExperiment:
        """
        Subset experiment by features (rows).

        Args:
            mask: Boolean array/Series indicating which features to keep.
                If Series, uses values and ignores index.

        Returns:
            New QuantExperiment with the selected features

        Raises:
            ValueError: If mask length doesn't match n_features
        """
        mask = _as_bool_mask(mask)

        if len(mask) != self.n_features:
            raise ValueError(
                f"mask length ({len(mask)}) must match n_features ({self.n_features})"
            )

        kept = self._feature_ids[mask]
        return QuantExperiment(
            assays={name: values[mask, :] for name, values in self._assays.items()},
            feature_ids=kept,
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
            row_ranges=self._row_ranges.loc[kept] if self._row_ranges is not None else None,
            metadata=self._metadata,
        )

    def copy(self, deep: bool = True) -> QuantExperiment:
        """
        Create a copy of this experiment.

        Args:
            deep: If True, copy all arrays and frames. If False, share them.
        """
        if not deep:
            return QuantExperiment(
                assays=self._assays,
                feature_ids=self._feature_ids,
                sample_ids=self._sample_ids,
                sample_metadata=self._sample_metadata,
                row_ranges=self._row_ranges,
                metadata=self._metadata,
            )
        return QuantExperiment(
            assays={name: values.copy() for name, values in self._assays.items()},
            feature_ids=self._feature_ids.copy(),
            sample_ids=self._sample_ids.copy(),
            sample_metadata=self._sample_metadata.copy(),
            row_ranges=self._row_ranges.copy() if self._row_ranges is not None else None,
            metadata=dict(self._metadata),
        )

    def __repr__(self) -> str:
        """String representation for printing in reports."""
        lines = [
            f"QuantExperiment({self.n_features} {self.level}s × {self.n_samples} samples)",
            f"  Assays: {self.assay_names}",
        ]
        if self.n_features:
            lines.append(f"  Features: {self._feature_ids[0]}...{self._feature_ids[-1]}")
        if self.n_samples:
            lines.append(f"  Samples: {self._sample_ids[0]}...{self._sample_ids[-1]}")
        lines.append(f"  Column data: {list(self._sample_metadata.columns)}")
        if self._row_ranges is not None:
            lines.append(f"  Row ranges: {list(self._row_ranges.columns)}")
        else:
            lines.append("  Row ranges: none")
        genome = self._metadata.get('txome_info', {}).get('genome')
        if genome:
            lines.append(f"  Genome: {genome}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.__repr__()


def _as_bool_mask(mask: np.ndarray | pd.Series) -> np.ndarray:
    # Series: use values positionally
    if isinstance(mask, pd.Series):
        mask = mask.values
    return np.asarray(mask, dtype=bool)
