"""
Attach alternate gene identifiers to an experiment's row annotation.

Gene IDs are taken from the experiment itself (feature IDs at gene level,
the gene_id row annotation at transcript level), stripped of version
suffixes and mapped through an IDMapper. The mapped values become a new
row_ranges column named after the identifier type.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import numpy as np
import pandas as pd

from quantmeta.core.experiment import QuantExperiment, RANGE_COLUMNS
from quantmeta.core.transform import Transform
from quantmeta.annotation.id_mapping import IDMapper, MyGeneInfoMapper, mygene_species

__all__ = ['ID_COLUMNS', 'add_ids', 'IdAnnotator']

logger = logging.getLogger(__name__)

# output column -> IDMapper target type
ID_COLUMNS = {
    'SYMBOL': 'symbol',
    'ENTREZID': 'entrez',
    'UNIPROT': 'uniprot',
    'ENSEMBL': 'ensembl_gene',
}

_VERSION_SUFFIX = re.compile(r'\.\d+(_PAR_Y)?$')


def _gene_ids(experiment: QuantExperiment, gene: Optional[bool]) -> pd.Series:
    """Gene ID per feature, aligned to feature_ids."""
    use_features = experiment.level == 'gene' if gene is None else not gene
    if use_features:
        return pd.Series(experiment.feature_ids, index=experiment.feature_ids)

    if experiment.row_ranges is None or 'gene_id' not in experiment.row_ranges.columns:
        raise ValueError(
            "Transcript-level experiment has no gene_id row annotation; "
            "link the transcriptome or summarize to gene level first"
        )
    return experiment.row_ranges['gene_id']


def add_ids(
    experiment: QuantExperiment,
    column: str = 'SYMBOL',
    gene: Optional[bool] = None,
    species: Optional[str] = None,
    mapper: Optional[IDMapper] = None,
) -> QuantExperiment:
    """
    Add an identifier column (SYMBOL, ENTREZID, UNIPROT, ENSEMBL) to row_ranges.

    Args:
        experiment: Gene- or transcript-level experiment
        column: Identifier type to add
        gene: Map gene_id row annotation (True) or feature IDs (False);
            default picks by experiment level
        species: mygene.info species; defaults to the linked organism, else human
        mapper: ID mapper (default MyGeneInfoMapper)

    Returns:
        New experiment whose row_ranges has `column`; unmapped features are NaN
    """
    if column not in ID_COLUMNS:
        raise ValueError(
            f"Unsupported identifier column '{column}'. Choose from: {', '.join(ID_COLUMNS)}"
        )

    ids = _gene_ids(experiment, gene)
    stripped = ids.map(lambda x: _VERSION_SUFFIX.sub('', x) if isinstance(x, str) else np.nan)

    if species is None:
        organism = experiment.metadata.get('txome_info', {}).get('organism')
        species = mygene_species(organism)

    query = sorted(set(stripped.dropna()))
    mapper = mapper or MyGeneInfoMapper()
    logger.info(f"Mapping {len(query):,} gene IDs to {column} ({species})")
    mapping = mapper.map_ids(query, source_type='ensembl_gene',
                             target_type=ID_COLUMNS[column], species=species)

    values = stripped.map(mapping)
    n_mapped = int(values.notna().sum())
    logger.info(f"Mapped {n_mapped:,} of {len(values):,} features to {column}")

    if experiment.row_ranges is not None:
        row_ranges = experiment.row_ranges.copy()
    else:
        row_ranges = pd.DataFrame(
            {c: np.nan for c in RANGE_COLUMNS}, index=experiment.feature_ids
        )
    row_ranges[column] = values.to_numpy()
    return experiment.with_row_ranges(row_ranges)


class IdAnnotator(Transform):
    """Transform wrapper around add_ids."""

    def __init__(
        self,
        column: str = 'SYMBOL',
        gene: Optional[bool] = None,
        species: Optional[str] = None,
        mapper: Optional[IDMapper] = None,
    ):
        super().__init__(
            name="IdAnnotator",
            params={"column": column, "gene": gene, "species": species},
        )
        self.column = column
        self.gene = gene
        self.species = species
        self.mapper = mapper

    def validate(self, experiment: QuantExperiment) -> list[str]:
        errors = super().validate(experiment)
        if self.column not in ID_COLUMNS:
            errors.append(f"Unsupported identifier column '{self.column}'")
        return errors

    def apply(self, experiment: QuantExperiment) -> QuantExperiment:
        return add_ids(
            experiment,
            column=self.column,
            gene=self.gene,
            species=self.species,
            mapper=self.mapper,
        )
