"""
Alternate gene identifiers (symbols, Entrez, UniProt) via mygene.info.
"""

from quantmeta.annotation.id_mapping import IDMapper, MyGeneInfoMapper
from quantmeta.annotation.add_ids import ID_COLUMNS, add_ids, IdAnnotator

__all__ = ['IDMapper', 'MyGeneInfoMapper', 'ID_COLUMNS', 'add_ids', 'IdAnnotator']
