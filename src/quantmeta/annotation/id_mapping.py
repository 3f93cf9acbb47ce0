"""
Identifier lookup against mygene.info.

add_ids needs one thing from the outside world: for a list of (unversioned)
Ensembl gene IDs, the matching symbol, Entrez ID or UniProt accession. The
IDMapper interface hides where that answer comes from; MyGeneInfoMapper asks
mygene.info in parallel batches and keeps the answers on disk.

Supported identifier types (IDMapper names -> mygene fields):
    ensembl_gene   ensembl.gene
    symbol         symbol
    entrez         entrezgene
    uniprot        uniprot (Swiss-Prot preferred over TrEMBL)

Examples:
    >>> from quantmeta.annotation.id_mapping import MyGeneInfoMapper
    >>>
    >>> mapper = MyGeneInfoMapper(max_workers=4)
    >>> mapper.map_ids(['ENSMUSG00000059552'], target_type='entrez', species='mouse')
    {'ENSMUSG00000059552': '22059'}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from pathlib import Path
from abc import ABC, abstractmethod
import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from quantmeta.utils.fileio import atomic_write_json

__all__ = ['IDMapper', 'MyGeneInfoMapper', 'ID_TYPE_FIELDS', 'mygene_species']

logger = logging.getLogger(__name__)

# 'uniprot' rather than 'uniprot.Swiss-Prot' so TrEMBL-only genes still map
ID_TYPE_FIELDS = {
    'ensembl_gene': 'ensembl.gene',
    'symbol': 'symbol',
    'uniprot': 'uniprot',
    'entrez': 'entrezgene',
}

_COMMON_NAMES = {
    'homo sapiens': 'human',
    'mus musculus': 'mouse',
    'rattus norvegicus': 'rat',
    'danio rerio': 'zebrafish',
    'drosophila melanogaster': 'fruitfly',
    'caenorhabditis elegans': 'nematode',
    'saccharomyces cerevisiae': 'yeast',
}


def mygene_species(organism: Optional[str]) -> str:
    """mygene.info species name for a Latin organism name (default human)."""
    if not organism:
        return 'human'
    return _COMMON_NAMES.get(organism.strip().lower(), organism)


class IDMapper(ABC):
    """Translates gene identifiers from one type to another."""

    @abstractmethod
    def map_ids(
        self,
        source_ids: List[str],
        source_type: str,
        target_type: str,
        species: str = 'human'
    ) -> Dict[str, str]:
        """
        Translate `source_ids` of `source_type` into `target_type`.

        Returns a dict with one entry per ID that could be translated;
        untranslatable IDs are left out.
        """
        pass


def _first_value(value: Any) -> Optional[str]:
    """Reduce a mygene field value to a single string."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        # uniprot: {'Swiss-Prot': ..., 'TrEMBL': [...]}
        for key in ('Swiss-Prot', 'TrEMBL'):
            if key in value:
                return _first_value(value[key])
        return _first_value(next(iter(value.values()), None))
    return str(value) if value not in (None, '') else None


def _dotted_field(hit: dict, field: str) -> Any:
    """Value at a dotted path such as 'ensembl.gene'; lists follow their first element."""
    value: Any = hit
    for part in field.split('.'):
        if isinstance(value, list):
            value = value[0] if value else None
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class MyGeneInfoMapper(IDMapper):
    """
    IDMapper backed by mygene.info `querymany`.

    Queries go out in batches of `batch_size` IDs on a thread pool. When an
    ID has several hits, the first one is kept. Every completed query is
    written to `cache_dir` under a digest of (IDs, types, species), so a
    re-run of the same import does not touch the network.
    """

    batch_size = 1000

    def __init__(self, cache_dir: Optional[Path] = None, max_workers: int = 8):
        self.cache_dir = Path(cache_dir) if cache_dir else Path.home() / '.cache/quantmeta/id_mapping'
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.max_workers = max_workers

    def _fetch(self, batch: List[str], scope: str, field: str, species: str) -> Dict[str, str]:
        """One querymany round trip; each call builds its own client."""
        import mygene

        client = mygene.MyGeneInfo()
        response = client.querymany(
            batch,
            scopes=scope,
            fields=field,
            species=species,
            returnall=True,
            verbose=False
        )

        found: Dict[str, str] = {}
        for hit in response['out']:
            query = hit.get('query')
            if not query or hit.get('notfound') or query in found:
                continue
            value = _first_value(_dotted_field(hit, field))
            if value:
                found[query] = value
        return found

    def _cache_path(self, source_ids: List[str], source_type: str, target_type: str, species: str) -> Path:
        key = json.dumps([sorted(source_ids), source_type, target_type, species])
        digest = hashlib.sha256(key.encode('utf-8')).hexdigest()[:16]
        return self.cache_dir / f"{source_type}_to_{target_type}_{digest}.json"

    def _read_cache(self, path: Path) -> Optional[Dict[str, str]]:
        if not path.exists():
            return None
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable ID cache {path}: {e}")
            return None

    def map_ids(
        self,
        source_ids: List[str],
        source_type: str = 'ensembl_gene',
        target_type: str = 'symbol',
        species: str = 'human'
    ) -> Dict[str, str]:
        """
        Translate IDs through mygene.info, using the on-disk cache when possible.

        Args:
            source_ids: IDs to translate (duplicates are queried once)
            source_type: 'ensembl_gene', 'symbol', 'uniprot' or 'entrez'
            target_type: Same options as source_type
            species: mygene.info species name or taxonomy ID

        Returns:
            Dict of source ID -> target ID for every ID that mapped

        Raises:
            ValueError: For an unknown identifier type
        """
        scope = ID_TYPE_FIELDS.get(source_type)
        field = ID_TYPE_FIELDS.get(target_type)
        if not scope or not field:
            raise ValueError(f"Unsupported ID type: {source_type} or {target_type}")

        source_ids = list(dict.fromkeys(source_ids))
        if not source_ids:
            return {}

        cache_path = self._cache_path(source_ids, source_type, target_type, species)
        cached = self._read_cache(cache_path)
        if cached is not None:
            logger.debug(f"Using cached {source_type} -> {target_type} mapping {cache_path.name}")
            return cached

        batches = [
            source_ids[start:start + self.batch_size]
            for start in range(0, len(source_ids), self.batch_size)
        ]
        logger.info(f"Querying mygene.info for {len(source_ids):,} IDs "
                    f"({len(batches)} batches, {self.max_workers} workers)")

        by_batch: Dict[int, Dict[str, str]] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            pending = {
                executor.submit(self._fetch, batch, scope, field, species): n
                for n, batch in enumerate(batches)
            }
            for future in as_completed(pending):
                by_batch[pending[future]] = future.result()
                logger.debug(f"mygene.info batch {len(by_batch)}/{len(batches)} done")

        # batch order, not completion order
        mapping: Dict[str, str] = {}
        for n in range(len(batches)):
            mapping.update(by_batch[n])

        logger.info(f"{len(mapping):,} of {len(source_ids):,} IDs mapped to {target_type}")
        atomic_write_json(cache_path, mapping)
        return mapping
