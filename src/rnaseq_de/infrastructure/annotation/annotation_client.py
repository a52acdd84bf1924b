"""
Gene annotation lookups against MyGene.info, a local mapping file or a cache.
"""

import os
import re
from typing import Dict, Iterable, List, Optional

import httpx
import mygene
import pandas as pd

from rnaseq_de.domain.models import ANNOTATION_COLUMNS
from rnaseq_de.infrastructure.annotation.annotation_cache import AnnotationCache
from rnaseq_de.infrastructure.logger import Logger

BATCH_SIZE = 1000
FIELDS = "symbol,name,go.BP"
ENSEMBL_GENE = re.compile(r"^ENS[A-Z]*G\d")
ENSEMBL_TRANSCRIPT = re.compile(r"^ENS[A-Z]*T\d")


def strip_version(gene_id: str) -> str:
    """ENSG00000141510.17 -> ENSG00000141510; other identifiers unchanged"""
    gene_id = str(gene_id)
    if gene_id.startswith("ENS") and "." in gene_id:
        return gene_id.split(".")[0]
    return gene_id


def detect_scope(gene_ids: Iterable[str]) -> str:
    """Pick the MyGene.info query scope from the identifier format"""
    sample = [str(g) for g in list(gene_ids)[:100]]
    if not sample:
        return "symbol"
    ensembl_genes = sum(1 for g in sample if ENSEMBL_GENE.match(g))
    ensembl_transcripts = sum(1 for g in sample if ENSEMBL_TRANSCRIPT.match(g))
    numeric = sum(1 for g in sample if g.isdigit())

    if ensembl_genes > len(sample) / 2:
        return "ensembl.gene"
    if ensembl_transcripts > len(sample) / 2:
        return "ensembl.transcript"
    if numeric > len(sample) / 2:
        return "entrezgene"
    return "symbol"


def _go_terms(hit: Dict) -> Optional[str]:
    go = hit.get("go")
    if not isinstance(go, dict):
        return None
    terms = go.get("BP")
    if terms is None:
        return None
    if isinstance(terms, dict):
        terms = [terms]
    names = sorted({t["term"] for t in terms if isinstance(t, dict) and t.get("term")})
    return "; ".join(names) if names else None


class AnnotationClient:
    """Resolve gene identifiers to symbol, name and GO biological process terms"""

    def __init__(
        self,
        species: str = "human",
        cache: Optional[AnnotationCache] = None,
        offline: bool = False,
        service=None,
    ):
        self.species = species
        self.cache = cache
        self.offline = offline
        self._service = service
        self.logger = Logger()

    @property
    def service(self):
        if self._service is None:
            self._service = mygene.MyGeneInfo()
        return self._service

    def load_mapping_file(self, file_path: str) -> pd.DataFrame:
        """
        Read a local annotation table (tab- or comma-delimited).

        The first column is the gene identifier; ``symbol``, ``name`` and
        ``go_terms`` columns are picked up when present.
        """
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"Annotation file not found: {file_path}")
        sep = "," if file_path.endswith(".csv") else "\t"
        mapping = pd.read_csv(file_path, sep=sep, dtype=str)
        mapping = mapping.rename(columns={mapping.columns[0]: "gene_id"})
        if "symbol" not in mapping.columns and len(mapping.columns) > 1:
            mapping = mapping.rename(columns={mapping.columns[1]: "symbol"})
        for column in ANNOTATION_COLUMNS:
            if column not in mapping.columns:
                mapping[column] = None

        self.logger.log_step(
            "Annotation file",
            f"{mapping['gene_id'].nunique()} genes mapped from {file_path}",
        )
        return mapping[ANNOTATION_COLUMNS]

    def annotate(self, gene_ids: Iterable[str]) -> pd.DataFrame:
        """
        Annotation rows for the given identifiers, one row per mapping.

        Cached identifiers are not re-queried. In offline mode, or when the
        service is unreachable, uncached identifiers are left without a row.

        Returns:
            pd.DataFrame: ``gene_id, symbol, name, go_terms``
        """
        gene_ids = [str(g) for g in gene_ids]
        frames = []
        to_fetch = gene_ids
        if self.cache is not None:
            cached, to_fetch = self.cache.lookup(gene_ids)
            frames.append(cached)

        if to_fetch and self.offline:
            self.logger.log_warning(
                f"Offline mode: {len(to_fetch)} genes without cached annotation"
            )
        elif to_fetch:
            fetched = self.query(to_fetch)
            frames.append(fetched)
            if self.cache is not None and not fetched.attrs.get("failed", False):
                self.cache.store(fetched)

        frames = [f for f in frames if not f.empty]
        if not frames:
            return pd.DataFrame(columns=ANNOTATION_COLUMNS)
        return pd.concat(frames, ignore_index=True)[ANNOTATION_COLUMNS]

    def query(self, gene_ids: List[str]) -> pd.DataFrame:
        """
        Query MyGene.info in batches.

        Versioned Ensembl identifiers are queried without the version and
        mapped back. Identifiers with no hit get a row with empty fields.
        """
        scope = detect_scope(gene_ids)
        originals: Dict[str, List[str]] = {}
        for gene_id in gene_ids:
            originals.setdefault(strip_version(gene_id), []).append(gene_id)
        queries = list(originals)

        self.logger.log_step(
            "Annotation query",
            f"{len(queries)} identifiers, scope={scope}, species={self.species}",
        )

        rows = []
        try:
            for start in range(0, len(queries), BATCH_SIZE):
                batch = queries[start:start + BATCH_SIZE]
                hits = self.service.querymany(
                    batch, scopes=scope, fields=FIELDS, species=self.species, verbose=False
                )
                for hit in hits:
                    if hit.get("notfound"):
                        continue
                    for gene_id in originals.get(str(hit["query"]), []):
                        rows.append(
                            {
                                "gene_id": gene_id,
                                "symbol": hit.get("symbol"),
                                "name": hit.get("name"),
                                "go_terms": _go_terms(hit),
                            }
                        )
        except httpx.HTTPError as e:
            self.logger.log_warning(f"Annotation service unavailable, continuing without it: {e}")
            failed = pd.DataFrame(columns=ANNOTATION_COLUMNS)
            failed.attrs["failed"] = True
            return failed

        annotation = pd.DataFrame(rows, columns=ANNOTATION_COLUMNS)
        matched = set(annotation["gene_id"])
        unmatched = [g for g in gene_ids if g not in matched]
        if unmatched:
            annotation = pd.concat(
                [annotation, pd.DataFrame({"gene_id": unmatched})], ignore_index=True
            )[ANNOTATION_COLUMNS]

        self.logger.log_success(
            f"Annotated {len(matched)}/{len(gene_ids)} genes via MyGene.info"
        )
        return annotation
