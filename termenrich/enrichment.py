import json
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from termenrich.background_gene_set import BackgroundGeneSet
from termenrich.enrichment_result import EnrichmentResult, EnrichmentStats
from termenrich.fdr import correct_fdr
from termenrich.gene_converter import make_resolver, resolve_query
from termenrich.hypergeometric import hypergeometric_upper_tail
from termenrich.log_factorial import LogFactorialCache

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

FOLD_DECIMALS = 2
DEFAULT_ALPHA = 0.05


def fold_enrichment(k: int, n: int, K: int, N: int) -> float:
    """
    Observed overlap over the overlap expected by random sampling, k / (n*K/N).

    Returns 0 when the expected overlap is 0.
    """
    expected = (K / N) * n if N > 0 else 0
    fold = k / expected if expected > 0 else 0.0
    scale = 10 ** FOLD_DECIMALS
    # Halves round up
    return math.floor(fold * scale + 0.5) / scale


def enrich(
    query_ids: Sequence[str],
    background: Optional[BackgroundGeneSet],
    resolver,
    cache: Optional[LogFactorialCache] = None,
) -> Tuple[List[EnrichmentResult], EnrichmentStats]:
    """
    Test every background term for over-representation in the query.

    Only terms sharing at least one gene with the resolved query are
    returned. FDR is left at 1; see correct_fdr.

    Args:
        query_ids: Caller-supplied gene identifiers
        background: Background universe and term table
        resolver: Object with resolve(query_id) -> background id or None
        cache: Log-factorial table for the hypergeometric test

    Returns:
        Tuple of (results, stats)
    """
    query_ids = list(query_ids or [])
    if background is None or background.size == 0:
        logger.warning("Empty background; skipping enrichment")
        return [], EnrichmentStats(
            mapped=0,
            total=len(query_ids),
            terms_total=0,
            unmapped=list(dict.fromkeys(query_ids)),
        )

    terms_total = len(background.terms)
    mapping = resolve_query(query_ids, resolver)
    query_genes = mapping["genes"]
    stats = EnrichmentStats(
        mapped=len(query_genes),
        total=len(query_ids),
        terms_total=terms_total,
        resolved=mapping["resolved"],
        unmapped=mapping["unmapped"],
    )

    n = len(query_genes)
    N = background.size
    if n == 0:
        logger.warning(f"None of {len(query_ids)} query genes mapped to background {background.name}")
        return [], stats

    logger.info(
        f"Testing {terms_total} terms of {background.name}: "
        f"{n}/{len(query_ids)} query genes mapped, background={N}"
    )

    results = []
    for term, annotation in background.terms.items():
        hits = [gene for gene in query_genes if gene in annotation.genes]
        k = len(hits)
        if k == 0:
            continue
        K = annotation.size
        results.append(
            EnrichmentResult(
                term=term,
                description=annotation.description,
                category=annotation.category,
                p_value=hypergeometric_upper_tail(k, n, K, N, cache=cache),
                fdr=1.0,
                fold=fold_enrichment(k, n, K, N),
                gene_count=k,
                bg_count=K,
                total_genes=n,
                total_bg=N,
                genes=hits,
            )
        )

    logger.info(f"{len(results)} of {terms_total} terms overlap the query")
    return results, stats


class Enrichment:
    """
    Class for term enrichment analysis results.
    """

    def __init__(
        self,
        query_ids: Sequence[str],
        background: Optional[BackgroundGeneSet],
        resolver=None,
        cache: Optional[LogFactorialCache] = None,
        name: str = None,
    ):
        """
        Run the enrichment and apply Benjamini-Hochberg correction.

        Args:
            query_ids: Caller-supplied gene identifiers
            background: Background gene set
            resolver: Identifier resolver; direct matching when None
            cache: Log-factorial table for the hypergeometric test
            name: Name for the enrichment
        """
        self.query_ids = list(query_ids or [])
        self.background = background if background is not None else BackgroundGeneSet()
        self.resolver = resolver if resolver is not None else make_resolver("go", self.background)
        self.cache = cache
        self.name = name if name else self.background.name
        self._results, self.stats = self._compute_enrichment()

    @property
    def results(self) -> List[EnrichmentResult]:
        """
        Getter for _results.

        Returns:
            Enrichment results sorted by ascending p-value
        """
        return self._results

    def _compute_enrichment(self) -> Tuple[List[EnrichmentResult], EnrichmentStats]:
        results, stats = enrich(self.query_ids, self.background, self.resolver, cache=self.cache)
        return correct_fdr(results), stats

    def significant(self, alpha: float = DEFAULT_ALPHA) -> List[EnrichmentResult]:
        """Results with FDR below alpha."""
        return [result for result in self._results if result.fdr < alpha]

    def to_dataframe(self) -> pd.DataFrame:
        """Return the enrichment results as a pandas dataframe."""
        columns = [
            "Term", "Description", "Category", "p-value", "FDR", "Fold",
            "Overlap size", "Background size", "Query size", "Background total", "Genes",
        ]
        df = pd.DataFrame(
            {
                "Term": [result.term for result in self.results],
                "Description": [result.description for result in self.results],
                "Category": [result.category for result in self.results],
                "p-value": [result.p_value for result in self.results],
                "FDR": [result.fdr for result in self.results],
                "Fold": [result.fold for result in self.results],
                "Overlap size": [result.gene_count for result in self.results],
                "Background size": [result.bg_count for result in self.results],
                "Query size": [result.total_genes for result in self.results],
                "Background total": [result.total_bg for result in self.results],
                "Genes": [", ".join(result.genes) for result in self.results],
            },
            columns=columns,
        )
        return df

    def to_json(self) -> str:
        """Return the enrichment results as a JSON string."""
        return json.dumps([result.to_dict() for result in self.results], indent=4, separators=(",", ": "))

    def to_snapshot(self) -> Dict[str, Any]:
        """Return the snapshot of input parameters, mapping stats and the enrichment results."""
        return {
            "input_gene_set": self.query_ids,
            "background": self.background.name,
            "background_size": self.background.size,
            "stats": self.stats.to_dict(),
            self.name: [result.to_dict() for result in self.results],
        }


def run_go_enrichment(
    query_ids: Sequence[str],
    gene_terms: Optional[Mapping[str, Any]],
    category_filter: Optional[str] = None,
    cache: Optional[LogFactorialCache] = None,
) -> Enrichment:
    """
    Ontology-term enrichment. Query identifiers must already be background ids.

    Args:
        query_ids: Caller-supplied gene identifiers
        gene_terms: Gene -> list of {"term", "description", "category"} records
        category_filter: Restrict to terms whose category contains this text
        cache: Log-factorial table for the hypergeometric test

    Returns:
        Enrichment with FDR-corrected results
    """
    background = BackgroundGeneSet.from_term_mapping(gene_terms, category_filter=category_filter)
    return Enrichment(query_ids, background, make_resolver("go", background), cache=cache)


def run_kegg_enrichment(
    query_ids: Sequence[str],
    pathway_data: Optional[Mapping[str, Any]],
    aliases: Optional[Mapping[str, Sequence[str]]] = None,
    info: Optional[Mapping[str, Mapping[str, Any]]] = None,
    cache: Optional[LogFactorialCache] = None,
) -> Enrichment:
    """
    Pathway enrichment with alias-based identifier resolution.

    Args:
        query_ids: Caller-supplied gene identifiers
        pathway_data: {"pathways": {id: name}, "gene_pathways": {gene: [ids]}}
        aliases: Query identifier -> alias strings
        info: Query identifier -> {"name": preferred name}
        cache: Log-factorial table for the hypergeometric test

    Returns:
        Enrichment with FDR-corrected results
    """
    pathway_data = pathway_data or {}
    background = BackgroundGeneSet.from_pathway_mapping(
        pathway_data.get("gene_pathways"), pathway_data.get("pathways")
    )
    resolver = make_resolver("kegg", background, aliases=aliases, info=info)
    return Enrichment(query_ids, background, resolver, cache=cache)
