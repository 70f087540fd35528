"""
Term over-representation analysis.

This package provides:
- Exact hypergeometric testing on a shared log-factorial table
- Ontology-term and pathway enrichment with pluggable ID resolution
- Benjamini-Hochberg FDR correction
- Jaccard/UPGMA clustering of enriched terms
"""

from .log_factorial import LogFactorialCache, log_factorial
from .hypergeometric import hypergeometric_upper_tail
from .background_gene_set import BackgroundGeneSet, TermAnnotation
from .gene_converter import DirectResolver, PathwayGeneResolver, make_resolver
from .enrichment_result import EnrichmentResult, EnrichmentStats
from .enrichment import Enrichment, enrich, run_go_enrichment, run_kegg_enrichment
from .fdr import correct_fdr
from .clustering import ClusterTree, Internal, Leaf, cluster_results, jaccard_distances, upgma

__version__ = "1.0.0"
__all__ = [
    "LogFactorialCache",
    "log_factorial",
    "hypergeometric_upper_tail",
    "BackgroundGeneSet",
    "TermAnnotation",
    "DirectResolver",
    "PathwayGeneResolver",
    "make_resolver",
    "EnrichmentResult",
    "EnrichmentStats",
    "Enrichment",
    "enrich",
    "run_go_enrichment",
    "run_kegg_enrichment",
    "correct_fdr",
    "ClusterTree",
    "Internal",
    "Leaf",
    "cluster_results",
    "jaccard_distances",
    "upgma",
]
