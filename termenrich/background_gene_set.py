import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Set

logger = logging.getLogger(__name__)

PATHWAY_CATEGORY = "KEGG Pathway"
UNKNOWN_CATEGORY = "Unknown"


@dataclass
class TermAnnotation:
    """Background membership of a single term."""

    term: str
    description: str
    category: str
    genes: Set[str] = field(default_factory=set)

    @property
    def size(self) -> int:
        return len(self.genes)


class BackgroundGeneSet:
    """
    A class to store the background universe of annotated genes and,
    for every term, the background genes annotated with it.
    """

    def __init__(
        self,
        genes: Iterable[str] = (),
        terms: Optional[Dict[str, TermAnnotation]] = None,
        name: str = "",
    ) -> None:
        """
        Initialize BackgroundGeneSet with the gene universe and term table.

        Args:
            genes: All genes carrying at least one annotation of the kind under test
            terms: Mapping of term id to its background annotation
            name: Name for the background
        """
        self.genes: Set[str] = set(genes)
        self.size: int = len(self.genes)
        self.terms: Dict[str, TermAnnotation] = terms if terms is not None else {}
        self.name = name

    @classmethod
    def from_term_mapping(
        cls,
        gene_terms: Optional[Mapping[str, Any]],
        category_filter: Optional[str] = None,
        name: str = "GO",
    ) -> "BackgroundGeneSet":
        """
        Build a background from a gene -> [term record] mapping.

        Each term record is a dict with "term", and optionally "description"
        and "category" keys. Records without a term id are skipped. When
        category_filter is given, only terms whose category contains it are kept.

        Args:
            gene_terms: Gene identifier -> list of term records
            category_filter: Substring the term category must contain
            name: Name for the background

        Returns:
            BackgroundGeneSet
        """
        if not gene_terms:
            return cls(name=name)

        terms: Dict[str, TermAnnotation] = {}
        for gene, records in gene_terms.items():
            if not isinstance(records, (list, tuple)):
                continue
            for record in records:
                if not record or not record.get("term"):
                    continue
                category = record.get("category") or UNKNOWN_CATEGORY
                if category_filter and category_filter not in category:
                    continue
                term_id = record["term"]
                if term_id not in terms:
                    terms[term_id] = TermAnnotation(
                        term=term_id,
                        description=record.get("description") or "",
                        category=category,
                    )
                terms[term_id].genes.add(gene)

        background = cls(gene_terms.keys(), terms, name=name)
        logger.info(
            f"Background {name}: {background.size} genes, {len(terms)} terms"
            + (f" (category filter: {category_filter})" if category_filter else "")
        )
        return background

    @classmethod
    def from_pathway_mapping(
        cls,
        gene_pathways: Optional[Mapping[str, Any]],
        pathway_names: Optional[Mapping[str, str]] = None,
        name: str = "KEGG",
    ) -> "BackgroundGeneSet":
        """
        Build a background from a gene -> [pathway id] mapping.

        Pathway display names are looked up with any "path:" prefix removed;
        a pathway without a name is described by its own id.

        Args:
            gene_pathways: Gene name -> list of pathway identifiers
            pathway_names: Pathway identifier -> display name
            name: Name for the background

        Returns:
            BackgroundGeneSet
        """
        if not gene_pathways:
            return cls(name=name)
        pathway_names = pathway_names or {}

        terms: Dict[str, TermAnnotation] = {}
        for gene, pathways in gene_pathways.items():
            if not isinstance(pathways, (list, tuple)):
                continue
            for pathway in pathways:
                if pathway not in terms:
                    lookup = pathway[len("path:"):] if pathway.startswith("path:") else pathway
                    terms[pathway] = TermAnnotation(
                        term=pathway,
                        description=pathway_names.get(lookup) or pathway,
                        category=PATHWAY_CATEGORY,
                    )
                terms[pathway].genes.add(gene)

        background = cls(gene_pathways.keys(), terms, name=name)
        logger.info(f"Background {name}: {background.size} genes, {len(terms)} pathways")
        return background

    def has_gene(self, gene: str) -> bool:
        """
        Check if the given gene is present in the background.

        Args:
            gene: A gene identifier.

        Returns:
            True if the gene is present, False otherwise.
        """
        return gene in self.genes
