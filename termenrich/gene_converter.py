import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from termenrich.background_gene_set import BackgroundGeneSet

logger = logging.getLogger(__name__)


class DirectResolver:
    """
    Resolve query identifiers that already share the background's namespace.
    Used for ontology-term enrichment.
    """

    def __init__(self, background: BackgroundGeneSet) -> None:
        self.background = background

    def resolve(self, query_id: str) -> Optional[str]:
        """Return query_id if the background knows it, None otherwise."""
        return query_id if self.background.has_gene(query_id) else None


class PathwayGeneResolver:
    """
    Resolve query identifiers to pathway gene names.

    Tried in order: the identifier itself, the gene's preferred name, then
    each known alias verbatim, upper-cased and lower-cased. The first match
    against the background wins.
    """

    def __init__(
        self,
        background: BackgroundGeneSet,
        aliases: Optional[Mapping[str, Sequence[str]]] = None,
        info: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            background: Pathway background gene set
            aliases: Query identifier -> list of alias strings
            info: Query identifier -> info record with a preferred "name"
        """
        self.background = background
        self.aliases = aliases or {}
        self.info = info or {}

        # Track alias conversions for this resolver
        self.conversions: List[str] = []

    def resolve(self, query_id: str) -> Optional[str]:
        if self.background.has_gene(query_id):
            return query_id

        record = self.info.get(query_id)
        if record:
            preferred = record.get("name")
            if preferred and self.background.has_gene(preferred):
                return preferred

        for alias in self.aliases.get(query_id) or []:
            for candidate in (alias, alias.upper(), alias.lower()):
                if self.background.has_gene(candidate):
                    logger.debug(f"Resolved {query_id} -> {candidate} via alias {alias}")
                    self.conversions.append(f"{query_id}→{candidate}")
                    return candidate
        return None

    def get_conversions(self) -> List[str]:
        """Get list of alias conversions made by this resolver."""
        return self.conversions.copy()


def make_resolver(
    mode: str,
    background: BackgroundGeneSet,
    aliases: Optional[Mapping[str, Sequence[str]]] = None,
    info: Optional[Mapping[str, Mapping[str, Any]]] = None,
):
    """
    Build the identifier resolver for an enrichment mode.

    Args:
        mode: "go" for ontology terms or "kegg" for pathways
        background: Background the resolver matches against
        aliases: Alias table, pathway mode only
        info: Preferred-name table, pathway mode only

    Returns:
        An object with a resolve(query_id) method
    """
    if mode == "go":
        return DirectResolver(background)
    if mode == "kegg":
        return PathwayGeneResolver(background, aliases=aliases, info=info)
    logger.error(f"Unsupported enrichment mode: {mode}")
    raise ValueError(f"Unsupported enrichment mode: {mode}")


def resolve_query(query_ids: Sequence[str], resolver) -> Dict[str, Any]:
    """
    Resolve caller query identifiers through a resolver.

    Args:
        query_ids: Caller-supplied gene identifiers
        resolver: Object with a resolve(query_id) method

    Returns:
        Dictionary with "genes" (resolved ids, first-seen order, no duplicates),
        "resolved" (query id -> resolved id) and "unmapped" (query ids with no match)
    """
    genes: Dict[str, None] = {}
    resolved: Dict[str, str] = {}
    unmapped: Dict[str, None] = {}
    for query_id in query_ids:
        if query_id in resolved or query_id in unmapped:
            continue
        hit = resolver.resolve(query_id)
        if hit is None:
            unmapped[query_id] = None
            continue
        resolved[query_id] = hit
        genes[hit] = None

    if unmapped:
        sample = list(unmapped)[:10]
        logger.warning(
            f"{len(unmapped)} query genes not found in background: {sample}{'...' if len(unmapped) > 10 else ''}"
        )
    return {"genes": list(genes), "resolved": resolved, "unmapped": list(unmapped)}
