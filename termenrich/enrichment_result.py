from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass
class EnrichmentResult:
    """Result of the over-representation test for a single term"""

    term: str
    description: str
    category: str

    # Statistics
    p_value: float
    fdr: float
    fold: float

    # Counts: k, K, n, N
    gene_count: int
    bg_count: int
    total_genes: int
    total_bg: int

    # Query genes annotated with the term
    genes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return asdict(self)


@dataclass
class EnrichmentStats:
    """Mapping summary for one enrichment run"""

    mapped: int
    total: int
    terms_total: int
    resolved: Dict[str, str] = field(default_factory=dict)
    unmapped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
