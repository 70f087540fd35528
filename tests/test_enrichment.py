"""
Unit tests for background construction, identifier resolution and term enrichment.
"""

import json

import pytest

from termenrich.background_gene_set import BackgroundGeneSet, PATHWAY_CATEGORY, UNKNOWN_CATEGORY
from termenrich.enrichment import Enrichment, enrich, fold_enrichment, run_go_enrichment, run_kegg_enrichment
from termenrich.gene_converter import DirectResolver, PathwayGeneResolver, make_resolver, resolve_query
from termenrich.log_factorial import LogFactorialCache


def go_record(term, description="", category="Biological Process"):
    return {"term": term, "description": description, "category": category}


@pytest.fixture
def scenario_terms():
    """100 annotated genes; T covers G0..G9, OTHER covers G10..G99."""
    gene_terms = {}
    for i in range(100):
        if i < 10:
            gene_terms[f"G{i}"] = [go_record("T", "target process")]
        else:
            gene_terms[f"G{i}"] = [go_record("OTHER", "other process")]
    return gene_terms


@pytest.fixture
def go_data():
    return {
        "P1": [go_record("GO:1", "a", "Biological Process"), go_record("GO:2", "b", "Molecular Function")],
        "P2": [go_record("GO:1", "a", "Biological Process"), go_record("GO:3", "c", "Cellular Component")],
        "P3": [go_record("GO:2", "b", "Molecular Function")],
        "P4": [go_record("GO:3", "c", "Cellular Component")],
        "P5": [go_record("GO:4", "d", None)],
        "P6": "not a list",
    }


@pytest.fixture
def kegg_data():
    return {
        "pathways": {"hsa00010": "Glycolysis", "hsa04110": "Cell cycle"},
        "gene_pathways": {
            "HK1": ["path:hsa00010"],
            "PFKM": ["path:hsa00010"],
            "CDK1": ["path:hsa04110"],
            "cdc20": ["path:hsa04110"],
            "TP53": ["path:hsa04110", "path:hsa99999"],
        },
    }


class TestBackgroundGeneSet:
    """Test background construction from annotation mappings."""

    def test_term_mapping(self, go_data):
        """Every mapping key counts in N; terms collect their genes."""
        background = BackgroundGeneSet.from_term_mapping(go_data)
        assert background.size == 6
        assert background.terms["GO:1"].genes == {"P1", "P2"}
        assert background.terms["GO:2"].size == 2
        assert background.terms["GO:4"].category == UNKNOWN_CATEGORY

    def test_category_filter_is_substring(self, go_data):
        """The filter keeps terms whose category contains the text."""
        background = BackgroundGeneSet.from_term_mapping(go_data, category_filter="Process")
        assert set(background.terms) == {"GO:1"}
        assert background.size == 6

    def test_records_without_term_skipped(self):
        """Records with no term id contribute nothing."""
        background = BackgroundGeneSet.from_term_mapping({"P1": [{"description": "x"}, None, go_record("GO:9")]})
        assert set(background.terms) == {"GO:9"}

    def test_pathway_mapping(self, kegg_data):
        """Pathway names are looked up without the path: prefix."""
        background = BackgroundGeneSet.from_pathway_mapping(
            kegg_data["gene_pathways"], kegg_data["pathways"]
        )
        assert background.size == 5
        assert background.terms["path:hsa00010"].description == "Glycolysis"
        assert background.terms["path:hsa99999"].description == "path:hsa99999"
        assert background.terms["path:hsa04110"].category == PATHWAY_CATEGORY

    @pytest.mark.parametrize("mapping", [None, {}])
    def test_empty_mapping(self, mapping):
        """Absent or empty mappings give an empty background."""
        assert BackgroundGeneSet.from_term_mapping(mapping).size == 0
        assert BackgroundGeneSet.from_pathway_mapping(mapping).size == 0


class TestResolvers:
    """Test query identifier resolution."""

    def test_direct_resolver(self, go_data):
        background = BackgroundGeneSet.from_term_mapping(go_data)
        resolver = DirectResolver(background)
        assert resolver.resolve("P1") == "P1"
        assert resolver.resolve("P9") is None

    def test_pathway_priority(self, kegg_data):
        """Direct id beats preferred name, which beats aliases."""
        background = BackgroundGeneSet.from_pathway_mapping(kegg_data["gene_pathways"])
        resolver = PathwayGeneResolver(
            background,
            aliases={"9606.ENSP1": ["CDK1"], "9606.ENSP2": ["HK1"]},
            info={"9606.ENSP1": {"name": "TP53"}, "HK1": {"name": "PFKM"}},
        )
        assert resolver.resolve("HK1") == "HK1"
        assert resolver.resolve("9606.ENSP1") == "TP53"
        assert resolver.resolve("9606.ENSP2") == "HK1"

    def test_alias_case_variants(self, kegg_data):
        """Aliases are tried verbatim, upper-cased, then lower-cased."""
        background = BackgroundGeneSet.from_pathway_mapping(kegg_data["gene_pathways"])
        resolver = PathwayGeneResolver(
            background,
            aliases={"q1": ["pfkm"], "q2": ["CDC20"], "q3": ["nothing", "Cdk1"]},
        )
        assert resolver.resolve("q1") == "PFKM"
        assert resolver.resolve("q2") == "cdc20"
        assert resolver.resolve("q3") == "CDK1"
        assert resolver.get_conversions() == ["q1→PFKM", "q2→cdc20", "q3→CDK1"]

    def test_preferred_name_falls_through_to_aliases(self, kegg_data):
        """A preferred name missing from the background gives way to the aliases."""
        background = BackgroundGeneSet.from_pathway_mapping(kegg_data["gene_pathways"])
        resolver = PathwayGeneResolver(background, aliases={"q": ["HK1"]}, info={"q": {"name": "NOPE"}})
        assert resolver.resolve("q") == "HK1"

    def test_unresolvable(self, kegg_data):
        background = BackgroundGeneSet.from_pathway_mapping(kegg_data["gene_pathways"])
        resolver = PathwayGeneResolver(background, aliases={"q1": ["XYZ"]}, info={"q1": {"name": "ABC"}})
        assert resolver.resolve("q1") is None

    def test_make_resolver(self, go_data):
        background = BackgroundGeneSet.from_term_mapping(go_data)
        assert isinstance(make_resolver("go", background), DirectResolver)
        assert isinstance(make_resolver("kegg", background), PathwayGeneResolver)
        with pytest.raises(ValueError):
            make_resolver("reactome", background)

    def test_resolve_query_collapses_duplicates(self, go_data):
        background = BackgroundGeneSet.from_term_mapping(go_data)
        mapping = resolve_query(["P2", "P1", "P2", "X", "X", "Y"], DirectResolver(background))
        assert mapping["genes"] == ["P2", "P1"]
        assert mapping["resolved"] == {"P2": "P2", "P1": "P1"}
        assert mapping["unmapped"] == ["X", "Y"]


class TestEnrich:
    """Test the generic enrichment algorithm."""

    def test_reference_scenario(self, scenario_terms):
        """k=3, n=5, K=10, N=100 gives the exact p-value and fold 6."""
        background = BackgroundGeneSet.from_term_mapping(scenario_terms)
        query = ["G0", "G1", "G2", "G50", "G51"]
        results, stats = enrich(query, background, DirectResolver(background), cache=LogFactorialCache())

        by_term = {r.term: r for r in results}
        target = by_term["T"]
        assert (target.gene_count, target.total_genes, target.bg_count, target.total_bg) == (3, 5, 10, 100)
        assert target.p_value == pytest.approx((120 * 4005 + 210 * 90 + 252) / 75287520, rel=1e-9)
        assert target.fold == 6.0
        assert target.fdr == 1.0
        assert target.genes == ["G0", "G1", "G2"]
        assert target.description == "target process"
        assert stats.mapped == 5
        assert stats.total == 5
        assert stats.terms_total == 2

    def test_zero_overlap_terms_not_emitted(self, go_data):
        background = BackgroundGeneSet.from_term_mapping(go_data)
        results, stats = enrich(["P3"], background, DirectResolver(background))
        assert [r.term for r in results] == ["GO:2"]
        assert stats.terms_total == 4

    def test_query_equal_to_term(self, scenario_terms):
        """A query equal to a term's full membership gives fold N/K."""
        background = BackgroundGeneSet.from_term_mapping(scenario_terms)
        query = [f"G{i}" for i in range(10)]
        results, _ = enrich(query, background, DirectResolver(background))
        assert len(results) == 1
        assert results[0].gene_count == results[0].bg_count == results[0].total_genes == 10
        assert results[0].fold == pytest.approx(100 / 10)

    def test_empty_background(self):
        results, stats = enrich(["A", "B"], BackgroundGeneSet(), DirectResolver(BackgroundGeneSet()))
        assert results == []
        assert stats.mapped == 0
        assert stats.terms_total == 0
        assert stats.unmapped == ["A", "B"]

    def test_no_mapped_query(self, go_data):
        background = BackgroundGeneSet.from_term_mapping(go_data)
        results, stats = enrich(["X", "Y"], background, DirectResolver(background))
        assert results == []
        assert stats.mapped == 0
        assert stats.total == 2
        assert stats.unmapped == ["X", "Y"]

    def test_duplicates_collapse(self, scenario_terms):
        background = BackgroundGeneSet.from_term_mapping(scenario_terms)
        results, stats = enrich(["G0", "G0", "G1"], background, DirectResolver(background))
        assert stats.mapped == 2
        assert stats.total == 3
        assert results[0].gene_count == 2

    def test_fold_enrichment(self):
        assert fold_enrichment(3, 5, 10, 100) == 6.0
        assert fold_enrichment(1, 3, 7, 10) == 0.48
        # 0.125 rounds half up
        assert fold_enrichment(1, 8, 10, 10) == 0.13
        assert fold_enrichment(1, 0, 10, 100) == 0.0
        assert fold_enrichment(1, 5, 10, 0) == 0.0


class TestEnrichmentRuns:
    """Test ontology and pathway runs with FDR correction."""

    def test_go_run_sorted_and_corrected(self, go_data):
        enrichment = run_go_enrichment(["P1", "P2", "P3", "missing"], go_data)
        p_values = [r.p_value for r in enrichment.results]
        assert p_values == sorted(p_values)
        fdrs = [r.fdr for r in enrichment.results]
        assert all(a <= b for a, b in zip(fdrs, fdrs[1:]))
        assert enrichment.stats.mapped == 3
        assert enrichment.stats.total == 4
        assert enrichment.stats.unmapped == ["missing"]

    def test_go_run_category_filter(self, go_data):
        enrichment = run_go_enrichment(["P1", "P2", "P3"], go_data, category_filter="Molecular")
        assert [r.term for r in enrichment.results] == ["GO:2"]
        assert enrichment.stats.terms_total == 1

    def test_go_run_without_data(self):
        enrichment = run_go_enrichment(["P1"], None)
        assert enrichment.results == []
        assert enrichment.stats.mapped == 0

    def test_kegg_run(self, kegg_data):
        enrichment = run_kegg_enrichment(
            ["HK1", "9606.ENSP7", "9606.ENSP8", "unknown"],
            kegg_data,
            aliases={"9606.ENSP7": ["pfkm"]},
            info={"9606.ENSP8": {"name": "CDK1"}},
        )
        assert enrichment.stats.mapped == 3
        assert enrichment.stats.resolved == {"HK1": "HK1", "9606.ENSP7": "PFKM", "9606.ENSP8": "CDK1"}
        assert enrichment.stats.unmapped == ["unknown"]
        by_term = {r.term: r for r in enrichment.results}
        assert by_term["path:hsa00010"].genes == ["HK1", "PFKM"]
        assert by_term["path:hsa00010"].description == "Glycolysis"
        assert by_term["path:hsa00010"].category == PATHWAY_CATEGORY

    def test_kegg_run_without_pathways(self):
        enrichment = run_kegg_enrichment(["HK1", "TP53", "HK1"], {"pathways": {}})
        assert enrichment.results == []
        assert enrichment.stats.total == 3
        assert enrichment.stats.terms_total == 0
        assert enrichment.stats.unmapped == ["HK1", "TP53"]

    def test_significant(self, scenario_terms):
        enrichment = run_go_enrichment(["G0", "G1", "G2", "G3", "G4"], scenario_terms)
        assert [r.term for r in enrichment.significant()] == ["T"]
        assert enrichment.significant(alpha=0.0) == []

    def test_tabular_views(self, scenario_terms):
        enrichment = Enrichment(["G0", "G1", "G2", "G50", "G51"], BackgroundGeneSet.from_term_mapping(scenario_terms, name="GO"))
        df = enrichment.to_dataframe()
        assert list(df.columns) == [
            "Term", "Description", "Category", "p-value", "FDR", "Fold",
            "Overlap size", "Background size", "Query size", "Background total", "Genes",
        ]
        assert df.iloc[0]["Term"] == "T"
        assert df.iloc[0]["Genes"] == "G0, G1, G2"

        payload = json.loads(enrichment.to_json())
        assert payload[0]["term"] == "T"

        snapshot = enrichment.to_snapshot()
        assert snapshot["background_size"] == 100
        assert snapshot["stats"]["mapped"] == 5
        assert len(snapshot["GO"]) == 2
