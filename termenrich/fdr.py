from typing import List

from termenrich.enrichment_result import EnrichmentResult


def correct_fdr(results: List[EnrichmentResult]) -> List[EnrichmentResult]:
    """
    Benjamini-Hochberg FDR correction.

    Sorts results in place by ascending p-value and fills each .fdr. The
    number of tests m is the number of results passed in. Adjusted values
    are made non-decreasing by taking the running minimum from the worst
    p-value down.

    Args:
        results: Enrichment results to correct

    Returns:
        The same list, sorted by p-value
    """
    results.sort(key=lambda result: result.p_value)
    m = len(results)
    for i in range(m - 1, -1, -1):
        rank = i + 1
        raw = results[i].p_value * m / rank
        if i < m - 1:
            results[i].fdr = min(raw, results[i + 1].fdr)
        else:
            results[i].fdr = min(raw, 1.0)
    return results
