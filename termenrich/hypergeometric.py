import math
from typing import Optional

from termenrich.log_factorial import LogFactorialCache, default_cache


def log_binomial(n: int, k: int, cache: LogFactorialCache) -> float:
    """ln C(n, k) from log-factorials."""
    return cache(n) - cache(k) - cache(n - k)


def hypergeometric_upper_tail(
    k: int,
    n: int,
    K: int,
    N: int,
    cache: Optional[LogFactorialCache] = None,
) -> float:
    """
    Exact upper-tail hypergeometric p-value, P(X >= k).

    X counts successes when drawing n items without replacement from a
    population of N items of which K are successes. Each point probability
    is evaluated in log-space so that large factorials do not overflow.

    Args:
        k: Observed successes (overlap between query and term)
        n: Sample size (mapped query genes)
        K: Successes in the population (background genes carrying the term)
        N: Population size (background genes)
        cache: Log-factorial table to use. Defaults to the process-wide one.

    Returns:
        p-value in [0, 1]. Meaningless configurations return 1; an overlap
        larger than min(n, K) returns 0.
    """
    if k <= 0 or n <= 0 or K <= 0 or N <= 0:
        return 1.0
    if n > N or K > N:
        return 1.0
    if k > min(n, K):
        return 0.0

    cache = cache if cache is not None else default_cache
    log_total = log_binomial(N, n, cache)
    p_value = 0.0
    for i in range(max(k, n - (N - K), 0), min(n, K) + 1):
        log_p = log_binomial(K, i, cache) + log_binomial(N - K, n - i, cache) - log_total
        p_value += math.exp(log_p)
    # Rounding can push the cumulative sum fractionally above 1
    return min(p_value, 1.0)
