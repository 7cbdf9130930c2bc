"""Summary statistics over an accepted claim sample."""

import math
from collections import defaultdict
from typing import Mapping, Optional, Sequence

from claimscope.models import ClaimRecord, MetricsSummary, YearTrend, YearWindow


def percentile(sorted_values: Sequence[float], p: float) -> Optional[float]:
    """Linearly interpolated percentile of an ascending sequence.

    The rank is (n - 1) * p; fractional ranks blend the two neighbouring order
    statistics. This matches PERCENTILE_CONT / quantile_cont.
    """
    if not sorted_values:
        return None
    if p <= 0:
        return float(sorted_values[0])
    if p >= 1:
        return float(sorted_values[-1])
    idx = (len(sorted_values) - 1) * p
    lo = math.floor(idx)
    hi = math.ceil(idx)
    if lo == hi:
        return float(sorted_values[lo])
    lower, upper = float(sorted_values[lo]), float(sorted_values[hi])
    weight = idx - lo
    spread = upper - lower
    if math.isinf(spread):
        # opposite-sign extremes; the weighted form stays finite
        return lower * (1 - weight) + upper * weight
    return lower + spread * weight


def median(sorted_values: Sequence[float]) -> Optional[float]:
    return percentile(sorted_values, 0.5)


def mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    n = len(values)
    try:
        return math.fsum(values) / n
    except OverflowError:
        # the sum of finite values can exceed the float range; the mean cannot
        return math.fsum(v / n for v in values)


def trend_by_year(rows: Sequence[ClaimRecord], window: YearWindow) -> list[YearTrend]:
    """Median amount per service year, ascending; years without rows are omitted."""
    by_year: dict[int, list[float]] = defaultdict(list)
    for row in rows:
        if window.contains(row.dos_year):
            by_year[row.dos_year].append(row.paid_amt)
    return [
        YearTrend(year=year, median=median(sorted(by_year[year])))
        for year in sorted(by_year)
    ]


def unit_ratios(
    rows: Sequence[ClaimRecord],
    units: Mapping[tuple[str, int], float],
) -> list[float]:
    """Amount per reference unit for rows with a positive unit value for their year."""
    ratios = []
    for row in rows:
        wrvu = units.get((row.cpt, row.dos_year))
        if wrvu is None or wrvu <= 0:
            continue
        ratio = row.paid_amt / wrvu
        if math.isfinite(ratio):
            ratios.append(ratio)
    return ratios


def summarize(
    rows: Sequence[ClaimRecord],
    window: YearWindow,
    units: Optional[Mapping[tuple[str, int], float]] = None,
) -> Optional[MetricsSummary]:
    """Summarize already-filtered rows. Returns None when there are no rows."""
    amounts = sorted(row.paid_amt for row in rows)
    if not amounts:
        return None

    ratios = sorted(unit_ratios(rows, units or {}))

    return MetricsSummary(
        year_window=window,
        mean=mean(amounts),
        median=median(amounts),
        p25=percentile(amounts, 0.25),
        p75=percentile(amounts, 0.75),
        trend_by_year=tuple(trend_by_year(rows, window)),
        mean_per_unit=mean(ratios),
        median_per_unit=median(ratios),
        ratio_sample_size=len(ratios),
    )
