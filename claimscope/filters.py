"""Row-level filtering applied before a scope is judged or summarized."""

import math
from typing import Iterable

from claimscope.models import ClaimRecord, FilterOptions, YearWindow


def is_usable(row: ClaimRecord) -> bool:
    """True when the row has a finite amount and a service year."""
    if row.paid_amt is None or row.dos_year is None:
        return False
    return math.isfinite(row.paid_amt)


def apply_filters(
    rows: Iterable[ClaimRecord],
    options: FilterOptions,
    window: YearWindow,
) -> list[ClaimRecord]:
    """Drop malformed rows, then apply the value filters and the year window.

    Input order is preserved.
    """
    kept = []
    for row in rows:
        if not is_usable(row):
            continue
        if options.exclude_non_positive and row.paid_amt <= 0:
            continue
        if options.minimum_amount is not None and row.paid_amt < options.minimum_amount:
            continue
        if not window.contains(row.dos_year):
            continue
        kept.append(row)
    return kept
