"""JSON payload assembly for metric responses."""

import json
import logging
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional

from claimscope.config import API_VERSION
from claimscope.models import FilterOptions, MetricsSummary, ScopeResult

log = logging.getLogger("claim_metrics")

NO_SCOPE = ScopeResult(level=None, sample_size=0)


def round_half_up(value: Optional[float], places: int = 0):
    """Round half away from zero. Whole-unit results come back as int."""
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # room for every digit of the largest finite float
        ctx.prec = 320 + places
        rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def dollars(value: Optional[float]) -> Optional[int]:
    return round_half_up(value, 0)


def scope_payload(scope: ScopeResult) -> dict:
    return {
        "level": scope.level,
        "sample_size": scope.sample_size,
        "representative_zip": scope.representative_zip,
        "distance_miles": round_half_up(scope.distance_miles, 2),
        "state": scope.state,
    }


def metrics_payload(summary: MetricsSummary) -> dict:
    return {
        "year_window": summary.year_window.label,
        "mean": dollars(summary.mean),
        "median": dollars(summary.median),
        "p25": dollars(summary.p25),
        "p75": dollars(summary.p75),
        "trend_by_year": [
            {"year": t.year, "median": dollars(t.median)} for t in summary.trend_by_year
        ],
        "mean_per_wrvu": round_half_up(summary.mean_per_unit, 2),
        "median_per_wrvu": round_half_up(summary.median_per_unit, 2),
        "ratio_sample_size": summary.ratio_sample_size,
    }


def build_payload(
    query_zip: str,
    cpt: str,
    scope: Optional[ScopeResult],
    summary: Optional[MetricsSummary],
    options: FilterOptions,
) -> dict:
    """Combine the resolved scope and its statistics into one response.

    A missing scope or summary yields level null, sample size 0 and null
    metrics.
    """
    if scope is None or summary is None:
        scope, summary = NO_SCOPE, None

    return {
        "api_version": API_VERSION,
        "code_selected": cpt,
        "query_zip": query_zip,
        "used_scope": scope_payload(scope),
        "filters": {
            "exclude_non_positive": options.exclude_non_positive,
            "minimum_amount": options.minimum_amount,
        },
        "metrics": metrics_payload(summary) if summary is not None else None,
    }


def error_payload(message: str, detail: Optional[str] = None, debug: bool = False) -> dict:
    payload = {"error": message}
    if debug and detail:
        payload["detail"] = detail
    return payload


def write_payload(payload: dict, output_path: str) -> None:
    """Write the payload to a JSON file."""
    with open(output_path, "w") as f:
        json.dump(payload, f, indent=2, default=str)
    log.info("Output written to: %s", output_path)
