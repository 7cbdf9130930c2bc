"""Request handling: parameter validation, resolution and status mapping.

A transport hands handle_request() the raw query parameters and writes back
the returned (status, payload) pair.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from claimscope.config import DEFAULT_WINDOW_YEARS, MIN_N
from claimscope.errors import DataUnavailableError, ValidationError
from claimscope.models import FilterOptions, YearWindow
from claimscope.output import build_payload, error_payload
from claimscope.reference import ReferenceData
from claimscope.scopes import ScopeResolver
from claimscope.stats import summarize
from claimscope.store import ClaimStore

log = logging.getLogger("claim_metrics")

ZIP_RE = re.compile(r"^[0-9]{5}$")
CPT_RE = re.compile(r"^[0-9]{4,5}$")
YEAR_RE = re.compile(r"^-?[0-9]+$")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class MetricsQuery:
    zip5: str
    cpt: str
    window: YearWindow
    options: FilterOptions
    debug: bool = False


def _text(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    return "" if value is None else str(value).strip()


def _flag(params: Mapping[str, Any], key: str, default: bool) -> bool:
    raw = _text(params, key).lower()
    if not raw:
        return default
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValidationError(f"{key} must be true or false")


def _year(params: Mapping[str, Any], key: str, default: int) -> int:
    raw = _text(params, key)
    if not raw:
        return default
    # int() alone would take "2_024" and non-ASCII digits
    if not YEAR_RE.match(raw):
        raise ValidationError(f"{key} must be an integer year")
    return int(raw)


def _amount(params: Mapping[str, Any], key: str) -> Optional[float]:
    raw = _text(params, key)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(f"{key} must be a number") from None
    if not math.isfinite(value):
        raise ValidationError(f"{key} must be a finite number")
    return value


def default_window(current_year: Optional[int] = None) -> YearWindow:
    """Rolling window of DEFAULT_WINDOW_YEARS ending at the current UTC year."""
    year = current_year or datetime.now(timezone.utc).year
    return YearWindow(year - DEFAULT_WINDOW_YEARS + 1, year)


def is_debug(params: Mapping[str, Any]) -> bool:
    return _text(params, "debug").lower() in _TRUE


def parse_request(params: Mapping[str, Any], current_year: Optional[int] = None) -> MetricsQuery:
    """Validate raw request parameters. Raises ValidationError before any data access."""
    zip5 = _text(params, "zip")
    cpt = _text(params, "cpt")
    if not ZIP_RE.match(zip5):
        raise ValidationError("zip must be 5 digits")
    if not CPT_RE.match(cpt):
        raise ValidationError("cpt must be 4 or 5 digits")

    fallback = default_window(current_year)
    window = YearWindow(
        _year(params, "year_from", fallback.start),
        _year(params, "year_to", fallback.end),
    )
    options = FilterOptions(
        exclude_non_positive=_flag(params, "exclude_zero", True),
        minimum_amount=_amount(params, "min_amount"),
    )
    return MetricsQuery(zip5, cpt, window, options, debug=is_debug(params))


class MetricsService:
    def __init__(
        self,
        store: ClaimStore,
        reference: Optional[ReferenceData] = None,
        min_n: int = MIN_N,
    ):
        self.store = store
        self.reference = reference or ReferenceData(store)
        self.resolver = ScopeResolver(store, self.reference, min_n=min_n)

    def query(self, q: MetricsQuery) -> dict:
        """Resolve and summarize one query. DataUnavailableError propagates."""
        resolution = self.resolver.resolve(q.zip5, q.cpt, q.window, q.options)
        if resolution is None:
            return build_payload(q.zip5, q.cpt, None, None, q.options)

        units = self.reference.snapshot().units
        summary = summarize(resolution.rows, q.window, units)
        return build_payload(q.zip5, q.cpt, resolution.scope, summary, q.options)

    def handle_request(
        self,
        params: Mapping[str, Any],
        current_year: Optional[int] = None,
    ) -> tuple[int, dict]:
        debug = is_debug(params)
        try:
            q = parse_request(params, current_year)
        except ValidationError as e:
            return 400, error_payload(str(e))

        try:
            return 200, self.query(q)
        except DataUnavailableError as e:
            log.error("Data unavailable for zip=%s cpt=%s: %s", q.zip5, q.cpt, e, exc_info=True)
            return 503, error_payload("data unavailable", detail=str(e), debug=debug)
