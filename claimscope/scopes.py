"""Geographic scope cascade: exact ZIP, ZIP3, radius, state, national.

The cascade is data: SCOPE_LEVELS lists the levels in priority order and one
loop tries each in turn. The first level whose filtered sample reaches MIN_N
wins; rows from narrower levels are never merged into a broader one.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from claimscope.config import MAX_RADIUS_ZIPS, MIN_N, ZIP3_LENGTH
from claimscope.filters import apply_filters
from claimscope.geo import GeoIndex
from claimscope.models import (
    ClaimRecord,
    FilterOptions,
    GeoEntry,
    Resolution,
    ScopeResult,
    YearWindow,
)
from claimscope.reference import ReferenceData
from claimscope.store import ClaimStore, StoreSession

log = logging.getLogger("claim_metrics")


@dataclass(frozen=True)
class ScopeContext:
    zip5: str
    cpt: str
    window: YearWindow
    geo_index: GeoIndex
    geo: Optional[GeoEntry]


@dataclass(frozen=True)
class ScopeLevel:
    level: str
    fetch: Callable[[StoreSession, ScopeContext], list[ClaimRecord]]
    metadata: Callable[[ScopeContext], dict]
    applies: Callable[[ScopeContext], bool]


def _always(ctx: ScopeContext) -> bool:
    return True


def _has_geo(ctx: ScopeContext) -> bool:
    return ctx.geo is not None


def _has_state(ctx: ScopeContext) -> bool:
    return ctx.geo is not None and bool(ctx.geo.state)


def _no_metadata(ctx: ScopeContext) -> dict:
    return {}


def _fetch_zip(session: StoreSession, ctx: ScopeContext) -> list[ClaimRecord]:
    return session.fetch_claims(ctx.cpt, ctx.window, zip5=ctx.zip5)


def _zip_metadata(ctx: ScopeContext) -> dict:
    return {"representative_zip": ctx.zip5}


def _fetch_zip3(session: StoreSession, ctx: ScopeContext) -> list[ClaimRecord]:
    return session.fetch_claims(ctx.cpt, ctx.window, zip3=ctx.zip5[:ZIP3_LENGTH])


def _fetch_radius(session: StoreSession, ctx: ScopeContext) -> list[ClaimRecord]:
    nearest = ctx.geo_index.nearest_n(ctx.geo.lat, ctx.geo.lon, MAX_RADIUS_ZIPS)
    return session.fetch_claims(ctx.cpt, ctx.window, zips=[z for z, _ in nearest])


def _radius_metadata(ctx: ScopeContext) -> dict:
    # The single nearest ZIP, whether or not it contributed rows
    nearest = ctx.geo_index.nearest_n(ctx.geo.lat, ctx.geo.lon, 1)
    if not nearest:
        return {"representative_zip": ctx.zip5, "distance_miles": None}
    rep_zip, distance = nearest[0]
    return {"representative_zip": rep_zip, "distance_miles": distance}


def _fetch_state(session: StoreSession, ctx: ScopeContext) -> list[ClaimRecord]:
    return session.fetch_claims(ctx.cpt, ctx.window, state=ctx.geo.state)


def _state_metadata(ctx: ScopeContext) -> dict:
    return {"state": ctx.geo.state}


def _fetch_national(session: StoreSession, ctx: ScopeContext) -> list[ClaimRecord]:
    return session.fetch_claims(ctx.cpt, ctx.window)


SCOPE_LEVELS = (
    ScopeLevel("zip", _fetch_zip, _zip_metadata, _always),
    ScopeLevel("zip3", _fetch_zip3, _no_metadata, _always),
    ScopeLevel("radius", _fetch_radius, _radius_metadata, _has_geo),
    ScopeLevel("state", _fetch_state, _state_metadata, _has_state),
    ScopeLevel("national", _fetch_national, _no_metadata, _always),
)


class ScopeResolver:
    """Finds the narrowest scope with enough post-filter claims.

    resolve() returns None when no level qualifies. DataUnavailableError from
    the store propagates unchanged; it is never read as an empty scope.
    """

    def __init__(
        self,
        store: ClaimStore,
        reference: ReferenceData,
        min_n: int = MIN_N,
        levels: tuple = SCOPE_LEVELS,
    ):
        self.store = store
        self.reference = reference
        self.min_n = min_n
        self.levels = levels

    def resolve(
        self,
        zip5: str,
        cpt: str,
        window: YearWindow,
        options: FilterOptions,
    ) -> Optional[Resolution]:
        geo_index = self.reference.snapshot().geo
        ctx = ScopeContext(
            zip5=zip5,
            cpt=cpt,
            window=window,
            geo_index=geo_index,
            geo=geo_index.lookup(zip5),
        )
        if ctx.geo is None:
            log.debug("ZIP %s not in geometry index; radius and state scopes skipped", zip5)

        with self.store.session() as session:
            for scope in self.levels:
                if not scope.applies(ctx):
                    continue
                raw = scope.fetch(session, ctx)
                rows = apply_filters(raw, options, window)
                log.debug(
                    "Scope %-8s zip=%s cpt=%s: %d rows, %d after filters",
                    scope.level, zip5, cpt, len(raw), len(rows),
                )
                if len(rows) < self.min_n:
                    continue

                log.info("Resolved zip=%s cpt=%s at scope %s (n=%d)", zip5, cpt, scope.level, len(rows))
                result = ScopeResult(level=scope.level, sample_size=len(rows), **scope.metadata(ctx))
                return Resolution(scope=result, rows=tuple(rows))

        log.info("No scope reached %d claims for zip=%s cpt=%s", self.min_n, zip5, cpt)
        return None
