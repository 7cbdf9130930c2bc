"""Process-wide snapshot of the static reference tables.

The snapshot is immutable. refresh() builds a replacement and swaps it in with
a single assignment, so readers never see a partially loaded table.
"""

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from claimscope.geo import GeoIndex
from claimscope.store import ClaimStore

log = logging.getLogger("claim_metrics")


@dataclass(frozen=True)
class ReferenceSnapshot:
    geo: GeoIndex
    units: Mapping[tuple[str, int], float]


class ReferenceData:
    def __init__(self, store: ClaimStore):
        self._store = store
        self._snapshot: Optional[ReferenceSnapshot] = None
        self._lock = threading.Lock()

    def _load(self) -> ReferenceSnapshot:
        with self._store.session() as session:
            geo = GeoIndex.from_rows(session.geometry_rows())
            units = {(e.cpt, e.year): e.wrvu for e in session.reference_units()}
        log.info("Reference snapshot loaded: %d ZIPs, %d RVU entries", len(geo), len(units))
        return ReferenceSnapshot(geo=geo, units=MappingProxyType(units))

    def snapshot(self) -> ReferenceSnapshot:
        current = self._snapshot
        if current is not None:
            return current
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
            return self._snapshot

    def refresh(self) -> ReferenceSnapshot:
        fresh = self._load()
        with self._lock:
            self._snapshot = fresh
        return fresh
