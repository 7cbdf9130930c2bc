"""In-memory ZIP geometry index with great-circle nearest-neighbor search."""

import math
from typing import Iterable, Optional

import numpy as np

from claimscope.config import EARTH_RADIUS_MILES
from claimscope.models import GeoEntry


def haversine_miles(lat1, lon1, lat2, lon2):
    """Great-circle distance in statute miles.

    Accepts scalars or numpy arrays for (lat1, lon1); (lat2, lon2) is the
    reference point.
    """
    lat1 = np.radians(np.asarray(lat1, dtype=float))
    lon1 = np.radians(np.asarray(lon1, dtype=float))
    lat2 = math.radians(float(lat2))
    lon2 = math.radians(float(lon2))

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = (
        np.sin(dlat / 2.0) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2.0) ** 2
    )
    c = 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))
    return EARTH_RADIUS_MILES * c


class GeoIndex:
    """Read-only lookup of ZIP centroid and state.

    Built once from a snapshot of the geometry table and never mutated, so a
    single instance can serve any number of concurrent readers.
    """

    def __init__(self, entries: Iterable[GeoEntry]):
        by_zip: dict[str, GeoEntry] = {}
        for entry in entries:
            by_zip.setdefault(entry.zip5, entry)
        ordered = sorted(by_zip.values(), key=lambda e: e.zip5)

        self._by_zip = by_zip
        self._zips = np.array([e.zip5 for e in ordered], dtype=object)
        self._lats = np.array([e.lat for e in ordered], dtype=float)
        self._lons = np.array([e.lon for e in ordered], dtype=float)
        self._lats.setflags(write=False)
        self._lons.setflags(write=False)

    @classmethod
    def from_rows(cls, rows: Iterable[tuple]) -> "GeoIndex":
        """Build from (zip5, state, lat, lon) rows, skipping unusable coordinates."""
        entries = []
        for zip5, state, lat, lon in rows:
            if zip5 is None or lat is None or lon is None:
                continue
            try:
                lat_f, lon_f = float(lat), float(lon)
            except (TypeError, ValueError):
                continue
            if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
                continue
            entries.append(GeoEntry(str(zip5).strip(), (state or "").strip(), lat_f, lon_f))
        return cls(entries)

    def __len__(self) -> int:
        return len(self._by_zip)

    def lookup(self, zip5: str) -> Optional[GeoEntry]:
        return self._by_zip.get(zip5)

    def nearest_n(self, lat: float, lon: float, n: int) -> list[tuple[str, float]]:
        """Return up to n (zip5, distance_miles) pairs ordered by distance.

        Equidistant ZIPs are ordered by ascending ZIP code.
        """
        if n <= 0 or not len(self._zips):
            return []
        distances = haversine_miles(self._lats, self._lons, lat, lon)
        # _zips is already sorted, so a stable sort on distance keeps ZIP order on ties
        order = np.argsort(distances, kind="stable")[:n]
        return [(self._zips[i], float(distances[i])) for i in order]
