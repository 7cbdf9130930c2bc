"""Fixed record types passed between the store, resolver and statistics engine."""

from dataclasses import dataclass, field
from typing import Optional

from claimscope.errors import ValidationError


@dataclass(frozen=True)
class ClaimRecord:
    """One claim row. Amount and year are None when the stored value was unusable."""

    zip5: str
    state: str
    cpt: str
    paid_amt: Optional[float]
    dos_year: Optional[int]


@dataclass(frozen=True)
class GeoEntry:
    zip5: str
    state: str
    lat: float
    lon: float


@dataclass(frozen=True)
class ReferenceUnitEntry:
    cpt: str
    year: int
    wrvu: float


@dataclass(frozen=True)
class YearWindow:
    """Closed-inclusive range of service years."""

    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise ValidationError(
                f"year_from ({self.start}) must not be after year_to ({self.end})"
            )

    @property
    def label(self) -> str:
        return f"{self.start}-{self.end}"

    def contains(self, year: int) -> bool:
        return self.start <= year <= self.end


@dataclass(frozen=True)
class FilterOptions:
    exclude_non_positive: bool = True
    minimum_amount: Optional[float] = None


@dataclass(frozen=True)
class ScopeResult:
    level: Optional[str]
    sample_size: int
    representative_zip: Optional[str] = None
    distance_miles: Optional[float] = None
    state: Optional[str] = None


@dataclass(frozen=True)
class Resolution:
    """An accepted scope and the filtered rows that qualified it."""

    scope: ScopeResult
    rows: tuple


@dataclass(frozen=True)
class YearTrend:
    year: int
    median: float


@dataclass(frozen=True)
class MetricsSummary:
    """Unrounded summary statistics; rounding happens when the payload is built."""

    year_window: YearWindow
    mean: float
    median: float
    p25: float
    p75: float
    trend_by_year: tuple = field(default_factory=tuple)
    mean_per_unit: Optional[float] = None
    median_per_unit: Optional[float] = None
    ratio_sample_size: int = 0
