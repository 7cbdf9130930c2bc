"""Runtime configuration: thresholds, store settings and data locations.

Values can be overridden through environment variables; the CLI flags in
claim_metrics.py take precedence over both.
"""

import os
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent

# ---------------------------------------------------------------------------
# Scope resolution
# ---------------------------------------------------------------------------
MIN_N = 12                  # post-filter rows a scope needs to be accepted
MAX_RADIUS_ZIPS = 50        # nearest ZIPs pooled by the radius scope
ZIP3_LENGTH = 3
EARTH_RADIUS_MILES = 3959.0
DEFAULT_WINDOW_YEARS = 5

# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------
API_VERSION = 2

# ---------------------------------------------------------------------------
# Backing store
# ---------------------------------------------------------------------------
POOL_SIZE = 4
ACQUIRE_TIMEOUT_S = 10.0
QUERY_TIMEOUT_S = float(os.getenv("CLAIM_METRICS_QUERY_TIMEOUT", "30"))
DEFAULT_MEMORY_LIMIT = "2GB"
DB_PATH = os.getenv("CLAIM_METRICS_DB_PATH")

DATA_DIR = Path(os.getenv("CLAIM_METRICS_DATA_DIR", str(REPO_ROOT / "data")))
CLAIMS_NAME = "claims"
ZIP_GEOMETRY_NAME = "zip_geometry"
RVU_NAME = "rvu_master"

# Optional remote sources, fetched when the local file is missing
DOWNLOAD_URLS = {
    CLAIMS_NAME: os.getenv("CLAIM_METRICS_CLAIMS_URL"),
    ZIP_GEOMETRY_NAME: os.getenv("CLAIM_METRICS_ZIP_GEOMETRY_URL"),
    RVU_NAME: os.getenv("CLAIM_METRICS_RVU_URL"),
}
DOWNLOAD_TIMEOUT_S = 120
