"""Data loading into DuckDB tables for the claims, ZIP geometry and RVU files."""

import logging
import os
from typing import Optional

import duckdb
import requests

from claimscope.config import (
    CLAIMS_NAME,
    DOWNLOAD_TIMEOUT_S,
    DOWNLOAD_URLS,
    RVU_NAME,
    ZIP_GEOMETRY_NAME,
)

log = logging.getLogger("claim_metrics")


def get_connection(memory_limit: str = "2GB", database: str = ":memory:") -> duckdb.DuckDBPyConnection:
    """Create a DuckDB connection with appropriate settings for large data."""
    con = duckdb.connect(database)
    con.execute(f"SET memory_limit = '{memory_limit}'")
    con.execute("SET threads = 4")
    return con


def ensure_file(url: Optional[str], path: str) -> None:
    """Download url to path if the file is missing and a url is configured."""
    if os.path.exists(path) or not url:
        return
    log.info("Downloading %s ...", url)
    resp = requests.get(url, timeout=DOWNLOAD_TIMEOUT_S)
    resp.raise_for_status()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as f:
        f.write(resp.content)
    log.info("Saved %s (%d bytes)", path, len(resp.content))


def _source_sql(data_dir: str, name: str) -> str:
    """Return a DuckDB table function reading <name>.parquet or <name>.csv."""
    parquet = os.path.join(data_dir, f"{name}.parquet")
    csv = os.path.join(data_dir, f"{name}.csv")
    if not os.path.exists(parquet) and not os.path.exists(csv):
        url = DOWNLOAD_URLS.get(name)
        if url:
            target = parquet if url.split("?")[0].endswith(".parquet") else csv
            ensure_file(url, target)

    if os.path.exists(parquet):
        return "read_parquet('{}')".format(parquet.replace("'", "''"))
    if os.path.exists(csv):
        return "read_csv('{}', header=true, auto_detect=true, all_varchar=true)".format(
            csv.replace("'", "''")
        )
    raise FileNotFoundError(
        f"{name} data not found. Provide {name}.parquet or {name}.csv in {data_dir}"
    )


def load_claims(con: duckdb.DuckDBPyConnection, data_dir: str) -> None:
    """Load claim rows: one paid amount per claim line."""
    source = _source_sql(data_dir, CLAIMS_NAME)
    con.execute(f"""
        CREATE OR REPLACE TABLE claims AS
        SELECT
            LPAD(TRIM(CAST(zip5 AS VARCHAR)), 5, '0') AS zip5,
            UPPER(TRIM(CAST(state AS VARCHAR))) AS state,
            TRIM(CAST(cpt AS VARCHAR)) AS cpt,
            TRY_CAST(paid_amt AS DOUBLE) AS paid_amt,
            TRY_CAST(dos_year AS INTEGER) AS dos_year
        FROM {source}
        WHERE zip5 IS NOT NULL AND cpt IS NOT NULL
    """)


def load_zip_geometry(con: duckdb.DuckDBPyConnection, data_dir: str) -> None:
    """Load ZIP centroids with their state."""
    source = _source_sql(data_dir, ZIP_GEOMETRY_NAME)
    con.execute(f"""
        CREATE OR REPLACE TABLE zip_geometry AS
        SELECT
            LPAD(TRIM(CAST(zip5 AS VARCHAR)), 5, '0') AS zip5,
            UPPER(TRIM(CAST(state AS VARCHAR))) AS state,
            TRY_CAST(lat AS DOUBLE) AS lat,
            TRY_CAST(lon AS DOUBLE) AS lon
        FROM {source}
        WHERE zip5 IS NOT NULL
    """)


def load_rvu(con: duckdb.DuckDBPyConnection, data_dir: str) -> None:
    """Load work RVUs per procedure code and year."""
    source = _source_sql(data_dir, RVU_NAME)
    con.execute(f"""
        CREATE OR REPLACE TABLE rvu_master AS
        SELECT
            TRIM(CAST(cpt_code AS VARCHAR)) AS cpt_code,
            TRY_CAST(year AS INTEGER) AS year,
            TRY_CAST(wrvu AS DOUBLE) AS wrvu
        FROM {source}
        WHERE cpt_code IS NOT NULL
    """)


def load_all(data_dir: str, memory_limit: str = "2GB") -> duckdb.DuckDBPyConnection:
    """Load all three datasets and return the connection."""
    con = get_connection(memory_limit)

    try:
        log.info("Loading claims...")
        load_claims(con, data_dir)

        log.info("Loading ZIP geometry...")
        load_zip_geometry(con, data_dir)

        log.info("Loading RVU reference table...")
        load_rvu(con, data_dir)
    except BaseException:
        con.close()
        raise

    claims_count = con.execute("SELECT COUNT(*) FROM claims").fetchone()[0]
    zip_count = con.execute("SELECT COUNT(*) FROM zip_geometry").fetchone()[0]
    rvu_count = con.execute("SELECT COUNT(*) FROM rvu_master").fetchone()[0]

    log.info("  Claim rows:    %s", f"{claims_count:,}")
    log.info("  ZIP centroids: %s", f"{zip_count:,}")
    log.info("  RVU entries:   %s", f"{rvu_count:,}")

    return con
