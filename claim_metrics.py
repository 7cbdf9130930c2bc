#!/usr/bin/env python3
"""
Claim Payment Metrics
=====================
Answers "what does procedure X typically cost near ZIP Y" from a claims
dataset. The geographic scope widens step by step until enough claims are
found:

1. Exact ZIP
2. ZIP3 (first three digits)
3. Radius (50 nearest ZIP centroids)
4. State
5. National

The accepted sample is summarized as mean, median, p25/p75, a per-year median
trend and price per work RVU.

Uses DuckDB as the in-process claims store.
"""

import argparse
import json
import logging
import sys

import duckdb
import requests

from claimscope import config
from claimscope.errors import DataUnavailableError, ValidationError
from claimscope.ingest import get_connection, load_all
from claimscope.output import error_payload, write_payload
from claimscope.service import MetricsService, parse_request
from claimscope.store import ClaimStore

# Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("claim_metrics")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Claim payment metrics by procedure and ZIP")
    parser.add_argument("--zip", required=True, help="5-digit ZIP code")
    parser.add_argument("--cpt", required=True, help="4-5 digit procedure code")
    parser.add_argument("--year-from", help="First service year (default: current year - 4)")
    parser.add_argument("--year-to", help="Last service year (default: current year)")
    parser.add_argument("--include-zero", action="store_true",
                        help="Keep claims with zero or negative paid amounts")
    parser.add_argument("--min-amount", help="Drop claims paid below this amount")
    parser.add_argument("--data-dir", default=str(config.DATA_DIR),
                        help="Directory holding claims / zip_geometry / rvu_master files")
    parser.add_argument("--db", default=config.DB_PATH,
                        help="Existing DuckDB database with the three tables (skips loading)")
    parser.add_argument("--memory-limit", default=config.DEFAULT_MEMORY_LIMIT,
                        help="DuckDB memory limit (default: 2GB)")
    parser.add_argument("--query-timeout", type=float, default=config.QUERY_TIMEOUT_S,
                        help="Seconds before a store query is interrupted")
    parser.add_argument("--output", help="Write the JSON payload to this file")
    parser.add_argument("--debug", action="store_true",
                        help="Verbose logging and error detail in the payload")
    return parser


def open_connection(args):
    if args.db:
        log.debug("Opening database: %s", args.db)
        con = get_connection(args.memory_limit, database=args.db)
        return con
    log.debug("Loading data from %s into :memory:", args.data_dir)
    return load_all(args.data_dir, args.memory_limit)


def emit(payload: dict, output=None) -> None:
    if output:
        write_payload(payload, output)
    else:
        print(json.dumps(payload, indent=2, default=str))


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    params = {
        "zip": args.zip,
        "cpt": args.cpt,
        "year_from": args.year_from,
        "year_to": args.year_to,
        "exclude_zero": "false" if args.include_zero else "true",
        "min_amount": args.min_amount,
        "debug": "1" if args.debug else "",
    }

    try:
        query = parse_request(params)
    except ValidationError as e:
        log.error("Invalid request: %s", e)
        emit(error_payload(str(e)), args.output)
        return 2

    try:
        con = open_connection(args)
    except (OSError, duckdb.Error, requests.RequestException) as e:
        log.error("Cannot open data store: %s", e, exc_info=args.debug)
        emit(error_payload("data unavailable", detail=str(e), debug=args.debug), args.output)
        return 1

    store = None
    try:
        store = ClaimStore.from_connection(con, query_timeout=args.query_timeout)
        payload = MetricsService(store).query(query)
    except DataUnavailableError as e:
        log.error("Data unavailable: %s", e, exc_info=args.debug)
        emit(error_payload("data unavailable", detail=str(e), debug=args.debug), args.output)
        return 1
    finally:
        if store is not None:
            store.close()
        con.close()

    scope = payload["used_scope"]
    log.info("Scope: %s | sample size: %d", scope["level"] or "none", scope["sample_size"])
    emit(payload, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
