"""Data-access boundary over DuckDB.

Every driver failure is converted to DataUnavailableError here; callers never
see duckdb exceptions. Raw rows are turned into fixed records before they
leave this module.
"""

import logging
import math
import queue
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

import duckdb

from claimscope.config import ACQUIRE_TIMEOUT_S, POOL_SIZE, QUERY_TIMEOUT_S
from claimscope.errors import DataUnavailableError
from claimscope.models import ClaimRecord, ReferenceUnitEntry, YearWindow

log = logging.getLogger("claim_metrics")

_CLAIM_COLUMNS = "zip5, state, cpt, paid_amt, dos_year"


def _num(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _year(value) -> Optional[int]:
    n = _num(value)
    if n is None or not math.isfinite(n) or n != int(n):
        return None
    return int(n)


def to_claim(row: tuple) -> ClaimRecord:
    zip5, state, cpt, paid_amt, dos_year = row
    return ClaimRecord(
        zip5=str(zip5 or "").strip(),
        state=str(state or "").strip(),
        cpt=str(cpt or "").strip(),
        paid_amt=_num(paid_amt),
        dos_year=_year(dos_year),
    )


class ConnectionPool:
    """Fixed-size pool of DuckDB cursors over one database handle."""

    def __init__(
        self,
        con: duckdb.DuckDBPyConnection,
        size: int = POOL_SIZE,
        acquire_timeout: float = ACQUIRE_TIMEOUT_S,
    ):
        self._con = con
        self._acquire_timeout = acquire_timeout
        self._idle: queue.Queue = queue.Queue(maxsize=size)
        try:
            for _ in range(size):
                self._idle.put(con.cursor())
        except duckdb.Error as e:
            raise DataUnavailableError(f"cannot open database cursor: {e}") from e

    @contextmanager
    def acquire(self) -> Iterator[duckdb.DuckDBPyConnection]:
        try:
            cursor = self._idle.get(timeout=self._acquire_timeout)
        except queue.Empty as e:
            raise DataUnavailableError("timed out waiting for a database connection") from e
        try:
            yield cursor
        finally:
            self._idle.put(cursor)

    def close(self) -> None:
        while True:
            try:
                cursor = self._idle.get_nowait()
            except queue.Empty:
                break
            cursor.close()


class StoreSession:
    """Queries issued on one acquired cursor for the lifetime of a request."""

    def __init__(self, cursor: duckdb.DuckDBPyConnection, query_timeout: Optional[float]):
        self._cursor = cursor
        self._query_timeout = query_timeout

    def _query(self, sql: str, params: Sequence = ()) -> list[tuple]:
        timer = None
        fired = threading.Event()

        def interrupt():
            fired.set()
            self._cursor.interrupt()

        if self._query_timeout and self._query_timeout > 0:
            timer = threading.Timer(self._query_timeout, interrupt)
            timer.daemon = True
            timer.start()
        try:
            if params:
                rows = self._cursor.execute(sql, list(params)).fetchall()
            else:
                rows = self._cursor.execute(sql).fetchall()
        except duckdb.Error as e:
            if fired.is_set():
                raise DataUnavailableError(f"query timed out after {self._query_timeout}s") from e
            raise DataUnavailableError(f"query failed: {e}") from e
        finally:
            if timer is not None:
                # a timer that already fired must finish before the cursor is reused
                timer.cancel()
                timer.join()
        if fired.is_set():
            raise DataUnavailableError(f"query timed out after {self._query_timeout}s")
        return rows

    def fetch_claims(
        self,
        cpt: str,
        window: YearWindow,
        *,
        zip5: Optional[str] = None,
        zip3: Optional[str] = None,
        zips: Optional[Sequence[str]] = None,
        state: Optional[str] = None,
    ) -> list[ClaimRecord]:
        """Claims for one procedure in the year window, narrowed by at most one area."""
        where = ["cpt = ?", "dos_year BETWEEN ? AND ?"]
        params: list = [cpt, window.start, window.end]
        if zip5 is not None:
            where.append("zip5 = ?")
            params.append(zip5)
        elif zip3 is not None:
            where.append("substring(zip5, 1, 3) = ?")
            params.append(zip3)
        elif zips is not None:
            if not zips:
                return []
            where.append(f"zip5 IN ({', '.join('?' for _ in zips)})")
            params.extend(zips)
        elif state is not None:
            where.append("state = ?")
            params.append(state)

        rows = self._query(
            f"SELECT {_CLAIM_COLUMNS} FROM claims WHERE {' AND '.join(where)}",
            params,
        )
        return [to_claim(r) for r in rows]

    def geometry_rows(self) -> list[tuple]:
        return self._query("SELECT zip5, state, lat, lon FROM zip_geometry")

    def reference_units(self) -> list[ReferenceUnitEntry]:
        """Positive work RVUs per (code, year); duplicates keep the largest value."""
        rows = self._query("""
            SELECT cpt_code, year, MAX(wrvu) AS wrvu
            FROM rvu_master
            WHERE wrvu > 0 AND year IS NOT NULL AND cpt_code IS NOT NULL
            GROUP BY cpt_code, year
        """)
        return [ReferenceUnitEntry(str(r[0]).strip(), int(r[1]), float(r[2])) for r in rows]


class ClaimStore:
    def __init__(self, pool: ConnectionPool, query_timeout: Optional[float] = QUERY_TIMEOUT_S):
        self.pool = pool
        self.query_timeout = query_timeout

    @classmethod
    def from_connection(
        cls,
        con: duckdb.DuckDBPyConnection,
        pool_size: int = POOL_SIZE,
        query_timeout: Optional[float] = QUERY_TIMEOUT_S,
    ) -> "ClaimStore":
        return cls(ConnectionPool(con, size=pool_size), query_timeout=query_timeout)

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        with self.pool.acquire() as cursor:
            yield StoreSession(cursor, self.query_timeout)

    def close(self) -> None:
        self.pool.close()
