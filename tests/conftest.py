"""Shared test fixtures for claim metrics tests."""

import os
import sys

import pytest
import duckdb

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from claimscope.reference import ReferenceData
from claimscope.store import ClaimStore


@pytest.fixture
def con():
    """Create a DuckDB connection with synthetic claims, geometry and RVU data."""
    c = duckdb.connect(":memory:")

    c.execute("""
        CREATE TABLE zip_geometry AS
        SELECT * FROM (VALUES
            ('10001', 'NY', 40.7506, -73.9972),
            ('10002', 'NY', 40.7158, -73.9870),
            ('10003', 'NY', 40.7320, -73.9890),
            ('11201', 'NY', 40.6940, -73.9900),
            ('12201', 'NY', 42.6526, -73.7562),
            ('07030', 'NJ', 40.7440, -74.0324),
            ('60601', 'IL', 41.8858, -87.6229),
            ('94110', 'CA', 37.7487, -122.4158),
            ('90210', 'CA', 34.0901, -118.4065),
            ('33101', '',   25.7781, -80.1990),
            ('00000', 'XX', NULL, NULL)
        ) AS t(zip5, state, lat, lon)
    """)

    c.execute("""
        CREATE TABLE claims AS
        SELECT * FROM (VALUES
            -- 99213: exact ZIP qualifies with 15 claims, 3 per year 2021-2025
            ('10001', 'NY', '99213', 100.0, 2021),
            ('10001', 'NY', '99213', 200.0, 2021),
            ('10001', 'NY', '99213', 300.0, 2021),
            ('10001', 'NY', '99213', 400.0, 2022),
            ('10001', 'NY', '99213', 500.0, 2022),
            ('10001', 'NY', '99213', 600.0, 2022),
            ('10001', 'NY', '99213', 700.0, 2023),
            ('10001', 'NY', '99213', 800.0, 2023),
            ('10001', 'NY', '99213', 900.0, 2023),
            ('10001', 'NY', '99213', 1000.0, 2024),
            ('10001', 'NY', '99213', 1100.0, 2024),
            ('10001', 'NY', '99213', 1200.0, 2024),
            ('10001', 'NY', '99213', 1300.0, 2025),
            ('10001', 'NY', '99213', 1400.0, 2025),
            ('10001', 'NY', '99213', 1500.0, 2025),
            -- outside the 2021-2025 window
            ('10001', 'NY', '99213', 99999.0, 2019),

            -- 99214: 5 claims at the exact ZIP, 20 across ZIP3 100
            ('10001', 'NY', '99214', 10.0, 2022),
            ('10001', 'NY', '99214', 10.0, 2022),
            ('10001', 'NY', '99214', 10.0, 2022),
            ('10001', 'NY', '99214', 10.0, 2022),
            ('10001', 'NY', '99214', 10.0, 2022),
            ('10002', 'NY', '99214', 200.0, 2023),
            ('10002', 'NY', '99214', 210.0, 2023),
            ('10002', 'NY', '99214', 220.0, 2023),
            ('10002', 'NY', '99214', 230.0, 2023),
            ('10002', 'NY', '99214', 240.0, 2023),
            ('10002', 'NY', '99214', 250.0, 2023),
            ('10002', 'NY', '99214', 260.0, 2023),
            ('10002', 'NY', '99214', 270.0, 2023),
            ('10003', 'NY', '99214', 280.0, 2024),
            ('10003', 'NY', '99214', 290.0, 2024),
            ('10003', 'NY', '99214', 300.0, 2024),
            ('10003', 'NY', '99214', 310.0, 2024),
            ('10003', 'NY', '99214', 320.0, 2024),
            ('10003', 'NY', '99214', 330.0, 2024),
            ('10003', 'NY', '99214', 340.0, 2024),

            -- 99215: zero and missing amounts decide between zip and zip3
            ('10001', 'NY', '99215', 150.0, 2022),
            ('10001', 'NY', '99215', 160.0, 2022),
            ('10001', 'NY', '99215', 170.0, 2022),
            ('10001', 'NY', '99215', 180.0, 2022),
            ('10001', 'NY', '99215', 190.0, 2022),
            ('10001', 'NY', '99215', 200.0, 2023),
            ('10001', 'NY', '99215', 210.0, 2023),
            ('10001', 'NY', '99215', 220.0, 2023),
            ('10001', 'NY', '99215', 230.0, 2023),
            ('10001', 'NY', '99215', 240.0, 2023),
            ('10001', 'NY', '99215', 0.0, 2023),
            ('10001', 'NY', '99215', 0.0, 2024),
            ('10001', 'NY', '99215', NULL, 2024),
            ('10002', 'NY', '99215', 250.0, 2024),
            ('10002', 'NY', '99215', 260.0, 2024),
            ('10002', 'NY', '99215', 270.0, 2024),

            -- 27447: Hoboken has 2 claims, Manhattan 12 more a couple of miles away
            ('07030', 'NJ', '27447', 30000.0, 2022),
            ('07030', 'NJ', '27447', 31000.0, 2023),
            ('10001', 'NY', '27447', 25000.0, 2022),
            ('10001', 'NY', '27447', 26000.0, 2022),
            ('10001', 'NY', '27447', 27000.0, 2022),
            ('10001', 'NY', '27447', 28000.0, 2023),
            ('10001', 'NY', '27447', 29000.0, 2023),
            ('10001', 'NY', '27447', 30000.0, 2023),
            ('10003', 'NY', '27447', 31000.0, 2024),
            ('10003', 'NY', '27447', 32000.0, 2024),
            ('10003', 'NY', '27447', 33000.0, 2024),
            ('10003', 'NY', '27447', 34000.0, 2025),
            ('10003', 'NY', '27447', 35000.0, 2025),
            ('10003', 'NY', '27447', 36000.0, 2025),
            -- far away, only reachable at national scope
            ('94110', 'CA', '27447', 90000.0, 2023),

            -- 43239: Albany is sparse; New York State as a whole qualifies
            ('12201', 'NY', '43239', 1200.0, 2022),
            ('12201', 'NY', '43239', 1250.0, 2023),
            ('10001', 'NY', '43239', 1300.0, 2022),
            ('10001', 'NY', '43239', 1350.0, 2022),
            ('10001', 'NY', '43239', 1400.0, 2023),
            ('10001', 'NY', '43239', 1450.0, 2023),
            ('10001', 'NY', '43239', 1500.0, 2024),
            ('10001', 'NY', '43239', 1550.0, 2024),
            ('11201', 'NY', '43239', 1600.0, 2022),
            ('11201', 'NY', '43239', 1650.0, 2022),
            ('11201', 'NY', '43239', 1700.0, 2023),
            ('11201', 'NY', '43239', 1750.0, 2023),
            ('11201', 'NY', '43239', 1800.0, 2024),
            ('11201', 'NY', '43239', 1850.0, 2024),
            ('94110', 'CA', '43239', 3000.0, 2022),
            ('94110', 'CA', '43239', 3100.0, 2022),
            ('94110', 'CA', '43239', 3200.0, 2023),
            ('90210', 'CA', '43239', 3300.0, 2023),
            ('90210', 'CA', '43239', 3400.0, 2024),

            -- 70450: spread thinly; only the national scope qualifies
            ('94110', 'CA', '70450', 500.0, 2021),
            ('94110', 'CA', '70450', 510.0, 2021),
            ('94110', 'CA', '70450', 520.0, 2022),
            ('90210', 'CA', '70450', 530.0, 2022),
            ('90210', 'CA', '70450', 540.0, 2023),
            ('90210', 'CA', '70450', 550.0, 2023),
            ('60601', 'IL', '70450', 560.0, 2024),
            ('60601', 'IL', '70450', 570.0, 2024),
            ('60601', 'IL', '70450', 580.0, 2024),
            ('12201', 'NY', '70450', 590.0, 2025),
            ('12201', 'NY', '70450', 600.0, 2025),
            ('11201', 'NY', '70450', 610.0, 2025),
            ('07030', 'NJ', '70450', 620.0, 2025),

            -- 1111: a rare procedure with too few claims anywhere
            ('10001', 'NY', '1111', 75.0, 2022),
            ('94110', 'CA', '1111', 80.0, 2023),
            ('60601', 'IL', '1111', 85.0, 2024),
            ('90210', 'CA', '1111', 90.0, 2024)
        ) AS t(zip5, state, cpt, paid_amt, dos_year)
    """)

    c.execute("""
        CREATE TABLE rvu_master AS
        SELECT * FROM (VALUES
            ('99213', 2021, 1.0),
            ('99213', 2022, 2.0),
            ('99213', 2023, 0.0),
            ('99213', 2025, 5.0),
            ('99214', 2023, 1.5),
            ('27447', 2022, 20.0),
            ('27447', 2022, 19.0)
        ) AS t(cpt_code, year, wrvu)
    """)

    yield c
    c.close()


@pytest.fixture
def store(con):
    s = ClaimStore.from_connection(con, pool_size=2, query_timeout=10)
    yield s
    s.close()


@pytest.fixture
def reference(store):
    return ReferenceData(store)
