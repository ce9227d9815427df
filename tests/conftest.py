import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from merchant_kpi import database
from merchant_kpi.repository import MerchantDataRepository

HEADER = "pillar;product_type;brand_id;merchant_name;tpt;tpv;month"


@pytest.fixture()
def sqlite_connection(tmp_path):
    db_path = tmp_path / "test.db"
    database.init_db(db_path)
    conn = database.get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture()
def repository(sqlite_connection):
    return MerchantDataRepository(sqlite_connection)


@pytest.fixture()
def sample_csv() -> str:
    return "\n".join(
        [
            HEADER,
            "Wallets_Billing;PayChat;B1;Acme;10;1,000;jan_25",
            "Wallets_Billing;PayChat;B1;Acme;12;1,500;feb_25",
            "Wallets_Billing;QRIS;B2;Globex;5;250;jan_25",
            "Lending;Paylater;B3;Initech;7;3,000,000;jan_25",
        ]
    )
