from datetime import date

from merchant_kpi import importer, reporting


def test_monthly_totals(sqlite_connection, repository, sample_csv):
    importer.import_csv_text(repository, sample_csv)

    rows = reporting.monthly_totals(sqlite_connection)

    assert rows == [("2025-01-01", 22.0, 3001250.0), ("2025-02-01", 12.0, 1500.0)]

    filtered = reporting.monthly_totals(sqlite_connection, pillar="Wallets_Billing")
    assert filtered == [("2025-01-01", 15.0, 1250.0), ("2025-02-01", 12.0, 1500.0)]


def test_pillar_breakdown(sqlite_connection, repository, sample_csv):
    importer.import_csv_text(repository, sample_csv)

    rows = reporting.pillar_breakdown(sqlite_connection, end=date(2025, 1, 1))

    assert rows == [("Lending", 7.0, 3000000.0), ("Wallets_Billing", 15.0, 1250.0)]


def test_top_merchants(sqlite_connection, repository, sample_csv):
    importer.import_csv_text(repository, sample_csv)

    rows = reporting.top_merchants(sqlite_connection, limit=2)

    assert rows == [("B3", "Initech", 7.0, 3000000.0), ("B1", "Acme", 22.0, 2500.0)]
