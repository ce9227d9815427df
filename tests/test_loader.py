from datetime import date

import pytest

from merchant_kpi import loader
from merchant_kpi.settings import ImportOptions

HEADER = "pillar;product_type;brand_id;merchant_name;tpt;tpv;month"


def test_iter_rows_maps_headers_by_name_and_strips_bom():
    content = "\ufeff tpv ; pillar;brand_id\n 1,000 ; Lending ;B1 \n"

    rows = list(loader.iter_rows(content))

    assert rows == [{"tpv": "1,000", "pillar": "Lending", "brand_id": "B1"}]


def test_iter_rows_pads_short_lines_and_skips_blank_lines():
    content = f"\n{HEADER}\n;;;;;;\n\nLending;Paylater;B3\r\n"

    rows = list(loader.iter_rows(content))

    assert len(rows) == 1
    assert rows[0]["brand_id"] == "B3"
    assert rows[0]["merchant_name"] == ""
    assert rows[0]["month"] == ""


def test_iter_rows_without_header_yields_nothing():
    assert list(loader.iter_rows("   \n\n")) == []


@pytest.mark.parametrize(
    ("token", "separator", "expected"),
    [
        ("jan_25", "_", date(2025, 1, 1)),
        ("DEC_2024", "_", date(2024, 12, 1)),
        ("Sep-23", "-", date(2023, 9, 1)),
    ],
)
def test_parse_month_collapses_to_first_of_month(token, separator, expected):
    assert loader.parse_month(token, separator) == expected


@pytest.mark.parametrize(
    ("token", "separator"),
    [("foo_25", "_"), ("jan-25", "_"), ("jan_125", "_"), ("", "_"), ("january_25", "_")],
)
def test_parse_month_rejects_malformed_tokens(token, separator):
    with pytest.raises(loader.InvalidMonthError):
        loader.parse_month(token, separator)


def test_coerce_number_defaults_to_zero():
    assert loader.coerce_number("1,234,567", strip_thousands=True) == 1234567
    assert loader.coerce_number("abc", strip_thousands=True) == 0
    assert loader.coerce_number("") == 0
    assert loader.coerce_number(None) == 0
    assert loader.coerce_number("nan") == 0
    assert loader.coerce_number("12.5") == 12.5


def test_build_record_drops_rows_without_pillar_or_brand():
    row = {"pillar": "", "brand_id": "B1", "month": "not-a-month"}

    assert loader.build_record(row) is None


def test_deduplicator_keeps_first_occurrence():
    first = loader.MerchantRecord("P", "T", "B1", "Acme", 1.0, 2.0, date(2025, 1, 1))
    repeat = loader.MerchantRecord("P", "T", "B1", "Acme", 9.0, 9.0, date(2025, 1, 1))
    other_month = loader.MerchantRecord("P", "T", "B1", "Acme", 1.0, 2.0, date(2025, 2, 1))

    dedup = loader.Deduplicator()

    assert [dedup.accept(r) for r in (first, repeat, other_month)] == [True, False, True]
    assert dedup.duplicates_skipped == 1


def test_read_records_counts_duplicates():
    content = "\n".join(
        [
            HEADER,
            "Wallets_Billing;PayChat;B1;Acme;10;1,000;jan_25",
            "Wallets_Billing;PayChat;B1;Acme;10;1,000;jan_25",
        ]
    )

    dataset = loader.read_records(content)

    assert len(dataset.records) == 1
    assert dataset.duplicates_skipped == 1
    record = dataset.records[0]
    assert (record.tpt, record.tpv, record.date) == (10.0, 1000.0, date(2025, 1, 1))


def test_read_records_dedup_key_is_configurable():
    content = "\n".join(
        [
            HEADER,
            "Wallets_Billing;PayChat;B1;Acme;10;1,000;jan_25",
            "Wallets_Billing;QRIS;B1;Acme;10;1,000;jan_25",
        ]
    )

    default = loader.read_records(content)
    without_product = loader.read_records(
        content,
        ImportOptions(dedup_key=("pillar", "brand_id", "merchant_name", "date")),
    )

    assert len(default.records) == 2
    assert len(without_product.records) == 1
    assert without_product.duplicates_skipped == 1


def test_read_records_skips_unknown_months_by_default():
    content = "\n".join(
        [
            HEADER,
            "Lending;Paylater;B3;Initech;7;300;jan_25",
            "Lending;Paylater;B4;Umbrella;7;300;xyz_25",
            ";;;;;;",
            "Lending;Paylater;;NoBrand;1;1;jan_25",
        ]
    )

    dataset = loader.read_records(content)

    assert [r.brand_id for r in dataset.records] == ["B3"]
    assert dataset.invalid_skipped == 1
    assert dataset.duplicates_skipped == 0


def test_read_records_can_fail_on_unknown_months():
    content = f"{HEADER}\nLending;Paylater;B4;Umbrella;7;300;xyz_25"

    with pytest.raises(loader.InvalidMonthError):
        loader.read_records(content, ImportOptions(unknown_month="fail"))


def test_read_records_honours_dash_separator():
    content = f"{HEADER}\nLending;Paylater;B3;Initech;7;300;mar-24"

    dataset = loader.read_records(content, ImportOptions(month_separator="-"))

    assert dataset.records[0].date == date(2024, 3, 1)
