import pytest

from merchant_kpi.settings import (
    BATCH_SIZE_ENV,
    MONTH_SEPARATOR_ENV,
    UNKNOWN_MONTH_ENV,
    ImportOptions,
)


def test_from_env_reads_overrides():
    options = ImportOptions.from_env(
        {BATCH_SIZE_ENV: "250", MONTH_SEPARATOR_ENV: "-", UNKNOWN_MONTH_ENV: "fail"}
    )

    assert options.batch_size == 250
    assert options.month_separator == "-"
    assert options.unknown_month == "fail"


def test_from_env_defaults():
    options = ImportOptions.from_env({})

    assert options == ImportOptions()
    assert options.batch_size == 500


@pytest.mark.parametrize(
    "kwargs",
    [
        {"month_separator": "/"},
        {"unknown_month": "keep"},
        {"batch_size": 0},
        {"dedup_key": ()},
        {"dedup_key": ("pillar", "tpv")},
    ],
)
def test_invalid_options_raise(kwargs):
    with pytest.raises(ValueError):
        ImportOptions(**kwargs)


def test_invalid_batch_size_env():
    with pytest.raises(ValueError, match=BATCH_SIZE_ENV):
        ImportOptions.from_env({BATCH_SIZE_ENV: "lots"})
