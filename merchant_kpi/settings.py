"""Shared configuration for merchant-kpi."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Tuple

DB_PATH_ENV = "MERCHANT_KPI_DB"
BATCH_SIZE_ENV = "MERCHANT_KPI_BATCH_SIZE"
MONTH_SEPARATOR_ENV = "MERCHANT_KPI_MONTH_SEPARATOR"
UNKNOWN_MONTH_ENV = "MERCHANT_KPI_UNKNOWN_MONTH"
CORS_ORIGINS_ENV = "MERCHANT_KPI_CORS_ORIGINS"

DEFAULT_DB_PATH = "merchant_kpi.db"
DEFAULT_BATCH_SIZE = 500
DEFAULT_MONTH_SEPARATOR = "_"
DEFAULT_UNKNOWN_MONTH = "skip"

MONTH_SEPARATORS = ("_", "-")
UNKNOWN_MONTH_POLICIES = ("skip", "fail")
RECORD_FIELDS = ("pillar", "product_type", "brand_id", "merchant_name", "date")
DEFAULT_DEDUP_KEY: Tuple[str, ...] = (
    "pillar",
    "brand_id",
    "merchant_name",
    "product_type",
    "date",
)


@dataclass(frozen=True)
class ImportOptions:
    """Knobs controlling a single CSV import run."""

    month_separator: str = DEFAULT_MONTH_SEPARATOR
    dedup_key: Tuple[str, ...] = DEFAULT_DEDUP_KEY
    batch_size: int = DEFAULT_BATCH_SIZE
    unknown_month: str = DEFAULT_UNKNOWN_MONTH

    def __post_init__(self) -> None:
        if self.month_separator not in MONTH_SEPARATORS:
            raise ValueError(
                f"Month separator must be one of {list(MONTH_SEPARATORS)} "
                f"(received {self.month_separator!r})"
            )
        if self.unknown_month not in UNKNOWN_MONTH_POLICIES:
            raise ValueError(
                f"Unknown month policy must be one of {list(UNKNOWN_MONTH_POLICIES)} "
                f"(received {self.unknown_month!r})"
            )
        if self.batch_size < 1:
            raise ValueError("Batch size must be a positive integer")
        if not self.dedup_key:
            raise ValueError("Deduplication key needs at least one field")
        unknown = set(self.dedup_key) - set(RECORD_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported deduplication fields: {sorted(unknown)}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ImportOptions":
        env = os.environ if environ is None else environ
        raw_batch = env.get(BATCH_SIZE_ENV)
        try:
            batch_size = int(raw_batch) if raw_batch else DEFAULT_BATCH_SIZE
        except ValueError as exc:
            raise ValueError(f"{BATCH_SIZE_ENV} must be an integer (received {raw_batch!r})") from exc
        return cls(
            month_separator=env.get(MONTH_SEPARATOR_ENV) or DEFAULT_MONTH_SEPARATOR,
            batch_size=batch_size,
            unknown_month=env.get(UNKNOWN_MONTH_ENV) or DEFAULT_UNKNOWN_MONTH,
        )


def database_path() -> str:
    return os.environ.get(DB_PATH_ENV) or DEFAULT_DB_PATH


def cors_origins() -> list[str]:
    raw = os.environ.get(CORS_ORIGINS_ENV) or "*"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
