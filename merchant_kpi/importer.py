"""Batch loading and the end-to-end CSV import workflow.

An import optionally purges the store, parses and deduplicates the payload,
then writes the surviving records in sequential fixed-size batches. Batches
commit independently: when one fails the earlier batches stay persisted and
the remaining ones are never attempted.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Protocol, Sequence

from .loader import InvalidMonthError, MerchantRecord, read_records
from .repository import StoreError
from .settings import DEFAULT_BATCH_SIZE, ImportOptions

logger = logging.getLogger(__name__)


class MerchantStore(Protocol):
    def insert_many(self, records: Sequence[MerchantRecord]) -> int: ...

    def delete_all(self) -> int: ...


class BatchInsertError(StoreError):
    """Raised when a batch insert fails part way through an import."""

    def __init__(self, message: str, *, imported: int, batch_number: int) -> None:
        super().__init__(message)
        self.imported = imported
        self.batch_number = batch_number


@dataclass
class ImportResult:
    imported: int
    duplicates_skipped: int = 0
    invalid_skipped: int = 0
    cleared: bool = False
    errors: int = 0
    message: str = "Data imported successfully"

    @property
    def skipped(self) -> int:
        return self.duplicates_skipped + self.invalid_skipped

    def as_response(self) -> dict[str, object]:
        return {
            "imported": self.imported,
            "duplicatesSkipped": self.duplicates_skipped,
            "invalidSkipped": self.invalid_skipped,
            "cleared": self.cleared,
            "errors": self.errors,
            "message": self.message,
        }

    def as_summary(self) -> dict[str, object]:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": self.errors,
            "message": self.message,
        }


def load_in_batches(
    store: MerchantStore,
    records: Sequence[MerchantRecord],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Insert ``records`` batch by batch and return the number persisted."""
    if batch_size < 1:
        raise ValueError("Batch size must be a positive integer")

    total_batches = math.ceil(len(records) / batch_size)
    inserted = 0
    for number, offset in enumerate(range(0, len(records), batch_size), start=1):
        batch = records[offset:offset + batch_size]
        logger.info("Inserting batch %d/%d (%d records)", number, total_batches, len(batch))
        try:
            store.insert_many(batch)
        except Exception as exc:
            raise BatchInsertError(
                f"Batch {number}/{total_batches} failed after {inserted} records: {exc}",
                imported=inserted,
                batch_number=number,
            ) from exc
        inserted += len(batch)
        logger.info("Inserted %d/%d records", inserted, len(records))
    return inserted


def import_csv_text(
    store: MerchantStore,
    content: str,
    *,
    clear_existing: bool = False,
    options: ImportOptions | None = None,
) -> ImportResult:
    """Import a semicolon-delimited export into ``store``.

    Store failures propagate to the caller, as does an unparseable month
    when ``options.unknown_month`` is ``"fail"``.
    """
    options = options or ImportOptions()

    if clear_existing:
        removed = store.delete_all()
        logger.info("Cleared %s existing rows before import", removed)

    dataset = read_records(content, options)
    imported = load_in_batches(store, dataset.records, options.batch_size)
    logger.info("Import complete: %d records imported", imported)
    return ImportResult(
        imported=imported,
        duplicates_skipped=dataset.duplicates_skipped,
        invalid_skipped=dataset.invalid_skipped,
        cleared=clear_existing,
    )


def try_import_csv_text(
    store: MerchantStore,
    content: str,
    *,
    clear_existing: bool = False,
    options: ImportOptions | None = None,
) -> ImportResult:
    """Variant of :func:`import_csv_text` that reports failures in the result."""
    try:
        return import_csv_text(
            store,
            content,
            clear_existing=clear_existing,
            options=options,
        )
    except (StoreError, InvalidMonthError) as exc:
        logger.error("Import failed: %s", exc)
        return ImportResult(imported=0, cleared=False, errors=1, message=str(exc) or "Import failed")
