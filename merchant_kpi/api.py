"""HTTP surface for importing merchant exports and serving dashboard aggregates."""
from __future__ import annotations

import dataclasses
import logging
from contextlib import closing
from datetime import date
from pathlib import Path
from typing import Literal, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from . import database, reporting, settings
from .importer import ImportResult, import_csv_text
from .repository import MerchantDataRepository
from .settings import ImportOptions

logger = logging.getLogger(__name__)

ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


class ImportDataRequest(BaseModel):
    csv_content: Optional[str] = Field(default=None, alias="csvContent")
    clear_existing: bool = Field(False, alias="clearExisting")
    month_separator: Optional[Literal["_", "-"]] = Field(default=None, alias="monthSeparator")

    model_config = ConfigDict(populate_by_name=True)


def _ensure_database(db_path: Path) -> None:
    if not db_path.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)
        database.init_db(db_path)


class MerchantDataService:
    """Wrapper around the core modules that enforces consistent database usage."""

    def __init__(
        self,
        database_path: Path | str | None = None,
        options: ImportOptions | None = None,
    ) -> None:
        self.database_path = Path(database_path or settings.database_path())
        self.options = options or ImportOptions.from_env()

    def _connection(self):
        _ensure_database(self.database_path)
        conn = database.get_connection(self.database_path)
        database.run_migrations(conn)
        return conn

    def import_data(self, request: ImportDataRequest) -> ImportResult:
        options = self.options
        if request.month_separator:
            options = dataclasses.replace(options, month_separator=request.month_separator)
        with closing(self._connection()) as conn:
            return import_csv_text(
                MerchantDataRepository(conn),
                request.csv_content or "",
                clear_existing=request.clear_existing,
                options=options,
            )

    def row_count(self) -> int:
        with closing(self._connection()) as conn:
            return MerchantDataRepository(conn).count()

    def monthly(
        self,
        *,
        pillar: Optional[str],
        product_type: Optional[str],
        start: Optional[date],
        end: Optional[date],
    ) -> dict:
        with closing(self._connection()) as conn:
            rows = reporting.monthly_totals(
                conn, pillar=pillar, product_type=product_type, start=start, end=end
            )
        return {
            "rows": [{"date": month, "tpt": tpt, "tpv": tpv} for month, tpt, tpv in rows],
        }

    def pillars(self, *, start: Optional[date], end: Optional[date]) -> dict:
        with closing(self._connection()) as conn:
            rows = reporting.pillar_breakdown(conn, start=start, end=end)
        return {
            "rows": [{"pillar": pillar, "tpt": tpt, "tpv": tpv} for pillar, tpt, tpv in rows],
        }

    def merchants(
        self,
        *,
        limit: int,
        pillar: Optional[str],
        start: Optional[date],
        end: Optional[date],
    ) -> dict:
        with closing(self._connection()) as conn:
            rows = reporting.top_merchants(conn, limit=limit, pillar=pillar, start=start, end=end)
        return {
            "rows": [
                {"brandId": brand_id, "merchantName": name, "tpt": tpt, "tpv": tpv}
                for brand_id, name, tpt, tpv in rows
            ],
        }


def create_app(database_path: Path | str | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    service = MerchantDataService(database_path=database_path)
    app = FastAPI(title="merchant-kpi", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=ALLOWED_HEADERS,
    )

    @app.post("/import-data")
    def import_data(request: ImportDataRequest):
        if not request.csv_content:
            return JSONResponse(status_code=400, content={"error": "CSV content is required"})
        try:
            result = service.import_data(request)
        except Exception as exc:
            logger.exception("Import request failed")
            return JSONResponse(
                status_code=500,
                content={
                    "error": str(exc) or "Import failed",
                    "imported": 0,
                    "skipped": 0,
                    "errors": 1,
                    "message": "Import failed",
                },
            )
        logger.info("Import completed: %s", result.as_response())
        return result.as_response()

    @app.get("/reports/monthly")
    def reports_monthly(
        pillar: Optional[str] = Query(default=None),
        product_type: Optional[str] = Query(default=None, alias="productType"),
        start: Optional[date] = Query(default=None),
        end: Optional[date] = Query(default=None),
    ):
        return service.monthly(pillar=pillar, product_type=product_type, start=start, end=end)

    @app.get("/reports/pillars")
    def reports_pillars(
        start: Optional[date] = Query(default=None),
        end: Optional[date] = Query(default=None),
    ):
        return service.pillars(start=start, end=end)

    @app.get("/reports/merchants")
    def reports_merchants(
        limit: int = Query(default=10, ge=1, le=100),
        pillar: Optional[str] = Query(default=None),
        start: Optional[date] = Query(default=None),
        end: Optional[date] = Query(default=None),
    ):
        return service.merchants(limit=limit, pillar=pillar, start=start, end=end)

    @app.get("/health")
    def health():
        return {"status": "ok", "rows": service.row_count()}

    return app


def app_factory() -> FastAPI:
    """Entry point used by ASGI servers such as uvicorn."""

    return create_app()


app = app_factory()


if __name__ == "__main__":  # pragma: no cover - convenience for manual testing
    import uvicorn

    uvicorn.run("merchant_kpi.api:app", host="0.0.0.0", port=8000)
