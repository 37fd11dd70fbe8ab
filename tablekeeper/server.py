"""FastAPI server exposing the reservation engine to the orchestration layer."""

import logging
from datetime import date, datetime
from typing import Any

import uvicorn
from fastapi import Body, FastAPI, Query, Request
from pydantic import BaseModel, Field

from tablekeeper.config import Settings, get_settings, setup_logging
from tablekeeper.models import (
    Alternative,
    AvailabilityResult,
    BackendAction,
    CapacityConfig,
    EngineContext,
    EngineResponse,
    Reservation,
    ReservationStats,
    RestaurantTable,
)
from tablekeeper.services.availability import AvailabilityEngine
from tablekeeper.services.capacity_policy import CapacityPolicy
from tablekeeper.services.repository import (
    InMemoryTableRepository,
    SQLiteConfigStore,
    SQLiteReservationRepository,
    TableRepository,
    load_tables_file,
)
from tablekeeper.services.reservation_engine import ReservationEngine

logger = logging.getLogger(__name__)


class ActionRequest(BaseModel):
    """An action sent by the orchestrator for one caller."""

    action: BackendAction
    phone: str = Field(..., description="Caller phone number")
    now: datetime | None = Field(None, description="Reference instant for relative dates")


class TableQuery(BaseModel):
    date: date
    time: str
    party_size: int = Field(..., gt=0)
    exclude_reservation_id: str | None = None


class TableAvailability(BaseModel):
    """Assignable tables, best first, with alternative times when none fit."""

    tables: list[RestaurantTable]
    suggested: RestaurantTable | None = None
    alternatives: list[Alternative] = Field(default_factory=list)


def build_engine(
    settings: Settings, tables: TableRepository | None = None
) -> ReservationEngine:
    """Wire the engine with the configured stores.

    Reservations and capacity overrides share the SQLite file; tables come
    from ``tables_path`` unless a repository is passed in.
    """
    if tables is None:
        tables = load_tables_file(settings.tables_path) if settings.tables_path else InMemoryTableRepository()
    policy = CapacityPolicy(store=SQLiteConfigStore(settings.database_path))
    reservations = SQLiteReservationRepository(settings.database_path)
    return ReservationEngine(
        AvailabilityEngine(policy, reservations),
        reservations,
        tables=tables,
        verify_table_reassignment=settings.verify_table_reassignment,
    )


def create_app(engine: ReservationEngine | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        engine: Pre-built engine (tests); built from settings when omitted
    """
    app = FastAPI(
        title="TableKeeper",
        description="Availability and table assignment for restaurant reservations",
    )
    app.state.engine = engine if engine is not None else build_engine(get_settings())

    def _engine(request: Request) -> ReservationEngine:
        return request.app.state.engine

    @app.get("/health")
    async def health() -> dict:
        return {"status": "healthy"}

    @app.post("/tenants/{tenant}/actions", response_model=EngineResponse)
    def execute_action(tenant: str, body: ActionRequest, request: Request) -> EngineResponse:
        ctx = EngineContext(tenant=tenant, phone=body.phone, now=body.now)
        return _engine(request).execute(body.action, ctx)

    @app.get("/tenants/{tenant}/stats", response_model=ReservationStats)
    def reservation_stats(
        tenant: str,
        request: Request,
        phone: str = Query(...),
        now: datetime | None = Query(None),
    ) -> ReservationStats:
        return _engine(request).get_stats(tenant, phone, now)

    @app.get("/tenants/{tenant}/availability", response_model=AvailabilityResult)
    def availability(
        tenant: str,
        request: Request,
        day: date = Query(..., alias="date"),
        time: str = Query(...),
        party_size: int = Query(..., gt=0),
        exclude_reservation_id: str | None = Query(None),
    ) -> AvailabilityResult:
        return _engine(request).availability.check(
            tenant, day, time, party_size, exclude_reservation_id
        )

    @app.get("/tenants/{tenant}/reservations", response_model=list[Reservation])
    def reservations_for_day(
        tenant: str, request: Request, day: date = Query(..., alias="date")
    ) -> list[Reservation]:
        return _engine(request).list_day(tenant, day)

    @app.get("/tenants/{tenant}/config", response_model=CapacityConfig)
    def get_config(tenant: str, request: Request) -> CapacityConfig:
        return _engine(request).availability.policy.get_config(tenant)

    @app.patch("/tenants/{tenant}/config", response_model=CapacityConfig)
    def update_config(
        tenant: str, request: Request, patch: dict[str, Any] = Body(...)
    ) -> CapacityConfig:
        return _engine(request).availability.policy.update_config(tenant, patch)

    @app.post("/tenants/{tenant}/tables/available", response_model=TableAvailability)
    def available_tables(tenant: str, query: TableQuery, request: Request) -> TableAvailability:
        engine = _engine(request)
        tables = engine.tables.list_tables(tenant) if engine.tables is not None else []
        day_reservations = engine.reservations.list_active_by_date(tenant, query.date)
        free = engine.table_assignment.list_available(
            tenant,
            query.date,
            query.time,
            query.party_size,
            tables,
            day_reservations,
            query.exclude_reservation_id,
        )
        alternatives = []
        if not free:
            alternatives = engine.table_assignment.suggest_alternative_times_by_tables(
                tenant,
                query.date,
                query.time,
                query.party_size,
                tables,
                day_reservations,
                exclude_reservation_id=query.exclude_reservation_id,
            )
        return TableAvailability(
            tables=free,
            suggested=free[0] if free else None,
            alternatives=alternatives,
        )

    return app


def main() -> None:
    """Run the server with uvicorn."""
    settings = get_settings()
    setup_logging(settings)
    logger.info(f"Starting TableKeeper on {settings.server_host}:{settings.server_port}")
    uvicorn.run(
        create_app(),
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
