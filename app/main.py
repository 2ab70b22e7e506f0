import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.academic_sessions.router import router as academic_sessions_router
from app.api.v1.dues.router import router as dues_router
from app.api.v1.fee_reports.router import router as fee_reports_router
from app.api.v1.fee_schedules.router import router as fee_schedules_router
from app.api.v1.occasional_fees.router import router as occasional_fees_router
from app.api.v1.settlements.router import router as settlements_router
from app.core.config import settings


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Fee Ledger Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(academic_sessions_router)
    app.include_router(fee_schedules_router)
    app.include_router(dues_router)
    app.include_router(occasional_fees_router)
    app.include_router(settlements_router)
    app.include_router(fee_reports_router)

    return app


app = create_app()
