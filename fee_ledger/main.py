from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fee_ledger.api.v1.balances.router import router as balances_router
from fee_ledger.api.v1.balances.scheduler import sweep_scheduler
from fee_ledger.api.v1.classes.router import router as classes_router
from fee_ledger.api.v1.payments.router import router as payments_router
from fee_ledger.api.v1.statements.router import router as statements_router
from fee_ledger.api.v1.students.router import router as students_router
from fee_ledger.api.v1.terms.router import router as terms_router
from fee_ledger.core.app_logger import get_logger, setup_logging
from fee_ledger.core.config import settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if settings.sweep_autostart:
        await sweep_scheduler.start()
    yield
    await sweep_scheduler.stop()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(title="Fee Ledger", lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(classes_router)
    app.include_router(students_router)
    app.include_router(terms_router)
    app.include_router(statements_router)
    app.include_router(payments_router)
    app.include_router(balances_router)

    return app


app = create_app()
