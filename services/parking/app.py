# ============================================================
# app.py - Entry point of the Parking service
# ------------------------------------------------------------
# Builds the FastAPI application:
#   - picks the storage backend and the booking penalty policy
#     from configuration (once, never switched at runtime)
#   - wires the LedgerManager with its event publisher + clock
#   - on startup: seeds default settings / accounts and marks
#     past reservations completed
# Run with: uvicorn parking.app:app
# ============================================================
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from parking import config
from parking.api import router
from parking.backends import BackendResolver, seed_defaults
from parking.dates import local_clock
from parking.errors import ParkingError
from parking.ledger import LedgerManager
from parking.logging_config import setup_logging
from parking.policy import get_booking_policy
from parking.publisher import make_publisher

logger = logging.getLogger(__name__)


def create_app(resolver: BackendResolver = None, ledger: LedgerManager = None,
               seed: bool = True, configure_logging: bool = False) -> FastAPI:
    if resolver is None:
        resolver = BackendResolver.from_config(
            config.STORAGE_BACKEND,
            json_path=config.JSON_STORAGE_PATH,
            database_url=config.DATABASE_URL,
        )
    if ledger is None:
        ledger = LedgerManager(
            resolver.resolve(),
            publisher=make_publisher(config.RABBITMQ_HOST),
            clock=local_clock(config.LOCAL_TZ),
            booking_policy=get_booking_policy(config.BOOKING_PENALTY_POLICY),
        )

    app = FastAPI(title="Parking Service")
    app.state.resolver = resolver
    app.state.ledger = ledger

    # Runs when uvicorn (or a `with TestClient(app)` block) starts.
    @app.on_event("startup")
    def start():
        if configure_logging:
            setup_logging()
        if seed:
            seed_defaults(
                resolver.resolve(),
                config.ADMIN_USERNAME,
                config.ADMIN_PASSWORD,
                demo_user=config.SEED_DEMO_USER,
            )
        ledger.complete_past_reservations()

    @app.exception_handler(ParkingError)
    def parking_error(request: Request, exc: ParkingError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.get("/health")
    def health():
        return {"ok": True, "backend": resolver.name}

    app.include_router(router)
    return app


app = create_app(configure_logging=True)
