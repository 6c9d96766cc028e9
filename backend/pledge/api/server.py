"""FastAPI server for the Pledge bet lifecycle."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pledge import __version__
from pledge.bets.exceptions import BetError
from pledge.bets.lifecycle import BetLifecycleService
from pledge.config import Settings, get_settings
from pledge.services.payments import create_stripe_client

from .routes import bets

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "invalid_input": 422,
    "not_found": 404,
    "invalid_state": 409,
    "payment_mismatch": 409,
    "gateway_error": 502,
    "data_provider_error": 502,
}


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API application.

    The payment client is opened for the lifetime of the app. Tests can skip
    the lifespan and override ``get_service`` instead.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Starting Pledge API ({'paper' if settings.paper_mode else 'live'} payments)"
        )
        async with create_stripe_client(settings) as gateway:
            app.state.service = BetLifecycleService.from_settings(settings, gateway)
            yield
        logger.info("Pledge API stopped")

    app = FastAPI(title="Pledge API", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BetError)
    async def handle_bet_error(request: Request, exc: BetError) -> JSONResponse:
        status_code = ERROR_STATUS_CODES.get(exc.kind, 400)
        if status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.kind, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        first = exc.errors()[0]
        field = ".".join(str(x) for x in first["loc"] if x != "body")
        return JSONResponse(
            status_code=422,
            content={"error": "invalid_input", "message": f"{field}: {first['msg']}"},
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "healthy",
            "service": "pledge-api",
            "version": __version__,
            "payments": "paper" if settings.paper_mode else "live",
        }

    app.include_router(bets.router)

    return app
