"""
FastAPI Application Entry Point

Integrates:
  - WhatsApp Cloud webhook (inbound messages)
  - Twilio voice webhook (missed calls)
  - Reconciliation loop (started/stopped with the app)
  - Health and operator routes

Run: uvicorn main:app --host 0.0.0.0 --port 3000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from api.followups import router as operations_router
from config import Config
from infra.bootstrap import RelayBootstrap
from transport.twilio import voice_router
from transport.whatsapp import router as whatsapp_router

# Setup logging
logging.basicConfig(
    level=Config.log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(relay_factory=RelayBootstrap) -> FastAPI:
    """
    Build the application.

    Args:
        relay_factory: Zero-argument callable returning a RelayBootstrap.
            Tests pass one wired to stub backends.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan: build the relay, run the reconciliation loop.
        """
        relay = relay_factory()
        app.state.relay = relay

        logger.info("=" * 60)
        logger.info("Missed-call relay starting up...")
        logger.info(f"Environment: {Config.ENVIRONMENT}")
        logger.info(f"Relay: {relay!r}")
        for problem in relay.notifier.config_problems():
            logger.critical(f"Notifier misconfigured: {problem}")
        logger.info("=" * 60)

        await relay.start()
        yield

        # Shutdown: let an in-flight tick finish its current follow-up
        logger.info("Missed-call relay shutting down...")
        await relay.shutdown()

    app = FastAPI(
        title="Missed-Call Relay",
        description="Missed-call follow-ups over WhatsApp",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Middleware for logging
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests."""
        logger.debug(f"{request.method} {request.url.path}")
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Request error: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"},
            )

    # Include routers
    app.include_router(whatsapp_router)
    app.include_router(voice_router)
    app.include_router(operations_router)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "OK BACKEND"

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=Config.PORT,
    )
