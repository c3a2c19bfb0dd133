"""
Paid-Question Escrow API - Main Application.

FastAPI application with CORS enabled for the mobile client. The lifespan
builds the escrow service for the configured storage backend and runs the
settlement sweep in the background.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import questions, wallet
from services.config import Settings, get_settings
from services.escrow_service import EscrowService
from services.factory import build_escrow_service, build_scheduler

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[EscrowService] = None,
) -> FastAPI:
    """
    Build the application.

    Tests pass their own settings and service; production uses the
    environment (see services/config.py).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or get_settings()
        logging.basicConfig(
            level=resolved.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        app.state.settings = resolved
        app.state.escrow_service = service or build_escrow_service(resolved)

        stop_event = asyncio.Event()
        task = None
        if resolved.settlement_enabled:
            scheduler = build_scheduler(app.state.escrow_service, resolved)
            task = asyncio.create_task(scheduler.run_forever(stop_event))

        logger.info(
            "Escrow API starting up",
            extra={"storage_backend": resolved.storage_backend, "version": __version__},
        )
        yield

        stop_event.set()
        if task is not None:
            await task
        logger.info("Escrow API shut down")

    app = FastAPI(
        title="Paid-Question Escrow API",
        description="Paid Q&A between users: escrowed payment, acceptance, answers, "
                    "automatic settlement and disputes.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # TODO: Restrict origins once the mobile client's web build has a fixed domain
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status, version and storage backend.
        """
        resolved = getattr(app.state, "settings", None)
        return {
            "status": "healthy",
            "version": __version__,
            "service": "question-escrow-api",
            "storage_backend": resolved.storage_backend if resolved else None,
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Paid-Question Escrow API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    app.include_router(questions.router, prefix="/api/v1", tags=["Questions"])
    app.include_router(wallet.router, prefix="/api/v1", tags=["Wallet"])

    return app


app = create_app()
