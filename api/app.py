"""
Module 09D - FastAPI Application

Main application setup and configuration.

Usage:
    uvicorn api.app:app --reload

    # Or run directly
    python -m api.app
"""

import json
import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import allocations, distributions, health
from api.errors import (
    APIError,
    api_error_handler,
    generic_error_handler,
    merkledrop_error_handler,
)
from core.schemas.errors import MerkledropException


# Configure logging: respects MERKLEDROP_LOG_LEVEL env var and merkledrop.json log_level
def _resolve_log_level() -> int:
    """Resolve log level from env var or merkledrop.json, defaulting to INFO."""
    raw = os.getenv("MERKLEDROP_LOG_LEVEL")
    if raw is None:
        cfg_path = Path.cwd() / "merkledrop.json"
        if cfg_path.exists():
            try:
                with open(cfg_path) as f:
                    raw = json.load(f).get("log_level")
            except (OSError, ValueError, AttributeError):
                raw = None
    return getattr(logging, (raw or "INFO").upper(), logging.INFO)


logging.basicConfig(
    level=_resolve_log_level(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Merkledrop API",
        description="""
HTTP API for Merkle-tree token distributions.

An administrator commits one Merkle root on-chain per distribution; each
recipient later claims with a proof served by this API.

## Public endpoints

- **GET /distributions** - List distributions (filters + pagination)
- **GET /distributions/{id}** - Distribution details and claim statistics
- **GET /distributions/{id}/eligibility/{address}** - Can this address claim now?
- **GET /distributions/{id}/proof/{address}** - Claim proof
- **GET /users/{address}/distributions** - Every allocation for an address
- **GET /health** - Health check

## Admin endpoints (X-API-Key)

- **POST /distributions** - Create a pending distribution from allocations
- **POST /distributions/{id}/confirm** - Record the on-chain commit
- **POST /distributions/{id}/cancel** - Cancel (no claims recorded)
- **POST /distributions/{id}/sync** - Reconcile with on-chain state
- **POST /distributions/refresh** - Apply time-driven status transitions
- **GET /distributions/{id}/leaves** - Enumerate leaves
- **POST /allocations/validate** - Dry-run allocation validation

Amounts are decimal strings in token base units.
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(MerkledropException, merkledrop_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # Include routers
    app.include_router(health.router)
    app.include_router(distributions.router)
    app.include_router(allocations.router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
