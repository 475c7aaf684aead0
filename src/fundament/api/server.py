"""
Read-only HTTP API over a Fundament engine.

Exposes the cached values and the status of every data source:

- ``GET /health``         service status
- ``GET /sources``        status of every data source
- ``GET /sources/{key}``  latest cached value of one data source

Run it with ``uvicorn --factory fundament.api.server:create_app``; without an
engine argument the factory builds one from the default configuration.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException

from ..engine import Fundament
from ..utils import is_plain, summarise


def create_app(engine: Optional[Fundament] = None) -> FastAPI:
    """Build the API around ``engine``."""
    engine = engine or Fundament.from_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        engine.shutdown()

    app = FastAPI(title="Fundament API", version="0.1.0", lifespan=lifespan)
    app.state.engine = engine

    @app.get("/health", summary="Health check", tags=["system"])
    async def health() -> Dict[str, Any]:
        """Return a simple health check status."""
        return {"status": "ok", "sources": len(engine.keys())}

    @app.get("/sources", summary="Data source status", tags=["sources"])
    async def sources() -> Dict[str, Any]:
        """Return the status of every registered data source."""
        return engine.status()

    @app.get("/sources/{key}", summary="Cached value", tags=["sources"])
    async def cached_value(key: str) -> Dict[str, Any]:
        """Return the latest cached value of a data source."""
        value = engine.get(key)
        if value is None:
            raise HTTPException(status_code=404, detail=f"No cached value for '{key}'")
        if is_plain(value):
            return {"key": key, "value": value}
        return {"key": key, "summary": summarise(value)}

    return app
