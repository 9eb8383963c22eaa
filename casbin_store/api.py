"""
FastAPI app over the policy repository.
Keep as `uvicorn casbin_store.api:app`.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .config import StoreOptions, load_options
from .repository import CasbinRepository


def create_app(options: Optional[StoreOptions] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repo = await CasbinRepository.create(options or load_options())
        app.state.repo = repo
        try:
            yield
        finally:
            await repo.close()

    app = FastAPI(title="casbin-store", version=__version__, lifespan=lifespan)

    # Include routers
    from .routes import base as base_routes
    from .routes import policies as policies_routes

    app.include_router(base_routes.router)
    app.include_router(policies_routes.router)
    return app


app = create_app()
