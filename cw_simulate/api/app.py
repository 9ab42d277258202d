from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from ..engine.simulator import Simulator
from ..engine.watcher import Watcher
from ..version import __version__
from .routes import router as contract_router


def setup_cors(app: FastAPI) -> None:
    """Permissive CORS: the simulator is a local development tool."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=False,
        max_age=600,
    )


def create_app(simulator: Simulator, *, watcher: Optional[Watcher] = None) -> FastAPI:
    """
    FastAPI factory. Serves the contract routes over an existing Simulator;
    when a watcher is given it runs for the lifetime of the app.
    """

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        if watcher is not None:
            watcher.start()
        try:
            yield
        finally:
            if watcher is not None:
                watcher.stop()

    app = FastAPI(title="cosmwasm-simulate", version=__version__, lifespan=_lifespan)
    app.state.simulator = simulator

    setup_cors(app)
    app.include_router(contract_router, prefix="")

    @app.get("/version", include_in_schema=False)
    def version() -> dict:
        return {"version": __version__, "chain_id": simulator.chain.settings.chain_id}

    return app
