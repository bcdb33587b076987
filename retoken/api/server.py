"""
FastAPI Server - REST API for the Re-Token dashboard

Provides HTTP endpoints for position management, market regime control,
wallet session tracking, and runs the risk simulation engine as a
background task for the lifetime of the app.
"""

import random
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from retoken.analysis.base import BaseAnalysisDelegate
from retoken.api import routes
from retoken.api.state import build_state, get_state
from retoken.core.config import RetokenConfig


# ----------------------------------------------------
# FastAPI App
# ----------------------------------------------------

def create_app(
    config: Optional[RetokenConfig] = None,
    analyst: Optional[BaseAnalysisDelegate] = None,
    rng: Optional[random.Random] = None
) -> FastAPI:
    config = config if config is not None else RetokenConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        print("\n" + "="*60)
        print("🚀 Re-Token Risk Dashboard - Starting...")
        print("="*60)

        state = build_state(config, analyst=analyst, rng=rng)
        app.state.retoken = state
        print(f"📦 Loaded {len(state.store)} positions from {config.storage.db_path}")

        if config.api.autostart_engine:
            state.engine.start()
            print(f"⏱️  Simulation ticking every {config.simulation.tick_interval_ms} ms")

        print("✅ Re-Token Ready\n")

        yield

        print("🛑 Shutting down Re-Token...")
        await state.engine.stop()
        await state.lifecycle.wait_for_analyses()
        state.close()

    app = FastAPI(
        title="Re-Token Risk Dashboard",
        description="Auto-unwinding wrapped lending positions driven by a simulated safety score",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"service": "Re-Token Risk Dashboard", "status": "operational"}

    @app.get("/health")
    def health(request: Request):
        state = get_state(request)
        return {
            "status": "healthy",
            "engine_running": state.engine.is_running,
            "ticks": state.engine.tick_count,
            "storage": state.state_manager.get_statistics(),
        }

    app.include_router(routes.router)

    return app


app = create_app()


def main():
    """Run the dashboard API with uvicorn using environment configuration."""
    import uvicorn

    config = RetokenConfig.from_env()
    uvicorn.run(
        "retoken.api.server:app",
        host=config.api.host,
        port=config.api.port,
        reload=config.api.debug
    )


if __name__ == "__main__":
    main()
