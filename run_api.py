"""
Run the bridge API server.

Deploys a bridge on a local chain from BRIDGE_* settings, archives its state
to the configured database on startup, and serves the read-only API:
  - API: python run_api.py
"""

import uvicorn

from cl8y_bridge.api import create_api_app
from cl8y_bridge.config import settings
from cl8y_bridge.db.database import archive_bridge_state, close_db, create_tables, init_db
from cl8y_bridge.services.devnet import build_local_bridge
from cl8y_bridge.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def main():
    """Run the API server."""
    setup_logging(settings.log_level)

    bridge = build_local_bridge(settings)
    app = create_api_app(bridge)

    @app.on_event("startup")
    async def on_startup():
        await init_db(settings.database_url)
        await create_tables()
        await archive_bridge_state(bridge)

    @app.on_event("shutdown")
    async def on_shutdown():
        await close_db()

    logger.info(
        "Starting bridge API",
        host=settings.api_host,
        port=settings.api_port,
        docs=f"http://{settings.api_host}:{settings.api_port}/docs",
    )

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
