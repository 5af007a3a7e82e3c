"""
FlowNote server: the graph API under /api plus the Socket.IO trace channel.

    python -m flownote.server.main
    uvicorn flownote.server.main:socket_app --port 3001 --reload
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flownote.server.config import Settings, configure_logging
from flownote.server.routes.graph_routes import router
from flownote.server.trace.socket_server import create_socket_app

logger = logging.getLogger(__name__)

# .env is read here, before anything else looks at the environment.
settings = Settings.from_env()
configure_logging(settings)

# ── API ─────────────────────────────────────────────────────────────────────

app = FastAPI(title="FlowNote API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


# ── ASGI root ───────────────────────────────────────────────────────────────

# Socket.IO takes /socket.io/; everything else reaches `app`.
socket_app = create_socket_app(app, cors_origins=settings.cors_origins)


def run() -> None:
    import uvicorn

    logger.info("FlowNote serving %s on %s:%d", settings.server_root, settings.host, settings.port)
    uvicorn.run(
        "flownote.server.main:socket_app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
