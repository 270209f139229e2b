"""FastAPI app — liveness routes + WebSocket wake-word detection bridge.

Data flow:
  1. Client opens a WebSocket on ``/`` and receives ``{"status": "connected"}``.
  2. Client streams raw PCM-16 (16 kHz, mono) binary frames.
  3. Each frame → Vosk recognizer → partial/final transcript.
  4. Non-empty transcript → ``{"transcript": ...}`` to the client.
  5. Transcript → wake-phrase matcher → ``{"wakeWordDetected": true}`` on a hit.

The Vosk model is loaded once in the lifespan.  If it cannot be loaded the
lifespan raises and the server never starts serving.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from wake_engine import __version__
from wake_engine.audio.decoder import VoskDecoderAdapter, load_model
from wake_engine.config import load_settings, load_wake_config
from wake_engine.constants import LIVENESS_TEXT
from wake_engine.debug import debug_logger
from wake_engine.pipeline.registry import SessionRegistry
from wake_engine.telemetry import init_telemetry

load_dotenv()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load the Vosk model and build the session registry at startup."""
    init_telemetry()

    if getattr(app.state, "registry", None) is None:
        settings = load_settings()
        wake_config = load_wake_config()

        logger.info("Loading Vosk model from %s…", settings.model_path)
        model = load_model(settings.model_path)
        adapter = VoskDecoderAdapter(model, max_alternatives=settings.max_alternatives)
        app.state.registry = SessionRegistry(adapter, wake_config)
        logger.info("Vosk model ready.")

    yield

    logger.info("Shutting down with %d active sessions.", app.state.registry.active_count())


def create_app(registry: Optional[SessionRegistry] = None) -> FastAPI:
    """Build the app. Passing *registry* skips model loading (used by tests)."""
    app = FastAPI(title="Wake Engine", version=__version__, lifespan=lifespan)
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=PlainTextResponse)
    async def liveness() -> str:
        return LIVENESS_TEXT

    @app.get("/health")
    async def health(request: Request) -> dict:
        registry = request.app.state.registry
        return {"status": "ok", "sessions": registry.active_count() if registry else 0}

    @app.get("/debug/events")
    async def debug_events(request: Request, limit: int = 100) -> dict:
        registry = request.app.state.registry
        log = registry.debug_log if registry else debug_logger
        return {"events": log.get_recent_events(limit)}

    @app.websocket("/")
    async def wake_stream(websocket: WebSocket) -> None:
        await websocket.app.state.registry.handle_connection(websocket)

    return app


app = create_app()


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    import uvicorn

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )
    logger.info("Server listening on port %d", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
