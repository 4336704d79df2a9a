"""
Backend entry point.

Architecture:
- One Python process, one asyncio event loop
- The curriculum graph is loaded once at startup and shared read-only
- Each chat session owns a traversal engine whose timed deliveries run
  as tasks on the same loop

Run with: python main.py [--dev] [--port PORT]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dialogue.config import (
    get_api_port,
    get_content_csv_path,
    get_overrides_path,
    is_dev_mode,
)
from dialogue.delivery.sessions import end_all_sessions
from dialogue.graph.loader import build_store
from dialogue.graph.store import GraphNotLoadedError, get_store, set_store
from web_api.routes.chat import router as chat_router

logger = logging.getLogger(__name__)

if os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(dsn=os.environ["SENTRY_DSN"], traces_sample_rate=0.0)


def _graph_loaded() -> bool:
    try:
        return get_store().is_loaded
    except GraphNotLoadedError:
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Loads the curriculum unless a store was already installed (tests do
    this), then ends every live session on shutdown.
    """
    if not _graph_loaded():
        csv_path = get_content_csv_path()
        logger.info(f"Loading curriculum from {csv_path}")
        set_store(build_store(csv_path, get_overrides_path()))

    yield

    end_all_sessions()


app = FastAPI(
    title="Curriculum Chat API",
    lifespan=lifespan,
)

# CORS configuration
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        FRONTEND_URL,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)


@app.get("/health")
async def health():
    """Health check endpoint with curriculum status."""
    loaded = _graph_loaded()
    return {
        "status": "healthy" if loaded else "starting",
        "graph_loaded": loaded,
        "graph_nodes": get_store().node_count if loaded else 0,
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Curriculum Chat Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode (verbose logging, admin commands on)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.dev:
        os.environ["DEV_MODE"] = "true"
        os.environ.setdefault("ADMIN_COMMANDS_ENABLED", "true")

    logging.basicConfig(
        level=logging.DEBUG if is_dev_mode() else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
