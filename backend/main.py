from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from init_db import init_database
from api import meta, workspace, team, tasks, communication, templates
from api import marketplace, security, lifecycle
from config.app_config import app_config
from services.lifecycle_scheduler import start_scheduler, stop_scheduler
from services.websocket import websocket_endpoint
import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging() -> Path:
    """Root logger to stdout and a rotating backend.log (10MB x 5) under the log dir"""
    log_dir = app_config.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "backend.log"
    level = getattr(logging, app_config.log_level, logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [
        RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"),
        logging.StreamHandler(sys.stdout),
    ]
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root_logger.addHandler(handler)
    return log_file


logger = logging.getLogger(__name__)
logger.info(f"Logging initialized: {configure_logging()}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown"""
    logger.info("Starting Workspace Hub...")
    init_database()

    try:
        start_scheduler()
        logger.info("✅ Lifecycle scheduler started")
    except Exception as e:
        logger.warning(f"Could not start lifecycle scheduler: {e}")

    logger.info("Application startup complete")

    yield

    logger.info("Stopping background services...")
    try:
        stop_scheduler()
        logger.info("✅ Lifecycle scheduler stopped")
    except Exception as e:
        logger.warning(f"Failed to stop lifecycle scheduler: {e}")

    logger.info("Application shutdown complete")


app = FastAPI(
    title=meta.SERVICE_NAME,
    description="Event workspaces: teams, tasks, channels, templates and lifecycle",
    version=meta.SERVICE_VERSION,
    lifespan=lifespan
)

# Configure CORS - allow all origins, the API is consumed by separate frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag", "Content-Disposition"],
)

# Include API routers
app.include_router(meta.router, prefix="/api", tags=["meta"])
app.include_router(workspace.router, prefix="/api/workspace", tags=["workspace"])
app.include_router(team.router, prefix="/api/team", tags=["team"])
app.include_router(tasks.router, prefix="/api/task", tags=["tasks"])
app.include_router(communication.router, prefix="/api/communication", tags=["communication"])
app.include_router(templates.router, prefix="/api/templates", tags=["templates"])
app.include_router(marketplace.router, prefix="/api/marketplace", tags=["marketplace"])
app.include_router(security.router, prefix="/api/security", tags=["security"])
app.include_router(lifecycle.router, prefix="/api/lifecycle", tags=["lifecycle"])


@app.websocket("/api/ws")
async def websocket_route(websocket: WebSocket):
    """WebSocket endpoint for real-time updates"""
    await websocket_endpoint(websocket)


@app.get("/")
def root():
    """Root endpoint - API only"""
    return {
        "message": meta.SERVICE_NAME,
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"🚀 Starting {meta.SERVICE_NAME} on http://{app_config.server_host}:{app_config.server_port}...")
    uvicorn.run(app, host=app_config.server_host, port=app_config.server_port)
