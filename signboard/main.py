import os
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from signboard.db import Base, engine, ensure_settings_row, ensure_sqlite_schema
from signboard.models import admin_session, display_item, settings as settings_model  # noqa: F401
from signboard.api import auth, display, items, settings
from signboard.services.storage import MEDIA_DIR, ensure_storage
from signboard.services.realtime import feed

LOG_LEVEL = os.getenv("SIGNAGE_LOG_LEVEL", "INFO").strip().upper()
API_KEY = os.getenv("SIGNAGE_API_KEY", "").strip()
QUIET_ACCESS_LOG = os.getenv("SIGNAGE_QUIET_ACCESS_LOG", "1").strip().lower() in {"1", "true", "yes", "on"}
QUIET_WEBSOCKET_LOG = os.getenv("SIGNAGE_QUIET_WEBSOCKET_LOG", "1").strip().lower() in {"1", "true", "yes", "on"}

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

if QUIET_ACCESS_LOG:
    # Keep warning/error lines, suppress normal access noise (200/201 etc).
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

if QUIET_WEBSOCKET_LOG:
    # Display screens drop off the network routinely and reconnect on their own.
    logging.getLogger("websockets").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.protocols.websockets").setLevel(logging.CRITICAL)

Base.metadata.create_all(bind=engine)
ensure_sqlite_schema()
ensure_settings_row()
ensure_storage()

app = FastAPI(title="signboard")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {
        "ok": True,
        "service": "signboard",
        "time_utc": datetime.now(timezone.utc).isoformat(),
        "docs": "/docs",
    }


@app.get("/healthz")
def healthz():
    return {"ok": True, "revision": feed.revision, "realtime_clients": feed.client_count}


@app.websocket("/ws/updates")
async def ws_updates(websocket: WebSocket):
    await feed.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await feed.disconnect(websocket)
    except Exception:
        await feed.disconnect(websocket)


@app.on_event("startup")
async def startup_events() -> None:
    display.board.start()
    logger.info("Display board started with %d active items", len(display.board.items))


@app.on_event("shutdown")
async def shutdown_events() -> None:
    display.board.stop()
    items.editors.clear()


@app.middleware("http")
async def api_key_middleware(request: Request, call_next):
    if not API_KEY:
        return await call_next(request)
    path = request.url.path
    if path.startswith("/docs") or path.startswith("/openapi.json") or path.startswith("/redoc") or path.startswith("/storage"):
        return await call_next(request)
    if request.headers.get("X-API-Key") != API_KEY:
        return JSONResponse({"detail": "Unauthorized"}, status_code=401)
    return await call_next(request)


@app.middleware("http")
async def realtime_mutation_middleware(request: Request, call_next):
    response = await call_next(request)
    method = request.method.upper()
    path = request.url.path
    if response.status_code < 400 and method in {"POST", "PUT", "DELETE"}:
        watched_prefixes = ("/items", "/settings")
        if path.startswith(watched_prefixes):
            await feed.announce_content_change(path, method)
    return response

app.include_router(auth.router)
app.include_router(display.router)
app.include_router(items.router)
app.include_router(settings.router)

app.mount("/storage/media", StaticFiles(directory=MEDIA_DIR), name="storage")
