from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from config import get_settings
from database import init_db, shutdown_db
from errors import register_error_handlers
from route_modules import combined_router
from scheduler import ExpirationScheduler
from service_modules.subscription_service import get_subscription_service
from sockets import manager

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger("fitfix")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(settings.database_url)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = ExpirationScheduler(get_subscription_service().scan_and_notify)
        scheduler.start()
    else:
        logger.info("Expiration scheduler disabled")

    yield

    if scheduler is not None:
        scheduler.stop()
    shutdown_db()


app = FastAPI(title="FitFix API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)
app.include_router(combined_router)


@app.websocket("/ws/{user_id}")
async def websocket_endpoint(websocket: WebSocket, user_id: str):
    await manager.connect(user_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(user_id, websocket)


@app.get("/health")
async def health():
    return {"success": True, "status": "OK", "environment": settings.app_env}


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    uvicorn.run(app, host="0.0.0.0", port=port)
