import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import init_db
from .routers import connections, relationships, suggestions
from .services.dispatch import get_inference_queue
from .settings.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Kinship Inference")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Update for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Route Includes
# ----------------------
app.include_router(relationships.router, tags=["relationships"])
app.include_router(connections.router, tags=["connections"])
app.include_router(suggestions.router, tags=["suggestions"])


@app.on_event("startup")
async def on_startup():
    from . import models  # Required for SQLAlchemy model detection
    await init_db()
    get_inference_queue().start()


@app.on_event("shutdown")
async def on_shutdown():
    await get_inference_queue().stop()


@app.get("/healthz")
async def healthz():
    q = get_inference_queue()
    return {"ok": True, "inference_queue": {
        "pending": q.pending(), "dropped": q.dropped, "processed": q.processed,
        "workers_alive": q.workers_alive(),
    }}
