# civreg/main.py
import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi.errors import RateLimitExceeded

from civreg.api.router import api_router
from civreg.core.config import settings
from civreg.core.db import close_db
from civreg.core.errors import register_error_handlers
from civreg.core.indexes import startup_tasks
from civreg.core.rate_limit import limiter, rate_limit_handler

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = os.getenv("APP_NAME", "Civil Registry Requests")
APP_VERSION = os.getenv("APP_VERSION", "0.1.0")

# local fronts plus whatever CORS_ORIGINS adds
defaults = {
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
}
CORS_ORIGINS = sorted(set(settings.cors_origin_list) | defaults)

app = FastAPI(title=APP_NAME, version=APP_VERSION)

# CORS first
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
register_error_handlers(app)

app.include_router(api_router, prefix="/api")

@app.get("/health")
async def health():
    return {"ok": True}

@app.get("/ready")
async def ready():
    return {"ready": True}

# indexes and status migration (idempotent)
@app.on_event("startup")
async def startup():
    await startup_tasks()
    logger.info("%s %s started", APP_NAME, APP_VERSION)

@app.on_event("shutdown")
async def shutdown_db_client():
    await close_db()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("civreg.main:app", reload=True, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
