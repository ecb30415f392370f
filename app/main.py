import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import admin, billing, entitlements, health
from app.core.config import FRONTEND_URL, LOG_LEVEL
from app.core.errors import BillingError, ClientError, NotFoundError, RemoteProviderError, StoreError
from app.core.logging_config import setup_logging

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Analysis Entitlements API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        FRONTEND_URL,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.on_event("startup")
def run_startup_migrations():
    if os.getenv("RUN_MIGRATIONS") == "1":
        from app.db.migrate import run_migrations
        run_migrations()


# ============================================
# ✅ ERROR MAPPING
# ============================================

ERROR_STATUS = {
    ClientError: 400,
    NotFoundError: 404,
    RemoteProviderError: 502,
    StoreError: 500,
}


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
        500,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router)
app.include_router(entitlements.router)
app.include_router(billing.router)
app.include_router(admin.router)


@app.get("/")
def root():
    return {"status": "Analysis Entitlements API running"}
