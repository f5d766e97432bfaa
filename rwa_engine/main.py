"""
RWA Opportunity Engine - FastAPI Application Entry Point

POST /v1/opportunities/score   → opportunity score + compliance enhancement
POST /v1/compliance/assess/*   → compliance assessment
GET  /v1/health                → health check
GET  /v1/status                → engine status snapshot
GET  /docs                     → OpenAPI / Swagger UI
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from rwa_engine.api.admin_endpoint import router as admin_router
from rwa_engine.api.compliance_endpoint import router as compliance_router
from rwa_engine.api.dependencies import get_engine
from rwa_engine.api.opportunity_endpoint import router as opportunity_router
from rwa_engine.core.auth import verify_token
from rwa_engine.core.config import get_settings
from rwa_engine.engine import Engine, build_engine

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.ConsoleRenderer() if get_settings().app_env == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("rwa_engine_starting", engine_version=settings.engine_version, app_env=settings.app_env)
    engine = build_engine(settings)
    engine.start()
    app.state.engine = engine
    yield
    logger.info("rwa_engine_shutting_down")
    await engine.shutdown()


app = FastAPI(
    title="RWA Opportunity Engine",
    description="Real-world-asset opportunity scoring and compliance assessment",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (message router + internal tools) ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_methods=["POST", "GET", "PUT", "DELETE"],
    allow_headers=["*"],
)

# ── Prometheus metrics ──
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── Routes ──
app.include_router(opportunity_router)
app.include_router(compliance_router)
app.include_router(admin_router)


@app.get("/v1/health", tags=["health"])
async def health():
    return {"status": "ok", "service": "rwa-opportunity-engine", "engine_version": get_settings().engine_version}


@app.get("/v1/status", tags=["health"])
async def status(engine: Engine = Depends(get_engine), token: dict = Depends(verify_token)):
    return engine.get_status()


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "rwa-opportunity-engine",
        "version": "1.0.0",
        "docs": "/docs",
        "score": "POST /v1/opportunities/score",
    }
