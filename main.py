"""
DataScope Analysis Engine — FastAPI Server (Port 8001)
=======================================================
Upload a table, get back column types, descriptive statistics,
correlations, trends and rule-based themes, with optional AI insights.

Run:
  uvicorn main:app --host 0.0.0.0 --port 8001 --reload
  # or
  python main.py
"""

import logging
from contextlib import asynccontextmanager

# Load .env file BEFORE settings read os.getenv()
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from datascope import __version__  # noqa: E402
from datascope.config import settings  # noqa: E402

# ── Logging ──
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("datascope")


# ── Lifespan: warm up ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    from datascope.api.v1.analysis import _get_orchestrator

    orchestrator = _get_orchestrator()
    logger.info(
        f"Engine warmed up: {len(orchestrator.theme_detector.rules)} theme rules, "
        f"AI provider '{orchestrator.reasoner.config.provider.value}'"
    )
    yield
    logger.info("Shutting down DataScope Analysis Engine")


# ── Create FastAPI app ──
app = FastAPI(
    title="DataScope Analysis Engine",
    description=(
        "Statistical exploration of uploaded tables: column type inference, "
        "descriptive statistics with IQR outliers, OLS trends, Pearson "
        "correlations, rule-based theme detection and optional AI insights."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Mount all API routes ──
from datascope.api.router import api_router  # noqa: E402
app.include_router(api_router, prefix="/api/v1")


# ── Root ──
@app.get("/", tags=["Root"])
async def root():
    return {
        "service": "DataScope Analysis Engine",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "analysis": "/api/v1/analysis (6 endpoints)",
        },
        "health": "/api/v1/analysis/health",
    }


# ── Direct run ──
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )
