"""
Main entry point for FastAPI application.
"""
from contextlib import asynccontextmanager
from pathlib import Path
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from app.routes import auth, calendar, contacts, contracts, dashboard, deals, payments, players
from app.routes.helpers import base_context
from app.services.errors import NotFoundError
from app.utils.db_async import init_db, dispose_engine, describe_database_url, DATABASE_URL
from app.utils.formatting import calculate_age, format_date, format_euro

from app.logging_config import setup_logging
from app.config import settings

import logging
logger = logging.getLogger(__name__)

setup_logging(
    level=settings.log_level,
    access_log=settings.access_log,
    sql_echo=settings.sql_echo,
)

APP_DIR = Path(__file__).resolve().parent


@asynccontextmanager
async def lifespan(app: FastAPI):
    should_init_db = (
        settings.is_dev
        and settings.auto_init_db
        and not os.getenv("FLY_APP_NAME")
    )

    if should_init_db:
        logger.info("Running init_db()…")
        logger.info(f"DB target: {describe_database_url(DATABASE_URL)}")
        try:
            await init_db()
            logger.info("DB ready.")
        except Exception:
            logger.exception("init_db failed")
            raise
    else:
        logger.info("Skipping init_db(); auto_init_db disabled or managed deployment detected")

    # Hand control to the application
    yield

    # Shutdown: dispose engine cleanly
    try:
        logger.info("Disposing DB engine…")
        await dispose_engine()
        logger.info("DB engine disposed.")
    except Exception:
        logger.exception("Failed to dispose DB engine")


def build_templates() -> Jinja2Templates:
    templates = Jinja2Templates(directory=str(APP_DIR / "templates"))
    templates.env.filters["euro"] = format_euro
    templates.env.filters["date"] = format_date
    templates.env.filters["age"] = calculate_age
    return templates


# load in app details
app = FastAPI(title="AgentPlay", lifespan=lifespan)
app.mount("/static", StaticFiles(directory=str(APP_DIR / "static")), name="static")
app.state.templates = build_templates()
app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(players.router)
app.include_router(deals.router)
app.include_router(contracts.router)
app.include_router(payments.router)
app.include_router(calendar.router)
app.include_router(contacts.router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    """Missing or foreign rows render a 404 (JSON for API callers)."""
    if "/api/" in request.url.path or "application/json" in request.headers.get("accept", ""):
        return JSONResponse(status_code=404, content={"detail": str(exc)})
    return request.app.state.templates.TemplateResponse(
        "errors/404.html",
        base_context(request, message=str(exc)),
        status_code=404,
    )


@app.get("/health")
async def health_check():
    """Health Check Endpoint"""
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
