from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

import shared.models  # noqa: F401  (registers tables on Base.metadata)
from shared.config_loader import settings
from shared.database import Base, engine, session_scope
from shared.exceptions import FactoryError
from shared.logger import get_logger
from shared.responses import fail
from shared.scheduler import auto_clock_out
from services.auth_service.server import router as auth_router
from services.auth_service.tools import bootstrap_admin
from services.workflow_service.server import router as water_bag_router
from services.workflow_service.packing_server import router as packing_router
from services.payroll_service.server import router as payroll_router
from services.inventory_service.server import router as inventory_router
from services.attendance_service.server import router as attendance_router

logger = get_logger("main")


def keep_alive_ping():
    """Ping KEEP_ALIVE_URL so free-tier hosts do not idle the server."""
    try:
        resp = httpx.get(settings.KEEP_ALIVE_URL, timeout=10)
        logger.info(f"Keep-alive ping: {resp.status_code} {settings.KEEP_ALIVE_URL}")
    except httpx.HTTPError as exc:
        logger.warning(f"Keep-alive ping failed: {exc}")


def _bootstrap():
    with session_scope() as db:
        bootstrap_admin(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Server starting up")

    if settings.CREATE_TABLES_ON_STARTUP:
        Base.metadata.create_all(bind=engine)
    _bootstrap()

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        auto_clock_out,
        CronTrigger(
            hour=settings.AUTO_CLOCK_OUT_HOUR,
            minute=settings.AUTO_CLOCK_OUT_MINUTE,
            timezone="UTC",
        ),
        id="auto_clock_out",
    )
    if settings.KEEP_ALIVE_URL:
        scheduler.add_job(
            keep_alive_ping,
            IntervalTrigger(minutes=settings.KEEP_ALIVE_MINUTES),
            id="keep_alive",
        )
    scheduler.start()
    logger.info(
        f"Scheduler started: auto clock-out at "
        f"{settings.AUTO_CLOCK_OUT_HOUR:02d}:{settings.AUTO_CLOCK_OUT_MINUTE:02d} UTC daily"
    )

    yield

    scheduler.shutdown()
    engine.dispose()


app = FastAPI(
    title="MatSplash Suite Backend",
    version="1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FactoryError)
async def factory_error_handler(request: Request, exc: FactoryError):
    return JSONResponse(status_code=exc.status_code, content=fail(exc.message, exc.code))


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=fail(str(exc.detail), type(exc).__name__),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return JSONResponse(status_code=422, content=fail(message, "ValidationError"))


app.include_router(auth_router)
app.include_router(water_bag_router)
app.include_router(packing_router)
app.include_router(payroll_router)
app.include_router(inventory_router)
app.include_router(attendance_router)


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
