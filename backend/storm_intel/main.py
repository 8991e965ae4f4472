import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storm_intel.config import settings
from storm_intel.database import SessionLocal, init_db
from storm_intel.errors import StormIntelError
from storm_intel.services.notifier import Notifier
from storm_intel.services.prediction_service import PredictiveStormService
from storm_intel.services.push_transport import WebPushTransport

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    service = PredictiveStormService(
        outlook_ttl=timedelta(minutes=settings.spc_cache_ttl_minutes),
        radius_miles=settings.prediction_radius_miles,
        avg_job_value=settings.avg_job_value,
    )
    transport = WebPushTransport(
        settings.vapid_private_key,
        settings.vapid_subject,
        ttl_seconds=settings.push_ttl_seconds,
        timeout_seconds=settings.push_timeout_seconds,
    )
    if not transport.configured:
        logger.warning("VAPID keys not configured; push notifications will fail")

    app.state.prediction_service = service
    app.state.notifier = Notifier(
        transport,
        SessionLocal,
        timeout_seconds=settings.push_timeout_seconds,
        icon_path=settings.push_icon_path,
        max_workers=settings.push_max_workers,
    )

    from storm_intel.tasks.scheduler import start_scheduler, stop_scheduler
    scheduler = start_scheduler(service)
    yield
    stop_scheduler(scheduler)
    app.state.notifier.close()


app = FastAPI(
    title="Storm Intel",
    description="Storm intensity heatmaps, canvassing opportunities and predictive alerts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"] if p not in ("query", "body", "path")), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation error", "details": details})


@app.exception_handler(StormIntelError)
async def storm_intel_error_handler(request: Request, exc: StormIntelError):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


from storm_intel.routers import heatmap, opportunities, predictions  # noqa: E402

app.include_router(heatmap.router, prefix="/api/v1")
app.include_router(opportunities.router, prefix="/api/v1")
app.include_router(predictions.router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok"}
