import logging
import os
import sys

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from app import runtime
from app.db import init_db
from config import ALLOWED_ORIGINS, CACHE_WARMING_DELAY, DEBUG, DOCS, ENABLE_CACHE_WARMING

__version__ = "0.3.1"

IS_RUNNING_TESTS = "PYTEST_CURRENT_TEST" in os.environ or "pytest" in sys.modules
SKIP_RUNTIME_INIT = os.getenv("PHARMZONE_SKIP_RUNTIME_INIT") == "1"
runtime.scheduler = None
runtime.app = None

logger = logging.getLogger("uvicorn.error")
runtime.logger = logger


def use_route_names_as_operation_ids(app: FastAPI) -> None:
    for route in app.routes:
        if isinstance(route, APIRoute):
            route.operation_id = route.name


def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = {}
    for error in exc.errors():
        details[error["loc"][-1]] = error.get("msg")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder({"detail": details}),
    )


if SKIP_RUNTIME_INIT:
    app = None  # type: ignore[assignment]
    scheduler = None  # type: ignore[assignment]
else:
    app = FastAPI(
        title="PharmzoneAPI",
        description="Membership, dues and elections portal for a pharmacists' association",
        version=__version__,
        docs_url="/docs" if DOCS else None,
        redoc_url="/redoc" if DOCS else None,
    )

    scheduler = BackgroundScheduler({"apscheduler.job_defaults.max_instances": 20}, timezone="UTC")
    runtime.scheduler = scheduler
    runtime.app = app

    allowed_origins = [origin.strip() for origin in ALLOWED_ORIGINS if origin.strip()]
    if not allowed_origins:
        allowed_origins = ["*"]

    allow_credentials = True
    if "*" in allowed_origins:
        allowed_origins = ["*"]
        allow_credentials = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from app.jobs import register_scheduler_jobs  # noqa
    from app.routers import api_router  # noqa

    register_scheduler_jobs(scheduler)
    app.include_router(api_router)
    use_route_names_as_operation_ids(app)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    from app.redis import close_redis, init_redis, start_cache_warming

    def on_startup():
        init_db()
        if IS_RUNNING_TESTS:
            return

        init_redis()

        # scheduler first so the server comes up quickly
        scheduler.start()

        if ENABLE_CACHE_WARMING or not DEBUG:
            logger.info(f"Warming caches in background in {CACHE_WARMING_DELAY}s")
            start_cache_warming(delay=CACHE_WARMING_DELAY)

    def on_shutdown():
        if IS_RUNNING_TESTS:
            return
        if scheduler.running:
            scheduler.shutdown()
        close_redis()

    app.add_event_handler("startup", on_startup)
    app.add_event_handler("shutdown", on_shutdown)
