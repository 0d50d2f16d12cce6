import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.audit.service import AuditMiddleware
from app.core.cycles.errors import CycleError
from app.core.cycles.router import router as cycles_router
from app.core.cycles.tasks import run_periodic_checks
from app.core.notifications.router import router as notifications_router
from app.logging_config import configure_logging
from app.settings import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    task = None
    if settings.NOTIFICATION_CHECK_ENABLED:
        task = asyncio.create_task(run_periodic_checks(settings.NOTIFICATION_CHECK_INTERVAL_HOURS))
    yield
    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def create_app() -> FastAPI:
    app = FastAPI(
        title="Timesheet Cycles API",
        version="0.1.0",
        docs_url="/docs" if settings.APP_DEBUG else None,
        redoc_url="/redoc" if settings.APP_DEBUG else None,
        lifespan=lifespan,
    )

    app.add_middleware(AuditMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_DEBUG else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CycleError)
    async def cycle_error_handler(request: Request, exc: CycleError):
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc), "code": exc.code})

    app.include_router(cycles_router)
    app.include_router(notifications_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
