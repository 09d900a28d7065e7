from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from manabase.api import cards_router, health_router
from manabase.config import settings
from manabase.jobs.scheduler import RefreshScheduler
from manabase.models.failure import KnownError
from manabase.services.card_service import CardService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the card service, load bulk data and start background refresh."""
    service = CardService.from_settings(settings)
    await service.init()
    app.state.card_service = service

    scheduler = RefreshScheduler(
        service,
        bulk_interval=settings.bulk_check_interval,
        price_interval=settings.price_refresh_interval,
    )
    if settings.scheduler_enabled:
        scheduler.start()
    app.state.scheduler = scheduler

    yield

    await scheduler.stop()
    await service.aclose()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("manabase"),
    lifespan=lifespan,
)

app.include_router(cards_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Render known failures as FailureDetail bodies."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_detail().model_dump(mode="json"),
    )
