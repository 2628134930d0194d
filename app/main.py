from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from app.api import router
from app.request_logger import RequestLoggerMiddleware
from logging_config import configure_logging
from services.dispatcher import Dispatcher, build_default_dispatcher
from settings import Settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        app.state.dispatcher.close()


def create_app(
    dispatcher: Optional[Dispatcher] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    configure_logging(settings.log_level if settings is not None else None)
    if dispatcher is None:
        dispatcher = build_default_dispatcher(settings)

    app = FastAPI(
        title="mytagdata",
        description="Receives wireless tag readings and forwards them to time-series sinks.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.dispatcher = dispatcher
    app.add_middleware(RequestLoggerMiddleware)
    app.include_router(router)
    return app
