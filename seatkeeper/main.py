from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import Settings, get_settings
from .context import AppContext
from .api.routers import health as health_router
from .api.routers import auth as auth_router
from .api.routers import sessions as sessions_router
from .api.routers import registrations as registrations_router
from .api.routers import roster as roster_router
from .api.routers import events as events_router
from .api.routers import metrics as metrics_router
from .observability.logging import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware
import uvicorn


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    if context is not None:
        settings = context.settings
    settings = settings or get_settings()
    setup_logging(settings)
    ctx = context or AppContext.from_settings(settings)
    owns_context = context is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # an injected context belongs to whoever built it
        if owns_context:
            await ctx.aclose()

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)
    app.state.ctx = ctx

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[settings.REQUEST_ID_HEADER],
    )

    # then our own middlewares
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(MetricsHTTPMiddleware)

    app.include_router(health_router.router)
    app.include_router(auth_router.router)
    app.include_router(sessions_router.router)
    app.include_router(registrations_router.router)
    app.include_router(roster_router.router)
    app.include_router(events_router.router)
    app.include_router(metrics_router.router)

    return app


if __name__ == "__main__":
    s = get_settings()
    uvicorn.run("seatkeeper.main:create_app", factory=True, host=s.APP_HOST, port=s.APP_PORT, reload=s.DEBUG)
