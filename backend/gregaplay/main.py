from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from gregaplay.config import settings
from gregaplay.errors import GregaError
from gregaplay.logging_setup import configure_logging
from gregaplay.routes.system import router as system_router
from gregaplay.routes.auth import router as auth_router
from gregaplay.routes.events import router as events_router
from gregaplay.routes.invitations import router as invitations_router
from gregaplay.routes.videos import router as videos_router
from gregaplay.routes.billing import router as billing_router
from gregaplay.routes.notifications import router as notifications_router
from gregaplay.routes.stripe_webhooks import router as stripe_router
from gregaplay.routes.admin import router as admin_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for collaborative video montages",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Upload-ID"],
)

# Include routers
app.include_router(system_router)
app.include_router(auth_router)
app.include_router(events_router)
app.include_router(invitations_router)
app.include_router(videos_router)
app.include_router(billing_router)
app.include_router(notifications_router)
app.include_router(stripe_router)
app.include_router(admin_router)

@app.exception_handler(GregaError)
async def grega_error_handler(request: Request, exc: GregaError):
    log.info("request_refused", code=exc.code, message=exc.message, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
