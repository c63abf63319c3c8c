import os
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Ensure local imports resolve
sys.path.append(os.path.dirname(__file__))

# Core
from core.config import settings
from core.config_validator import validate_config_on_startup
from core.errors import AccessCoreError, Unauthenticated
from core.logging_config import logger

# -------------------------------------------------
# Routers
# -------------------------------------------------
from routers.auth import router as auth_router
from routers.impersonation import router as impersonation_router
from routers.memberships import router as memberships_router
from routers.admin import router as admin_router
from routers.profile import router as profile_router
from routers.posts import router as posts_router
from routers.health import router as health_router


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Blockclub access core: staff admins, impersonation, and neighborhood memberships",
    )

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Startup logging
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info("Starting Blockclub Access API")
        validate_config_on_startup()
        for route in app.routes:
            methods = ",".join(sorted(getattr(route, "methods", None) or []))
            logger.debug(f"Route {methods:10s} {getattr(route, 'path', '')}")

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(Unauthenticated)
    async def handle_unauthenticated(request: Request, exc: Unauthenticated):
        logger.info(f"Unauthenticated request to {request.url.path}; redirecting to sign-in")
        return RedirectResponse(settings.SIGNIN_PATH, status_code=303)

    @app.exception_handler(AccessCoreError)
    async def handle_access_error(request: Request, exc: AccessCoreError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} at {request.url.path}: {exc.message} {exc.context}")
        elif exc.status_code == 403:
            logger.warning(f"{exc.code} at {request.url.path}: {exc.message} {exc.context}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500):
            logger.warning(
                f"HTTP {exc.status_code} at {request.url} - {exc.detail}"
            )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "code": "SERVER_ERROR"},
        )

    # -------------------------------------------------
    # Register Routers
    # -------------------------------------------------
    app.include_router(auth_router)
    app.include_router(impersonation_router)

    app.include_router(memberships_router)
    app.include_router(admin_router)

    app.include_router(profile_router)
    app.include_router(posts_router)

    app.include_router(health_router)

    return app


# Create the global FastAPI instance
app = create_app()
