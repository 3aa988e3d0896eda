from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import router as bookings_router
from .auth_api import router as auth_router
from .catalog_api import router as services_router
from .config import settings
from .db import init_db
from .observability import request_tracing_middleware, setup_logging
from .users_api import router as users_router

logger = structlog.get_logger("nailbook")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if bool(settings.DB_AUTO_CREATE_ALL):
        init_db()
    logger.info("startup", app=settings.APP_NAME, version=settings.APP_VERSION)
    yield


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid data", "errors": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Nail salon booking API",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Must stay inside the security headers layer.
    app.middleware("http")(request_tracing_middleware)

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        response = await call_next(request)
        if bool(settings.SECURITY_HEADERS_ENABLED):
            response.headers.setdefault("X-Content-Type-Options", "nosniff")
            response.headers.setdefault("X-Frame-Options", "DENY")
            response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health")
    def health():
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/")
    def root():
        return {
            "message": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "endpoints": {
                "auth": "/api/auth",
                "services": "/api/services",
                "bookings": "/api/bookings",
                "users": "/api/users",
            },
        }

    app.include_router(auth_router)
    app.include_router(services_router)
    app.include_router(bookings_router)
    app.include_router(users_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("nailbook.main:app", host=settings.HOST, port=settings.PORT)
