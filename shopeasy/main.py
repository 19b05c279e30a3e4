import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from shopeasy import __version__
from shopeasy.routes import auth, cart, orders, products, users
from shopeasy.shared.logging_config import RequestLoggingMiddleware, setup_logging
from shopeasy.shared.security_config import SecurityHeadersMiddleware, setup_rate_limiting
from shopeasy.shared.utils import ErrorResponse, HealthResponse, Settings, get_db_client, get_settings, utcnow

SERVICE_NAME = "shopeasy-api"

logger = logging.getLogger(__name__)


async def create_indexes(db) -> None:
    await db.carts.create_index("user_id", unique=True)
    await db.orders.create_index([("user_id", 1), ("created_at", -1)])
    await db.users.create_index("email", unique=True)
    await db.products.create_index("category")
    await db.revoked_tokens.create_index("jti", unique=True)
    await db.revoked_tokens.create_index("exp", expireAfterSeconds=0)


def _error(status_code: int, message: str, error=None, headers: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(message=message, error=error)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(by_alias=True, exclude_none=True)),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, "Validation error", error=exc.errors())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Server error",
            error=str(exc) if settings.is_development else None,
        )


def create_app(settings: Optional[Settings] = None, mongo_client: Optional[AsyncIOMotorClient] = None) -> FastAPI:
    """Build the API. A client passed in is used as-is and left open on shutdown."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = mongo_client or get_db_client(settings.MONGO_URL)
        app.state.mongodb_client = client
        app.state.mongodb = client[settings.MONGO_DB_NAME]
        await create_indexes(app.state.mongodb)
        logger.info("Connected to MongoDB database %s", settings.MONGO_DB_NAME)
        yield
        if mongo_client is None:
            client.close()

    app = FastAPI(title=settings.PROJECT_NAME, version=__version__, lifespan=lifespan)
    app.state.settings = settings

    # Security Setup
    setup_rate_limiting(app, enabled=settings.RATE_LIMIT_ENABLED)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    for module in (auth, users, products, cart, orders):
        app.include_router(module.router, prefix=settings.API_V1_STR)

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        try:
            await request.app.state.mongodb.command("ping")
            db_status = "connected"
        except Exception:
            logger.exception("Database ping failed")
            db_status = "disconnected"

        if db_status != "connected":
            return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service Unhealthy")

        return HealthResponse(
            service=SERVICE_NAME,
            status="healthy",
            timestamp=utcnow(),
            version=__version__,
            database=db_status,
        )

    return app


def run() -> None:
    """Console entry point: configure JSON logging and serve with uvicorn."""
    import uvicorn

    settings = get_settings()
    setup_logging(SERVICE_NAME, settings.LOG_LEVEL)
    uvicorn.run(
        "shopeasy.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_config=None,
    )
