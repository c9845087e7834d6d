from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import init_db
from app.core.errors import AuthorizationError, UnauthenticatedError
from app.features.users.routes import router as user_router
from app.features.permissions.engine import AuthorizationEngine
from app.features.permissions.routes import (
    router as permission_router,
    roles_router,
    grants_router,
)
from app.features.portfolios.routes import router as portfolio_router
from app.features.properties.routes import router as property_router
from app.features.bank_details.routes import router as bank_details_router, list_router as bank_details_list_router
from app.features.audits.routes import router as audit_router
from app.features.service_types.routes import router as service_type_router
from app.features.users.dependencies import get_authorization_header
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="Hotel Portfolio Backend",
    description="Portfolio, property and audit management with role/resource authorization",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
limiter = Limiter(key_func=get_authorization_header, default_limits=[config.RATE_LIMIT])
app.state.limiter = limiter
app.state.authorization_engine = AuthorizationEngine()
app.add_middleware(SlowAPIMiddleware)


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError) -> Response:
    # Internal detail stays in the log; clients only see the public message
    if exc.status_code >= 500:
        log.error("Authorization failure on %s %s: %s", request.method, request.url.path, exc)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthenticatedError) else None
    return JSONResponse({"detail": exc.public_message}, status_code=exc.status_code, headers=headers)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "Hotel Portfolio Backend API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "All endpoints except / and /health require a Bearer token in the Authorization header",
        },
        "features": {
            "permissions": "Role capability levels and access scopes per module, with per-user resource grants",
            "portfolios": "Hotel portfolio management",
            "properties": "Properties within portfolios",
            "bank_details": "Payout details per property",
            "audits": "OTA collection audits per property",
            "service_types": "Service type catalog",
            "users": "User management and role assignment",
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(grants_router, prefix="/users", tags=["grants"])

# Role and permission routes
app.include_router(roles_router, prefix="/roles", tags=["roles"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])

# Business routes
app.include_router(portfolio_router, prefix="/portfolios", tags=["portfolios"])
app.include_router(property_router, prefix="/properties", tags=["properties"])
app.include_router(bank_details_router, prefix="/properties", tags=["bank-details"])
app.include_router(bank_details_list_router, prefix="/bank-details", tags=["bank-details"])
app.include_router(audit_router, prefix="/audits", tags=["audits"])
app.include_router(service_type_router, prefix="/service-types", tags=["service-types"])
