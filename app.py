from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from config.config import settings, tags_metadata
from config.cors import configure_cors
from common.logging import setup_logging, get_logger
from common.middleware import setup_middleware, http_error_response
from common.exceptions import BaseLicensingException
from common.responses import create_error_response, create_validation_error_response

from api.auth import router as auth_router
from api.uploads import router as uploads_router
from api.processes import router as processes_router
from api.collaborators import router as collaborators_router
from api.health import router as health_router

setup_logging(level=settings.log_level, format_type=settings.log_format)
logger = get_logger("main")

limiter = Limiter(
    key_func=get_remote_address,
    headers_enabled=True,
    default_limits=["200/minute"],
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Environmental license processes with signed direct-to-storage uploads",
    openapi_tags=tags_metadata,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

setup_middleware(app)
configure_cors(app)


@app.exception_handler(BaseLicensingException)
async def licensing_exception_handler(request: Request, exc: BaseLicensingException):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{exc.error_code}: {exc.detail}", extra={
        "error_code": exc.error_code,
        "context": exc.context,
        "path": request.url.path,
        "method": request.method,
    })
    return create_error_response(
        error_code=exc.error_code,
        message=exc.detail,
        status_code=exc.status_code,
        context=exc.context,
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    logger.info("Request rejected by schema", extra={"path": request.url.path, "error_count": len(errors)})
    return create_validation_error_response(errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return http_error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.get("/", summary="Service banner")
async def root():
    return {
        "message": settings.app_name,
        "version": settings.app_version,
        "status": "healthy",
        "docs": "/docs",
    }


for router in (auth_router, uploads_router, processes_router, collaborators_router, health_router):
    app.include_router(router, prefix="/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
