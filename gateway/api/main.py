"""FastAPI application for route inspection and quote validation.

The service is read-only: it never signs or submits transactions.
"""

import os

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gateway import __version__
from gateway.api.endpoints import router
from gateway.errors import DomainError
from gateway.models.responses import ErrorResponse

logger = structlog.get_logger()

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("GATEWAY_HOST", "0.0.0.0")
PORT = int(os.environ.get("GATEWAY_PORT", "8000"))
DEBUG = os.environ.get("GATEWAY_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (1 MB)
MAX_REQUEST_SIZE = 1024 * 1024

app = FastAPI(
    title="Gateway Route Client",
    description="Route decoding and pre-flight validation for the gateway router",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info("domain_error_response", path=request.url.path, code=exc.code.value)
    body = ErrorResponse.from_error(exc)
    return JSONResponse(status_code=422, content=body.model_dump(by_alias=True, mode="json"))


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def run() -> None:
    """Run the API server.

    Configuration via environment variables:
    - GATEWAY_HOST: Host to bind to (default: 0.0.0.0)
    - GATEWAY_PORT: Port to bind to (default: 8000)
    - GATEWAY_DEBUG: Enable debug/reload mode (default: false)
    """
    uvicorn.run(
        "gateway.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
