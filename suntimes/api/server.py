"""
FastAPI server for the sun-times service. Run with run_api_server(app) (blocking, uvicorn).
Endpoints: GET /health, GET /api (endpoint index), and the sun-times router mounted
under /api/v1/sunrise_sunsets. Docs at http://<host>:<port>/docs
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from suntimes.sun_times.api import get_router
from suntimes.sun_times.errors import SunTimesError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/sunrise_sunsets"


def error_response(message: str, code: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"message": message, "code": code}})


def create_app(sun_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given SunTimesApp instance."""
    app = FastAPI(title="Sun Times API", description="Sunrise, sunset and twilight times per location and day")

    api_config = sun_app.config.get_section("api")
    cors_origins = api_config.get("cors_origins") or []
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    @app.exception_handler(SunTimesError)
    async def handle_sun_times_error(request: Request, exc: SunTimesError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code} - {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc.code} - {exc.message}")
        return error_response(exc.message, exc.code, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return error_response(detail, "VALIDATION_ERROR", 422)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error: {exc.__class__.__name__} - {exc}")
        return error_response("An unexpected error occurred", "INTERNAL_ERROR", 500)

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/api")
    def api_index() -> Dict[str, Any]:
        """List available endpoints."""
        return {
            "version": "v1",
            "endpoints": {
                "health": "/health",
                "sunrise_sunsets": {
                    "index": f"GET {API_PREFIX}",
                    "create": f"POST {API_PREFIX}",
                    "locations": f"GET {API_PREFIX}/locations",
                    "show": f"GET {API_PREFIX}/:id",
                    "destroy": f"DELETE {API_PREFIX}/:id",
                },
            },
        }

    app.include_router(get_router(sun_app), prefix=API_PREFIX)
    return app


def run_api_server(sun_app: Any) -> None:
    """
    Serve the API with uvicorn (blocks until shutdown).
    Reads api.host (default 127.0.0.1) and api.port (default 8000) from config.
    """
    import uvicorn

    api_config = sun_app.config.get_section("api")
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8000))
    fastapi_app = create_app(sun_app)
    logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
    uvicorn.run(fastapi_app, host=host, port=port, log_config=None)
