"""
HTTP transport for the query/mutation API.

    POST /api/v1          one request document in, one response document out
    GET  /api/v1/schema   operation and type catalogue (JSON)
    GET  /sdl             the same catalogue as schema-definition text
    GET  /healthz         relational store reachability

Handlers are plain ``def`` functions, so FastAPI runs each request on its
worker thread pool: one thread and one transaction per request.  The HTTP
status mirrors the error kind; the body always carries the error object.
"""

from typing import Any

from fastapi import APIRouter, Body, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from homebox_kernel import __version__
from homebox_kernel.exceptions import HomeboxError, InvalidArgumentError
from homebox_kernel.logging_config import get_logger
from homebox_services.facade import InventoryFacade

logger = get_logger("server.app")

STATUS_BY_KIND: dict[str, int] = {
    "ValidationError": 400,
    "DecodeError": 400,
    "NotFoundError": 404,
    "ConflictError": 409,
    "StoreUnavailable": 503,
}


class ErrorObject(BaseModel):
    kind: str
    code: str
    message: str


class ApiResponse(BaseModel):
    data: Any = None
    error: ErrorObject | None = None


class HealthStatus(BaseModel):
    status: str
    version: str


def _error_response(exc: HomeboxError) -> JSONResponse:
    return JSONResponse(
        {"error": {"kind": exc.kind, "code": exc.code, "message": exc.message}},
        status_code=STATUS_BY_KIND.get(exc.kind, 500),
    )


def build_router(facade: InventoryFacade) -> APIRouter:
    router = APIRouter()

    @router.post("/api/v1", response_model=ApiResponse, tags=["api"])
    def execute(
        document: Any = Body(...),
        x_request_id: str | None = Header(default=None),
    ) -> JSONResponse:
        result = facade.execute(document, request_id=x_request_id)
        if "error" in result:
            status = STATUS_BY_KIND.get(result["error"]["kind"], 500)
        else:
            status = 200
        return JSONResponse(result, status_code=status)

    @router.get("/api/v1/schema", tags=["api"])
    def schema() -> dict[str, Any]:
        return facade.describe()

    @router.get("/sdl", response_class=PlainTextResponse, tags=["api"])
    def sdl() -> str:
        return facade.sdl()

    @router.get("/healthz", response_model=HealthStatus, tags=["ops"])
    def healthz() -> JSONResponse:
        try:
            facade.ping()
        except HomeboxError as exc:
            logger.warning("health_check_failed", extra={"error_code": exc.code})
            return JSONResponse(
                {"status": "unavailable", "version": __version__}, status_code=503
            )
        return JSONResponse({"status": "ok", "version": __version__})

    return router


def create_app(facade: InventoryFacade, lifespan=None) -> FastAPI:
    app = FastAPI(
        title="Homebox API",
        description="Physical inventory: locations, containers and items",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.facade = facade

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Unparseable JSON never reaches the facade
        return _error_response(InvalidArgumentError("document", "body must be a JSON object"))

    app.include_router(build_router(facade))
    return app
