"""Stub backend implementing the contract the launcher depends on.

Serves `GET /` with the identifying header and marker, `GET /api/version`,
and `GET /api/health`. Used for local development and as an ASGI app in
tests.
"""

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse

from ._schemas import HealthResponse, VersionResponse

STUB_VERSION = "1.0.0"
IDENTITY_HEADER = "X-OpenChamber"

_INDEX_HTML = """<!doctype html>
<html>
  <head><title>OpenChamber</title></head>
  <body><h1>OpenChamber</h1><p>Stub backend on port {port}.</p></body>
</html>
"""

_PLAIN_HTML = """<!doctype html>
<html>
  <head><title>Welcome</title></head>
  <body><h1>It works!</h1></body>
</html>
"""

pages_router = APIRouter(include_in_schema=False)
api_router = APIRouter(prefix="/api")


@pages_router.get("/", response_class=HTMLResponse)
async def get_index(request: Request) -> HTMLResponse:
    if not request.app.state.identify:
        return HTMLResponse(_PLAIN_HTML)
    port = request.url.port or ""
    return HTMLResponse(_INDEX_HTML.format(port=port))


@api_router.get("/version", tags=["version"])
async def get_version(request: Request) -> VersionResponse:
    return VersionResponse(name="openchamber", version=request.app.state.version)


@api_router.get("/health", tags=["health"], response_model=HealthResponse)
async def get_health(request: Request) -> Response:
    if not request.app.state.healthy:
        return JSONResponse({"status": "unhealthy"}, status_code=503)
    return JSONResponse(HealthResponse(status="healthy").model_dump())


def create_app(*, version: str = STUB_VERSION, identify: bool = True) -> FastAPI:
    """Create a stub backend app.

    Args:
        version: Version reported by `/api/version`.
        identify: Whether `/` carries the identifying header and marker.
            Disable it to imitate an unrelated service.

    Returns:
        The FastAPI application. `app.state.healthy` toggles `/api/health`.
    """
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    app.state.version = version
    app.state.identify = identify
    app.state.healthy = True

    @app.middleware("http")
    async def _identity_header(request: Request, call_next):  # noqa: ANN001, ANN202
        response = await call_next(request)
        if request.app.state.identify:
            response.headers[IDENTITY_HEADER] = request.app.state.version
        return response

    app.include_router(router=api_router)
    app.include_router(router=pages_router)
    return app


app = create_app()
