import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gumrukcum.config import get_settings, get_supabase_client
from gumrukcum.errors import AnalysisError
from gumrukcum.middleware import setup_middleware
from gumrukcum.analysis.router import router as analysis_router
from gumrukcum.auth.router import router as auth_router
from gumrukcum.auth.dependencies import close_http_client

settings = get_settings()
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    required = ["openai_api_key", "supabase_url", "supabase_service_key"]
    missing = [k for k in required if not getattr(settings, k)]
    if missing:
        logger.warning(f"Missing env vars: {missing}. Analysis endpoint unavailable.")
    get_supabase_client()

    yield

    await close_http_client()


app = FastAPI(
    title="Gümrükçüm API",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    lifespan=lifespan,
)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


_HTTP_KINDS = {
    400: "invalid_request",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    503: "not_configured",
}


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "kind": _HTTP_KINDS.get(exc.status_code, "http_error")},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
    return JSONResponse(
        status_code=422,
        content={"error": "Request is invalid.", "kind": "invalid_request", "fields": fields},
    )


setup_middleware(app, settings.frontend_url)

app.include_router(analysis_router, prefix="/api")
app.include_router(auth_router, prefix="/api/auth")


@app.get("/")
async def root():
    return {"status": "alive", "service": "gumrukcum-api"}


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "gumrukcum-api"}


@app.get("/health/detailed")
async def health_detailed():
    checks = {"api": "healthy"}
    checks["openai"] = "configured" if settings.openai_api_key else "missing"
    checks["supabase"] = "configured" if settings.supabase_url and settings.supabase_service_key else "missing"
    overall = "healthy" if all(v != "missing" for v in checks.values()) else "degraded"
    return {"status": overall, "checks": checks}
