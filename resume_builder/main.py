import logging
import traceback
from pathlib import Path

from fastapi import Depends, FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from redis.asyncio import Redis
from starlette.exceptions import HTTPException as StarletteHTTPException

from resume_builder.core import db
from resume_builder.core.config import settings
from resume_builder.core.db import Base
from resume_builder.core.exceptions import RateLimitedError, ResumeBuilderError
from resume_builder.core.redis_client import get_redis, close_redis, redis_status
from resume_builder.middleware.auth import AuthMiddleware
from resume_builder.web.routers.auth import router as auth_router
from resume_builder.web.routers.editor import router as editor_router
from resume_builder.web.routers.generation import router as generation_router
from resume_builder.web.routers.home import router as home_router
from resume_builder.web.routers.resumes import router as resumes_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)

# Auth middleware
app.add_middleware(AuthMiddleware)

# Static files and stored photos
static_dir = BASE_DIR / "web" / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")
Path(settings.BLOB_DIR).mkdir(parents=True, exist_ok=True)
app.mount(settings.BLOB_BASE_URL, StaticFiles(directory=settings.BLOB_DIR), name="media")

# Error templates
templates = Jinja2Templates(directory=str(BASE_DIR / "web" / "templates"))


@app.on_event("startup")
async def on_startup():
    await get_redis()
    # Import models to register mappers
    import resume_builder.core.models.user  # noqa: F401
    import resume_builder.core.models.resume  # noqa: F401
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started (env=%s)", settings.APP_NAME, settings.ENV)


@app.on_event("shutdown")
async def on_shutdown():
    await close_redis()


# Routers
app.include_router(home_router)
app.include_router(auth_router)
app.include_router(resumes_router)
app.include_router(editor_router)
app.include_router(generation_router)


@app.get("/healthz")
async def healthz(redis: Redis = Depends(get_redis)):
    return {"status": "ok", "redis": await redis_status(redis)}


# -------------------
# Exception Handlers
# -------------------

DEFAULT_MESSAGES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Page not found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    409: "Conflict",
    413: "Payload Too Large",
    415: "Unsupported Media Type",
    429: "Too Many Requests",
}


def wants_json(request: Request) -> bool:
    """Editor session endpoints and the AI API answer in JSON; pages get HTML."""
    path = request.url.path
    return path.startswith("/api/") or path.startswith("/editor/")


def error_page(request: Request, code: int, message: str, tb: str = None, **extra):
    ctx = {
        "request": request,
        "title": f"{code} Error",
        "code": code,
        "message": message,
        "debug": settings.DEBUG,
        "traceback": tb,
        **extra,
    }
    return templates.TemplateResponse(request, "error.html", ctx, status_code=code)


@app.exception_handler(ResumeBuilderError)
async def resume_builder_exception_handler(request: Request, exc: ResumeBuilderError):
    code = exc.status_code
    headers = None
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    if wants_json(request):
        return JSONResponse({"detail": exc.message}, status_code=code, headers=headers)
    return error_page(request, code, exc.message)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    code = exc.status_code
    message = exc.detail or DEFAULT_MESSAGES.get(code) or "Unexpected error"
    if wants_json(request):
        return JSONResponse({"detail": message}, status_code=code)
    return error_page(request, code, message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    code = 422
    if wants_json(request):
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        return JSONResponse({"detail": "Validation Error", "errors": errors}, status_code=code)
    return error_page(request, code, "Validation Error", errors=exc.errors())


@app.exception_handler(StarletteHTTPException)
async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Handle Starlette-level HTTP errors (including 404 for missing routes/static)
    code = exc.status_code
    message = getattr(exc, "detail", None) or DEFAULT_MESSAGES.get(code) or "Unexpected error"
    if wants_json(request):
        return JSONResponse({"detail": message}, status_code=code)
    return error_page(request, code, message)


# Only install a global 500 handler when NOT in debug mode.
if not settings.DEBUG:
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        if wants_json(request):
            return JSONResponse({"detail": "An internal server error occurred."}, status_code=500)
        tb = "".join(traceback.format_exception(None, exc, exc.__traceback__))
        return error_page(request, 500, "An internal server error occurred.", tb if settings.DEBUG else None)
