import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from utils.config import CORS_ALLOWED_ORIGINS, FRONTEND_URL, IS_PRODUCTION
from utils.logger import setup_logging, RequestContextLogMiddleware

setup_logging()

from db.database import init_db
from routers.auth import router as auth_router
from routers.form_responses import router as form_responses_router
from routers.forms import router as forms_router
from routers.health import router as health_router
from routers.public_forms import router as public_forms_router
from routers.user import router as user_router
from utils.limiter import limiter

logger = logging.getLogger("formbuilder")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Form builder API started (production=%s)", IS_PRODUCTION)
    yield


app = FastAPI(title="Form Builder API", lifespan=lifespan)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# Production-safe error responses
def _safe_message(status_code: int) -> str:
    mapping = {
        400: "Invalid request.",
        401: "Unauthorized.",
        403: "Action not allowed.",
        404: "Not found.",
        405: "Method not allowed.",
        409: "Conflict.",
        422: "Invalid request.",
        429: "Too many requests.",
        500: "Something went wrong. Please try again.",
        503: "Service unavailable. Please try again.",
    }
    return mapping.get(int(status_code or 500), "Something went wrong. Please try again.")


@app.exception_handler(HTTPException)
async def http_exception_sanitizer(request: Request, exc: HTTPException):
    if IS_PRODUCTION:
        # Preserve status code; sanitize message
        return JSONResponse(status_code=exc.status_code, content={"detail": _safe_message(exc.status_code)})
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc.detail) if exc.detail else _safe_message(exc.status_code)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("request validation failed path=%s errors=%d", request.url.path, len(exc.errors()))
    return JSONResponse(status_code=422, content={"detail": _safe_message(422)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error")
    return JSONResponse(status_code=500, content={"detail": _safe_message(500)})


app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content={"success": False, "message": "Too many requests. Please try again later."})


app.add_middleware(SlowAPIMiddleware)

# Cookies are sent cross-site, so origins must be listed explicitly
_allow_origins = list(dict.fromkeys(CORS_ALLOWED_ORIGINS + [FRONTEND_URL]))
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request/response logging middleware
app.add_middleware(RequestContextLogMiddleware)

app.include_router(auth_router)
app.include_router(user_router)
app.include_router(forms_router)
app.include_router(form_responses_router)
app.include_router(public_forms_router)
app.include_router(health_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
