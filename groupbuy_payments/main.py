import time
import traceback
from datetime import datetime, timezone

import structlog
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from groupbuy_payments.config import get_settings
from groupbuy_payments.database import Base, engine
from groupbuy_payments.deps import get_webhook_dispatcher
from groupbuy_payments.errors import NotFound, PaymentServiceError
from groupbuy_payments.logging_config import setup_logging
from groupbuy_payments.routes import router
from groupbuy_payments.webhooks import WebhookDispatcher

VERSION = "1.0.0"
STARTED_AT = time.monotonic()

setup_logging()
logger = structlog.get_logger(__name__)
settings = get_settings()

app = FastAPI(title="GroupBuy Payment API", version=VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept"],
    expose_headers=["Content-Length", "X-Request-Id"],
)

app.include_router(router)

Base.metadata.create_all(bind=engine)


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("request", method=request.method, path=request.url.path,
                origin=request.headers.get("origin") if request.method == "OPTIONS" else None)
    return await call_next(request)


@app.exception_handler(PaymentServiceError)
async def payment_error_handler(request: Request, exc: PaymentServiceError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("request_failed", path=request.url.path, error=exc.message, error_type=type(exc).__name__)
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return _error(NotFound.status_code, "Endpoint not found", path=request.url.path)
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error(400, "Invalid request body")


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database_error", path=request.url.path, error=str(exc))
    return _error(500, "Database operation failed")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", path=request.url.path, exc_info=exc)
    if settings.is_development:
        return _error(500, str(exc) or "Internal server error", stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return _error(500, "Internal server error")


@app.get("/")
def root():
    return {
        "success": True,
        "message": "GroupBuy Backend API is running",
        "version": VERSION,
        "timestamp": _now_iso(),
    }


@app.get("/health")
def health():
    return {
        "success": True,
        "status": "healthy",
        "uptime": time.monotonic() - STARTED_AT,
        "timestamp": _now_iso(),
    }


@app.get("/api")
def api_index():
    return {
        "success": True,
        "message": "GroupBuy Payment API",
        "version": VERSION,
        "endpoints": {"payment": "/api/payment", "health": "/health"},
    }


@app.post("/api/payment/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str = Header(None),
    x_razorpay_event_id: str = Header(None),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
):
    payload = await request.body()
    dispatcher.dispatch(payload, x_razorpay_signature, event_id=x_razorpay_event_id)
    return {"success": True}
