import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from core.config import settings
from core.database import Base, engine
from core.errors import ErrorKind, HTTP_STATUS
from core.logging_config import configure_logging
from models import case, verification, vote
from routers import case_router, verification_router, vote_router

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Unveil API")

# Respect X-Forwarded-For/Proto when behind a proxy (Docker/nginx/etc.)
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)

app.include_router(verification_router.router)
app.include_router(vote_router.router)
app.include_router(vote_router.cases_router)
app.include_router(case_router.router)
app.include_router(case_router.search_router)


def _error_response(kind: ErrorKind, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_STATUS[kind],
        content={"detail": {"kind": kind.value, "message": message, **extra}},
    )


@app.exception_handler(RequestValidationError)
def validation_error(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": e.get("msg", "")}
        for e in exc.errors()
    ]
    message = errors[0]["message"] if errors else "Invalid request"
    return _error_response(ErrorKind.INVALID_INPUT, message, errors=errors)


@app.exception_handler(OperationalError)
def store_unavailable(request: Request, exc: OperationalError):
    logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc.__class__.__name__)
    return _error_response(ErrorKind.UNAVAILABLE, "Service temporarily unavailable. Please try again later.")


@app.exception_handler(Exception)
def unhandled(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": {"kind": "INTERNAL", "message": "An unexpected error occurred"}},
    )


@app.get("/")
def root():
    return {"message": "Unveil API Ready"}
