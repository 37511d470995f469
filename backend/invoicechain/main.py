"""FastAPI application entry point: InvoiceChain"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from invoicechain import __version__
from invoicechain.config import settings, validate_settings
from invoicechain.core.logging import log, setup_logging
from invoicechain.core.exceptions import AppException
from invoicechain.api.routes import admin, auth, buyer, financing, invoices, supplier


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging(
        debug=settings.DEBUG,
        log_format=settings.LOG_FORMAT,
        log_to_file=settings.get("LOG_TO_FILE", True),
    )
    validate_settings()
    log.info(f"Starting {settings.APP_NAME} v{__version__}...")
    log.info(f"Environment: {settings.current_env}")

    yield

    from invoicechain.db.base import engine
    await engine.dispose()
    log.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Invoice financing marketplace: approval, tokenization, financing and settlement",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Log all requests."""
    request_id = str(uuid.uuid4())[:8]
    start_time = time.time()
    request.state.request_id = request_id

    with log.contextualize(request_id=request_id):
        log.info(
            "Request started",
            method=request.method,
            path=request.url.path,
        )
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000
        log.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

    return response


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Handle application exceptions."""
    log.info(
        "Request rejected",
        path=request.url.path,
        code=exc.code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code, "details": exc.details},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed input as BAD_REQUEST."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "code": "BAD_REQUEST",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    log.exception("Unhandled exception")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]


# Routes
app.include_router(auth.router, prefix=f"{settings.API_PREFIX}/auth", tags=["auth"])
app.include_router(invoices.router, prefix=f"{settings.API_PREFIX}/invoices", tags=["invoices"])
app.include_router(financing.router, prefix=f"{settings.API_PREFIX}/financing", tags=["financing"])
app.include_router(buyer.router, prefix=f"{settings.API_PREFIX}/buyer", tags=["buyer"])
app.include_router(supplier.router, prefix=f"{settings.API_PREFIX}/supplier", tags=["supplier"])
app.include_router(admin.router, prefix=f"{settings.API_PREFIX}/admin", tags=["admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.APP_NAME}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.APP_NAME,
        "version": __version__,
        "docs": "/docs" if settings.DEBUG else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("invoicechain.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
