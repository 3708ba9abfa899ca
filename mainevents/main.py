import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mainevents.core.config import CORS_ORIGINS, is_production
from mainevents.core.errors import AppError, ErrorCode
from mainevents.core.log_config import configure_logging
from mainevents.database.db import Base, engine
from mainevents.models import events, notifications, payments, reviews, tickets, users  # noqa: F401  (register tables)
from mainevents.routes import (
    auth,
    events as events_routes,
    notifications as notifications_routes,
    payments as payments_routes,
    reviews as reviews_routes,
    tickets as tickets_routes,
)

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="MainEvents")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
            "code": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "code": ErrorCode.VALIDATION_ERROR.value, "details": details},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error", path=request.url.path, error=str(exc.orig))
    return JSONResponse(status_code=400, content={"error": "Duplicate entry", "code": ErrorCode.CONFLICT.value})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    if is_production():
        logger.error("Unhandled error", path=request.url.path, error=str(exc))
    else:
        logger.exception("Unhandled error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include the routers
app.include_router(auth.router)
app.include_router(events_routes.router)
app.include_router(reviews_routes.router)
app.include_router(payments_routes.router)
app.include_router(tickets_routes.router)
app.include_router(notifications_routes.router)
