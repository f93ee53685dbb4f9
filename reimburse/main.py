import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reimburse.core.config import settings
from reimburse.core.exceptions import (
    BlobStoreUnavailable,
    ReimbursementError,
    StoreUnavailable,
)
from reimburse.core.logging import configure_logging
from reimburse.db.base import Base
from reimburse.db.session import engine

# both models must be registered before create_all / mapper configuration
from reimburse.models.user import User  # noqa: F401
from reimburse.models.reimbursement_request import ReimbursementRequest  # noqa: F401

from reimburse.api.auth import router as auth_router
from reimburse.api.manager import router as manager_router
from reimburse.api.reference_data import router as reference_data_router
from reimburse.api.reports import router as reports_router
from reimburse.api.requests import router as requests_router
from reimburse.api.users import router as users_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# DEV ONLY
if settings.ENV == "development":
    Base.metadata.create_all(bind=engine)


@app.exception_handler(ReimbursementError)
def reimbursement_error_handler(request: Request, exc: ReimbursementError):
    if isinstance(exc, (StoreUnavailable, BlobStoreUnavailable)):
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.reason)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "detail": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ROUTERS
app.include_router(auth_router, prefix="/api/auth")
app.include_router(requests_router, prefix="/api")
app.include_router(manager_router, prefix="/api")
app.include_router(reports_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(reference_data_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
