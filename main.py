from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from app_logging import setup_logging
from app_settings import Settings, get_settings
from contact_store import SqliteContactStore
from db_models import ErrorResponse, FinalResponse, IdentifyRequest
from db_setup import get_db_connection, init_db
from exceptions import ConstraintError, IdentityValidationError, InvariantViolation, StoreError
from identity import resolve_identity

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)
    init_db(settings.database_path)
    logger.info("identify_service_started", database_path=settings.database_path)
    yield


app = FastAPI(
    title="Identity Reconciliation API",
    version="1.0.0",
    lifespan=lifespan,
)


def get_store(settings: Settings = Depends(get_settings)):
    conn = get_db_connection(settings.database_path, timeout=settings.busy_timeout)
    try:
        yield SqliteContactStore(conn)
    finally:
        conn.close()


def _error(status_code: int, code: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(detail=detail, code=code).model_dump())


@app.exception_handler(IdentityValidationError)
async def handle_validation_error(request: Request, exc: IdentityValidationError):
    return _error(400, "identify.invalid_request", str(exc))


@app.exception_handler(ConstraintError)
async def handle_constraint_error(request: Request, exc: ConstraintError):
    logger.warning("identify_conflict", error=str(exc))
    return _error(503, "identify.conflict", "Concurrent update conflict, please retry")


@app.exception_handler(StoreError)
async def handle_store_error(request: Request, exc: StoreError):
    logger.error("identify_store_error", error=str(exc))
    return _error(500, "identify.store_error", "Internal server error")


@app.exception_handler(InvariantViolation)
async def handle_invariant_violation(request: Request, exc: InvariantViolation):
    logger.error("invariant_violation", error=str(exc))
    return _error(500, "identify.invariant_violation", str(exc))


@app.get("/")
async def root():
    return {"message": "Identity reconciliation API is up"}


@app.post("/identify", response_model=FinalResponse, response_model_exclude_none=True)
def identify(
    request: IdentifyRequest,
    store: SqliteContactStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    if not request.email and not request.phoneNumber:
        raise IdentityValidationError("Either email or phoneNumber must be provided")

    contact = resolve_identity(
        store,
        request.email,
        request.phoneNumber,
        strict=settings.strict_validation,
        conflict_retries=settings.conflict_retries,
    )
    if settings.legacy_primary_field:
        contact = contact.model_copy(update={"primaryContatctId": contact.primaryContactId})

    return FinalResponse(contact=contact)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
