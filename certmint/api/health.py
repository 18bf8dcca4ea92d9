"""Health check endpoint."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from certmint.api.deps import get_context
from certmint.api.models import HealthResponse
from certmint.context import ServiceContext

log = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
def healthz(context: ServiceContext = Depends(get_context)) -> HealthResponse:
    """Service liveness plus a database round-trip."""
    try:
        with context.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return HealthResponse(ok=True, database=True)
    except SQLAlchemyError as e:
        log.warning(f"Health check warning: {e}")
        return HealthResponse(ok=True, database=False)
