"""Health check endpoint for monitoring application status."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from components.core import schemas
from components.core.init_db import get_db
from restapi.endpoints.helpers import bounded

SERVICE_NAME = "Loan Ledger"

router = APIRouter(
    prefix="/health_check",
    tags=["services"],
    responses={200: {"description": "Service is healthy"}},
)


@router.get("/", response_model=schemas.HealthCheck)
async def health_check(db: AsyncSession = Depends(get_db)) -> schemas.HealthCheck:
    """Check the service and its database; store failures surface as 503."""
    await bounded(db.execute(text("SELECT 1")))
    return schemas.HealthCheck(
        service_name=SERVICE_NAME,
        status="healthy"
    )
