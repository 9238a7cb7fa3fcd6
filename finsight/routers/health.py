"""
Health Check Router
Service liveness and storage connectivity
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from finsight.core.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/status")
def storage_status():
    """
    Check that every ledger table and the insights table can be read.
    The in-memory backend is always reported as accessible.
    """
    result = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backend": settings.STORE_BACKEND,
        "tables": {},
    }

    if settings.STORE_BACKEND == "memory":
        result["overall_status"] = "healthy"
        return result

    from finsight.db import dynamo

    resource = dynamo.get_resource()
    table_names = dict(dynamo.LEDGER_TABLES, insights=settings.DYNAMO_INSIGHTS_TABLE)
    for kind, name in table_names.items():
        try:
            resource.Table(name).scan(Limit=1)
            result["tables"][kind] = {"name": name, "status": "accessible", "region": settings.DYNAMO_REGION}
        except Exception as e:
            logger.error(f"DynamoDB check failed for {name}: {str(e)}")
            result["tables"][kind] = {"name": name, "status": "error", "error": str(e)}

    all_accessible = all(table["status"] == "accessible" for table in result["tables"].values())
    result["overall_status"] = "healthy" if all_accessible else "degraded"
    return result
