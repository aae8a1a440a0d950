"""
Health Check Router
Liveness and AWS dependency status
"""
from fastapi import APIRouter
from datetime import datetime
import logging

from botocore.exceptions import ClientError

from smartbooks.core.config import settings
from smartbooks.db import dynamo
from smartbooks.utils import receipts

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/status")
def aws_services_status():
    """
    Check connectivity of the DynamoDB tables and the receipts S3 bucket.
    """
    status = {
        "timestamp": datetime.utcnow().isoformat(),
        "services": {}
    }

    tables = {
        "users": dynamo.users_table,
        "transactions": dynamo.transactions_table,
        "receipts": dynamo.receipts_table,
    }
    dynamodb_status = {"connected": False, "region": settings.DYNAMO_REGION, "tables": {}}
    for name, table in tables.items():
        try:
            table.scan(Limit=1)
            dynamodb_status["tables"][name] = {"name": table.name, "status": "accessible"}
        except Exception as e:
            logger.error(f"DynamoDB check failed for {table.name}: {str(e)}")
            dynamodb_status["tables"][name] = {"name": table.name, "status": "error", "error": str(e)}
    dynamodb_status["connected"] = all(
        table["status"] == "accessible" for table in dynamodb_status["tables"].values()
    )
    status["services"]["dynamodb"] = dynamodb_status

    s3_status = {
        "connected": False,
        "bucket": settings.S3_BUCKET_NAME,
        "region": settings.S3_REGION,
        "error": None
    }
    try:
        receipts.s3.head_bucket(Bucket=settings.S3_BUCKET_NAME)
        s3_status["connected"] = True
        s3_status["status"] = "accessible"
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        s3_status["error"] = f"{error_code}: {str(e)}"
        s3_status["status"] = "error"
        logger.error(f"S3 check failed: {str(e)}")
    except Exception as e:
        s3_status["error"] = str(e)
        s3_status["status"] = "error"
        logger.error(f"S3 check failed: {str(e)}")
    status["services"]["s3"] = s3_status

    all_connected = all(
        service.get("connected", False)
        for service in status["services"].values()
    )
    status["overall_status"] = "healthy" if all_connected else "degraded"
    return status
