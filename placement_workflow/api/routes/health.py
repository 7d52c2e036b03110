"""
Health check endpoint for deployment monitoring.
"""
from fastapi import APIRouter
from datetime import datetime, timezone
from sqlalchemy import text
from placement_workflow.db.session import SessionLocal

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check():
    """
    Health check endpoint for deployment monitoring.
    
    Returns 200 if the API is up; status is "degraded" when the database is unreachable.
    """
    status = "healthy"
    
    # Check database connectivity
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"
        status = "degraded"
    finally:
        db.close()
    
    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
        "version": "1.0.0",
    }
