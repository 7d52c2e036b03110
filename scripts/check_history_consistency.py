"""
Script to find applications whose current status disagrees with their history ledger.
These are the applications rollback refuses with a history integrity error.
Run: python -m scripts.check_history_consistency
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from typing import Dict, List
from sqlalchemy.orm import Session

from placement_workflow.db.session import SessionLocal
from placement_workflow.db.models.job_application import JobApplication
from placement_workflow.db.models.application_history import ApplicationHistory
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def find_history_inconsistencies(db: Session) -> List[Dict]:
    """
    Compare every application's status with its newest history row.
    
    Returns:
        One dict per offending application (application_id, status, latest_history_status)
    """
    latest_status: Dict[int, str] = {}
    rows = db.query(ApplicationHistory.application_id, ApplicationHistory.new_status).order_by(
        ApplicationHistory.application_id,
        ApplicationHistory.created_at,
        ApplicationHistory.id,
    )
    for application_id, new_status in rows:
        latest_status[application_id] = new_status
    
    offenders = []
    for application_id, current_status in db.query(JobApplication.id, JobApplication.status).order_by(JobApplication.id):
        history_status = latest_status.get(application_id)
        if history_status != current_status:
            offenders.append({
                "application_id": application_id,
                "status": current_status,
                "latest_history_status": history_status,
            })
    return offenders


def main() -> int:
    db = SessionLocal()
    try:
        offenders = find_history_inconsistencies(db)
    except Exception as e:
        logger.error(f"Consistency check failed: {e}", exc_info=True)
        return 2
    finally:
        db.close()
    
    for offender in offenders:
        if offender["latest_history_status"] is None:
            logger.warning(f"Application {offender['application_id']} has no history (status={offender['status']})")
        else:
            logger.warning(
                f"Application {offender['application_id']} status={offender['status']} "
                f"but latest history says {offender['latest_history_status']}"
            )
    
    if offenders:
        print(f"\n[ERROR] {len(offenders)} application(s) out of sync with their history")
        return 1
    print("\n[SUCCESS] Every application matches its latest history row")
    return 0


if __name__ == "__main__":
    sys.exit(main())
