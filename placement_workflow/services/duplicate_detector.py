"""
Duplicate detection for batch creation.

One batched existence query per batch; never one query per pair.
"""
import logging
from typing import Any, List, Sequence, Tuple
from sqlalchemy.orm import Session

from placement_workflow.core.application_types import ApplicationType
from placement_workflow.db.models.job_application import JobApplication

logger = logging.getLogger(__name__)

JOB_KEY_JOB_ID = "job_id"
JOB_KEY_OBJECT_ID = "object_id"
JOB_KEY_JOB_LINK = "job_link"


def find_duplicate_pairs(
    db: Session,
    student_ids: Sequence[str],
    job_keys: Sequence[Any],
    key_kind: str = JOB_KEY_JOB_ID,
) -> List[Tuple[str, Any]]:
    """
    Find which (student, job) candidate pairs already exist.
    
    Candidates are the full cross product of student_ids and job_keys.
    Catalog jobs (key_kind="job_id") are unique per student across every
    application type; proxy jobs (key_kind="object_id") are unique per student
    among proxy applications. Manually recorded jobs without a catalog ID
    (key_kind="job_link") are matched on the link across every application type.
    
    Args:
        db: Database session
        student_ids: Candidate students
        job_keys: Catalog job IDs, proxy object IDs or job links
        key_kind: "job_id", "object_id" or "job_link"
        
    Returns:
        Existing pairs, in candidate order (students outer, jobs inner)
    """
    if not student_ids or not job_keys:
        return []
    
    if key_kind in (JOB_KEY_JOB_ID, JOB_KEY_JOB_LINK):
        key_column = JobApplication.job_id if key_kind == JOB_KEY_JOB_ID else JobApplication.job_link
        query = db.query(JobApplication.student_id, key_column).filter(
            JobApplication.student_id.in_(list(student_ids)),
            key_column.in_(list(job_keys)),
        )
    elif key_kind == JOB_KEY_OBJECT_ID:
        key_column = JobApplication.object_id
        query = db.query(JobApplication.student_id, key_column).filter(
            JobApplication.student_id.in_(list(student_ids)),
            key_column.in_(list(job_keys)),
            JobApplication.application_type == ApplicationType.PROXY.value,
        )
    else:
        raise ValueError(f"Unknown job key kind: {key_kind}")
    
    existing = {(student_id, key) for student_id, key in query.all() if key is not None}
    duplicates = [
        (student_id, key)
        for student_id in student_ids
        for key in job_keys
        if (student_id, key) in existing
    ]
    
    if duplicates:
        logger.warning(
            f"Duplicate pairs found: key_kind={key_kind}, count={len(duplicates)}, "
            f"students={len(student_ids)}, jobs={len(job_keys)}"
        )
    return duplicates
