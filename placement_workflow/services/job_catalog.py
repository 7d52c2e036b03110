"""
Job catalog lookups used when creating catalog-backed applications.
"""
from typing import Dict, List, Optional, Sequence
from sqlalchemy.orm import Session

from placement_workflow.db.models.job_posting import JobPosting, JobPostingStatus


def get_active_jobs(db: Session, job_ids: Sequence[int]) -> Dict[int, JobPosting]:
    """Active postings among job_ids, keyed by ID. Missing or inactive IDs are absent."""
    if not job_ids:
        return {}
    jobs = db.query(JobPosting).filter(
        JobPosting.id.in_(list(job_ids)),
        JobPosting.status == JobPostingStatus.ACTIVE.value,
    ).all()
    return {job.id: job for job in jobs}


def find_unavailable_job_ids(
    db: Session,
    job_ids: Sequence[int],
    active_jobs: Optional[Dict[int, JobPosting]] = None,
) -> List[int]:
    """
    IDs from job_ids that are missing from the catalog or not active, in input order.
    
    Pass active_jobs when the caller already loaded them to skip the query.
    """
    if active_jobs is None:
        active_jobs = get_active_jobs(db, job_ids)
    return [job_id for job_id in job_ids if job_id not in active_jobs]
