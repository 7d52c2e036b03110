"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from placement_workflow.db.models.job_posting import JobPosting, JobPostingStatus
from placement_workflow.db.models.job_application import JobApplication
from placement_workflow.db.models.application_history import ApplicationHistory

__all__ = [
    "JobPosting",
    "JobPostingStatus",
    "JobApplication",
    "ApplicationHistory",
]
