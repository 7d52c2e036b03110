"""
JobPosting model - the job catalog that referral and direct applications point at.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from sqlalchemy.sql import func
from placement_workflow.db.base import Base


class JobPostingStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class JobPosting(Base):
    """
    Catalog job posting.
    
    Only postings in the active status can receive new applications.
    """
    __tablename__ = "job_postings"

    id = Column(Integer, primary_key=True, index=True)
    
    # Job posting details
    title = Column(String(300), nullable=False, index=True)
    company_name = Column(String(300), nullable=False, index=True)
    location = Column(String(255), nullable=True)
    job_type = Column(String(50), nullable=True)  # fulltime, internship, contract
    job_link = Column(Text, nullable=True)
    level = Column(String(20), nullable=True)  # entry, mid, senior
    normalized_job_title = Column(String(300), nullable=True)
    
    status = Column(String(20), nullable=False, default=JobPostingStatus.ACTIVE.value, index=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    __table_args__ = (
        Index('idx_job_postings_company_title', 'company_name', 'title'),
    )
    
    def __repr__(self):
        return f"<JobPosting(id={self.id}, company='{self.company_name}', title='{self.title}', status='{self.status}')>"
