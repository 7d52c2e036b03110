"""
JobApplication model - one student's candidacy for one job.

Catalog-backed applications (direct, referral, bd) reference job_postings via job_id.
Proxy applications carry the externally sourced job inline, keyed by object_id.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from placement_workflow.db.base import Base


class JobApplication(Base):
    __tablename__ = "job_applications"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    
    # Job reference: exactly one of job_id (catalog) or object_id (proxy)
    job_id = Column(Integer, ForeignKey("job_postings.id"), nullable=True, index=True)
    object_id = Column(String(50), nullable=True)
    external_job_id = Column(String(255), nullable=True)
    
    # Denormalized job fields, copied at creation time
    job_link = Column(Text, nullable=True)
    job_type = Column(String(50), nullable=True)
    job_title = Column(String(300), nullable=True)
    company_name = Column(String(300), nullable=True)
    location = Column(String(255), nullable=True)
    job_categories = Column(JSON, nullable=True, default=list)
    normal_job_title = Column(String(300), nullable=True)
    level = Column(String(20), nullable=True)
    
    # Lifecycle
    application_type = Column(String(20), nullable=False, index=True)  # direct | proxy | referral | bd
    status = Column(String(30), nullable=False, index=True)
    assigned_mentor_id = Column(String(36), nullable=True, index=True)
    
    recommended_by = Column(String(36), nullable=True, index=True)
    recommended_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    # Relationships
    job = relationship("JobPosting")
    history = relationship(
        "ApplicationHistory",
        back_populates="application",
        order_by="ApplicationHistory.id",
    )
    
    # Storage-level guard against concurrent duplicate inserts.
    # NULLs never collide, so each constraint only bites on its own flow.
    __table_args__ = (
        UniqueConstraint('student_id', 'job_id', name='uq_job_applications_student_job'),
        UniqueConstraint('student_id', 'object_id', name='uq_job_applications_student_object'),
        Index('idx_job_applications_type_status', 'application_type', 'status'),
    )
    
    def __repr__(self):
        return (
            f"<JobApplication(id={self.id}, student_id='{self.student_id}', "
            f"type='{self.application_type}', status='{self.status}')>"
        )
