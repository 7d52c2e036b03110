"""
ApplicationHistory model - append-only ledger of status changes.

Rows are never updated or deleted. The creation event has previous_status = NULL.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from placement_workflow.db.base import Base


class ApplicationHistory(Base):
    __tablename__ = "application_history"

    id = Column(Integer, primary_key=True, index=True)
    application_id = Column(Integer, ForeignKey("job_applications.id"), nullable=False, index=True)
    
    previous_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=False)
    
    changed_by = Column(String(36), nullable=True)
    change_reason = Column(Text, nullable=True)
    change_metadata = Column(JSON, nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    application = relationship("JobApplication", back_populates="history")
    
    __table_args__ = (
        Index('idx_application_history_app_created', 'application_id', 'created_at'),
        Index('idx_application_history_status_change', 'previous_status', 'new_status'),
    )
    
    def __repr__(self):
        return f"<ApplicationHistory(id={self.id}, application_id={self.application_id}, {self.previous_status} -> {self.new_status})>"
