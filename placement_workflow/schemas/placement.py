"""
Pydantic schemas for placement workflow endpoints and domain events.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class ProxyJob(BaseModel):
    """Externally sourced job supplied inline by the counselor for proxy applications."""
    object_id: str = Field(..., min_length=1, description="External object ID, unique per student among proxy applications")
    external_job_id: str = Field(..., description="Job ID on the source platform")
    job_title: str = Field(..., description="Job title")
    company_name: str = Field(..., description="Company name")
    job_link: Optional[str] = Field(None, description="Job posting URL")
    job_type: Optional[str] = Field(None, description="fulltime, internship, contract")
    location: Optional[str] = Field(None, description="Work location")
    job_categories: List[str] = Field(default_factory=list, description="Job categories")
    normal_job_title: Optional[str] = Field(None, description="Normalized job title")
    level: Optional[str] = Field(None, description="Experience level")


class ProxyBatchRequest(BaseModel):
    """Schema for creating proxy applications for every student x job pair."""
    student_ids: List[str] = Field(..., description="Students to apply for")
    jobs: List[ProxyJob] = Field(..., description="External jobs to apply to")

    class Config:
        json_schema_extra = {
            "example": {
                "student_ids": ["S1", "S2"],
                "jobs": [{
                    "object_id": "obj-001",
                    "external_job_id": "ext-9001",
                    "job_title": "Data Analyst",
                    "company_name": "Acme",
                    "job_link": "https://example.com/jobs/9001",
                    "location": "Remote",
                    "level": "entry"
                }]
            }
        }


class ReferralBatchRequest(BaseModel):
    """Schema for recommending catalog jobs to students."""
    student_ids: List[str] = Field(..., description="Students to recommend to")
    job_ids: List[int] = Field(..., description="Catalog job posting IDs")


class SubmitApplicationRequest(BaseModel):
    """Schema for creating a single catalog-backed application."""
    student_id: str = Field(..., min_length=1, description="Student ID")
    job_id: int = Field(..., description="Catalog job posting ID")
    application_type: str = Field(default="direct", description="direct, referral or bd")


class ManualApplicationRequest(BaseModel):
    """Schema for recording a referral the counselor arranged outside the system."""
    student_id: str = Field(..., min_length=1, description="Student ID")
    mentor_id: str = Field(..., min_length=1, description="Mentor already handling the referral")
    job_id: Optional[int] = Field(None, description="Catalog job posting ID, if the job is in the catalog")
    job_link: Optional[str] = Field(None, description="Job posting URL; required when job_id is absent")
    external_job_id: Optional[str] = Field(None, description="Job ID on the source platform")
    job_title: Optional[str] = Field(None, description="Job title")
    company_name: Optional[str] = Field(None, description="Company name")
    location: Optional[str] = Field(None, description="Work location")
    job_type: Optional[str] = Field(None, description="fulltime, internship, contract")
    job_categories: List[str] = Field(default_factory=list, description="Job categories")
    normal_job_title: Optional[str] = Field(None, description="Normalized job title")
    level: Optional[str] = Field(None, description="Experience level")
    submitted_at: Optional[datetime] = Field(None, description="When the resume was submitted")


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="Target application status")
    reason: Optional[str] = Field(None, description="Free-text reason recorded in history")


class MentorAssignmentRequest(BaseModel):
    mentor_id: str = Field(..., min_length=1, description="Mentor to assign")
    reason: Optional[str] = Field(None, description="Free-text reason recorded in history")


class RollbackRequest(BaseModel):
    mentor_id: Optional[str] = Field(
        None,
        description="Omit to keep the assigned mentor, empty string to clear it, or a new mentor ID",
    )


class ApplicationResponse(BaseModel):
    """Schema for a job application."""
    id: int
    student_id: str
    application_type: str
    status: str
    job_id: Optional[int] = None
    object_id: Optional[str] = None
    external_job_id: Optional[str] = None
    job_title: Optional[str] = None
    company_name: Optional[str] = None
    location: Optional[str] = None
    job_type: Optional[str] = None
    job_link: Optional[str] = None
    level: Optional[str] = None
    assigned_mentor_id: Optional[str] = None
    recommended_by: Optional[str] = None
    recommended_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BatchApplicationResponse(BaseModel):
    items: List[ApplicationResponse] = Field(..., description="Created applications")
    total: int = Field(..., description="Number of applications created")


class ApplicationListResponse(BaseModel):
    items: List[ApplicationResponse]
    total: int = Field(..., description="Total number of matching applications")
    page: int = Field(1, description="Current page number")
    page_size: int = Field(20, description="Number of items per page")


class HistoryEntryResponse(BaseModel):
    """Schema for a single status history entry."""
    id: int
    application_id: int
    previous_status: Optional[str] = Field(None, description="Null for the creation event")
    new_status: str
    changed_by: Optional[str] = None
    change_reason: Optional[str] = None
    change_metadata: Optional[dict] = None
    created_at: datetime

    class Config:
        from_attributes = True


class HistoryListResponse(BaseModel):
    entries: List[HistoryEntryResponse]
    total: int


class StatusChangedEvent(BaseModel):
    """Payload published after a status change commits."""
    application_id: int
    previous_status: Optional[str]
    new_status: str
    changed_by: Optional[str]
    changed_at: datetime
    assigned_mentor_id: Optional[str] = None
    rollback_reason: Optional[str] = None


class ApplicationSubmittedEvent(BaseModel):
    """Payload published when an application enters submitted; consumed by billing."""
    application_id: int
    student_id: str
    provider_id: str
    consumed_units: int = 1
    unit_type: str = "count"
    completed_at: datetime
    title: Optional[str] = None
