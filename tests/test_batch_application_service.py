"""
Unit tests for batch application creation (proxy and referral flows).
Tests validation, duplicate rejection, atomicity and post-commit events.
"""
import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from placement_workflow.db.base import Base
from placement_workflow.db.models import JobPosting, JobApplication, ApplicationHistory
from placement_workflow.core.application_types import ApplicationType
from placement_workflow.core.exceptions import (
    ValidationError,
    DuplicateApplicationError,
    ReferenceNotFoundError,
)
from placement_workflow.services import batch_application_service
from placement_workflow.services.batch_application_service import (
    create_proxy_batch,
    create_referral_batch,
)
from placement_workflow.services.audit_trail import build_history_entry
from placement_workflow.services.duplicate_detector import find_duplicate_pairs
from placement_workflow.services.event_publisher import EventPublisher, APPLICATION_STATUS_CHANGED_EVENT


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

# Separate database with foreign key enforcement switched on
fk_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(fk_engine, "connect")
def enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


FkSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=fk_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def active_job(db):
    job = JobPosting(title="Data Analyst", company_name="Acme", location="Remote", level="entry", status="active")
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


@pytest.fixture
def inactive_job(db):
    job = JobPosting(title="Backend Engineer", company_name="Initech", status="inactive")
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


@pytest.fixture
def recorder():
    """Publisher that records every status-changed event."""
    publisher = EventPublisher()
    received = []
    publisher.subscribe(APPLICATION_STATUS_CHANGED_EVENT, lambda t, p: received.append(p))
    publisher.received = received
    return publisher


def proxy_job(object_id="obj-1", **overrides):
    job = {
        "object_id": object_id,
        "external_job_id": f"ext-{object_id}",
        "job_title": "Data Analyst",
        "company_name": "Acme",
        "location": "Remote",
    }
    job.update(overrides)
    return job


def count_rows(db):
    return db.query(JobApplication).count(), db.query(ApplicationHistory).count()


# ---------- referral flow ----------

def test_referral_batch_two_students_one_job(db, active_job, recorder):
    """Two students x one active job -> two recommended applications, one history row each."""
    applications = create_referral_batch(db, ["S1", "S2"], [active_job.id], "C1", publisher=recorder)

    assert len(applications) == 2
    assert {a.student_id for a in applications} == {"S1", "S2"}
    for application in applications:
        assert application.status == "recommended"
        assert application.application_type == "referral"
        assert application.recommended_by == "C1"
        assert application.job_title == "Data Analyst"
        assert application.company_name == "Acme"

        history = db.query(ApplicationHistory).filter(ApplicationHistory.application_id == application.id).all()
        assert len(history) == 1
        assert history[0].previous_status is None
        assert history[0].new_status == "recommended"
        assert history[0].changed_by == "C1"

    # Shared batch timestamp
    assert applications[0].recommended_at == applications[1].recommended_at

    assert len(recorder.received) == 2
    assert all(p["previous_status"] is None for p in recorder.received)
    assert all(p["new_status"] == "recommended" for p in recorder.received)


def test_referral_batch_deduplicates_input(db, active_job):
    applications = create_referral_batch(db, ["S1", "S1", " S1 "], [active_job.id, active_job.id], "C1")

    assert len(applications) == 1
    assert count_rows(db) == (1, 1)


def test_referral_batch_inactive_job_creates_nothing(db, active_job, inactive_job):
    with pytest.raises(ReferenceNotFoundError) as exc_info:
        create_referral_batch(db, ["S1", "S2"], [active_job.id, inactive_job.id], "C1")

    assert exc_info.value.details["missing_job_ids"] == [inactive_job.id]
    assert count_rows(db) == (0, 0)


def test_referral_batch_missing_job_creates_nothing(db, active_job):
    with pytest.raises(ReferenceNotFoundError):
        create_referral_batch(db, ["S1"], [active_job.id, 9999], "C1")

    assert count_rows(db) == (0, 0)


def test_referral_batch_duplicate_pair_rejected(db, active_job):
    create_referral_batch(db, ["S1"], [active_job.id], "C1")

    with pytest.raises(DuplicateApplicationError) as exc_info:
        create_referral_batch(db, ["S1", "S2"], [active_job.id], "C2")

    assert exc_info.value.details["duplicates"] == [f"S1/{active_job.id}"]
    assert exc_info.value.details["duplicate_count"] == 1
    # S2 was not created either
    assert count_rows(db) == (1, 1)


def test_referral_batch_requires_actor(db, active_job):
    with pytest.raises(ValidationError):
        create_referral_batch(db, ["S1"], [active_job.id], "  ")


def test_referral_batch_requires_students_and_jobs(db, active_job):
    with pytest.raises(ValidationError):
        create_referral_batch(db, [], [active_job.id], "C1")
    with pytest.raises(ValidationError):
        create_referral_batch(db, ["S1"], [], "C1")


def test_referral_batch_cap_checked_before_any_query():
    db = MagicMock()
    student_ids = [f"S{i}" for i in range(5001)]

    with pytest.raises(ValidationError) as exc_info:
        create_referral_batch(db, student_ids, [1], "C1")

    assert exc_info.value.details["combinations"] == 5001
    db.query.assert_not_called()
    db.add_all.assert_not_called()


def test_referral_batch_many_students(db, active_job):
    student_ids = [f"S{i}" for i in range(50)]
    applications = create_referral_batch(db, student_ids, [active_job.id], "C1")

    assert len(applications) == 50


def test_referral_batch_constraint_violation_rolls_back(db, active_job, monkeypatch):
    """A pair created between the pre-check and the insert aborts the whole batch."""
    create_referral_batch(db, ["S1"], [active_job.id], "C1")
    calls = []

    def misses_first_check(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            return []
        return find_duplicate_pairs(*args, **kwargs)

    monkeypatch.setattr(batch_application_service, "find_duplicate_pairs", misses_first_check)

    with pytest.raises(DuplicateApplicationError):
        create_referral_batch(db, ["S2", "S1", "S3"], [active_job.id], "C2")

    assert count_rows(db) == (1, 1)
    assert len(calls) == 2


def test_referral_batch_foreign_key_violation_reports_missing_job(monkeypatch):
    """A posting deleted after the catalog check surfaces as a missing reference."""
    Base.metadata.create_all(bind=fk_engine)
    db = FkSessionLocal()
    ghost = JobPosting(id=999, title="Ghost Role", company_name="Nowhere", status="active")
    monkeypatch.setattr(batch_application_service, "get_active_jobs", lambda *args, **kwargs: {999: ghost})
    try:
        with pytest.raises(ReferenceNotFoundError) as exc_info:
            create_referral_batch(db, ["S1"], [999], "C1")

        assert exc_info.value.details["missing_job_ids"] == [999]
        assert count_rows(db) == (0, 0)
    finally:
        db.close()
        Base.metadata.drop_all(bind=fk_engine)


def test_unexplained_constraint_violation_propagates(db, monkeypatch):
    def orphan_history_entry(**kwargs):
        kwargs["application_id"] = None
        return build_history_entry(**kwargs)

    monkeypatch.setattr(batch_application_service, "build_history_entry", orphan_history_entry)

    with pytest.raises(IntegrityError):
        create_proxy_batch(db, ["S1"], [proxy_job("obj-1")], "C1")

    assert count_rows(db) == (0, 0)


def test_referral_batch_skips_entitlement_check(db, active_job):
    validator = MagicMock()

    create_referral_batch(db, ["S1"], [active_job.id], "C1", entitlement_validator=validator)

    validator.assert_not_called()


# ---------- proxy flow ----------

def test_proxy_batch_creates_submitted_applications(db, recorder):
    applications = create_proxy_batch(
        db,
        ["S1", "S2"],
        [proxy_job("obj-1"), proxy_job("obj-2", job_title="ML Engineer")],
        "C1",
        publisher=recorder,
    )

    assert len(applications) == 4
    for application in applications:
        assert application.status == "submitted"
        assert application.application_type == "proxy"
        assert application.job_id is None
        assert application.submitted_at is not None
    assert {(a.student_id, a.object_id) for a in applications} == {
        ("S1", "obj-1"), ("S1", "obj-2"), ("S2", "obj-1"), ("S2", "obj-2"),
    }
    assert count_rows(db) == (4, 4)
    assert len(recorder.received) == 4


def test_proxy_batch_collapses_repeated_object_ids(db):
    applications = create_proxy_batch(
        db,
        ["S1"],
        [proxy_job("obj-1", job_title="First"), proxy_job("obj-1", job_title="Second")],
        "C1",
    )

    assert len(applications) == 1
    assert applications[0].job_title == "First"


def test_proxy_batch_duplicate_rejected(db):
    create_proxy_batch(db, ["S1"], [proxy_job("obj-1")], "C1")

    with pytest.raises(DuplicateApplicationError) as exc_info:
        create_proxy_batch(db, ["S1", "S2"], [proxy_job("obj-1"), proxy_job("obj-2")], "C1")

    assert exc_info.value.details["duplicates"] == ["S1/obj-1"]
    assert count_rows(db) == (1, 1)


def test_proxy_batch_strips_object_id_before_duplicate_check(db):
    create_proxy_batch(db, ["S1"], [proxy_job("obj-1")], "C1")

    with pytest.raises(DuplicateApplicationError) as exc_info:
        create_proxy_batch(db, [" S1 "], [proxy_job("obj-1 ")], "C1")

    assert exc_info.value.details["duplicates"] == ["S1/obj-1"]
    assert count_rows(db) == (1, 1)


def test_proxy_batch_collapses_object_ids_after_stripping(db):
    applications = create_proxy_batch(db, ["S1"], [proxy_job("obj-1"), proxy_job(" obj-1")], "C1")

    assert len(applications) == 1
    assert applications[0].object_id == "obj-1"


def test_proxy_batch_rejects_blank_object_id_before_io():
    db = MagicMock()

    with pytest.raises(ValidationError) as exc_info:
        create_proxy_batch(db, ["S1"], [proxy_job("   ")], "C1")

    assert exc_info.value.details == {"field": "object_id", "index": 0}
    db.query.assert_not_called()


def test_proxy_batch_rejects_oversized_student_id_before_io():
    db = MagicMock()

    with pytest.raises(ValidationError) as exc_info:
        create_proxy_batch(db, ["S" * 37], [proxy_job("obj-1")], "C1")

    assert exc_info.value.details == {"field": "student_ids", "max_length": 36}
    db.query.assert_not_called()


def test_proxy_batch_oversized_field_rejected_before_io():
    db = MagicMock()

    with pytest.raises(ValidationError) as exc_info:
        create_proxy_batch(db, ["S1"], [proxy_job("obj-1", job_title="x" * 301)], "C1")

    assert exc_info.value.details["field"] == "job_title"
    assert exc_info.value.details["max_length"] == 300
    db.query.assert_not_called()


def test_proxy_batch_object_id_limit():
    db = MagicMock()

    with pytest.raises(ValidationError) as exc_info:
        create_proxy_batch(db, ["S1"], [proxy_job("o" * 51)], "C1")

    assert exc_info.value.details["field"] == "object_id"


def test_proxy_batch_malformed_job_rejected():
    db = MagicMock()

    with pytest.raises(ValidationError):
        create_proxy_batch(db, ["S1"], [{"object_id": "obj-1"}], "C1")
    db.query.assert_not_called()


def test_proxy_batch_cap_checked_before_any_query():
    db = MagicMock()
    jobs = [proxy_job(f"obj-{i}") for i in range(5001)]

    with pytest.raises(ValidationError):
        create_proxy_batch(db, ["S1"], jobs, "C1")

    db.query.assert_not_called()


def test_proxy_batch_calls_entitlement_validator(db):
    validator = MagicMock()

    create_proxy_batch(db, ["S1", "S2"], [proxy_job()], "C1", entitlement_validator=validator)

    validator.assert_called_once_with(db, ["S1", "S2"], ApplicationType.PROXY)


def test_proxy_batch_entitlement_failure_creates_nothing(db):
    class NoEntitlement(Exception):
        pass

    def validator(db, student_ids, application_type):
        raise NoEntitlement("contract exhausted")

    with pytest.raises(NoEntitlement):
        create_proxy_batch(db, ["S1"], [proxy_job()], "C1", entitlement_validator=validator)

    assert count_rows(db) == (0, 0)


def test_publish_failure_keeps_committed_batch(db):
    publisher = MagicMock()
    publisher.publish.side_effect = RuntimeError("broker unavailable")

    applications = create_proxy_batch(db, ["S1"], [proxy_job()], "C1", publisher=publisher)

    assert len(applications) == 1
    assert count_rows(db) == (1, 1)
    publisher.publish.assert_called_once()


def test_proxy_and_referral_keys_do_not_collide(db, active_job):
    """A proxy application never blocks a catalog application for the same student."""
    create_proxy_batch(db, ["S1"], [proxy_job(str(active_job.id))], "C1")

    applications = create_referral_batch(db, ["S1"], [active_job.id], "C1")

    assert len(applications) == 1
