"""
Integration tests for the /placement endpoints.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from placement_workflow.main import app
from placement_workflow.db.base import Base
from placement_workflow.db.models import JobPosting
from placement_workflow.api.routes.placement import get_db, get_event_publisher
from placement_workflow.services.event_publisher import EventPublisher, APPLICATION_STATUS_CHANGED_EVENT


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=test_engine)

test_publisher = EventPublisher()
published = []
test_publisher.subscribe(APPLICATION_STATUS_CHANGED_EVENT, lambda t, p: published.append(p))


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_db():
    """Create and drop tables for each test, with test dependencies installed."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_publisher] = lambda: test_publisher
    Base.metadata.create_all(bind=test_engine)
    published.clear()
    yield
    Base.metadata.drop_all(bind=test_engine)
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def job_id():
    db = TestSessionLocal()
    try:
        job = JobPosting(title="Data Analyst", company_name="Acme", status="active")
        db.add(job)
        db.commit()
        return job.id
    finally:
        db.close()


COUNSELOR = {"X-Actor-Id": "C1"}


def create_referral(client, job_id, student_ids=("S1",)):
    response = client.post(
        "/placement/referral-applications/batch",
        json={"student_ids": list(student_ids), "job_ids": [job_id]},
        headers=COUNSELOR,
    )
    assert response.status_code == 201
    return response.json()["items"]


def test_missing_actor_header(client, job_id):
    response = client.post(
        "/placement/referral-applications/batch",
        json={"student_ids": ["S1"], "job_ids": [job_id]},
    )

    assert response.status_code == 401


def test_referral_batch_endpoint(client, job_id):
    items = create_referral(client, job_id, ("S1", "S2"))

    assert len(items) == 2
    assert all(item["status"] == "recommended" for item in items)
    assert len(published) == 2


def test_referral_batch_duplicate_returns_409(client, job_id):
    create_referral(client, job_id)

    response = client.post(
        "/placement/referral-applications/batch",
        json={"student_ids": ["S1"], "job_ids": [job_id]},
        headers=COUNSELOR,
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error"] == "duplicate_application"
    assert detail["duplicates"] == [f"S1/{job_id}"]


def test_referral_batch_unknown_job_returns_400(client):
    response = client.post(
        "/placement/referral-applications/batch",
        json={"student_ids": ["S1"], "job_ids": [999]},
        headers=COUNSELOR,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "reference_not_found"


def test_proxy_batch_endpoint(client):
    response = client.post(
        "/placement/proxy-applications/batch",
        json={
            "student_ids": ["S1"],
            "jobs": [{
                "object_id": "obj-1",
                "external_job_id": "ext-1",
                "job_title": "Data Analyst",
                "company_name": "Acme",
            }],
        },
        headers=COUNSELOR,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["status"] == "submitted"
    assert data["items"][0]["object_id"] == "obj-1"


def test_proxy_batch_oversized_field_returns_400(client):
    response = client.post(
        "/placement/proxy-applications/batch",
        json={
            "student_ids": ["S1"],
            "jobs": [{
                "object_id": "obj-1",
                "external_job_id": "ext-1",
                "job_title": "x" * 301,
                "company_name": "Acme",
            }],
        },
        headers=COUNSELOR,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "job_title"


def test_full_referral_lifecycle(client, job_id):
    application_id = create_referral(client, job_id)[0]["id"]

    response = client.patch(
        f"/placement/job-applications/{application_id}/status",
        json={"status": "interested"},
        headers={"X-Actor-Id": "S1"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "interested"

    response = client.patch(
        f"/placement/referrals/{application_id}/mentor",
        json={"mentor_id": "M1"},
        headers=COUNSELOR,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "mentor_assigned"
    assert response.json()["assigned_mentor_id"] == "M1"

    response = client.patch(f"/placement/job-applications/{application_id}/rollback", headers=COUNSELOR)
    assert response.status_code == 200
    assert response.json()["status"] == "interested"

    response = client.get(f"/placement/job-applications/{application_id}/history", headers=COUNSELOR)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 4
    assert [e["new_status"] for e in data["entries"]] == [
        "recommended", "interested", "mentor_assigned", "interested",
    ]


def test_status_update_mentor_assigned_rejected(client, job_id):
    application_id = create_referral(client, job_id)[0]["id"]

    response = client.patch(
        f"/placement/job-applications/{application_id}/status",
        json={"status": "mentor_assigned"},
        headers=COUNSELOR,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_transition"


def test_rollback_after_creation_returns_409(client, job_id):
    application_id = create_referral(client, job_id)[0]["id"]

    response = client.patch(f"/placement/job-applications/{application_id}/rollback", headers=COUNSELOR)

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "history_integrity"


def test_get_missing_application_returns_404(client):
    response = client.get("/placement/job-applications/123", headers=COUNSELOR)

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "application_not_found"


def test_submit_and_list_applications(client, job_id):
    response = client.post(
        "/placement/job-applications",
        json={"student_id": "S9", "job_id": job_id, "application_type": "direct"},
        headers={"X-Actor-Id": "S9"},
    )
    assert response.status_code == 201
    assert response.json()["status"] == "submitted"

    create_referral(client, job_id, ("S1", "S2"))

    response = client.get(
        "/placement/job-applications",
        params={"status": "recommended", "page_size": 1},
        headers=COUNSELOR,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert len(data["items"]) == 1
    assert data["page_size"] == 1


def test_oversized_actor_header_returns_400(client, job_id):
    response = client.post(
        "/placement/referral-applications/batch",
        json={"student_ids": ["S1"], "job_ids": [job_id]},
        headers={"X-Actor-Id": "C" * 37},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "X-Actor-Id"


def test_oversized_student_id_returns_400(client, job_id):
    response = client.post(
        "/placement/referral-applications/batch",
        json={"student_ids": ["S" * 37], "job_ids": [job_id]},
        headers=COUNSELOR,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "validation_error"


def test_manual_referral_endpoint(client):
    payload = {
        "student_id": "S1",
        "mentor_id": "M1",
        "job_link": "https://jobs.example.com/42",
        "job_title": "Backend Engineer",
        "company_name": "Hooli",
        "submitted_at": "2026-03-02T09:30:00Z",
    }

    response = client.post("/placement/referrals/manual", json=payload, headers=COUNSELOR)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "mentor_assigned"
    assert data["application_type"] == "referral"
    assert data["assigned_mentor_id"] == "M1"
    assert published[-1]["assigned_mentor_id"] == "M1"

    response = client.post("/placement/referrals/manual", json=payload, headers=COUNSELOR)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "duplicate_application"


def test_manual_referral_requires_job_reference(client):
    response = client.post(
        "/placement/referrals/manual",
        json={"student_id": "S1", "mentor_id": "M1"},
        headers=COUNSELOR,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "job_id"


def test_rollback_with_mentor_body(client, job_id):
    application_id = create_referral(client, job_id)[0]["id"]
    client.patch(f"/placement/job-applications/{application_id}/status", json={"status": "interested"}, headers={"X-Actor-Id": "S1"})
    client.patch(f"/placement/referrals/{application_id}/mentor", json={"mentor_id": "M1"}, headers=COUNSELOR)
    client.patch(f"/placement/job-applications/{application_id}/status", json={"status": "submitted"}, headers={"X-Actor-Id": "M1"})

    response = client.patch(
        f"/placement/job-applications/{application_id}/rollback",
        json={"mentor_id": "M2"},
        headers=COUNSELOR,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "mentor_assigned"
    assert response.json()["assigned_mentor_id"] == "M2"


def test_lifespan_prepares_database(monkeypatch):
    from placement_workflow import main

    calls = []
    monkeypatch.setattr(main, "prepare_database", lambda: calls.append("prepared"))

    with TestClient(app) as lifespan_client:
        assert lifespan_client.get("/").status_code == 200

    assert calls == ["prepared"]
