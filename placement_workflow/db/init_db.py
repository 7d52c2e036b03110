from placement_workflow.db.session import engine
from placement_workflow.db.base import Base


def init_db():
    """Create all tables. Local development only; deployments run Alembic."""
    import placement_workflow.db.models  # noqa: F401  registers models on Base.metadata

    Base.metadata.create_all(bind=engine)
