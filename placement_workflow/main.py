import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

# ✅ Core
from placement_workflow.core.config import LOG_LEVEL, RUN_MIGRATIONS
from placement_workflow.core.logging_config import setup_logging

# ✅ Import All API Routes
from placement_workflow.api.routes import placement, health


setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)


def prepare_database():
    """Run Alembic when RUN_MIGRATIONS=1, otherwise create missing tables for local use."""
    if RUN_MIGRATIONS:
        from placement_workflow.db.migrate import run_migrations
        run_migrations()
    else:
        from placement_workflow.db.init_db import init_db
        init_db()
        logger.info("Tables created without migrations (RUN_MIGRATIONS is not set)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    prepare_database()
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Placement Workflow", lifespan=lifespan)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router)
app.include_router(placement.router)


# ============================================
# ✅ ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "Placement workflow API running"}
