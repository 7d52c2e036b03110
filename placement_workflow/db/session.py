from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from placement_workflow.core import config
DATABASE_URL = config.DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
# Batch results are read after commit; keep them loaded instead of re-selecting every row
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
