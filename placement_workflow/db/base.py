from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Models register themselves on Base.metadata when placement_workflow.db.models is imported
