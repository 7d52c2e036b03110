import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./placement.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ Batch creation limits
MAX_BATCH_COMBINATIONS = int(os.getenv("MAX_BATCH_COMBINATIONS", "5000"))
DUPLICATE_SAMPLE_SIZE = int(os.getenv("DUPLICATE_SAMPLE_SIZE", "10"))

# ✅ Pagination
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))
