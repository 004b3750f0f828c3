import os

from dotenv import load_dotenv

load_dotenv()

PG_USER = os.getenv("PG_USER", "postgres")
PG_PASSWORD = os.getenv("PG_PASSWORD", "postgres")
PG_HOST = os.getenv("PG_HOST", "localhost")
PG_PORT = int(os.getenv("PG_PORT", "5432"))
PG_DATABASE = os.getenv("PG_DATABASE", "fhir")

DB_URL = os.getenv(
    "DB_URL",
    f"postgresql+psycopg2://{PG_USER}:{PG_PASSWORD}@{PG_HOST}:{PG_PORT}/{PG_DATABASE}",
)

# Bounded pool shared by every job handled in this process.
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_POOL_TIMEOUT_SECS = float(os.getenv("DB_POOL_TIMEOUT_SECS", "2"))
DB_POOL_RECYCLE_SECS = int(os.getenv("DB_POOL_RECYCLE_SECS", "30"))

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
QUEUE_NAME = os.getenv("QUEUE_NAME", "fhir")
# Jobs are JSON strings on the Redis list "<prefix>:<queue>:wait".
QUEUE_PREFIX = os.getenv("QUEUE_PREFIX", "fhir_staging")
WORKER_POLL_TIMEOUT_SECS = int(os.getenv("WORKER_POLL_TIMEOUT_SECS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "false").strip().lower() in {"1", "true", "yes", "on"}
