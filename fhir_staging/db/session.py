import json
from datetime import date, datetime

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from fhir_staging.core.config import (
    DB_POOL_RECYCLE_SECS,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT_SECS,
    DB_URL,
)


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def build_engine(url: str = DB_URL) -> Engine:
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=DB_POOL_SIZE,
        max_overflow=0,
        pool_timeout=DB_POOL_TIMEOUT_SECS,
        pool_recycle=DB_POOL_RECYCLE_SECS,
        json_serializer=lambda obj: json.dumps(obj, default=_json_default),
    )
