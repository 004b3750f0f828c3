from contextlib import asynccontextmanager
from typing import Any

import redis
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, ValidationError

from fhir_staging.core.config import QUEUE_NAME, REDIS_URL
from fhir_staging.core.logging import configure_logging, log
from fhir_staging.etl.pipeline import ingest_bundle
from fhir_staging.queue.producer import QueueProducer, QueueUnavailable


class BundleIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    resourceType: str | None = None
    entry: list[Any] = []


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    client = redis.Redis.from_url(REDIS_URL)
    app.state.producer = QueueProducer(client, queue_name=QUEUE_NAME)
    log.info("api_started", queue=QUEUE_NAME)
    yield
    client.close()


app = FastAPI(title="FHIR Staging Service", version="0.1.0", lifespan=lifespan)


def get_producer(request: Request) -> QueueProducer:
    return request.app.state.producer


@app.get("/health")
def health():
    return {"status": "ok", "queue": QUEUE_NAME}


@app.post("/fhir")
def submit_bundle(bundle: BundleIn, producer: QueueProducer = Depends(get_producer)):
    try:
        return ingest_bundle(bundle.entry, producer)
    except QueueUnavailable as exc:
        raise HTTPException(status_code=503, detail=f"Work queue unavailable: {exc}") from exc


@app.exception_handler(ValidationError)
def pydantic_validation_exception_handler(request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.errors()})
