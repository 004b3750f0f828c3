from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import redis
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fhir_staging.core.config import QUEUE_NAME, QUEUE_PREFIX
from fhir_staging.core.logging import log
from fhir_staging.etl.batch import Batch


class QueueUnavailable(Exception):
    pass


@dataclass(frozen=True)
class JobHandle:
    id: str
    queue: str


def wait_key(queue_name: str, prefix: str = QUEUE_PREFIX) -> str:
    return f"{prefix}:{queue_name}:wait"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class QueueProducer:
    def __init__(self, client: redis.Redis, queue_name: str = QUEUE_NAME, prefix: str = QUEUE_PREFIX):
        self.client = client
        self.queue_name = queue_name
        self.key = wait_key(queue_name, prefix)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.ConnectionError),
        reraise=True,
    )
    def _push(self, message: str) -> None:
        self.client.lpush(self.key, message)

    def submit(self, batch: Batch) -> JobHandle:
        """Enqueue one batch as a single job. Duplicate batches are not detected."""
        job_id = uuid.uuid4().hex
        message = json.dumps(
            {
                "id": job_id,
                "queue": self.queue_name,
                "enqueued_at": _utc_now_iso(),
                "data": batch.to_payload(),
            }
        )
        try:
            self._push(message)
        except redis.RedisError as exc:
            log.error("enqueue_failed", queue=self.queue_name, error=str(exc))
            raise QueueUnavailable(str(exc)) from exc

        log.info(
            "job_enqueued",
            job_id=job_id,
            queue=self.queue_name,
            patients=len(batch.patients),
            encounters=len(batch.encounters),
        )
        return JobHandle(id=job_id, queue=self.queue_name)
