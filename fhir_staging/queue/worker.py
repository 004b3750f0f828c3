from __future__ import annotations

import json
import signal
import time

import redis

from fhir_staging.core.config import (
    QUEUE_NAME,
    QUEUE_PREFIX,
    REDIS_URL,
    WORKER_POLL_TIMEOUT_SECS,
)
from fhir_staging.core.logging import configure_logging, log
from fhir_staging.db.session import build_engine
from fhir_staging.etl.batch import Batch
from fhir_staging.etl.loader import BatchWriter, WriteResult
from fhir_staging.queue.producer import wait_key


class Worker:
    """Pulls jobs off the work queue and hands each batch to the writer.

    ``stop()`` only flags the loop; a job already dequeued is always written
    before ``run()`` returns.
    """

    def __init__(
        self,
        client: redis.Redis,
        writer: BatchWriter,
        queue_name: str = QUEUE_NAME,
        prefix: str = QUEUE_PREFIX,
    ):
        self.client = client
        self.writer = writer
        self.queue_name = queue_name
        self.key = wait_key(queue_name, prefix)
        self._stopping = False

    def stop(self, *_args) -> None:
        self._stopping = True

    def handle(self, message) -> WriteResult | None:
        try:
            job = json.loads(message)
            batch = Batch.from_payload(job["data"])
        except (ValueError, KeyError, TypeError) as exc:
            log.error("job_decode_failed", queue=self.queue_name, error=str(exc))
            return None

        job_id = job.get("id")
        result = self.writer.apply(batch)
        if result.ok:
            log.info(
                "job_completed",
                job_id=job_id,
                patients=result.patients_upserted,
                encounters=result.encounters_upserted,
            )
        else:
            log.error("job_failed", job_id=job_id, error=result.error)
        return result

    def run_once(self, timeout: int = WORKER_POLL_TIMEOUT_SECS) -> WriteResult | None:
        item = self.client.brpop([self.key], timeout=timeout)
        if item is None:
            return None
        _key, message = item
        return self.handle(message)

    def run(self, timeout: int = WORKER_POLL_TIMEOUT_SECS) -> None:
        log.info("worker_started", queue=self.queue_name)
        while not self._stopping:
            try:
                self.run_once(timeout=timeout)
            except redis.ConnectionError as exc:
                log.warning("broker_unavailable", queue=self.queue_name, error=str(exc))
                time.sleep(1)
        log.info("worker_stopped", queue=self.queue_name)


def main():
    configure_logging()
    engine = build_engine()
    client = redis.Redis.from_url(REDIS_URL)
    worker = Worker(client, BatchWriter(engine))

    signal.signal(signal.SIGINT, worker.stop)
    signal.signal(signal.SIGTERM, worker.stop)
    try:
        worker.run()
    finally:
        client.close()
        engine.dispose()


if __name__ == "__main__":
    main()
