from fhir_staging.etl.batch import Batch
from fhir_staging.etl.linker import link
from fhir_staging.etl.transform import normalize
from fhir_staging.queue.producer import QueueProducer


def build_batch(entries) -> tuple[Batch, dict[str, int]]:
    patients, encounters, observations = normalize(entries)
    linked = link(encounters, observations)
    counts = {
        "patients": len(patients),
        "encounters": len(linked),
        "observations": len(observations),
    }
    return Batch(patients=tuple(patients), encounters=tuple(linked)), counts


def ingest_bundle(entries, producer: QueueProducer) -> dict:
    batch, counts = build_batch(entries)
    job = producer.submit(batch)
    return {"job_id": job.id, "queue": job.queue, **counts}
