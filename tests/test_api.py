import json

from fastapi.testclient import TestClient

from fhir_staging.api.main import app, get_producer
from fhir_staging.queue.producer import QueueProducer, wait_key


def _client(redis_client):
    producer = QueueProducer(redis_client, queue_name="fhir")
    app.dependency_overrides[get_producer] = lambda: producer
    return TestClient(app)


def test_health():
    resp = TestClient(app).get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_submit_bundle_enqueues_normalized_batch(fake_redis, bundle):
    client = _client(fake_redis)
    resp = client.post("/fhir", json=bundle)
    app.dependency_overrides.clear()

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["queue"] == "fhir"
    assert (payload["patients"], payload["encounters"], payload["observations"]) == (1, 1, 2)

    _, message = fake_redis.brpop([wait_key("fhir")])
    job = json.loads(message)
    assert job["id"] == payload["job_id"]
    [encounter] = job["data"]["encounters"]
    assert encounter[1] == "E1"
    assert set(encounter[5]) == {"BP", "HR"}


def test_submit_empty_bundle_still_enqueues(fake_redis):
    client = _client(fake_redis)
    resp = client.post("/fhir", json={"resourceType": "Bundle"})
    app.dependency_overrides.clear()

    assert resp.status_code == 200
    assert resp.json()["patients"] == 0
    assert fake_redis.llen(wait_key("fhir")) == 1


def test_submit_returns_503_when_queue_is_down(down_redis, bundle):
    client = _client(down_redis)
    resp = client.post("/fhir", json=bundle)
    app.dependency_overrides.clear()

    assert resp.status_code == 503


def test_submit_rejects_non_list_entry(fake_redis):
    client = _client(fake_redis)
    resp = client.post("/fhir", json={"entry": "nope"})
    app.dependency_overrides.clear()

    assert resp.status_code == 422
    assert fake_redis.llen(wait_key("fhir")) == 0


def test_submit_ignores_non_object_entries(fake_redis, bundle):
    bundle["entry"].extend(["Patient/P9", 42, None])
    client = _client(fake_redis)
    resp = client.post("/fhir", json=bundle)
    app.dependency_overrides.clear()

    assert resp.status_code == 200
    assert resp.json()["patients"] == 1
    assert fake_redis.llen(wait_key("fhir")) == 1
