from collections import defaultdict, deque

import pytest
import redis
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from fhir_staging.models.base import Base
from fhir_staging.models import tables  # noqa: F401


class InMemoryRedis:
    """Just enough of the redis list API for the producer and worker."""

    def __init__(self):
        self.lists = defaultdict(deque)

    def lpush(self, key, *values):
        for value in values:
            self.lists[key].appendleft(value)
        return len(self.lists[key])

    def brpop(self, keys, timeout=0):
        for key in keys:
            if self.lists[key]:
                return key, self.lists[key].pop()
        return None

    def llen(self, key):
        return len(self.lists[key])

    def close(self):
        pass


class DownRedis(InMemoryRedis):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def lpush(self, key, *values):
        self.calls += 1
        raise redis.ConnectionError("Connection refused")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def down_redis():
    return DownRedis()


@pytest.fixture
def bundle():
    return {
        "resourceType": "Bundle",
        "type": "transaction",
        "entry": [
            {
                "resource": {
                    "resourceType": "Patient",
                    "id": "P1",
                    "gender": "female",
                    "birthDate": "1980",
                    "managingOrganization": {"reference": "Organization/F1"},
                    "identifier": [{"type": {"text": "HIV Clinic No."}, "value": "HCN-1"}],
                    "name": [{"given": ["Jane"], "family": "Doe"}],
                }
            },
            {
                "resourceType": "Patient",
                "id": "P2",
                "gender": "male",
                "birthDate": "1990-05-05",
            },
            {
                "resource": {
                    "resourceType": "Encounter",
                    "id": "E1",
                    "type": [{"coding": [{"code": "ART"}]}],
                    "period": {"start": "2023-04-01"},
                    "subject": {"reference": "Patient/P1"},
                    "serviceProvider": {"reference": "Organization/F1"},
                }
            },
            {
                "resource": {
                    "resourceType": "Encounter",
                    "id": "E2",
                    "type": [{"coding": [{"code": "ART"}]}],
                    "period": {"start": "2023-05-01"},
                    "subject": {"reference": "Patient/P1"},
                }
            },
            {
                "resource": {
                    "resourceType": "Observation",
                    "id": "O1",
                    "subject": {"reference": "Patient/P1"},
                    "encounter": {"reference": "Encounter/E1"},
                    "code": {"coding": [{"display": "BP", "code": "U1"}, {"code": "C1"}]},
                    "valueQuantity": {"value": 120, "unit": "mmHg"},
                }
            },
            {
                "resource": {
                    "resourceType": "Observation",
                    "id": "O2",
                    "subject": {"reference": "Patient/P1"},
                    "encounter": {"reference": "Encounter/E1"},
                    "code": {"coding": [{"display": "HR", "code": "U2"}, {"code": "C2"}]},
                    "valueInteger": 72,
                }
            },
        ],
    }
