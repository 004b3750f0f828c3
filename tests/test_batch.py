import json

import pytest

from fhir_staging.etl.batch import Batch, EncounterRow, PatientRow
from fhir_staging.etl.pipeline import build_batch


def test_payload_uses_row_tuples_in_column_order(bundle):
    batch, counts = build_batch(bundle["entry"])
    payload = json.loads(json.dumps(batch.to_payload()))

    assert counts == {"patients": 1, "encounters": 1, "observations": 2}
    assert payload["patients"] == [["P1", "female", "1980-01-01", None, None, "F1", "HCN-1", "Jane Doe", None]]
    [encounter] = payload["encounters"]
    assert encounter[:5] == ["P1", "E1", "2023-04-01", "F1", "ART"]
    assert set(encounter[5]) == {"BP", "HR"}
    assert Batch.from_payload(payload) == batch


def test_from_payload_accepts_seven_column_patients_and_string_obs():
    batch = Batch.from_payload(
        {
            "patients": [["P1", "F", "1980-01-01", False, None, "F1", None]],
            "encounters": [["P1", "E1", "2023-04-01", "F1", "ART", '{"BP": {"value": 120}}']],
        }
    )
    assert batch.patients == (PatientRow("P1", "F", "1980-01-01", False, None, "F1"),)
    assert batch.encounters == (EncounterRow("P1", "E1", "2023-04-01", "F1", "ART", {"BP": {"value": 120}}),)


@pytest.mark.parametrize(
    "payload",
    [
        None,
        ["P1"],
        {"patients": [["P1", "F"]]},
        {"encounters": [["P1", "E1"]]},
        {"encounters": [["P1", "E1", "2023-04-01", "F1", "ART", [1, 2]]]},
    ],
)
def test_from_payload_rejects_wrong_shapes(payload):
    with pytest.raises(ValueError):
        Batch.from_payload(payload)
