from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class PatientRow:
    case_id: str
    sex: str
    date_of_birth: str
    deceased: bool | None
    date_of_death: str | None
    facility_id: str
    clinic_number: str | None = None
    patient_name: str | None = None
    phone_number: str | None = None

    def as_tuple(self) -> tuple:
        return (
            self.case_id,
            self.sex,
            self.date_of_birth,
            self.deceased,
            self.date_of_death,
            self.facility_id,
            self.clinic_number,
            self.patient_name,
            self.phone_number,
        )


@dataclass(frozen=True)
class EncounterRow:
    patient_id: str | None
    encounter_id: str
    encounter_date: str | None
    facility_id: str | None
    encounter_type_code: str | None
    observations_json: dict[str, dict] = field(default_factory=dict)

    def as_tuple(self) -> tuple:
        return (
            self.patient_id,
            self.encounter_id,
            self.encounter_date,
            self.facility_id,
            self.encounter_type_code,
            self.observations_json,
        )

    def with_observations(self, observations: dict[str, dict]) -> EncounterRow:
        return replace(self, observations_json=observations)


@dataclass(frozen=True)
class ObservationRecord:
    id: str | None
    patient_id: str | None
    encounter_id: str | None
    code: str | None
    uuid: str | None
    obs_name: str | None
    value: Any
    effective_datetime: str | None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Batch:
    """One normalized Bundle, as handed to the queue and then the writer."""

    patients: tuple[PatientRow, ...] = ()
    encounters: tuple[EncounterRow, ...] = ()

    def to_payload(self) -> dict:
        return {
            "patients": [list(p.as_tuple()) for p in self.patients],
            "encounters": [list(e.as_tuple()) for e in self.encounters],
        }

    @classmethod
    def from_payload(cls, payload: dict) -> Batch:
        if not isinstance(payload, dict):
            raise ValueError(f"Batch payload must be a JSON object, got {type(payload).__name__}")

        patients = []
        for row in payload.get("patients") or []:
            values = list(row)
            if len(values) == 7:
                # rows queued before name/phone were carried
                values.extend([None, None])
            if len(values) != 9:
                raise ValueError(f"Patient row must have 7 or 9 columns, got {len(values)}")
            patients.append(PatientRow(*values))

        encounters = []
        for row in payload.get("encounters") or []:
            values = list(row)
            if len(values) != 6:
                raise ValueError(f"Encounter row must have 6 columns, got {len(values)}")
            obs = values[5]
            if obs is None:
                obs = {}
            elif isinstance(obs, str):
                obs = json.loads(obs)
            if not isinstance(obs, dict):
                raise ValueError("Encounter observations column must be a JSON object")
            encounters.append(EncounterRow(*values[:5], observations_json=obs))

        return cls(patients=tuple(patients), encounters=tuple(encounters))
