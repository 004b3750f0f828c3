from fhir_staging.core.logging import log
from fhir_staging.etl.batch import EncounterRow, ObservationRecord, PatientRow
from fhir_staging.etl.references import reference_id

CLINIC_NUMBER_IDENTIFIER = "HIV Clinic No."
SIMPLE_VALUE_FIELDS = ("valueString", "valueBoolean", "valueInteger", "valueTime", "valueDateTime")


class Excluded(Exception):
    """Raised by an extractor when a record fails its inclusion rules."""


def _get(obj, key):
    return obj.get(key) if isinstance(obj, dict) else None


def _first(items):
    if isinstance(items, list) and items:
        return items[0]
    return None


def unwrap_entry(entry) -> dict | None:
    """Accept both ``{"resource": {...}}`` entries and bare resources."""
    resource = _get(entry, "resource")
    if isinstance(resource, dict):
        return resource
    if isinstance(entry, dict) and "resourceType" in entry:
        return entry
    return None


def _clinic_number(identifiers) -> str | None:
    if not isinstance(identifiers, list):
        return None
    for identifier in identifiers:
        if _get(_get(identifier, "type"), "text") == CLINIC_NUMBER_IDENTIFIER:
            return _get(identifier, "value")
    return None


def _patient_name(names) -> str:
    name = _first(names)
    given = _first(_get(name, "given")) or ""
    family = _get(name, "family") or ""
    return f"{given} {family}".strip()


def _normalize_birth_date(value):
    if isinstance(value, str) and len(value) == 4:
        return f"{value}-01-01"
    return value


def patient_to_row(patient: dict) -> PatientRow:
    case_id = patient.get("id")
    sex = patient.get("gender")
    date_of_birth = _normalize_birth_date(patient.get("birthDate"))
    facility_id = reference_id(patient.get("managingOrganization"))

    if not case_id:
        raise Excluded("missing id")
    if not sex:
        raise Excluded("missing gender")
    if not (isinstance(date_of_birth, str) and len(date_of_birth) == 10):
        raise Excluded(f"unusable birthDate: {patient.get('birthDate')!r}")
    if not facility_id:
        raise Excluded("missing managingOrganization")

    return PatientRow(
        case_id=case_id,
        sex=sex,
        date_of_birth=date_of_birth,
        deceased=patient.get("deceasedBoolean"),
        date_of_death=patient.get("deceasedDateTime") or None,
        facility_id=facility_id,
        clinic_number=_clinic_number(patient.get("identifier")),
        patient_name=_patient_name(patient.get("name")),
        phone_number=_get(_first(patient.get("telecom")), "value"),
    )


def encounter_to_row(encounter: dict) -> EncounterRow:
    if not encounter.get("id"):
        raise Excluded("missing id")
    if not (isinstance(encounter.get("type"), list) and encounter["type"]):
        raise Excluded("type must be a non-empty list")
    # present is enough here, an empty period or reference still counts
    missing = [key for key in ("period", "subject", "serviceProvider") if encounter.get(key) is None]
    if missing:
        raise Excluded(f"missing {', '.join(missing)}")

    type_coding = _first(_get(_first(encounter["type"]), "coding"))
    return EncounterRow(
        patient_id=reference_id(encounter["subject"]),
        encounter_id=encounter["id"],
        encounter_date=_get(encounter["period"], "start"),
        facility_id=reference_id(encounter["serviceProvider"]),
        encounter_type_code=_get(type_coding, "code"),
    )


def observation_value(obs: dict):
    value = None
    for key in SIMPLE_VALUE_FIELDS:
        if obs.get(key):
            value = obs[key]
            break

    # quantity and codeable concept values win over the simple scalars
    if obs.get("valueQuantity"):
        value = _get(obs["valueQuantity"], "value")
    if obs.get("valueCodeableConcept"):
        value = _get(_first(_get(obs["valueCodeableConcept"], "coding")), "display")
    return value


def observation_to_record(obs: dict) -> ObservationRecord:
    value = observation_value(obs)
    if not value:
        raise Excluded("no value")

    coding = _get(obs.get("code"), "coding")
    if not isinstance(coding, list) or len(coding) < 2:
        raise Excluded("code.coding needs at least two entries")

    return ObservationRecord(
        id=obs.get("id"),
        patient_id=reference_id(obs.get("subject")),
        encounter_id=reference_id(obs.get("encounter")),
        code=_get(coding[1], "code"),
        uuid=_get(coding[0], "code"),
        obs_name=_get(coding[0], "display"),
        value=value,
        effective_datetime=obs.get("effectiveDateTime"),
    )


EXTRACTORS = {
    "Patient": patient_to_row,
    "Encounter": encounter_to_row,
    "Observation": observation_to_record,
}


def _safe_extract(resource: dict, extractor, resource_type: str):
    try:
        return extractor(resource)
    except Excluded as exc:
        log.debug("record_excluded", resource_type=resource_type, id=resource.get("id"), reason=str(exc))
    except Exception as exc:
        log.warning(
            "transform_failed",
            resource_type=resource_type,
            id=resource.get("id"),
            error=str(exc),
        )
    return None


def normalize(entries) -> tuple[list[PatientRow], list[EncounterRow], list[ObservationRecord]]:
    buckets: dict[str, list] = {resource_type: [] for resource_type in EXTRACTORS}

    for entry in entries or []:
        resource = unwrap_entry(entry)
        if resource is None:
            continue
        resource_type = resource.get("resourceType")
        extractor = EXTRACTORS.get(resource_type) if isinstance(resource_type, str) else None
        if extractor is None:
            continue
        row = _safe_extract(resource, extractor, resource_type)
        if row is not None:
            buckets[resource_type].append(row)

    patients = buckets["Patient"]
    encounters = buckets["Encounter"]
    observations = buckets["Observation"]
    log.info(
        "bundle_normalized",
        patients=len(patients),
        encounters=len(encounters),
        observations=len(observations),
    )
    return patients, encounters, observations
