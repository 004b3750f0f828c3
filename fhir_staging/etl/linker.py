from collections import defaultdict

from fhir_staging.etl.batch import EncounterRow, ObservationRecord


def link(encounters: list[EncounterRow], observations: list[ObservationRecord]) -> list[EncounterRow]:
    """Attach each encounter's observations, keyed by observation name.

    Observations sharing a name within one encounter collapse to the last one
    in ``observations`` order. Encounters without observations get ``{}``.
    """
    by_encounter: dict[str, list[ObservationRecord]] = defaultdict(list)
    for obs in observations:
        if obs.encounter_id:
            by_encounter[obs.encounter_id].append(obs)

    linked = []
    for encounter in encounters:
        mapping = {obs.obs_name: obs.to_dict() for obs in by_encounter.get(encounter.encounter_id, [])}
        linked.append(encounter.with_observations(mapping))
    return linked
