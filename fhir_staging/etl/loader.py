from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from fhir_staging.core.logging import log
from fhir_staging.etl.batch import Batch
from fhir_staging.models.tables import (
    ENCOUNTER_COLUMNS,
    PATIENT_COLUMNS,
    StagingPatient,
    StagingPatientEncounter,
)


@dataclass(frozen=True)
class WriteResult:
    patients_upserted: int = 0
    encounters_upserted: int = 0
    ok: bool = True
    error: str | None = None


def _insert_for(conn: Connection):
    if conn.dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


def collapse_by_key(values: list[dict], key: str) -> list[dict]:
    """Keep one row per key, the last one seen.

    Postgres refuses an ON CONFLICT DO UPDATE that touches the same row twice.
    """
    by_key = {}
    for row in values:
        by_key[row[key]] = row
    return list(by_key.values())


def _upsert(conn: Connection, model, key: str, columns: tuple[str, ...], rows: list[tuple]) -> int:
    values = collapse_by_key([dict(zip(columns, row)) for row in rows], key)
    stmt = _insert_for(conn)(model).values(values)
    set_ = {column: stmt.excluded[column] for column in columns if column != key}
    set_["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=[key], set_=set_)
    res = conn.execute(stmt)
    conn.commit()
    return res.rowcount or 0


def upsert_patients(conn: Connection, rows: list[tuple]) -> int:
    if not rows:
        return 0
    return _upsert(conn, StagingPatient, "case_id", PATIENT_COLUMNS, rows)


def upsert_encounters(conn: Connection, rows: list[tuple]) -> int:
    if not rows:
        return 0
    return _upsert(conn, StagingPatientEncounter, "encounter_id", ENCOUNTER_COLUMNS, rows)


class BatchWriter:
    """Applies a queued batch to the staging tables.

    The patient and encounter upserts are committed separately, so a failure
    in the second leaves the first in place.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def apply(self, batch: Batch) -> WriteResult:
        patients_upserted = 0
        encounters_upserted = 0
        if not batch.patients:
            if batch.encounters:
                log.warning("encounters_skipped_without_patients", encounters=len(batch.encounters))
            return WriteResult()

        try:
            # closing the connection rolls back whatever statement was in flight
            with self.engine.connect() as conn:
                patients_upserted = upsert_patients(conn, [p.as_tuple() for p in batch.patients])
                log.info("patients_upserted", rowcount=patients_upserted)
                # encounters are only written alongside patients
                if batch.encounters:
                    encounters_upserted = upsert_encounters(conn, [e.as_tuple() for e in batch.encounters])
                    log.info("encounters_upserted", rowcount=encounters_upserted)
        except SQLAlchemyError as exc:
            log.error(
                "load_failed",
                patients=len(batch.patients),
                encounters=len(batch.encounters),
                error=str(exc),
            )
            return WriteResult(
                patients_upserted=patients_upserted,
                encounters_upserted=encounters_upserted,
                ok=False,
                error=str(exc)[:1000],
            )
        return WriteResult(patients_upserted=patients_upserted, encounters_upserted=encounters_upserted)
