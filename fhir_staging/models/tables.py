from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from fhir_staging.models.base import Base


class StagingPatient(Base):
    __tablename__ = "staging_patient"
    case_id: Mapped[str] = mapped_column(String, primary_key=True)  # FHIR Patient.id
    sex: Mapped[str] = mapped_column(String)
    date_of_birth: Mapped[str] = mapped_column(String(10))  # always YYYY-MM-DD
    deceased: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    date_of_death: Mapped[str | None] = mapped_column(String, nullable=True)
    facility_id: Mapped[str] = mapped_column(String, index=True)
    patient_clinic_no: Mapped[str | None] = mapped_column(String, nullable=True)
    patient_name: Mapped[str | None] = mapped_column(String, nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class StagingPatientEncounter(Base):
    __tablename__ = "staging_patient_encounters"
    encounter_id: Mapped[str] = mapped_column(String, primary_key=True)  # FHIR Encounter.id
    case_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    encounter_date: Mapped[str | None] = mapped_column(String, nullable=True)
    facility_id: Mapped[str | None] = mapped_column(String, nullable=True)
    encounter_type: Mapped[str | None] = mapped_column(String, nullable=True)
    obs: Mapped[dict] = mapped_column(JSON, default=dict)  # obs_name -> observation
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


# Column order of the queued row tuples; the writer zips rows against these.
PATIENT_COLUMNS = (
    "case_id",
    "sex",
    "date_of_birth",
    "deceased",
    "date_of_death",
    "facility_id",
    "patient_clinic_no",
    "patient_name",
    "phone_number",
)

ENCOUNTER_COLUMNS = (
    "case_id",
    "encounter_id",
    "encounter_date",
    "facility_id",
    "encounter_type",
    "obs",
)
