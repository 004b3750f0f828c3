from fhir_staging.db.session import build_engine
from fhir_staging.models.base import Base
from fhir_staging.models import tables  # noqa: F401


def main():
    engine = build_engine()
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    print("Staging tables created.")


if __name__ == "__main__":
    main()
