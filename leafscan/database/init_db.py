# leafscan/database/init_db.py
from leafscan.database.db import Base, get_engine
from leafscan.models.leaf_record import LeafRecord  # noqa: F401  (registers the table)


def main():
    print("Creating tables...")
    Base.metadata.create_all(bind=get_engine())
    print("Done.")


if __name__ == "__main__":
    main()
