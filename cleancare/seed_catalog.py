from cleancare.db import SessionLocal
from cleancare.models import ServiceItem
from cleancare.services.catalog import seed_catalog


def main():
    db = SessionLocal()
    try:
        existing = db.query(ServiceItem).count()
        if existing > 0:
            print(f"Catalog already has {existing} services. Not seeding again.")
            return

        created = seed_catalog(db)
        print(f"Seeded {created} services.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
