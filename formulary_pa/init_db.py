"""
Create tables and seed the default provider, formulary and medications.

Safe to run repeatedly: seeding is skipped once any insurance provider exists.

    python -m formulary_pa.init_db [--reset]
"""

import argparse
import logging

from formulary_pa.seed import DEFAULT_PROVIDER, StaticSeedProvider, default_formulary
from formulary_pa.storage.base import FormularyStorage

logger = logging.getLogger(__name__)


def init_db(storage: FormularyStorage, seed_provider: StaticSeedProvider | None = None) -> bool:
    """
    Returns True when seed data was inserted, False when the store was
    already populated.
    """
    storage.ensure_schema()

    if storage.get_insurance_providers():
        logger.info("Database already initialized, skipping seed data creation")
        return False

    seed_provider = seed_provider or StaticSeedProvider()

    provider = storage.create_insurance_provider(DEFAULT_PROVIDER)
    formulary = storage.create_formulary(default_formulary(provider.id))
    logger.info("Created provider '%s' and formulary '%s' (id=%d)", provider.name, formulary.name, formulary.id)

    storage.initialize_medications(seed_provider.load(), formulary.id)
    return True


def main() -> None:
    from dotenv import load_dotenv

    load_dotenv()

    from formulary_pa.config import settings
    from formulary_pa.storage.base import build_storage

    parser = argparse.ArgumentParser(description="Create formulary tables and seed demo data")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before seeding")
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL)

    storage = build_storage(settings)
    if args.reset:
        if not hasattr(storage, "drop_schema"):
            parser.error("--reset only applies to the database backend")
        logger.warning("Dropping all tables at %s", settings.DATABASE_URL)
        storage.drop_schema()

    seeded = init_db(storage)
    print("Seed data created." if seeded else "Database already initialized.")


if __name__ == "__main__":
    main()
