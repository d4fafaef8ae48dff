"""Initialize database schema for the recommendation service.

Creates all tables needed for survey answers, rules, and the plant and
partner catalogs, plus the recommendation indexes.
Run this before starting the API server.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from sqlalchemy import text

from garden.config import settings
from garden.db import AsyncSessionMaker, engine
from garden.models import Base
from garden.repository import sync_location_columns

# Partial and expression indexes only PostgreSQL understands
POSTGRES_INDEXES = [
    """
    CREATE INDEX IF NOT EXISTS idx_partner_profiles_active_rating
        ON partner_profiles (rating DESC NULLS LAST)
        WHERE status = 'active'
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_plants_live
        ON plants (common_name)
        WHERE is_deleted = FALSE
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_plant_space_types_lower
        ON plant_space_types (LOWER(space_type))
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_plant_area_sizes_lower
        ON plant_area_sizes (LOWER(area_size))
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_plant_challenges_lower
        ON plant_challenges (LOWER(challenge))
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_plant_tech_preferences_lower
        ON plant_tech_preferences (LOWER(tech_preference))
    """,
]


async def init_database(drop: bool = False, sync_locations: bool = False):
    """Create all database tables."""
    print(f"Initializing database: {settings.db.url}")

    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
            print("✓ Dropped existing tables")

        await conn.run_sync(Base.metadata.create_all)
        print("✓ Created all tables")

        if conn.dialect.name == "postgresql":
            for statement in POSTGRES_INDEXES:
                await conn.execute(text(statement))
            print(f"✓ Created {len(POSTGRES_INDEXES)} recommendation indexes")

    if sync_locations:
        async with AsyncSessionMaker() as session:
            updated = await sync_location_columns(session)
        print(f"✓ Resynced normalized locations of {updated} rows")

    print("\n✅ Database initialization complete!")
    print(f"Tables: {', '.join(Base.metadata.tables.keys())}")


async def main(drop: bool, sync_locations: bool):
    """Main entry point."""
    try:
        await init_database(drop=drop, sync_locations=sync_locations)
    except Exception as e:
        print(f"\n❌ Error initializing database: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    parser.add_argument(
        "--sync-locations",
        action="store_true",
        help="Recompute normalized location columns of rows written outside the ORM",
    )
    args = parser.parse_args()
    asyncio.run(main(args.drop, args.sync_locations))
