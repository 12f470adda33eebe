"""
Seed Data Script - Creates the default departments and assignment rules
Run: python -m scripts.seed_data
"""
import sys
import os
import asyncio
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from civic_pipeline.repositories.async_mongo import (
    create_indexes, get_async_database, close_async_connection
)
from civic_pipeline.repositories.document_store import MongoDocumentStore
from civic_pipeline.services.seed_service import SeedService


async def seed() -> None:
    await create_indexes()

    service = SeedService(MongoDocumentStore(get_async_database()))
    counts = await service.seed_defaults()

    print(f"Created {counts['departments']} departments")
    print(f"Created {counts['rules']} auto-assignment rules")
    if not any(counts.values()):
        print("Defaults already present. Nothing to seed.")

    await close_async_connection()


def main():
    print("=== Seeding database ===")
    print("-" * 40)
    asyncio.run(seed())
    print("-" * 40)
    print("Done!")


if __name__ == "__main__":
    main()
