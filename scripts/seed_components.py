#!/usr/bin/env python3
"""
Seed the component catalog so tracked links have something to attach to.

Loads components from components_seed.json at the project root.

Schema for components_seed.json:
- {"components": [{"category": "CPU", "brand": "AMD", "model": "Ryzen 5 7600", "variant": ""}]}
- Required fields: category, brand, model
- Optional fields: variant (default: "")

Missing categories are created. Components already present (same brand,
model and variant) are skipped.

Usage:
    python scripts/seed_components.py
    python scripts/seed_components.py --list
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from src.db.models import Base, Category, Component
from src.db.session import AsyncSessionLocal, engine

REQUIRED_FIELDS = ["category", "brand", "model"]


async def get_or_create_category(db, name: str) -> Category:
    result = await db.execute(select(Category).where(Category.name == name))
    category = result.scalar_one_or_none()
    if category is None:
        category = Category(name=name)
        db.add(category)
        await db.flush()
        print(f"  [ADD] Category {name}")
    return category


async def seed_components():
    """Seed components from the JSON file."""
    seed_file = Path(__file__).parent.parent / "components_seed.json"

    if not seed_file.exists():
        print(f"Error: {seed_file} not found")
        sys.exit(1)

    try:
        with open(seed_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {seed_file}: {e}")
        sys.exit(1)

    components = data.get("components", [])
    if not components:
        print("No components found in seed file")
        return

    print(f"Found {len(components)} components to seed...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    added = skipped = errors = 0
    try:
        async with AsyncSessionLocal() as db:
            for idx, item in enumerate(components, 1):
                missing = [field for field in REQUIRED_FIELDS if not item.get(field)]
                if missing:
                    print(f"  [ERROR] Component {idx}: Missing required fields: {', '.join(missing)}")
                    errors += 1
                    continue

                variant = item.get("variant", "")
                label = f"{item['brand']} {item['model']} {variant}".strip()

                result = await db.execute(
                    select(Component).where(
                        Component.brand == item["brand"],
                        Component.model == item["model"],
                        Component.variant == variant,
                    )
                )
                if result.scalar_one_or_none() is not None:
                    print(f"  [SKIP] {label} (already exists)")
                    skipped += 1
                    continue

                category = await get_or_create_category(db, item["category"])
                db.add(Component(
                    category_id=category.id,
                    brand=item["brand"],
                    model=item["model"],
                    variant=variant,
                ))
                print(f"  [ADD] {label}")
                added += 1

            await db.commit()
    except SQLAlchemyError as e:
        print(f"\nError: Database operation failed: {e}")
        print("Make sure the database is running and DATABASE_URL is correct.")
        sys.exit(1)
    finally:
        await engine.dispose()

    print("\nSeeding complete!")
    print(f"  - Added: {added}")
    print(f"  - Skipped: {skipped}")
    if errors > 0:
        print(f"  - Errors: {errors}")


async def list_components():
    """List all catalogued components with their ids."""
    try:
        async with AsyncSessionLocal() as db:
            result = await db.execute(
                select(Component)
                .options(selectinload(Component.category))
                .order_by(Component.category_id, Component.brand, Component.model)
            )
            components = result.scalars().all()
    finally:
        await engine.dispose()

    if not components:
        print("No components found.")
        return

    print(f"\nComponents ({len(components)} total):\n")
    for component in components:
        variant = f" {component.variant}" if component.variant else ""
        print(f"  [{component.id:>4}] {component.category.name:<12} {component.brand} {component.model}{variant}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the component catalog")
    parser.add_argument("--list", action="store_true", help="List components instead of seeding")
    args = parser.parse_args()

    if args.list:
        asyncio.run(list_components())
    else:
        asyncio.run(seed_components())
