"""
Reference data for a fresh database: the default service catalog and a
bootstrap admin account.

Runs on startup (see main.py) and can be invoked directly:

    python -m laundry_service.seed
"""
import os
import uuid
import asyncio
import logging
from datetime import datetime

from dotenv import load_dotenv

from laundry_service.auth import hash_password
from laundry_service.database import database, engine, metadata
from laundry_service.models import services, users, Role

load_dotenv()

logger = logging.getLogger("laundry-service.seed")

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
SEED_DEFAULT_SERVICES = os.getenv("SEED_DEFAULT_SERVICES", "True").lower() in ("true", "1", "yes")

DEFAULT_SERVICES = [
    {"id": "wash", "name": "Wash", "description": "Professional washing",
     "price_per_unit": 800, "icon": "shirt", "estimated_time_hours": 24},
    {"id": "dry", "name": "Dry", "description": "Quick drying",
     "price_per_unit": 400, "icon": "sunny", "estimated_time_hours": 12},
    {"id": "iron", "name": "Iron", "description": "Professional ironing",
     "price_per_unit": 600, "icon": "flame", "estimated_time_hours": 6},
    {"id": "fold", "name": "Fold", "description": "Neat folding",
     "price_per_unit": 200, "icon": "layers", "estimated_time_hours": 2},
    {"id": "wash-fold", "name": "Wash & Fold", "description": "Complete wash and fold service",
     "price_per_unit": 2500, "icon": "shirt", "estimated_time_hours": 24},
    {"id": "dry-cleaning", "name": "Dry Cleaning", "description": "Professional dry cleaning",
     "price_per_unit": 5000, "icon": "sparkles", "estimated_time_hours": 48},
]


async def seed_services() -> int:
    """Insert catalog entries that are missing. Existing rows are left alone."""
    created = 0
    now = datetime.utcnow()
    for service in DEFAULT_SERVICES:
        if await database.fetch_one(services.select().where(services.c.id == service["id"])):
            continue
        await database.execute(
            services.insert().values(**service, available=True, created_at=now, updated_at=now)
        )
        created += 1
    if created:
        logger.info(f"🌱 Seeded {created} default services")
    return created


async def ensure_admin(email=ADMIN_EMAIL, password=ADMIN_PASSWORD):
    if not email or not password:
        return None

    email = email.lower()
    existing = await database.fetch_one(users.select().where(users.c.email == email))
    if existing:
        return existing["id"]

    admin_id = str(uuid.uuid4())
    now = datetime.utcnow()
    await database.execute(
        users.insert().values(
            id=admin_id,
            name="Administrator",
            email=email,
            phone_number="-",
            address="-",
            password_hash=hash_password(password),
            role=Role.admin.value,
            is_active=True,
            member_since=now,
            updated_at=now,
        )
    )
    logger.info(f"🔐 Bootstrap admin {email} created")
    return admin_id


async def run():
    if SEED_DEFAULT_SERVICES:
        await seed_services()
    await ensure_admin()


async def main():
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] [%(levelname)s] %(message)s")
    metadata.create_all(engine)
    await database.connect()
    try:
        await run()
    finally:
        await database.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
