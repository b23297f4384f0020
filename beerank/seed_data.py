"""
Database seeding script for demo data.

Creates commuters, Cape Town taxi ranks and the routes between them for
development. Run this script after the database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from beerank.app.db.session import AsyncSessionLocal, engine, Base
from beerank.app.models.user import User
from beerank.app.models.taxi_rank import TaxiRank
from beerank.app.models.transit_route import TransitRoute
from beerank.app.models.enums import RouteType
from sqlalchemy import select


DEMO_USERS = [
    {"username": "john.doe", "email": "john.doe@example.com"},
    {"username": "jane.smith", "email": "jane.smith@example.com"},
    {"username": "operator", "email": "operator@beerank.com"},
]

DEMO_RANKS = [
    {
        "name": "Cape Town CBD Taxi Rank",
        "description": "Main taxi rank serving Cape Town CBD area",
        "latitude": -33.9249, "longitude": 18.4241,
        "address": "Corner of Strand & Adderley Street, Cape Town, 8001",
        "city": "Cape Town", "province": "Western Cape", "capacity": 50,
    },
    {
        "name": "Wynberg Taxi Rank",
        "description": "Primary transport hub for Wynberg and surrounding areas",
        "latitude": -34.0186, "longitude": 18.4745,
        "address": "Main Road, Wynberg, Cape Town, 7800",
        "city": "Cape Town", "province": "Western Cape", "capacity": 30,
    },
    {
        "name": "Bellville Taxi Terminal",
        "description": "Major taxi terminus serving northern suburbs",
        "latitude": -33.8903, "longitude": 18.6292,
        "address": "Voortrekker Road, Bellville, 7530",
        "city": "Bellville", "province": "Western Cape", "capacity": 80,
    },
    {
        "name": "Mitchell's Plain Taxi Rank",
        "description": "Serving Mitchell's Plain and surrounding townships",
        "latitude": -34.0342, "longitude": 18.6290,
        "address": "AZ Berman Drive, Mitchell's Plain, 7785",
        "city": "Cape Town", "province": "Western Cape", "capacity": 40,
    },
    {
        "name": "Khayelitsha Taxi Rank",
        "description": "Main transport hub for Khayelitsha community",
        "latitude": -34.0293, "longitude": 18.6920,
        "address": "Ntlazane Road, Khayelitsha, 7784",
        "city": "Cape Town", "province": "Western Cape", "capacity": 60,
    },
]

# (origin index, destination index, from, to, fare, minutes, km)
DEMO_ROUTES = [
    (0, 1, "Cape Town CBD", "Wynberg", 15.50, 45, 12.3),
    (0, 2, "Cape Town CBD", "Bellville", 18.00, 35, 15.7),
    (1, 3, "Wynberg", "Mitchell's Plain", 12.00, 25, 8.5),
    (2, 4, "Bellville", "Khayelitsha", 20.00, 50, 18.2),
    (3, 4, "Mitchell's Plain", "Khayelitsha", 10.00, 20, 7.1),
    (1, 0, "Wynberg", "Cape Town CBD", 15.50, 45, 12.3),
]


async def seed_data():
    """
    Seed demo users, ranks and routes.

    Skips everything if the first demo user already exists.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting demo data seeding...")

        result = await db.execute(
            select(User).where(User.username == DEMO_USERS[0]["username"])
        )
        if result.scalar_one_or_none():
            print("ℹ️  Demo data already exists, skipping seeding")
            return

        db.add_all([User(is_active=True, **user) for user in DEMO_USERS])

        ranks = [TaxiRank(is_active=True, **rank) for rank in DEMO_RANKS]
        db.add_all(ranks)
        await db.flush()
        print(f"✅ Created {len(ranks)} taxi ranks")

        for origin, destination, from_location, to_location, fare, minutes, km in DEMO_ROUTES:
            db.add(TransitRoute(
                origin_rank_id=ranks[origin].id,
                destination_rank_id=ranks[destination].id,
                route_name=f"{from_location} - {to_location}",
                from_location=from_location,
                to_location=to_location,
                fare=fare,
                duration_minutes=minutes,
                distance_km=km,
                route_type=RouteType.TAXI,
                is_direct=True,
                frequency_minutes=30,
                is_active=True
            ))
        print(f"✅ Created {len(DEMO_ROUTES)} transit routes")

        await db.commit()
        print("🎉 Seeding complete")


if __name__ == "__main__":
    asyncio.run(seed_data())
