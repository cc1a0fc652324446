"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 8 vehicles spread around Delhi IGI airport (zone DEL)
  - 1 vehicle in maintenance
  - 3 waiting requests at DEL that the next nearby arrival can pool with
"""

import asyncio

from sqlalchemy import func, select

from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import VehicleModel
from src.infrastructure.repositories import RideRequestRepository, VehicleRepository
from src.domain.entities import Location, RideRequest
from src.services.fleet import FleetService

# Delhi IGI airport (approx)
AIRPORT_LAT, AIRPORT_LNG = 28.5562, 77.1000
ZONE = "DEL"


VEHICLES = [
    {"operator_name": "Rajesh Kumar", "lat": 28.5941, "lng": 77.2282, "seats": 4, "luggage": 2},
    {"operator_name": "Amit Verma", "lat": 28.5570, "lng": 77.1010, "seats": 4, "luggage": 3},
    {"operator_name": "Sunil Yadav", "lat": 28.5550, "lng": 77.0990, "seats": 4, "luggage": 3},
    {"operator_name": "Pooja Sharma", "lat": 28.5600, "lng": 77.1050, "seats": 6, "luggage": 5},
    {"operator_name": "Imran Khan", "lat": 28.5480, "lng": 77.0900, "seats": 6, "luggage": 5},
    {"operator_name": "Neha Gupta", "lat": 28.5650, "lng": 77.1150, "seats": 4, "luggage": 3},
    {"operator_name": "Vikas Singh", "lat": 28.5400, "lng": 77.0800, "seats": 8, "luggage": 8},
    {"operator_name": "Harpreet Kaur", "lat": 28.6000, "lng": 77.2000, "seats": 4, "luggage": 3},
]

WAITING = [
    {"user_id": "u-aarav", "lat": 28.5565, "lng": 77.1003, "seats": 1, "luggage": 1},
    {"user_id": "u-priya", "lat": 28.5571, "lng": 77.1012, "seats": 2, "luggage": 2},
    {"user_id": "u-rohan", "lat": 28.5558, "lng": 77.0995, "seats": 1, "luggage": 0},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        count = await session.scalar(select(func.count()).select_from(VehicleModel))
        if count:
            print("Database already seeded. Skipping.")
            return

    vehicles = VehicleRepository(async_session_factory)
    requests = RideRequestRepository(async_session_factory)
    fleet = FleetService(vehicles, requests)

    # ── Vehicles ──────────────────────────────────────────────────────
    created = []
    for v in VEHICLES:
        created.append(
            await fleet.register_vehicle(
                operator_name=v["operator_name"],
                current_lat=v["lat"],
                current_lng=v["lng"],
                total_seats=v["seats"],
                luggage_capacity=v["luggage"],
            )
        )
    await fleet.set_maintenance(created[-1].id)
    print(f"  Created {len(created)} vehicles (1 in maintenance)")

    # ── Waiting requests ──────────────────────────────────────────────
    # Stored directly so they stay WAITING; real arrivals go through the API.
    for r in WAITING:
        await requests.create_request(
            RideRequest(
                user_id=r["user_id"],
                pickup=Location(r["lat"], r["lng"]),
                zone_code=ZONE,
                seats_requested=r["seats"],
                luggage_count=r["luggage"],
            )
        )
    print(f"  Created {len(WAITING)} waiting requests in zone {ZONE}")

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
