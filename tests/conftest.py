import os
os.environ['TEST_DB_URL'] = 'sqlite:///test.db'
from datetime import date

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from neo_tracker.main import app, scheduler
from neo_tracker import models
from neo_tracker.database import SessionLocal, engine
from neo_tracker.events import broker


@pytest.fixture(autouse=True)
def reset_db():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    broker._queues.clear()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest_asyncio.fixture
async def client(monkeypatch):
    monkeypatch.setattr(scheduler, "start", lambda: None)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def neo_record():
    """Build a raw feed record the way the NEO feed returns it."""

    def build(
        neo_id="3542519",
        name="(2010 PK9)",
        hazardous=False,
        diameter=(0.04, 0.05),
        approaches=(),
    ):
        close_approach_data = []
        for when, km in approaches:
            if isinstance(when, date):
                when = when.isoformat()
            close_approach_data.append(
                {
                    "close_approach_date": when,
                    "relative_velocity": {"kilometers_per_second": "12.5"},
                    "miss_distance": {"kilometers": str(km), "astronomical": "0.1"},
                    "orbiting_body": "Earth",
                }
            )
        return {
            "id": neo_id,
            "neo_reference_id": neo_id,
            "name": name,
            "nasa_jpl_url": f"https://ssd.jpl.nasa.gov/tools/sbdb_lookup.html#/?sstr={neo_id}",
            "absolute_magnitude_h": 21.3,
            "estimated_diameter": {
                "kilometers": {
                    "estimated_diameter_min": diameter[0],
                    "estimated_diameter_max": diameter[1],
                }
            },
            "is_potentially_hazardous_asteroid": hazardous,
            "close_approach_data": close_approach_data,
            "is_sentry_object": False,
        }

    return build
