"""
Shared fixtures for the portal test-suite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from overdrive.config import PortalConfig
from overdrive.database import DatabaseManager
from overdrive.phase import EventSettings
from overdrive.portal import PortalSystem

NOW = datetime(2025, 11, 9, 12, 0, tzinfo=timezone.utc)

# Valid under the check-digit scheme, one per test participant
VALID_NATIONAL_IDS = [
    "1710034065",
    "0100000009",
    "2400000002",
    "0100000090",
    "0200000008",
    "0300000007",
]


class FrozenClock:
    """Controllable replacement for the wall clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def registration_payload(index: int = 0, **overrides):
    payload = {
        "full_name": f"Participante Número {chr(ord('A') + index)}",
        "email": f"user{index}@espe.edu.ec",
        "national_id": VALID_NATIONAL_IDS[index],
        "student_id_digits": str(1000000 + index),
        "department": "Ciencias de la Computación",
        "career": "Ingeniería de Software",
        "phone_number": "0999999999",
        "password": "secret123",
        "accepted_privacy": True,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def config(tmp_path):
    return PortalConfig(str(tmp_path / "portal_config.json"))


@pytest.fixture
async def db(tmp_path, config):
    manager = DatabaseManager(str(tmp_path / "portal.db"), config)
    await manager.init_db()
    return manager


@pytest.fixture
def frozen_clock():
    return FrozenClock()


@pytest.fixture
async def system(tmp_path, frozen_clock):
    portal = PortalSystem(
        db_path=str(tmp_path / "portal.db"),
        config_path=str(tmp_path / "portal_config.json"),
        now_func=frozen_clock,
    )
    await portal.init_db()
    # Sign-up needs a registration deadline
    await portal.db.update_event_settings(
        EventSettings(registration_end_time=NOW + timedelta(days=1))
    )
    return portal


@pytest.fixture
async def client(aiohttp_client, system):
    return await aiohttp_client(system.create_app())


async def register(client, index: int = 0, **overrides):
    """Register a participant through the API and return (profile, auth headers)."""
    response = await client.post("/api/register", json=registration_payload(index, **overrides))
    assert response.status == 201, await response.text()
    data = await response.json()
    return data["profile"], {"Authorization": f"Bearer {data['token']}"}


async def register_admin(client, system, index: int = 5):
    profile, headers = await register(client, index)
    assert await system.db.set_admin(profile["email"])
    return profile, headers
