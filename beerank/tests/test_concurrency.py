"""
Concurrency Tests.

Validates that racing writers cannot lose updates or double-apply
transitions. Uses a file-backed SQLite database so each session gets its
own connection.
"""

import asyncio
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool

from beerank.app.core.exceptions import ConcurrencyError, InvalidStateTransitionError
from beerank.app.core.reliability import retry_on_conflict
from beerank.app.db.session import Base
from beerank.app.domain.routing.graph_cache import RouteGraphCache
from beerank.app.models.enums import JourneyStatus, TransitionAction
from beerank.app.models.hiking_sign import HikingSign
from beerank.app.models.journey import Journey
from beerank.app.models.taxi_rank import TaxiRank
from beerank.app.models.transit_route import TransitRoute
from beerank.app.models.user import User
from beerank.app.services.planning import JourneyPlanningService
from beerank.app.services.store import TransitStore


@pytest.fixture
async def file_sessions(tmp_path):
    """Session factory over a throwaway SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


async def seed_race(sessions):
    async with sessions() as db:
        users = [User(username=f"racer{i}", email=f"racer{i}@test.com") for i in range(3)]
        origin = TaxiRank(name="Cape Town CBD", latitude=-33.9249, longitude=18.4241)
        destination = TaxiRank(name="Wynberg", latitude=-34.0186, longitude=18.4745)
        db.add_all(users + [origin, destination])
        await db.flush()

        db.add(TransitRoute(
            origin_rank_id=origin.id,
            destination_rank_id=destination.id,
            route_name="CBD - Wynberg",
            from_location="Cape Town CBD",
            to_location="Wynberg",
            fare=12.0,
        ))
        sign = HikingSign(latitude=-33.9250, longitude=18.4242, from_location="Cape Town CBD", to_location="Wynberg")
        db.add(sign)
        await db.commit()
        return [u.id for u in users], origin.id, destination.id, sign.id


def make_service(db, test_settings):
    return JourneyPlanningService(db, RouteGraphCache(), config=test_settings)


@pytest.mark.asyncio
async def test_concurrent_verifications_are_not_lost(file_sessions, test_settings):
    """Two different verifiers at the same time both count."""
    user_ids, _, _, sign_id = await seed_race(file_sessions)

    async def verify(user_id):
        async with file_sessions() as db:
            return await make_service(db, test_settings).verify_fare_sign(sign_id, user_id)

    await asyncio.gather(verify(user_ids[0]), verify(user_ids[1]))

    async with file_sessions() as db:
        sign = await TransitStore(db).get_sign(sign_id)
    assert sign.verification_count == 2
    assert sign.is_verified is True


@pytest.mark.asyncio
async def test_concurrent_duplicate_verification_counts_once(file_sessions, test_settings):
    user_ids, _, _, sign_id = await seed_race(file_sessions)

    async def verify():
        async with file_sessions() as db:
            return await make_service(db, test_settings).verify_fare_sign(sign_id, user_ids[0])

    await asyncio.gather(verify(), verify(), verify())

    async with file_sessions() as db:
        sign = await TransitStore(db).get_sign(sign_id)
    assert sign.verification_count == 1
    assert sign.is_verified is False


@pytest.mark.asyncio
async def test_concurrent_start_applies_once(file_sessions, test_settings):
    user_ids, origin_id, destination_id, _ = await seed_race(file_sessions)

    async with file_sessions() as db:
        journey = await make_service(db, test_settings).plan_and_create_journey(origin_id, destination_id, user_ids[0])

    async def start():
        async with file_sessions() as db:
            return await make_service(db, test_settings).transition_journey(journey.journey_id, TransitionAction.START)

    results = await asyncio.gather(start(), start(), return_exceptions=True)

    winners = [r for r in results if isinstance(r, Journey)]
    losers = [r for r in results if isinstance(r, (InvalidStateTransitionError, ConcurrencyError))]
    assert len(winners) == 1
    assert len(losers) == 1

    async with file_sessions() as db:
        stored = await TransitStore(db).get_journey(journey.journey_id)
    assert stored.status == JourneyStatus.ACTIVE


@pytest.mark.asyncio
async def test_lock_contention_is_retried(service, seed, network, mocker):
    user = await seed.user()
    sign = HikingSign(latitude=-33.9, longitude=18.4)
    service.db.add(sign)
    await service.db.commit()

    original = service.store.increment_sign_verification
    calls = {"n": 0}

    async def flaky(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise ConcurrencyError(details={"sign_id": sign.id})
        return await original(*args, **kwargs)

    mocker.patch.object(service.store, "increment_sign_verification", side_effect=flaky)
    mocker.patch("beerank.app.core.reliability.asyncio.sleep", new=mocker.AsyncMock())

    verified = await service.verify_fare_sign(sign.id, user.id)

    assert calls["n"] == 2
    assert verified.verification_count == 1


@pytest.mark.asyncio
async def test_retry_gives_up_after_bounded_attempts(mocker):
    sleep = mocker.patch("beerank.app.core.reliability.asyncio.sleep", new=mocker.AsyncMock())
    func = mocker.AsyncMock(side_effect=ConcurrencyError())

    with pytest.raises(ConcurrencyError):
        await retry_on_conflict(func, attempts=3, base_delay=0.1)

    assert func.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.2]


@pytest.mark.asyncio
async def test_store_maps_operational_error_to_concurrency_error(service, seed, network, mocker):
    user = await seed.user()
    sign = HikingSign(latitude=-33.9, longitude=18.4)
    service.db.add(sign)
    await service.db.commit()

    mocker.patch.object(
        service.db, "execute",
        side_effect=OperationalError("UPDATE hiking_signs", {}, Exception("database is locked"))
    )

    with pytest.raises(ConcurrencyError):
        await service.store.increment_sign_verification(sign.id, user.id, threshold=1)
