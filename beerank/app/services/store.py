"""
Transit store.

Persistence collaborator for ranks, routes, journeys and fare signs. All
queries are SQLAlchemy expressions bound to one AsyncSession. Methods that
must be atomic (journey creation, status changes, sign verification, route
withdrawal) commit or roll back their own transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, update, func, case, or_
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from beerank.app.core.exceptions import ConcurrencyError, ResourceNotFoundError, RouteInUseError
from beerank.app.domain.geo.proximity import GeoPoint, bounding_box, nearby
from beerank.app.models.enums import JourneyStatus, RouteType
from beerank.app.models.hiking_sign import HikingSign
from beerank.app.models.journey import Journey
from beerank.app.models.route_connection import RouteConnection
from beerank.app.models.sign_verification import SignVerification
from beerank.app.models.taxi_rank import TaxiRank
from beerank.app.models.transit_route import TransitRoute

logger = logging.getLogger("beerank.store")

# Serialization failure / deadlock on PostgreSQL
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_retryable(exc: DBAPIError) -> bool:
    """True for lock contention errors that a retry can resolve."""
    if isinstance(exc, OperationalError):
        return True
    return getattr(exc.orig, "sqlstate", None) in RETRYABLE_SQLSTATES


def _like(text: str) -> str:
    return f"%{text.strip()}%"


class TransitStore:
    """Repository over a single database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Ranks
    # ------------------------------------------------------------------

    async def list_active_ranks(self) -> List[TaxiRank]:
        result = await self.db.execute(
            select(TaxiRank).where(TaxiRank.is_active == True).order_by(TaxiRank.id)
        )
        return list(result.scalars().all())

    async def get_rank_by_id(self, rank_id: int) -> Optional[TaxiRank]:
        result = await self.db.execute(select(TaxiRank).where(TaxiRank.id == rank_id))
        return result.scalar_one_or_none()

    async def list_ranks(
        self,
        search: Optional[str] = None,
        city: Optional[str] = None,
        province: Optional[str] = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[TaxiRank], int]:
        """
        Search ranks by name/address, city or province.

        Returns:
            (page of ranks, total matching count)
        """
        filters = []
        if not include_inactive:
            filters.append(TaxiRank.is_active == True)
        if search:
            filters.append(or_(TaxiRank.name.ilike(_like(search)), TaxiRank.address.ilike(_like(search))))
        if city:
            filters.append(TaxiRank.city.ilike(_like(city)))
        if province:
            filters.append(TaxiRank.province.ilike(_like(province)))

        total = await self.db.scalar(select(func.count(TaxiRank.id)).where(*filters))
        result = await self.db.execute(
            select(TaxiRank).where(*filters).order_by(TaxiRank.name, TaxiRank.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def list_ranks_near(self, point: GeoPoint, radius_meters: float) -> List[Tuple[TaxiRank, float]]:
        """Active ranks within the radius, nearest first."""
        filters = [TaxiRank.is_active == True] + self._box_filters(TaxiRank, point, radius_meters)
        result = await self.db.execute(select(TaxiRank).where(*filters))
        return nearby(point, radius_meters, result.scalars().all())

    async def create_rank(self, data: Dict[str, Any]) -> TaxiRank:
        rank = TaxiRank(**data)
        self.db.add(rank)
        await self.db.commit()
        await self.db.refresh(rank)
        return rank

    async def update_rank(self, rank: TaxiRank, changes: Dict[str, Any]) -> TaxiRank:
        for field, value in changes.items():
            setattr(rank, field, value)
        await self.db.commit()
        await self.db.refresh(rank)
        return rank

    async def count_routes_for_rank(self, rank_id: int) -> int:
        count = await self.db.scalar(
            select(func.count(TransitRoute.id)).where(
                or_(TransitRoute.origin_rank_id == rank_id, TransitRoute.destination_rank_id == rank_id)
            )
        )
        return count or 0

    async def delete_rank(self, rank: TaxiRank) -> None:
        """Delete a rank; a foreign-key conflict rolls back only the savepoint."""
        async with self.db.begin_nested():
            await self.db.delete(rank)
            await self.db.flush()
        await self.db.commit()

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    async def list_active_routes(self) -> List[TransitRoute]:
        result = await self.db.execute(
            select(TransitRoute).where(TransitRoute.is_active == True).order_by(TransitRoute.id)
        )
        return list(result.scalars().all())

    async def get_route_by_id(self, route_id: int) -> Optional[TransitRoute]:
        result = await self.db.execute(select(TransitRoute).where(TransitRoute.id == route_id))
        return result.scalar_one_or_none()

    async def list_routes(
        self,
        rank_id: Optional[int] = None,
        route_type: Optional[RouteType] = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[TransitRoute], int]:
        filters = []
        if not include_inactive:
            filters.append(TransitRoute.is_active == True)
        if rank_id is not None:
            filters.append(or_(TransitRoute.origin_rank_id == rank_id, TransitRoute.destination_rank_id == rank_id))
        if route_type is not None:
            filters.append(TransitRoute.route_type == route_type)

        total = await self.db.scalar(select(func.count(TransitRoute.id)).where(*filters))
        result = await self.db.execute(
            select(TransitRoute).where(*filters).order_by(TransitRoute.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def create_route(self, data: Dict[str, Any]) -> TransitRoute:
        route = TransitRoute(**data)
        self.db.add(route)
        await self.db.commit()
        await self.db.refresh(route)
        return route

    async def update_route(self, route: TransitRoute, changes: Dict[str, Any]) -> TransitRoute:
        for field, value in changes.items():
            setattr(route, field, value)
        await self.db.commit()
        await self.db.refresh(route)
        return route

    async def withdraw_route(self, route: TransitRoute, reason: str) -> List[str]:
        """
        Deactivate a route and cancel the planned journeys that use it.

        Everything runs in one transaction. The route row is written first,
        then the journeys travelling on it are read under row locks, so a
        journey cannot be started or planned onto the route in between.

        Returns:
            journey_id of every cancelled journey

        Raises:
            RouteInUseError: An active journey uses the route; nothing is changed
        """
        now = utcnow()
        uses_route = select(RouteConnection.journey_id).where(RouteConnection.route_id == route.id)
        try:
            async with self.db.begin_nested():
                await self.db.execute(
                    update(TransitRoute)
                    .where(TransitRoute.id == route.id)
                    .values(is_active=False, updated_at=now)
                    .execution_options(synchronize_session=False)
                )

                result = await self.db.execute(
                    select(Journey.journey_id, Journey.status)
                    .where(
                        Journey.journey_id.in_(uses_route),
                        Journey.status.in_([JourneyStatus.PLANNED, JourneyStatus.ACTIVE])
                    )
                    .order_by(Journey.journey_id)
                    .with_for_update()
                )
                rows = result.all()
                active = [journey_id for journey_id, status in rows if status == JourneyStatus.ACTIVE]
                if active:
                    raise RouteInUseError(route.id, active)

                cancelled = [journey_id for journey_id, status in rows if status == JourneyStatus.PLANNED]
                if cancelled:
                    await self.db.execute(
                        update(Journey)
                        .where(Journey.journey_id.in_(uses_route), Journey.status == JourneyStatus.PLANNED)
                        .values(
                            status=JourneyStatus.CANCELLED,
                            cancelled_at=now,
                            cancellation_reason=reason,
                            updated_at=now
                        )
                        .execution_options(synchronize_session=False)
                    )
        except RouteInUseError:
            # releases the row locks
            await self.db.commit()
            raise
        except DBAPIError:
            await self.db.rollback()
            raise
        await self.db.commit()

        await self.db.refresh(route)
        return cancelled

    # ------------------------------------------------------------------
    # Journeys
    # ------------------------------------------------------------------

    async def create_journey(self, journey: Journey, connections: Sequence[RouteConnection]) -> Journey:
        """
        Persist a journey and its connections in one transaction.

        The inserts run inside a SAVEPOINT; a failing insert rolls back only
        that savepoint, so no partial journey remains.

        Raises:
            IntegrityError / DBAPIError: If any insert fails
        """
        journey_id = journey.journey_id
        try:
            async with self.db.begin_nested():
                self.db.add(journey)
                await self.db.flush()
                for connection in connections:
                    connection.journey_id = journey_id
                    self.db.add(connection)
                await self.db.flush()
        except DBAPIError as exc:
            logger.warning("Rolled back journey %s: %s", journey_id, exc.orig)
            raise
        await self.db.commit()

        return await self.get_journey(journey_id)

    async def get_journey(self, journey_id: str) -> Optional[Journey]:
        result = await self.db.execute(
            select(Journey)
            .where(Journey.journey_id == journey_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_journeys(
        self,
        user_id: Optional[int] = None,
        status: Optional[JourneyStatus] = None,
        journey_type: Optional[Any] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Journey], int]:
        filters = self._journey_filters(user_id, date_from, date_to)
        if status is not None:
            filters.append(Journey.status == status)
        if journey_type is not None:
            filters.append(Journey.journey_type == journey_type)

        total = await self.db.scalar(select(func.count(Journey.id)).where(*filters))
        result = await self.db.execute(
            select(Journey)
            .where(*filters)
            .order_by(Journey.created_at.desc(), Journey.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def update_journey_status(
        self,
        journey_id: str,
        expected: JourneyStatus,
        new: JourneyStatus,
        **fields: Any
    ) -> bool:
        """
        Compare-and-set a journey status.

        The UPDATE only matches while the stored status equals ``expected``,
        so two concurrent transitions from the same state cannot both win.

        Returns:
            True if this call performed the transition
        """
        values = dict(fields)
        values["status"] = new
        values["updated_at"] = utcnow()

        try:
            result = await self.db.execute(
                update(Journey)
                .where(Journey.journey_id == journey_id, Journey.status == expected)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except DBAPIError as exc:
            await self.db.rollback()
            if is_retryable(exc):
                raise ConcurrencyError(details={"journey_id": journey_id})
            raise

        return result.rowcount == 1

    async def update_journey_fields(self, journey_id: str, expected: JourneyStatus, **fields: Any) -> bool:
        """Update non-status fields while the journey is still in ``expected``."""
        fields["updated_at"] = utcnow()
        result = await self.db.execute(
            update(Journey)
            .where(Journey.journey_id == journey_id, Journey.status == expected)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def journey_stats(
        self,
        user_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> Dict[str, Any]:
        filters = self._journey_filters(user_id, date_from, date_to)
        stmt = select(
            func.count(Journey.id).label("total_journeys"),
            func.sum(case((Journey.status == JourneyStatus.COMPLETED, 1), else_=0)).label("completed_journeys"),
            func.sum(case((Journey.status == JourneyStatus.CANCELLED, 1), else_=0)).label("cancelled_journeys"),
            func.avg(Journey.total_fare).label("average_fare"),
            func.sum(Journey.total_fare).label("total_spent"),
            func.avg(Journey.total_duration_minutes).label("average_duration"),
            func.sum(Journey.total_distance_km).label("total_distance"),
        ).where(*filters)

        row = (await self.db.execute(stmt)).one()
        return {
            "total_journeys": row.total_journeys or 0,
            "completed_journeys": int(row.completed_journeys or 0),
            "cancelled_journeys": int(row.cancelled_journeys or 0),
            "average_fare": round(float(row.average_fare or 0), 2),
            "total_spent": round(float(row.total_spent or 0), 2),
            "average_duration": round(float(row.average_duration or 0), 2),
            "total_distance": round(float(row.total_distance or 0), 2),
        }

    async def delete_journey(self, journey: Journey) -> None:
        await self.db.delete(journey)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Fare signs
    # ------------------------------------------------------------------

    async def create_sign(self, sign: HikingSign) -> HikingSign:
        self.db.add(sign)
        await self.db.commit()
        await self.db.refresh(sign)
        return sign

    async def get_sign(self, sign_id: int) -> Optional[HikingSign]:
        result = await self.db.execute(
            select(HikingSign)
            .where(HikingSign.id == sign_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_signs_near(self, point: GeoPoint, radius_meters: float) -> List[Tuple[HikingSign, float]]:
        """Signs within the radius, nearest first."""
        filters = self._box_filters(HikingSign, point, radius_meters)
        result = await self.db.execute(select(HikingSign).where(*filters))
        return nearby(point, radius_meters, result.scalars().all())

    async def list_verified_signs(self, skip: int = 0, limit: int = 100) -> List[HikingSign]:
        result = await self.db.execute(
            select(HikingSign)
            .where(HikingSign.is_verified == True)
            .order_by(HikingSign.verification_count.desc(), HikingSign.id)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def signs_by_location(self, from_location: Optional[str], to_location: Optional[str]) -> List[HikingSign]:
        """Signs whose from/to text contains the given fragments (case-insensitive)."""
        filters = []
        if from_location:
            filters.append(HikingSign.from_location.ilike(_like(from_location)))
        if to_location:
            filters.append(HikingSign.to_location.ilike(_like(to_location)))

        result = await self.db.execute(
            select(HikingSign)
            .where(*filters)
            .order_by(HikingSign.is_verified.desc(), HikingSign.verification_count.desc(), HikingSign.id)
        )
        return list(result.scalars().all())

    async def set_sign_match(self, sign: HikingSign, rank_id: Optional[int], route_id: Optional[int]) -> HikingSign:
        sign.matched_rank_id = rank_id
        sign.matched_route_id = route_id
        await self.db.commit()
        await self.db.refresh(sign)
        return sign

    async def increment_sign_verification(self, sign_id: int, verifier_id: int, threshold: int) -> Tuple[HikingSign, bool]:
        """
        Record one verification of a sign.

        Inserts the (sign, verifier) record and applies the counter increment
        as a single UPDATE expression inside one SAVEPOINT. A repeated
        verifier hits the unique constraint; only the savepoint rolls back,
        so the sign is left unchanged and objects already loaded in the
        session stay usable.

        Returns:
            (sign as stored after the call, whether a verification was applied)

        Raises:
            ResourceNotFoundError: If the sign does not exist
            ConcurrencyError: On lock contention; safe to retry
        """
        exists = await self.db.scalar(select(HikingSign.id).where(HikingSign.id == sign_id))
        if exists is None:
            raise ResourceNotFoundError("HikingSign", sign_id)

        new_count = HikingSign.verification_count + 1
        try:
            try:
                async with self.db.begin_nested():
                    self.db.add(SignVerification(sign_id=sign_id, verifier_id=verifier_id))
                    await self.db.flush()
                    await self.db.execute(
                        update(HikingSign)
                        .where(HikingSign.id == sign_id)
                        .values(
                            verification_count=new_count,
                            is_verified=or_(HikingSign.is_verified == True, new_count >= threshold),
                            verification_date=utcnow(),
                            last_updated_by=verifier_id,
                            updated_at=utcnow(),
                        )
                        .execution_options(synchronize_session=False)
                    )
                applied = True
            except IntegrityError:
                logger.info("Verifier %s already verified sign %s", verifier_id, sign_id)
                applied = False
            await self.db.commit()
        except DBAPIError as exc:
            await self.db.rollback()
            if is_retryable(exc):
                logger.warning("Lock contention verifying sign %s", sign_id)
                raise ConcurrencyError(details={"sign_id": sign_id})
            raise

        sign = await self.get_sign(sign_id)
        return sign, applied

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _box_filters(model: Any, point: GeoPoint, radius_meters: float) -> List[Any]:
        if radius_meters is None or radius_meters < 0:
            # nearby() raises the proper validation error
            return []
        min_lat, max_lat, min_lon, max_lon = bounding_box(point, radius_meters / 1000.0)
        filters = [model.latitude.between(min_lat, max_lat)]
        if min_lon is not None:
            filters.append(model.longitude.between(min_lon, max_lon))
        return filters

    @staticmethod
    def _journey_filters(
        user_id: Optional[int],
        date_from: Optional[datetime],
        date_to: Optional[datetime]
    ) -> List[Any]:
        filters = []
        if user_id is not None:
            filters.append(Journey.user_id == user_id)
        if date_from is not None:
            filters.append(Journey.created_at >= date_from)
        if date_to is not None:
            filters.append(Journey.created_at <= date_to)
        return filters
