"""
Fare-sign verification ledger.

Commuters photograph official fare boards ("hiking signs") and other
commuters corroborate them. Each verifier counts once per sign; the sign is
marked verified when the count reaches the configured threshold. Signs are
attached, best effort, to the nearest rank and the outgoing route whose
from/to text matches the sign.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple

from beerank.app.core.exceptions import ResourceNotFoundError, ValidationError
from beerank.app.core.reliability import retry_on_conflict
from beerank.app.domain.geo.proximity import GeoPoint, nearest, validate_coordinate
from beerank.app.domain.routing.graph import RankGraph, RouteEdge
from beerank.app.models.hiking_sign import HikingSign
from beerank.app.services.activity import ActivityAction, record_activity
from beerank.app.services.assets import decode_image, upload_asset
from beerank.app.services.store import TransitStore
from beerank.app.services.users import require_active_user

logger = logging.getLogger("beerank.signs")


@dataclass
class SignReport:
    """A fare sign as submitted by a commuter."""
    latitude: float
    longitude: float
    user_id: Optional[int] = None
    image_url: Optional[str] = None
    image_base64: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    fare_amount: Optional[float] = None
    sign_type: str = "fare_board"


def _text_matches(sign_text: Optional[str], route_text: Optional[str]) -> bool:
    if not sign_text or not route_text:
        return False
    a = sign_text.strip().lower()
    b = route_text.strip().lower()
    return bool(a and b) and (a in b or b in a)


def match_score(sign: Any, edge: RouteEdge) -> int:
    """Number of from/to fields on the sign that match the route text."""
    return int(_text_matches(sign.from_location, edge.from_location)) + int(
        _text_matches(sign.to_location, edge.to_location)
    )


def find_match(sign: Any, ranks: Iterable[Any], graph: RankGraph, radius_km: float) -> Tuple[Optional[int], Optional[int]]:
    """
    Locate the rank and route a sign most likely belongs to.

    The nearest active rank within ``radius_km`` anchors the match; among its
    outgoing routes the best text match wins, ties broken by lowest fare then
    route id. A rank without a matching route still anchors the sign.

    Returns:
        (rank id or None, route id or None)
    """
    anchor = nearest(GeoPoint(sign.latitude, sign.longitude), radius_km * 1000.0, ranks)
    if anchor is None:
        return None, None

    rank = anchor[0]
    best: Optional[Tuple[int, float, int]] = None
    for edge in graph.edges_from(rank.id):
        score = match_score(sign, edge)
        if score == 0:
            continue
        key = (-score, edge.fare, edge.route_id)
        if best is None or key < best:
            best = key

    return rank.id, (best[2] if best else None)


class SignVerificationLedger:
    """Submission, matching and verification of fare signs."""

    def __init__(
        self,
        store: TransitStore,
        threshold: int = 1,
        match_radius_km: float = 2.0,
        retry_attempts: int = 3,
        uploader: Callable[[bytes], Awaitable[str]] = upload_asset
    ):
        self.store = store
        self.db = store.db
        self.threshold = max(1, threshold)
        self.match_radius_km = match_radius_km
        self.retry_attempts = retry_attempts
        self.uploader = uploader

    async def submit_sign(self, report: SignReport, graph: Optional[RankGraph] = None) -> HikingSign:
        """
        Store a new, unverified fare sign and try to match it.

        Args:
            report: The submitted sign
            graph: Current route graph; matching is skipped when None

        Raises:
            InvalidCoordinateError: Bad location
            ValidationError: Negative fare or undecodable image
            ResourceNotFoundError: Unknown reporter
        """
        point = validate_coordinate(report.latitude, report.longitude)
        if report.fare_amount is not None and report.fare_amount < 0:
            raise ValidationError("Fare amount must be non-negative", details={"fare_amount": report.fare_amount})
        if report.user_id is not None:
            await require_active_user(self.db, report.user_id)

        image_url = report.image_url
        if report.image_base64:
            image_url = await self.uploader(decode_image(report.image_base64))

        sign = HikingSign(
            user_id=report.user_id,
            image_url=image_url,
            description=report.description,
            sign_type=report.sign_type or "fare_board",
            latitude=point.latitude,
            longitude=point.longitude,
            address=report.address,
            from_location=report.from_location,
            to_location=report.to_location,
            fare_amount=report.fare_amount,
            verification_count=0,
            is_verified=False,
        )
        sign = await self.store.create_sign(sign)
        logger.info("Fare sign %s submitted by user %s", sign.id, report.user_id)

        if graph is not None:
            sign = await self._apply_match(sign, graph)

        await record_activity(
            self.db,
            ActivityAction.SIGN_SUBMITTED,
            user_id=report.user_id,
            entity_type="hiking_sign",
            entity_id=sign.id,
            metadata={"matched_route_id": sign.matched_route_id},
        )
        return sign

    async def get_sign(self, sign_id: int) -> HikingSign:
        sign = await self.store.get_sign(sign_id)
        if sign is None:
            raise ResourceNotFoundError("HikingSign", sign_id)
        return sign

    async def match_sign(self, sign_id: int, graph: RankGraph) -> HikingSign:
        """Re-run matching for a stored sign (e.g. after routes changed)."""
        sign = await self.get_sign(sign_id)
        return await self._apply_match(sign, graph)

    async def _apply_match(self, sign: HikingSign, graph: RankGraph) -> HikingSign:
        ranks = await self.store.list_active_ranks()
        rank_id, route_id = find_match(sign, ranks, graph, self.match_radius_km)
        if rank_id is None:
            logger.debug("Fare sign %s left unattached", sign.id)
        return await self.store.set_sign_match(sign, rank_id, route_id)

    async def verify(self, sign_id: int, verifier_id: int) -> HikingSign:
        """
        Count one verification of a sign by a user.

        A repeated verification by the same user leaves the sign unchanged.
        Lock contention is retried a bounded number of times.

        Raises:
            ResourceNotFoundError: Unknown sign or verifier
            ConcurrencyError: Contention persisted through every retry
        """
        await require_active_user(self.db, verifier_id)

        sign, applied = await retry_on_conflict(
            lambda: self.store.increment_sign_verification(sign_id, verifier_id, self.threshold),
            attempts=self.retry_attempts,
        )

        if applied:
            logger.info(
                "Fare sign %s verified by user %s (count=%s, verified=%s)",
                sign_id, verifier_id, sign.verification_count, sign.is_verified
            )
            await record_activity(
                self.db,
                ActivityAction.SIGN_VERIFIED,
                user_id=verifier_id,
                entity_type="hiking_sign",
                entity_id=sign_id,
                metadata={"verification_count": sign.verification_count},
            )
        return sign

    async def find_nearby_signs(self, point: GeoPoint, radius_meters: float) -> List[Tuple[HikingSign, float]]:
        return await self.store.list_signs_near(point, radius_meters)

    async def list_verified_signs(self, skip: int = 0, limit: int = 100) -> List[HikingSign]:
        return await self.store.list_verified_signs(skip=skip, limit=limit)

    async def signs_by_location(self, from_location: Optional[str], to_location: Optional[str]) -> List[HikingSign]:
        if not from_location and not to_location:
            raise ValidationError("Provide from_location and/or to_location")
        return await self.store.signs_by_location(from_location, to_location)
