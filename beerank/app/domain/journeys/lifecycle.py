"""
Journey lifecycle management.

State machine:
    planned -> active -> completed
    planned -> cancelled
    active  -> cancelled

completed and cancelled are terminal. A no_route_found journey can only be
cancelled. Transitions are applied as compare-and-set updates on the
stored status, so two concurrent callers cannot both move the same journey.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from beerank.app.core.exceptions import (
    ConcurrencyError,
    InvalidRatingError,
    InvalidStateTransitionError,
    ResourceNotFoundError,
    ValidationError,
)
from beerank.app.domain.routing.pathfinder import PlanResult
from beerank.app.models.enums import JourneyStatus, JourneyType, TransitionAction
from beerank.app.models.journey import Journey
from beerank.app.models.route_connection import RouteConnection
from beerank.app.services.activity import ActivityAction, record_activity
from beerank.app.services.store import TransitStore, utcnow
from beerank.app.services.users import require_active_user

logger = logging.getLogger("beerank.journeys")

TRANSITIONS = {
    JourneyStatus.PLANNED: (JourneyStatus.ACTIVE, JourneyStatus.CANCELLED),
    JourneyStatus.ACTIVE: (JourneyStatus.COMPLETED, JourneyStatus.CANCELLED),
    JourneyStatus.COMPLETED: (),
    JourneyStatus.CANCELLED: (),
}

ACTION_TARGETS = {
    TransitionAction.START: JourneyStatus.ACTIVE,
    TransitionAction.COMPLETE: JourneyStatus.COMPLETED,
    TransitionAction.CANCEL: JourneyStatus.CANCELLED,
}

ACTION_ACTIVITIES = {
    JourneyStatus.ACTIVE: ActivityAction.JOURNEY_STARTED,
    JourneyStatus.COMPLETED: ActivityAction.JOURNEY_COMPLETED,
    JourneyStatus.CANCELLED: ActivityAction.JOURNEY_CANCELLED,
}

FARE_TOLERANCE = 0.005


def allowed_next_states(status: JourneyStatus, journey_type: JourneyType) -> List[JourneyStatus]:
    """Legal next states for a journey in ``status``."""
    if journey_type == JourneyType.NO_ROUTE_FOUND:
        return [JourneyStatus.CANCELLED] if status == JourneyStatus.PLANNED else []
    return list(TRANSITIONS[status])


def validate_plan(plan: PlanResult) -> None:
    """
    Check a plan is internally consistent before it is persisted.

    Raises:
        ValidationError: On hop count, sequence, chain or fare mismatches
    """
    segments = plan.segments

    if plan.journey_type == JourneyType.NO_ROUTE_FOUND:
        if segments:
            raise ValidationError("A no_route_found plan cannot carry segments")
        return

    if not segments:
        raise ValidationError("A plan with a route must have at least one hop")

    expected_type = JourneyType.DIRECT if len(segments) == 1 else JourneyType.CONNECTED
    if plan.journey_type != expected_type:
        raise ValidationError(
            f"Plan with {len(segments)} hop(s) must be '{expected_type.value}'",
            details={"journey_type": plan.journey_type.value, "hop_count": len(segments)}
        )

    orders = [s.sequence_order for s in segments]
    if orders != list(range(1, len(segments) + 1)):
        raise ValidationError("Segment sequence must be contiguous from 1", details={"sequence": orders})

    # Chain continuity: each hop starts where the previous one ended
    current = plan.origin_rank_id
    for segment in segments:
        if segment.origin_rank_id != current:
            raise ValidationError(
                "Segments do not form a continuous chain",
                details={"sequence_order": segment.sequence_order, "expected_origin": current}
            )
        current = segment.connection_rank_id
    if current != plan.destination_rank_id:
        raise ValidationError("Last segment does not reach the destination")

    fare_sum = round(sum(s.fare for s in segments), 2)
    if abs(fare_sum - plan.total_fare) > FARE_TOLERANCE:
        raise ValidationError(
            "Total fare does not equal the sum of segment fares",
            details={"total_fare": plan.total_fare, "segment_sum": fare_sum}
        )


class JourneyLifecycleManager:
    """Persists plans as journeys and drives their status."""

    def __init__(self, store: TransitStore):
        self.store = store
        self.db = store.db

    async def create_journey(self, plan: PlanResult, user_id: int) -> Journey:
        """
        Persist a plan as a planned journey with its connections.

        Args:
            plan: Result of JourneyPathfinder.plan (no_route_found allowed)
            user_id: Owner of the journey

        Returns:
            Stored journey with connections loaded

        Raises:
            ResourceNotFoundError: If the user is unknown
            ValidationError: If the plan is inconsistent or references unknown routes
        """
        # 1. Owner must exist
        await require_active_user(self.db, user_id)

        # 2. Plan sanity
        validate_plan(plan)

        # 3. Build rows, sequence orders assigned in memory
        journey = Journey(
            journey_id=str(uuid.uuid4()),
            user_id=user_id,
            origin_rank_id=plan.origin_rank_id,
            destination_rank_id=plan.destination_rank_id,
            total_fare=plan.total_fare,
            total_duration_minutes=plan.total_duration_minutes,
            total_distance_km=plan.total_distance_km,
            hop_count=plan.hop_count,
            route_path=plan.rank_path,
            journey_type=plan.journey_type,
            status=JourneyStatus.PLANNED,
        )
        connections = [
            RouteConnection(
                route_id=segment.route_id,
                sequence_order=segment.sequence_order,
                connection_rank_id=segment.connection_rank_id,
                segment_fare=segment.fare,
                segment_duration_minutes=segment.duration_minutes,
                segment_distance_km=segment.distance_km,
                waiting_time_minutes=segment.waiting_time_minutes,
            )
            for segment in plan.segments
        ]

        # 4. Single transaction
        try:
            saved = await self.store.create_journey(journey, connections)
        except IntegrityError:
            raise ValidationError(
                "Plan references ranks or routes that no longer exist",
                details={"route_ids": [s.route_id for s in plan.segments]}
            )

        logger.info(
            "Created %s journey %s for user %s (%d hops)",
            saved.journey_type.value, saved.journey_id, user_id, saved.hop_count
        )
        await record_activity(
            self.db,
            ActivityAction.JOURNEY_CREATED,
            user_id=user_id,
            entity_type="journey",
            entity_id=saved.journey_id,
            metadata={"journey_type": saved.journey_type.value, "total_fare": saved.total_fare},
        )
        return saved

    async def get_journey(self, journey_id: str) -> Journey:
        journey = await self.store.get_journey(journey_id)
        if journey is None:
            raise ResourceNotFoundError("Journey", journey_id)
        return journey

    async def transition(self, journey_id: str, action: TransitionAction, reason: Optional[str] = None) -> Journey:
        """
        Apply a lifecycle action (start, complete or cancel).

        Raises:
            ResourceNotFoundError: Unknown journey
            ValidationError: Cancel without a reason
            InvalidStateTransitionError: Action not legal from the current status
            ConcurrencyError: Another caller changed the journey first but the action may still apply
        """
        try:
            action = TransitionAction(action)
        except ValueError:
            raise ValidationError(
                f"Unknown journey action '{action}'",
                details={"allowed_actions": [a.value for a in TransitionAction]}
            )
        target = ACTION_TARGETS[action]

        if target == JourneyStatus.CANCELLED and not (reason and reason.strip()):
            raise ValidationError("A cancellation reason is required", details={"journey_id": journey_id})

        journey = await self.get_journey(journey_id)
        current = journey.status
        self._ensure_allowed(journey, target)

        now = utcnow()
        fields: Dict[str, Any] = {}
        if target == JourneyStatus.ACTIVE:
            fields["started_at"] = now
        elif target == JourneyStatus.COMPLETED:
            fields["completed_at"] = now
        else:
            fields["cancelled_at"] = now
            fields["cancellation_reason"] = reason.strip()

        applied = await self.store.update_journey_status(journey_id, current, target, **fields)
        fresh = await self.get_journey(journey_id)

        if not applied:
            # Lost the compare-and-set to a concurrent caller
            self._ensure_allowed(fresh, target)
            raise ConcurrencyError(details={"journey_id": journey_id, "current_status": fresh.status.value})

        logger.info("Journey %s: %s -> %s", journey_id, current.value, target.value)
        await record_activity(
            self.db,
            ACTION_ACTIVITIES[target],
            user_id=fresh.user_id,
            entity_type="journey",
            entity_id=journey_id,
            metadata={"from": current.value, "to": target.value, "reason": fields.get("cancellation_reason")},
        )
        return fresh

    async def start_journey(self, journey_id: str) -> Journey:
        return await self.transition(journey_id, TransitionAction.START)

    async def complete_journey(self, journey_id: str) -> Journey:
        return await self.transition(journey_id, TransitionAction.COMPLETE)

    async def cancel_journey(self, journey_id: str, reason: str) -> Journey:
        return await self.transition(journey_id, TransitionAction.CANCEL, reason)

    async def rate_journey(self, journey_id: str, rating: Any, feedback: Optional[str] = None) -> Journey:
        """
        Rate a completed journey.

        Raises:
            InvalidRatingError: Rating is not an integer in 1..5
            InvalidStateTransitionError: Journey is not completed
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidRatingError(rating)

        journey = await self.get_journey(journey_id)
        if journey.status != JourneyStatus.COMPLETED:
            raise InvalidStateTransitionError(
                journey.status.value,
                "rated",
                [s.value for s in allowed_next_states(journey.status, journey.journey_type)]
            )

        applied = await self.store.update_journey_fields(
            journey_id,
            JourneyStatus.COMPLETED,
            rating=rating,
            feedback=feedback,
            rated_at=utcnow(),
        )
        if not applied:
            raise ConcurrencyError(details={"journey_id": journey_id})

        await record_activity(
            self.db,
            ActivityAction.JOURNEY_RATED,
            user_id=journey.user_id,
            entity_type="journey",
            entity_id=journey_id,
            metadata={"rating": rating},
        )
        return await self.get_journey(journey_id)

    async def list_journeys(
        self,
        user_id: Optional[int] = None,
        status: Optional[JourneyStatus] = None,
        journey_type: Optional[JourneyType] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Journey], int]:
        return await self.store.list_journeys(
            user_id=user_id,
            status=status,
            journey_type=journey_type,
            date_from=date_from,
            date_to=date_to,
            skip=skip,
            limit=limit,
        )

    async def journey_stats(
        self,
        user_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return await self.store.journey_stats(user_id=user_id, date_from=date_from, date_to=date_to)

    async def delete_journey(self, journey_id: str) -> None:
        """Delete a journey; its connections go with it."""
        journey = await self.get_journey(journey_id)
        user_id = journey.user_id
        await self.store.delete_journey(journey)
        logger.info("Deleted journey %s", journey_id)
        await record_activity(
            self.db,
            ActivityAction.JOURNEY_DELETED,
            user_id=user_id,
            entity_type="journey",
            entity_id=journey_id,
        )

    @staticmethod
    def _ensure_allowed(journey: Journey, target: JourneyStatus) -> None:
        allowed = allowed_next_states(journey.status, journey.journey_type)
        if target not in allowed:
            raise InvalidStateTransitionError(
                journey.status.value,
                target.value,
                [s.value for s in allowed]
            )
