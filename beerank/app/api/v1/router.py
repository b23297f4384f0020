"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from beerank.app.api.v1.endpoints import ranks, routes, journeys, signs, activity

router = APIRouter()

# Network maintenance
router.include_router(ranks.router)
router.include_router(routes.router)

# Journey planning and lifecycle
router.include_router(journeys.router)

# Fare signs
router.include_router(signs.router)

# Activity trail
router.include_router(activity.router)
