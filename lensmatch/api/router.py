"""
Lensmatch Discover: Main API Router

Aggregates the sub-routers so that ``lensmatch.main`` can mount the whole
API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from lensmatch.api import discover, matches

router = APIRouter()

router.include_router(discover.router, prefix="/discover", tags=["Discover"])
router.include_router(matches.router, prefix="/matches", tags=["Matches"])
