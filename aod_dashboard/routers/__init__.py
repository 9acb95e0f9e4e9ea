from __future__ import annotations

from fastapi import APIRouter

from . import checklist, dashboard, insights

router = APIRouter()
router.include_router(dashboard.router)
router.include_router(checklist.router)
router.include_router(insights.router)
