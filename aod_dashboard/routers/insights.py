from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..app.insights import analyze_outlet, generate_insights
from ..dependencies import get_gemini_client
from ..services.gemini import GeminiClient

router = APIRouter(prefix="/api", tags=["insights"])
logger = logging.getLogger(__name__)


class DashboardPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    outlets: List[Any] = Field(default_factory=list)
    summary: Dict[str, Any] = Field(default_factory=dict)


class InsightsBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: DashboardPayload
    period: str = "7 Day"
    analysis_type: str = Field(default="comprehensive", alias="analysisType")


class OutletPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    m2o: Union[float, str] = 0
    m2o_trend: Union[float, str] = Field(default=0, alias="m2oTrend")
    market_share: Union[float, str] = Field(default=0, alias="marketShare")
    online_percent: Union[float, str] = Field(default=0, alias="onlinePercent")
    food_accuracy: Union[float, str] = Field(default=0, alias="foodAccuracy")
    new_users: Union[float, str] = Field(default=0, alias="newUsers")
    repeat_users: Union[float, str] = Field(default=0, alias="repeatUsers")
    lapsed_users: Union[float, str] = Field(default=0, alias="lapsedUsers")


class OutletAnalysisBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    outlet: OutletPayload
    period: str = "7 Day"
    all_data: DashboardPayload = Field(default_factory=DashboardPayload, alias="allData")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/generate-insights")
def post_generate_insights(
    body: InsightsBody,
    gemini: GeminiClient = Depends(get_gemini_client),
) -> Dict[str, Any]:
    insights = generate_insights(
        body.data.model_dump(), body.period, gemini, analysis_type=body.analysis_type
    )
    return {"success": True, "insights": insights, "timestamp": _timestamp()}


@router.post("/analyze-outlet")
def post_analyze_outlet(
    body: OutletAnalysisBody,
    gemini: GeminiClient = Depends(get_gemini_client),
) -> Dict[str, Any]:
    outlet = body.outlet.model_dump(by_alias=True)
    logger.info("Analyzing outlet %s for %s", body.outlet.name, body.period)
    analysis = analyze_outlet(outlet, body.period, body.all_data.model_dump(), gemini)
    return {
        "success": True,
        "analysis": analysis,
        "outlet": body.outlet.name,
        "timestamp": _timestamp(),
    }
