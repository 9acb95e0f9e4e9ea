from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..services.gemini import GeminiClient, GeminiError

logger = logging.getLogger(__name__)

M2O_ATTENTION_THRESHOLD = 12
FOOD_ACCURACY_TARGET = 95

_LIST_PATTERNS = {
    "findings": re.compile(r"(?:key findings|insights)[:\s]*((?:[-•*]\s*.*(?:\n|$))*)", re.IGNORECASE),
    "recommendations": re.compile(r"(?:recommendations|actions)[:\s]*((?:[-•*]\s*.*(?:\n|$))*)", re.IGNORECASE),
    "risks": re.compile(r"(?:risks?|concerns?)[:\s]*((?:[-•*]\s*.*(?:\n|$))*)", re.IGNORECASE),
    "opportunities": re.compile(r"(?:opportunities)[:\s]*((?:[-•*]\s*.*(?:\n|$))*)", re.IGNORECASE),
}
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_BULLET = re.compile(r"^[-•*]\s*")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _num(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _series(data: Dict[str, Any], key: str, length: int) -> List[float]:
    values = [_num(v) for v in (data.get(key) or [])]
    return values + [0.0] * max(0, length - len(values))


def outlet_rows(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Zip the index-aligned dashboard lists into one record per outlet, best M2O first."""
    outlets = list(data.get("outlets") or [])
    n = len(outlets)
    columns = {
        "m2o": "m2o",
        "trend": "m2oTrend",
        "marketShare": "marketShare",
        "onlinePercent": "onlinePercent",
        "foodAccuracy": "foodAccuracy",
        "newUsers": "newUsers",
        "repeatUsers": "repeatUsers",
        "lapsedUsers": "lapsedUsers",
    }
    series = {name: _series(data, key, n) for name, key in columns.items()}
    rows = [
        {"name": outlet, **{name: values[i] for name, values in series.items()}}
        for i, outlet in enumerate(outlets)
    ]
    return sorted(rows, key=lambda r: r["m2o"], reverse=True)


def summarize(data: Dict[str, Any], period: str) -> Dict[str, Any]:
    summary = data.get("summary") or {}
    outlets = list(data.get("outlets") or [])
    m2o = _series(data, "m2o", len(outlets))
    result: Dict[str, Any] = {
        "period": period,
        "totalOutlets": len(outlets),
        "averageM2O": summary.get("avgM2O", "0"),
        "averageMarketShare": summary.get("avgMarketShare", "0"),
        "averageOnlinePercent": summary.get("avgOnlinePercent", "0"),
        "averageFoodAccuracy": summary.get("avgFoodAccuracy", "0"),
        "topPerformer": None,
        "bottomPerformer": None,
        "performanceSpread": "0.00",
        "outletsNeedingAttention": sum(1 for v in m2o if v < M2O_ATTENTION_THRESHOLD),
    }
    if m2o:
        best, worst = max(m2o), min(m2o)
        result["topPerformer"] = {"outlet": outlets[m2o.index(best)], "m2o": f"{best:.2f}"}
        result["bottomPerformer"] = {"outlet": outlets[m2o.index(worst)], "m2o": f"{worst:.2f}"}
        result["performanceSpread"] = f"{best - worst:.2f}"
    return result


def extract_list_from_text(text: str, keyword: str) -> Optional[List[str]]:
    match = _LIST_PATTERNS[keyword].search(text)
    if match and match.group(1):
        items = [_BULLET.sub("", line).strip() for line in match.group(1).split("\n")]
        return [item for item in items if item] or None
    return None


def _insights_prompt(summary: Dict[str, Any], rows: List[Dict[str, Any]]) -> str:
    def _line(o: Dict[str, Any]) -> str:
        return f"{o['name']}: M2O {o['m2o']:.2f}%, Food Accuracy {o['foodAccuracy']:.2f}%"

    top = "\n".join(_line(o) for o in rows[:3])
    bottom = "\n".join(_line(o) for o in rows[-3:])
    return f"""You are an expert restaurant business analyst. Analyze this {summary['period']} performance data for {summary['totalOutlets']} restaurant outlets and provide actionable insights.

PERFORMANCE SUMMARY:
- Average M2O: {summary['averageM2O']}%
- Average Market Share: {summary['averageMarketShare']}%
- Average Online Rate: {summary['averageOnlinePercent']}%
- Average Food Accuracy: {summary['averageFoodAccuracy']}%
- Performance Spread: {summary['performanceSpread']}%
- Outlets Needing Attention: {summary['outletsNeedingAttention']}

TOP 3 PERFORMERS:
{top}

BOTTOM 3 PERFORMERS:
{bottom}

ANALYSIS REQUEST:
Provide a JSON response with:
1. keyFindings: Array of 3-5 key insights about performance patterns
2. recommendations: Array of 3-5 specific, actionable recommendations
3. riskFactors: Array of 2-3 main risks identified
4. opportunities: Array of 2-3 growth opportunities

Focus on identifying patterns, correlations between metrics, and actionable business advice. Be specific and data-driven."""


def fallback_insights(summary: Dict[str, Any]) -> Dict[str, Any]:
    """Rule-based insights used whenever the model is unavailable or fails."""
    avg_m2o = _num(summary["averageM2O"])
    avg_accuracy = _num(summary["averageFoodAccuracy"])
    spread = _num(summary["performanceSpread"])
    attention = summary["outletsNeedingAttention"]
    if avg_m2o > 14:
        m2o_label = "excellent"
    elif avg_m2o > M2O_ATTENTION_THRESHOLD:
        m2o_label = "good"
    else:
        m2o_label = "below target"
    return {
        "keyFindings": [
            f"Average M2O of {avg_m2o:.2f}% is {m2o_label}",
            f"Performance spread of {summary['performanceSpread']}% indicates {'high' if spread > 5 else 'moderate'} inconsistency",
            f"{attention} outlets performing below {M2O_ATTENTION_THRESHOLD}% M2O threshold",
            f"Food accuracy averaging {avg_accuracy:.2f}% "
            f"{'exceeds' if avg_accuracy > FOOD_ACCURACY_TARGET else 'needs improvement to meet'} quality standards",
        ],
        "recommendations": [
            "Immediate intervention needed for underperforming outlets"
            if avg_m2o < M2O_ATTENTION_THRESHOLD
            else "Maintain current performance standards",
            "Implement food quality improvement program"
            if avg_accuracy < FOOD_ACCURACY_TARGET
            else "Sustain current food quality processes",
            "Deploy best practices from top performers to struggling outlets",
            "Monitor performance metrics weekly for early intervention",
        ],
        "riskFactors": [
            "Multiple outlets below performance threshold" if attention > 0 else "Performance consistency risk",
            "Food quality standards not met consistently"
            if avg_accuracy < FOOD_ACCURACY_TARGET
            else "Customer satisfaction risk",
        ],
        "opportunities": [
            "Scale successful strategies from top performers",
            "Leverage strong digital presence"
            if _num(summary["averageOnlinePercent"]) > 80
            else "Improve online ordering adoption",
        ],
        "confidence": 0.65,
        "generatedAt": _now(),
        "source": "data-analysis-fallback",
    }


def _insights_from_text(reply: str, summary: Dict[str, Any]) -> Dict[str, Any]:
    match = _JSON_OBJECT.search(reply)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            logger.info("JSON parsing of AI reply failed, using list extraction")
        else:
            if isinstance(parsed, dict):
                return {**parsed, "confidence": 0.85, "generatedAt": _now()}

    avg_m2o = summary["averageM2O"]
    return {
        "keyFindings": extract_list_from_text(reply, "findings") or [
            f"Average M2O of {avg_m2o}% indicates {'good' if _num(avg_m2o) > M2O_ATTENTION_THRESHOLD else 'poor'} overall performance",
            f"Performance spread of {summary['performanceSpread']}% shows significant variation between outlets",
            f"{summary['outletsNeedingAttention']} outlets require immediate attention",
        ],
        "recommendations": extract_list_from_text(reply, "recommendations") or [
            f"Focus on outlets with M2O below {M2O_ATTENTION_THRESHOLD}% for immediate intervention",
            "Implement standardized food quality processes across all outlets",
            "Leverage top performer strategies for struggling outlets",
        ],
        "riskFactors": extract_list_from_text(reply, "risks") or [
            "Performance inconsistency across outlets",
            "Food accuracy below industry standards",
        ],
        "opportunities": extract_list_from_text(reply, "opportunities") or [
            "Replicate top performer strategies",
            "Improve customer retention through quality consistency",
        ],
        "confidence": 0.75,
        "generatedAt": _now(),
    }


def generate_insights(
    data: Dict[str, Any],
    period: str,
    client: GeminiClient,
    analysis_type: str = "comprehensive",
) -> Dict[str, Any]:
    if not client.configured:
        return {
            "keyFindings": ["AI insights unavailable - API key not configured"],
            "recommendations": ["Please configure GEMINI_API_KEY environment variable"],
            "confidence": 0,
        }

    summary = summarize(data, period)
    rows = outlet_rows(data)
    logger.info(
        "Generating %s AI insights for %s data with %d outlets",
        analysis_type,
        period,
        summary["totalOutlets"],
    )
    try:
        reply = client.generate_text(
            _insights_prompt(summary, rows),
            temperature=0.3,
            top_k=40,
            top_p=0.95,
            max_output_tokens=1000,
            timeout=30,
        )
    except GeminiError as exc:
        logger.error("AI insight generation error: %s", exc)
        return fallback_insights(summary)
    return _insights_from_text(reply, summary)


def _m2o_label(m2o: float) -> str:
    if m2o > 14:
        return "excellent"
    if m2o > M2O_ATTENTION_THRESHOLD:
        return "good"
    if m2o > 10:
        return "average"
    return "poor"


def fallback_outlet_analysis(outlet: Dict[str, Any]) -> str:
    m2o = _num(outlet.get("m2o"))
    accuracy = _num(outlet.get("foodAccuracy"))
    trend = "improving" if _num(outlet.get("m2oTrend")) > 0 else "declining"
    if accuracy > FOOD_ACCURACY_TARGET:
        food_quality = "excellent"
    elif accuracy > 90:
        food_quality = "acceptable"
    else:
        food_quality = "concerning"
    advice = (
        "Immediate focus needed on customer satisfaction and operational efficiency."
        if m2o < M2O_ATTENTION_THRESHOLD
        else "Maintain current strategies while monitoring key metrics."
    )
    return (
        f"{outlet.get('name')} shows {_m2o_label(m2o)} performance with {m2o:.2f}% M2O and {trend} trend. "
        f"Food accuracy is {food_quality} at {accuracy:.2f}%. {advice}"
    )


def _outlet_prompt(outlet: Dict[str, Any], period: str, all_data: Dict[str, Any]) -> str:
    trend = _num(outlet.get("m2oTrend"))
    avg_m2o = (all_data.get("summary") or {}).get("avgM2O", "0")
    return f"""Analyze this specific restaurant outlet performance for {period}:

OUTLET: {outlet.get('name')}
METRICS:
- M2O: {_num(outlet.get('m2o')):.2f}% (Trend: {'+' if trend > 0 else ''}{trend:.2f}%)
- Market Share: {_num(outlet.get('marketShare')):.2f}%
- Online Rate: {_num(outlet.get('onlinePercent')):.2f}%
- Food Accuracy: {_num(outlet.get('foodAccuracy')):.2f}%
- New Users: {_num(outlet.get('newUsers')):.2f}%
- Repeat Users: {_num(outlet.get('repeatUsers')):.2f}%
- Lapsed Users: {_num(outlet.get('lapsedUsers')):.2f}%

CONTEXT:
- Industry M2O benchmark: 12-15%
- Food accuracy target: 95%+
- Average M2O across all outlets: {avg_m2o}%

Provide a concise 2-3 sentence analysis focusing on:
1. Current performance assessment
2. Main strengths/weaknesses
3. Specific actionable recommendation"""


def analyze_outlet(
    outlet: Dict[str, Any],
    period: str,
    all_data: Dict[str, Any],
    client: GeminiClient,
) -> str:
    if not client.configured:
        m2o = _num(outlet.get("m2o"))
        label = "excellent" if m2o > 14 else "good" if m2o > M2O_ATTENTION_THRESHOLD else "needs improvement"
        return (
            "AI analysis unavailable - API key not configured. "
            f"Based on data: {outlet.get('name')} has M2O of {m2o:.2f}% which is {label}."
        )
    try:
        reply = client.generate_text(
            _outlet_prompt(outlet, period, all_data),
            temperature=0.4,
            max_output_tokens=200,
            timeout=15,
        )
    except GeminiError as exc:
        logger.error("Outlet AI analysis error: %s", exc)
        return fallback_outlet_analysis(outlet)
    return reply.strip()
