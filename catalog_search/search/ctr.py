"""
CTR Boost
Turns per-query click metrics into function_score weights.
"""

import math
from typing import Any, Dict, List, Mapping

# (minimum discount %, weight), highest tier first
DISCOUNT_TIERS = [(40, 1.6), (20, 1.3), (10, 1.15)]


def position_multiplier(avg_position: float) -> float:
    """Clicks earned near the top are worth a little more."""
    if avg_position <= 2:
        return 1.3
    if avg_position <= 5:
        return 1.1
    return 1.0


def ctr_boost_weight(entry: Mapping[str, Any], max_clicks: int, cap: float = 3.0) -> float:
    """
    Boost weight for one (query, product) metrics entry.

    weight = log1p(clicks) / log1p(max_clicks)
             * (1 + min(conversions / 10, 0.5))
             * position multiplier
             * cap

    clamped to [1.0, cap] and rounded to 2 decimals.

    Args:
        entry: Mapping with clicks, conversions and avg_position
        max_clicks: Highest click count among the query's entries
        cap: Upper bound of the weight
    """
    clicks = max(int(entry.get("clicks") or 0), 0)
    conversions = max(int(entry.get("conversions") or 0), 0)
    avg_position = float(entry.get("avg_position") or 0)

    max_clicks = max(int(max_clicks), 1)
    normalized = math.log1p(clicks) / math.log1p(max_clicks)
    conversion_mult = 1 + min(conversions / 10, 0.5)

    weight = normalized * conversion_mult * position_multiplier(avg_position) * cap
    return max(1.0, min(cap, round(weight, 2)))


def build_ctr_functions(entries: List[Mapping[str, Any]], cap: float = 3.0) -> List[Dict[str, Any]]:
    """
    function_score clauses boosting products users clicked for this query.

    Returns:
        List of {"filter": {"term": {"id": ...}}, "weight": w}
    """
    if not entries:
        return []

    max_clicks = max(int(e.get("clicks") or 0) for e in entries)
    return [
        {
            "filter": {"term": {"id": entry["product_id"]}},
            "weight": ctr_boost_weight(entry, max_clicks, cap),
        }
        for entry in entries
        if entry.get("product_id")
    ]


def build_discount_functions() -> List[Dict[str, Any]]:
    """Tiered boosts for discounted products; a product matches its highest tier only."""
    functions = []
    upper = None
    for minimum, weight in DISCOUNT_TIERS:
        bounds: Dict[str, Any] = {"gte": minimum}
        if upper is not None:
            bounds["lt"] = upper
        functions.append({"filter": {"range": {"discount": bounds}}, "weight": weight})
        upper = minimum
    return functions
