"""
Search result parsing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ProductHit:
    """One ranked product: the indexed document plus score and highlights."""

    id: str
    source: Dict[str, Any]
    score: Optional[float] = None
    highlighted: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {k: v for k, v in self.source.items() if k != "suggest"}
        data["id"] = self.id
        data["score"] = self.score
        if self.highlighted:
            data["highlighted"] = self.highlighted
        return data


def total_hits(response: Dict[str, Any]) -> int:
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


def parse_hits(response: Dict[str, Any]) -> List[ProductHit]:
    hits = []
    for hit in response.get("hits", {}).get("hits", []):
        highlight = hit.get("highlight") or {}
        highlighted = {}
        if highlight:
            highlighted = {
                "name": (highlight.get("name") or [None])[0],
                "description": (highlight.get("description") or [None])[0],
            }
        source = hit.get("_source") or {}
        hits.append(ProductHit(
            id=str(source.get("id") or hit.get("_id")),
            source=source,
            score=hit.get("_score"),
            highlighted=highlighted,
        ))
    return hits


def spell_suggestion(response: Dict[str, Any], query: str) -> Optional[str]:
    """
    Top phrase-suggester correction, or None.

    Only surfaced when it differs from the query ignoring case.
    """
    entries = (response.get("suggest") or {}).get("spell_correction") or []
    if not entries or not entries[0].get("options"):
        return None
    text = entries[0]["options"][0].get("text")
    if not text or text.lower() == query.lower():
        return None
    return text
