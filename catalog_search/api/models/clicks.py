"""
Click Models
Pydantic models for click and conversion tracking.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class ClickRequest(BaseModel):
    """A click on a search result."""

    query: str = Field(..., min_length=1, max_length=500, description="Search query the result came from")
    product_id: str = Field(..., min_length=1, description="Clicked product ID")
    position: int = Field(..., ge=1, description="1-based position in the result list")
    result_count: int = Field(default=0, ge=0, description="Total results shown for the query")
    filters: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    score: Optional[float] = None
    user_id: Optional[str] = None
    device_id: Optional[str] = None
    session_id: Optional[str] = None

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("query must not be blank")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "query": "face cream",
                "product_id": "p-123",
                "position": 2,
                "result_count": 42,
                "filters": ["brand"],
            }
        }


class ClickResponse(BaseModel):
    success: bool = True
    event_recorded: bool
    metrics_updated: bool


class ConversionRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)
    product_id: str = Field(..., min_length=1)
    revenue: float = Field(default=0.0, ge=0)


class ConversionResponse(BaseModel):
    success: bool = True
    message: str = "Conversion tracked successfully"
    clicks: int
    conversions: int
    revenue: float
