"""Pricing catalog data models."""

from pydantic import BaseModel, Field


class Package(BaseModel):
    """A priced livestream offering."""

    id: str
    name: str
    description: str = ""
    base_price: float = Field(ge=0)
    features: list[str] = Field(default_factory=list)


class PricingBreakdown(BaseModel):
    """Itemised price of a checkout configuration."""

    package_id: str | None = None
    base_price: float = 0.0
    extra_hours: float = 0.0
    extra_hours_cost: float = 0.0
    extra_locations: int = 0
    extra_locations_cost: float = 0.0
    total: float = 0.0
