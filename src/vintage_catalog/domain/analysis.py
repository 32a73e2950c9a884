"""Models for AI item analysis results."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

CATEGORIES = (
    "Vinyl & Music",
    "Furniture",
    "Decor & Lighting",
    "Art",
    "Jewelry & Watches",
    "Fashion",
    "Ceramics & Glass",
    "Collectibles",
    "Books",
    "Automotive",
    "Electronics",
    "Other",
)


class ItemAnalysis(BaseModel):
    """Structured metadata extracted for one catalog item."""

    category: str = ""
    title: str = ""
    maker: str = ""
    style: str = ""
    materials: str = ""
    markings: str = ""
    era: str = ""
    condition: str = ""
    valuation_low: float = Field(default=0, ge=0)
    valuation_high: float = Field(default=0, ge=0)
    confidence: Literal["high", "medium", "low"] | None = None
    confidence_reason: str = ""
    reasoning: str = ""
    search_terms: str = ""
    search_terms_broad: str = ""
    sales_blurb: str = ""
    questions: list[str] = Field(default_factory=list, max_length=3)

    @field_validator("questions", mode="before")
    @classmethod
    def keep_first_questions(cls, value: object) -> object:
        if isinstance(value, list):
            return value[:3]
        return value

    @field_validator("valuation_low", "valuation_high", mode="before")
    @classmethod
    def floor_negative_valuation(cls, value: object) -> object:
        if isinstance(value, int | float) and value < 0:
            return 0
        return value

    @classmethod
    def empty(cls) -> "ItemAnalysis":
        """Return metadata with every field at its default."""
        return cls()

    def to_record_fields(self) -> dict[str, object]:
        """Return the fields written onto a catalog record."""
        return self.model_dump()
