"""AI appraisal of catalog items from their photos."""

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from vintage_catalog.domain.analysis import CATEGORIES, ItemAnalysis
from vintage_catalog.domain.errors import AnalysisError
from vintage_catalog.services.images import to_data_url

logger = logging.getLogger(__name__)

_TEXT_FIELDS = (
    "category",
    "title",
    "maker",
    "style",
    "materials",
    "markings",
    "era",
    "condition",
    "confidence_reason",
    "reasoning",
    "search_terms",
    "search_terms_broad",
    "sales_blurb",
)

ANALYSIS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        **{name: {"type": "string"} for name in _TEXT_FIELDS},
        "category": {"type": "string", "enum": list(CATEGORIES)},
        "valuation_low": {"type": "number", "minimum": 0},
        "valuation_high": {"type": "number", "minimum": 0},
        "confidence": {"type": "string", "enum": ["high", "medium", "low"]},
        "questions": {"type": "array", "items": {"type": "string"}, "maxItems": 3},
    },
    "required": [
        *_TEXT_FIELDS,
        "valuation_low",
        "valuation_high",
        "confidence",
        "questions",
    ],
    "additionalProperties": False,
}

# Details the user already entered are passed to the model as trusted facts.
_KNOWN_FIELD_LABELS = (
    ("title", "Title/Type"),
    ("maker", "Maker/Brand"),
    ("style", "Style"),
    ("materials", "Materials"),
    ("era", "Era"),
)


class AnalysisClient(Protocol):
    """Interface for LLM image analysis."""

    async def analyze(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_urls: list[str],
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Return structured analysis data."""


@dataclass
class AnalysisService:
    """Service that builds appraisal prompts and validates results."""

    client: AnalysisClient
    model: str
    reasoning_effort: str | None
    store: bool
    max_images: int = 4

    async def analyze(
        self,
        images: Sequence[bytes],
        context_notes: str = "",
        known_fields: Mapping[str, object] | None = None,
    ) -> ItemAnalysis:
        """Appraise an item from its photos, raising AnalysisError on failure."""
        selected = [image for image in images[: self.max_images] if image]
        if not selected:
            raise AnalysisError("No images to analyze")
        prompt = build_prompt(context_notes, known_fields or {})
        try:
            raw = await self.client.analyze(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                image_data_urls=[to_data_url(image) for image in selected],
                schema=ANALYSIS_SCHEMA,
                prompt=prompt,
            )
        except AnalysisError:
            raise
        except Exception as exc:
            raise AnalysisError(f"Analysis request failed: {exc}") from exc
        try:
            return ItemAnalysis.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Analysis returned invalid metadata: %s", exc)
            raise AnalysisError("Analysis returned invalid metadata") from exc


def build_prompt(context_notes: str, known_fields: Mapping[str, object]) -> str:
    """Build the appraisal prompt with user notes and known details."""
    known = [
        f"{label}: {known_fields[name]}"
        for name, label in _KNOWN_FIELD_LABELS
        if known_fields.get(name)
    ]
    lines = [
        "You are an expert archivist and appraiser of vintage and antique items: "
        "books and ephemera, vinyl, art and prints, jewelry and watches, fashion, "
        "furniture and decor, electronics and cameras, toys and trading cards, "
        "kitchenware and glass.",
    ]
    if known:
        lines.append(
            "The user has already identified these details "
            "(trust them over your visual estimate if they conflict): "
            + ", ".join(known)
            + "."
        )
    clarifications = known_fields.get("clarifications")
    if isinstance(clarifications, Mapping) and clarifications:
        lines.append(
            "The user answered your previous questions; use the answers to refine "
            "the valuation: " + json.dumps(dict(clarifications)) + "."
        )
    lines.extend(
        [
            f'Context from the user\'s notes: "{context_notes}".',
            "Classify the item, then analyze it with the lens of its category: "
            "identify maker, style, materials and markings (hallmarks, catalog "
            "numbers, signatures, serial numbers), estimate the era and assess "
            "condition.",
            "Estimate a conservative and an optimistic value in USD, explain the "
            "valuation, give specific and broad (2-4 words) search terms, a sales "
            "description of 3-4 sentences and at most 3 questions about critical "
            "missing information.",
            "Write in a calm, confident, professional tone without exclamation points.",
        ]
    )
    return "\n".join(lines)
