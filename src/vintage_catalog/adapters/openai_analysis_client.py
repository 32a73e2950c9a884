"""OpenAI Responses API client for item analysis."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from vintage_catalog.domain.errors import AnalysisError
from vintage_catalog.services.analysis import AnalysisClient


@dataclass
class OpenAIAnalysisClient(AnalysisClient):
    """Analysis client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIAnalysisClient":
        """Create an OpenAI analysis client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

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
        """Call OpenAI Responses API with structured outputs."""
        content: list[dict[str, object]] = [{"type": "input_text", "text": prompt}]
        content.extend(
            {"type": "input_image", "image_url": url} for url in image_data_urls
        )
        request_payload: dict[str, object] = {
            "model": model,
            "input": [{"role": "user", "content": content}],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "item_analysis",
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise AnalysisError("OpenAI returned an empty response")
        try:
            return json.loads(_extract_json_object(output_text))
        except json.JSONDecodeError as exc:
            raise AnalysisError("OpenAI returned malformed JSON") from exc


def _extract_json_object(text: str) -> str:
    """Strip markdown fences or chatter around the JSON object."""
    cleaned = text.replace("```json", "").replace("```", "").strip()
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last != -1:
        return cleaned[first : last + 1]
    return cleaned
