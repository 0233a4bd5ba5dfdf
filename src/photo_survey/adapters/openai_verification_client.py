"""OpenAI Responses API client for photo verification."""

import json
from dataclasses import dataclass

import httpx
from openai import AsyncOpenAI

from photo_survey.services.verification import JudgmentRequest, VerificationClient

_SCHEMA_NAME = "object_judgment"
_MAX_OUTPUT_TOKENS = 500


@dataclass
class OpenAIVerificationClient(VerificationClient):
    """Verification client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(
        cls, api_key: str, timeout_seconds: float = 30.0
    ) -> "OpenAIVerificationClient":
        """Create an OpenAI verification client with a bounded HTTP session."""
        http_client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        return cls(
            client=AsyncOpenAI(api_key=api_key, http_client=http_client, max_retries=1)
        )

    async def judge(self, request: JudgmentRequest) -> dict[str, object]:
        """Ask the model for a structured judgment of one photo."""
        response = await self.client.responses.create(**_response_params(request))
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return json.loads(output_text)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()


def _response_params(request: JudgmentRequest) -> dict[str, object]:
    # The image travels inline as a data URL next to the user prompt.
    params: dict[str, object] = {
        "model": request.model,
        "instructions": request.instructions,
        "input": [
            {
                "role": "user",
                "content": [
                    {"type": "input_text", "text": request.prompt},
                    {"type": "input_image", "image_url": request.image_data_url},
                ],
            }
        ],
        "text": {
            "format": {
                "type": "json_schema",
                "name": _SCHEMA_NAME,
                "strict": True,
                "schema": request.schema,
            }
        },
        "store": request.store,
        "max_output_tokens": _MAX_OUTPUT_TOKENS,
    }
    if request.reasoning_effort:
        params["reasoning"] = {"effort": request.reasoning_effort}
    return params
