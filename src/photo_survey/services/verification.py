"""Object verification service backed by a vision model."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from photo_survey.domain.verification import ObjectJudgment, VerificationOutcome

logger = logging.getLogger(__name__)

JUDGMENT_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "isCorrectObject": {"type": "boolean"},
        "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
        "detectedObjects": {"type": "array", "items": {"type": "string"}},
        "reasoning": {"type": "string"},
    },
    "required": ["isCorrectObject", "confidence", "detectedObjects", "reasoning"],
    "additionalProperties": False,
}

_INSTRUCTIONS = (
    "You are an expert object detection AI. Analyze the provided image and "
    'determine if it contains the expected object: "{expected}". '
    "Be strict in your verification - the object should be clearly visible "
    "and be the main subject of the photo. Consider variations in naming "
    '(e.g., "cell phone" vs "smartphone", "mobile phone" vs "phone"). '
    "Report the objects you can see and briefly explain why the photo does "
    "or does not match."
)


@dataclass(frozen=True)
class JudgmentRequest:
    """Everything the vision model needs to judge one photo."""

    model: str
    image_data_url: str
    instructions: str
    prompt: str
    schema: dict[str, object]
    reasoning_effort: str | None = None
    store: bool = False


class VerificationClient(Protocol):
    """Interface for a vision model that judges a single photo."""

    async def judge(self, request: JudgmentRequest) -> dict[str, object]:
        """Return the raw structured judgment for one image."""


@dataclass
class VerificationService:
    """Asks the vision model whether a photo shows the expected object.

    Never raises on upstream problems: any failure is reported as a
    negative outcome so callers can offer a retry.
    """

    client: VerificationClient
    model: str
    reasoning_effort: str | None
    store: bool
    timeout_seconds: float = 30.0

    async def verify(
        self,
        image_data_url: str,
        expected_object: str,
        validation_rules: str | None = None,
    ) -> VerificationOutcome:
        """Judge the photo against ``expected_object``."""
        request = JudgmentRequest(
            model=self.model,
            image_data_url=image_data_url,
            instructions=build_instructions(expected_object, validation_rules),
            prompt=(
                f'Please verify if this image contains a "{expected_object}". '
                "The object should be clearly visible and identifiable."
            ),
            schema=JUDGMENT_SCHEMA,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
        )
        try:
            raw = await asyncio.wait_for(
                self.client.judge(request), timeout=self.timeout_seconds
            )
            judgment = ObjectJudgment.model_validate(raw)
        except ValidationError:
            logger.warning("Vision model returned a malformed judgment")
            return VerificationOutcome.failed()
        except Exception:
            logger.exception("Photo verification failed for %r", expected_object)
            return VerificationOutcome.failed()
        return _to_outcome(judgment, expected_object)


def build_instructions(expected_object: str, validation_rules: str | None) -> str:
    """Build the system instructions for a strict object match."""
    instructions = _INSTRUCTIONS.format(expected=expected_object)
    if validation_rules and validation_rules.strip():
        instructions += f" Additional requirements: {validation_rules.strip()}"
    return instructions


def _to_outcome(judgment: ObjectJudgment, expected_object: str) -> VerificationOutcome:
    if judgment.is_correct_object:
        return VerificationOutcome(
            accepted=True,
            confidence=judgment.confidence,
            detected_labels=judgment.detected_objects,
        )
    reason = judgment.reasoning or f"Could not confirm a {expected_object} in the photo."
    return VerificationOutcome(
        accepted=False,
        confidence=judgment.confidence,
        detected_labels=judgment.detected_objects,
        rejection_reason=reason,
    )
