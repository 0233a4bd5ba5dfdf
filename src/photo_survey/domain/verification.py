"""Models for object verification results."""

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

FAILED_ANALYSIS_MESSAGE = "Failed to analyze image. Please try again."


@dataclass(frozen=True)
class VerificationOutcome:
    """Normalized judgment on whether a photo shows the expected object."""

    accepted: bool
    confidence: float
    detected_labels: list[str] = field(default_factory=list)
    rejection_reason: str | None = None

    @classmethod
    def failed(cls) -> "VerificationOutcome":
        """Outcome used when the upstream model could not be consulted."""
        return cls(
            accepted=False,
            confidence=0.0,
            detected_labels=[],
            rejection_reason=FAILED_ANALYSIS_MESSAGE,
        )


class ObjectJudgment(BaseModel):
    """Structured output returned by the vision model."""

    model_config = ConfigDict(populate_by_name=True)

    is_correct_object: StrictBool = Field(default=False, alias="isCorrectObject")
    confidence: float = 0.0
    detected_objects: list[str] = Field(default_factory=list, alias="detectedObjects")
    reasoning: str | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> float:
        if isinstance(value, bool) or not isinstance(value, int | float):
            return 0.0
        return max(0.0, min(1.0, float(value)))

    @field_validator("detected_objects", mode="before")
    @classmethod
    def _coerce_labels(cls, value: object) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item is not None]

    @field_validator("is_correct_object", mode="before")
    @classmethod
    def _only_literal_true(cls, value: object) -> bool:
        # Strings and numbers never count as a match.
        return value if isinstance(value, bool) else False
