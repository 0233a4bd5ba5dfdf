"""Tests for verification service."""

import asyncio

from photo_survey.domain.verification import (
    FAILED_ANALYSIS_MESSAGE,
    ObjectJudgment,
    VerificationOutcome,
)
from photo_survey.services.verification import (
    JUDGMENT_SCHEMA,
    VerificationService,
    build_instructions,
)
from tests.conftest import (
    PNG_DATA_URI,
    FakeVerificationClient,
    accepted_payload,
    rejected_payload,
)


def _service(client: FakeVerificationClient, timeout: float = 5) -> VerificationService:
    return VerificationService(
        client=client,
        model="gpt-4o",
        reasoning_effort=None,
        store=False,
        timeout_seconds=timeout,
    )


def test_verify_returns_accepted_outcome() -> None:
    client = FakeVerificationClient(responses=[accepted_payload("smartphone")])

    outcome = asyncio.run(_service(client).verify(PNG_DATA_URI, "smartphone"))

    assert outcome.accepted
    assert outcome.confidence == 0.93
    assert outcome.detected_labels == ["smartphone", "table"]
    assert outcome.rejection_reason is None
    assert client.calls[0]["image_data_url"] == PNG_DATA_URI
    assert client.calls[0]["model"] == "gpt-4o"


def test_verify_uses_model_reasoning_as_rejection_reason() -> None:
    client = FakeVerificationClient(responses=[rejected_payload("Only a mug.")])

    outcome = asyncio.run(_service(client).verify(PNG_DATA_URI, "smartphone"))

    assert not outcome.accepted
    assert outcome.rejection_reason == "Only a mug."
    assert outcome.detected_labels == ["cup"]


def test_verify_supplies_default_reason_when_model_gives_none() -> None:
    payload = rejected_payload()
    payload["reasoning"] = ""
    client = FakeVerificationClient(responses=[payload])

    outcome = asyncio.run(_service(client).verify(PNG_DATA_URI, "doorbell"))

    assert outcome.rejection_reason == "Could not confirm a doorbell in the photo."


def test_verify_reports_upstream_error_as_failed_outcome() -> None:
    client = FakeVerificationClient(responses=[RuntimeError("rate limited")])

    outcome = asyncio.run(_service(client).verify(PNG_DATA_URI, "smartphone"))

    assert outcome == VerificationOutcome.failed()
    assert outcome.rejection_reason == FAILED_ANALYSIS_MESSAGE


def test_verify_reports_malformed_payload_as_failed_outcome() -> None:
    client = FakeVerificationClient(responses=[["not", "an", "object"]])

    outcome = asyncio.run(_service(client).verify(PNG_DATA_URI, "smartphone"))

    assert outcome == VerificationOutcome.failed()


def test_verify_reports_timeout_as_failed_outcome() -> None:
    client = FakeVerificationClient(gate=asyncio.Event())

    outcome = asyncio.run(
        _service(client, timeout=0.01).verify(PNG_DATA_URI, "smartphone")
    )

    assert outcome == VerificationOutcome.failed()


def test_verify_passes_validation_rules_to_instructions() -> None:
    client = FakeVerificationClient()

    asyncio.run(
        _service(client).verify(
            PNG_DATA_URI, "electricity meter", "The dial numbers must be readable."
        )
    )

    instructions = str(client.calls[0]["instructions"])
    assert '"electricity meter"' in instructions
    assert "Additional requirements: The dial numbers must be readable." in instructions
    assert "electricity meter" in str(client.calls[0]["prompt"])


def test_build_instructions_ignores_blank_rules() -> None:
    assert "Additional requirements" not in build_instructions("phone", "   ")


def test_judgment_clamps_confidence_and_coerces_labels() -> None:
    high = ObjectJudgment.model_validate(
        {"isCorrectObject": True, "confidence": 7, "detectedObjects": ["a", None, 3]}
    )
    low = ObjectJudgment.model_validate({"confidence": -0.5, "detectedObjects": "x"})
    junk = ObjectJudgment.model_validate({"confidence": "high"})

    assert high.confidence == 1.0
    assert high.detected_objects == ["a", "3"]
    assert low.confidence == 0.0
    assert low.detected_objects == []
    assert not low.is_correct_object
    assert junk.confidence == 0.0


def test_judgment_schema_requires_every_field() -> None:
    assert set(JUDGMENT_SCHEMA["required"]) == {  # type: ignore[arg-type]
        "isCorrectObject",
        "confidence",
        "detectedObjects",
        "reasoning",
    }
    assert JUDGMENT_SCHEMA["additionalProperties"] is False


def test_judgment_accepts_only_boolean_true() -> None:
    for value in ("yes", "true", 1, 1.0, [True]):
        judgment = ObjectJudgment.model_validate({"isCorrectObject": value})
        assert judgment.is_correct_object is False
    assert ObjectJudgment.model_validate({"isCorrectObject": True}).is_correct_object


def test_verify_rejects_non_boolean_match_flag() -> None:
    payload = accepted_payload()
    payload["isCorrectObject"] = "yes"
    client = FakeVerificationClient(responses=[payload])

    outcome = asyncio.run(_service(client).verify(PNG_DATA_URI, "smartphone"))

    assert not outcome.accepted
    assert outcome.rejection_reason == "A smartphone is the main subject."


def test_verify_hands_one_request_to_the_client() -> None:
    client = FakeVerificationClient()

    asyncio.run(_service(client).verify(PNG_DATA_URI, "smartphone"))

    assert client.requests[0].schema is JUDGMENT_SCHEMA
    assert client.requests[0].store is False
    assert client.requests[0].reasoning_effort is None
