"""Tests for photo payload validation."""

import base64

import pytest

from photo_survey.domain.errors import InvalidInputError, PhotoTooLargeError
from photo_survey.services.photos import (
    detect_mime_type,
    photo_from_bytes,
    photo_from_data_uri,
    to_data_url,
)
from tests.conftest import PNG_BYTES, PNG_DATA_URI


def test_photo_from_bytes_builds_data_url() -> None:
    assert photo_from_bytes(PNG_BYTES) == PNG_DATA_URI


def test_photo_from_bytes_rejects_empty_payload() -> None:
    with pytest.raises(InvalidInputError):
        photo_from_bytes(b"")


def test_photo_size_limit_is_inclusive() -> None:
    assert photo_from_bytes(b"\xff\xd8\xff" + b"0" * 7, max_bytes=10)

    with pytest.raises(PhotoTooLargeError):
        photo_from_bytes(b"\xff\xd8\xff" + b"0" * 8, max_bytes=10)


def test_photo_from_data_uri_accepts_image_uri() -> None:
    assert photo_from_data_uri(f"  {PNG_DATA_URI}\n") == PNG_DATA_URI


@pytest.mark.parametrize(
    "value",
    [
        "",
        "   ",
        "aGVsbG8=",
        "data:text/plain;base64,aGVsbG8=",
        "data:image/png;base64,not base64!",
    ],
)
def test_photo_from_data_uri_rejects_invalid_input(value: str) -> None:
    with pytest.raises(InvalidInputError):
        photo_from_data_uri(value)


def test_photo_from_data_uri_rejects_oversized_image() -> None:
    encoded = base64.b64encode(b"0" * 64).decode("ascii")

    with pytest.raises(PhotoTooLargeError):
        photo_from_data_uri(f"data:image/jpeg;base64,{encoded}", max_bytes=32)


def test_detect_mime_type_reads_signatures() -> None:
    assert detect_mime_type(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
    assert detect_mime_type(PNG_BYTES) == "image/png"
    assert detect_mime_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
    assert detect_mime_type(b"GIF89a...") == "image/gif"
    assert detect_mime_type(b"\x00\x00\x00\x18ftypheic") == "image/heic"


def test_to_data_url_defaults_to_jpeg() -> None:
    assert to_data_url(b"unknown").startswith("data:image/jpeg;base64,")
